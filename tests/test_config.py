from shardstore.common import Shard
from shardstore.config import Config


def _two_servers():
    config = Config()
    config.insert("b:2", Shard(501, 1000))
    config.insert("a:1", Shard(0, 500))
    return config


def test_get_server_by_upper_bound():
    config = _two_servers()
    assert config.get_server(0) == "a:1"
    assert config.get_server(500) == "a:1"
    assert config.get_server(501) == "b:2"
    assert config.get_server(1000) == "b:2"


def test_get_server_past_last_shard():
    config = _two_servers()
    assert config.get_server(1001) is None


def test_empty_config_has_no_server():
    assert Config().get_server(0) is None


def test_all_servers_ordered_by_shard():
    config = _two_servers()
    config.insert("a:1", Shard(1001, 1200))
    assert config.all_servers() == ["a:1", "b:2", "a:1"]


def test_insert_keeps_existing_upper_bound():
    config = Config()
    config.insert("a:1", Shard(0, 500))
    config.insert("b:2", Shard(100, 500))
    assert config.get_server(300) == "a:1"
    assert config.all_servers() == ["a:1"]


def test_clear():
    config = _two_servers()
    config.clear()
    assert config.all_servers() == []
    assert config.get_server(0) is None


def test_print(capsys):
    _two_servers().print()
    assert capsys.readouterr().out == (
        "Shard {0, 500} on server a:1\nShard {501, 1000} on server b:2\n"
    )