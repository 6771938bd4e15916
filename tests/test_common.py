import grpc
import pytest

from shardstore.common import (
    MAX_KEY,
    MIN_KEY,
    OverlapStatus,
    Shard,
    extract_id,
    get_overlap,
    log_error,
    parse_value,
    resize_shards,
    shard_range_size,
    sort_ascending_interval,
    sort_ascending_size,
    sort_descending_size,
    split,
    split_shard,
)
from shardstore.rpc import RpcError


def test_shard_size_full_range():
    assert Shard(MIN_KEY, MAX_KEY).size() == MAX_KEY - MIN_KEY + 1


def test_shard_str():
    assert str(Shard(0, 1000)) == "{0, 1000}"


def test_split_shard_halves():
    assert split_shard(Shard(0, 1000)) == (Shard(0, 500), Shard(501, 1000))


def test_split_shard_covers_original():
    first, second = split_shard(Shard(7, 20))
    assert first.lower == 7
    assert second.upper == 20
    assert first.upper + 1 == second.lower
    assert first.size() >= second.size()


def test_split_shard_size_one_fails():
    with pytest.raises(ValueError):
        split_shard(Shard(5, 5))


@pytest.mark.parametrize(
    "a, b, expected",
    [
        (Shard(0, 10), Shard(20, 30), OverlapStatus.NO_OVERLAP),
        (Shard(20, 30), Shard(0, 10), OverlapStatus.NO_OVERLAP),
        (Shard(5, 8), Shard(0, 10), OverlapStatus.COMPLETELY_CONTAINED),
        (Shard(0, 10), Shard(0, 10), OverlapStatus.COMPLETELY_CONTAINED),
        (Shard(0, 10), Shard(3, 5), OverlapStatus.COMPLETELY_CONTAINS),
        (Shard(5, 15), Shard(0, 10), OverlapStatus.OVERLAP_START),
        (Shard(0, 10), Shard(5, 15), OverlapStatus.OVERLAP_END),
    ],
)
def test_get_overlap(a, b, expected):
    assert get_overlap(a, b) is expected


def test_sorting_helpers():
    shards = [Shard(501, 1000), Shard(0, 10), Shard(11, 500)]
    assert sort_ascending_interval(shards) == [Shard(0, 10), Shard(11, 500), Shard(501, 1000)]
    assert sort_ascending_size(shards) == [Shard(0, 10), Shard(11, 500), Shard(501, 1000)]
    assert sort_descending_size(shards) == [Shard(501, 1000), Shard(11, 500), Shard(0, 10)]


def test_shard_range_size_covers_key_space():
    assert shard_range_size([Shard(0, 500), Shard(501, 1000)]) == MAX_KEY - MIN_KEY + 1


def test_split_whitespace():
    assert split("join a:1") == ["join", "a:1"]
    assert split("a  b\tc") == ["a", "b", "c"]


def test_split_edges():
    assert split("") == []
    assert split(" a") == ["", "a"]
    assert split("a ") == ["a"]


def test_parse_value_skips_empty_tokens():
    assert parse_value("a,,b,", ",") == ["a", "b"]
    assert parse_value("a,b;c", ",;") == ["a", "b", "c"]


def test_extract_id():
    assert extract_id("user_400") == 400
    assert extract_id("post_0") == 0
    assert extract_id("user_400_posts") == 400
    assert extract_id("user_12abc") == 12


@pytest.mark.parametrize("key", ["user", "user_", "user_abc"])
def test_extract_id_rejects_bad_keys(key):
    with pytest.raises(ValueError):
        extract_id(key)


@pytest.mark.parametrize("add", [True, False])
def test_resize_shards_matches_known_layouts(add):
    assert resize_shards(["a"], add) == {"a": [Shard(0, 1000)]}
    assert resize_shards(["a", "b"], add) == {"a": [Shard(0, 500)], "b": [Shard(501, 1000)]}
    assert resize_shards(["a", "b", "c"], add) == {
        "a": [Shard(0, 333)],
        "b": [Shard(334, 667)],
        "c": [Shard(668, 1000)],
    }
    assert resize_shards(["a", "b", "c", "d"], add) == {
        "a": [Shard(0, 250)],
        "b": [Shard(251, 500)],
        "c": [Shard(501, 750)],
        "d": [Shard(751, 1000)],
    }


def test_resize_shards_five_servers():
    layout = resize_shards(["1", "2", "3", "4", "5"], True)
    assert [shards[0] for shards in layout.values()] == [
        Shard(0, 200),
        Shard(201, 400),
        Shard(401, 600),
        Shard(601, 800),
        Shard(801, 1000),
    ]


def test_resize_shards_is_contiguous():
    servers = [f"s{i}" for i in range(7)]
    layout = resize_shards(servers, True)
    shards = [layout[s][0] for s in servers]
    assert shards[0].lower == MIN_KEY
    assert shards[-1].upper == MAX_KEY
    assert all(x.upper + 1 == y.lower for x, y in zip(shards, shards[1:]))


def test_resize_shards_leave_drops_servers_without_keys():
    num_keys = MAX_KEY - MIN_KEY + 1
    servers = [f"s{i}" for i in range(num_keys + 1)]
    layout = resize_shards(servers, False)
    assert len(layout) == num_keys
    assert all(shards[0].size() == 1 for shards in layout.values())
    assert len(resize_shards(servers, True)) == num_keys + 1


def test_resize_shards_no_servers():
    assert resize_shards([], False) == {}


def test_log_error_writes_to_stderr(capsys):
    log_error("Get", RpcError("boom"))
    err = capsys.readouterr().err
    assert err == "method Get failed with status code 3\nthe error message was: boom\n"


def test_log_error_rejects_ok_status():
    with pytest.raises(ValueError):
        log_error("Get", RpcError("fine", grpc.StatusCode.OK))