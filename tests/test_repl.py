import io

import pytest

from shardstore.repl import RegexCommand, Repl, ReplCommand


class Recorder(RegexCommand):
    def __init__(self, pattern, name):
        super().__init__(pattern)
        self.name = name
        self.handled = []

    def handle(self, line):
        self.handled.append(line)

    def print_help_message(self):
        print(f"help for {self.name}")


def test_regex_command_matches_whole_line(capsys):
    command = Recorder("join .*:\\d+", "join")
    repl = Repl()
    repl.add_command(command)
    repl.process_line("join host:8080")
    repl.process_line("join host:8080x")
    repl.process_line("xjoin host:8080")
    assert command.handled == ["join host:8080"]
    out = capsys.readouterr().out
    assert out == (
        "invalid command: join host:8080x\ntype 'help' for a list of commands\n"
        "invalid command: xjoin host:8080\ntype 'help' for a list of commands\n"
    )
    assert RegexCommand.matches(command, "join host:1")
    assert not RegexCommand.matches(command, "join host:")


def test_first_matching_command_handles_line():
    first = Recorder("get .+", "first")
    second = Recorder("get .+", "second")
    repl = Repl()
    repl.add_command(first)
    repl.add_command(second)
    repl.process_line("get user_1")
    assert first.handled == ["get user_1"]
    assert second.handled == []


def test_invalid_command(capsys):
    repl = Repl()
    repl.add_command(Recorder("get .+", "get"))
    repl.process_line("bogus")
    assert capsys.readouterr().out == "invalid command: bogus\ntype 'help' for a list of commands\n"


def test_help_prints_every_command(capsys):
    a = Recorder("help", "a")
    b = Recorder("get .+", "b")
    repl = Repl()
    repl.add_command(a)
    repl.add_command(b)
    repl.process_line("help")
    assert capsys.readouterr().out == "help for a\nhelp for b\n"
    assert a.handled == []


def test_start_reads_stream(capsys):
    command = Recorder("get .+", "get")
    repl = Repl()
    repl.add_command(command)
    repl.start(io.StringIO("get x\nbogus\n"))
    out = capsys.readouterr().out
    assert out.startswith("run 'help' for a list of commands\n")
    assert "invalid command: bogus\n" in out
    assert command.handled == ["get x"]


def test_repl_command_is_abstract():
    with pytest.raises(TypeError):
        ReplCommand()