"""A line-oriented command loop."""

from __future__ import annotations

import re
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable


class ReplCommand(ABC):
    """A command the loop can recognise and run."""

    @abstractmethod
    def matches(self, line: str) -> bool:
        """Whether this command handles ``line``."""

    @abstractmethod
    def handle(self, line: str) -> None:
        """Run the command for ``line``."""

    @abstractmethod
    def print_help_message(self) -> None:
        """Print usage for this command."""


class RegexCommand(ReplCommand):
    """A command that matches lines equal in full to a pattern."""

    def __init__(self, pattern: str):
        self._regex = re.compile(pattern)

    def matches(self, line: str) -> bool:
        return self._regex.fullmatch(line) is not None


class Repl:
    """Dispatches input lines to the first command that matches them."""

    def __init__(self) -> None:
        self._commands: list[ReplCommand] = []

    def add_command(self, command: ReplCommand) -> None:
        """Append a command; earlier commands take precedence."""
        self._commands.append(command)

    def process_line(self, line: str) -> None:
        """Handle one line of input."""
        if line == "help":
            for command in self._commands:
                command.print_help_message()
            return
        for command in self._commands:
            if command.matches(line):
                command.handle(line)
                return
        print(f"invalid command: {line}\ntype 'help' for a list of commands")

    def start(self, stream: Iterable[str] | None = None) -> None:
        """Read lines from ``stream`` (standard input by default) until it ends."""
        print("run 'help' for a list of commands")
        for raw in sys.stdin if stream is None else stream:
            self.process_line(raw.removesuffix("\n"))