"""Client-side view of which server holds which shard."""

from __future__ import annotations

import bisect
import sys
from dataclasses import dataclass

from .common import Shard


@dataclass(frozen=True)
class _Placement:
    server: str
    lower: int


class Config:
    """Shards keyed by their upper bound, kept in ascending order."""

    def __init__(self) -> None:
        self._uppers: list[int] = []
        self._placements: dict[int, _Placement] = {}

    def insert(self, server: str, shard: Shard) -> None:
        """Record that ``server`` holds ``shard``; an existing upper bound is kept."""
        if shard.upper in self._placements:
            return
        bisect.insort(self._uppers, shard.upper)
        self._placements[shard.upper] = _Placement(server, shard.lower)

    def get_server(self, key: int) -> str | None:
        """Server of the first shard whose upper bound is at least ``key``."""
        index = bisect.bisect_left(self._uppers, key)
        if index == len(self._uppers):
            return None
        return self._placements[self._uppers[index]].server

    def all_servers(self) -> list[str]:
        """Servers of every shard, in shard order."""
        return [self._placements[upper].server for upper in self._uppers]

    def clear(self) -> None:
        """Forget every shard."""
        self._uppers.clear()
        self._placements.clear()

    def print(self) -> None:
        """Write one line per shard to standard output."""
        for upper in self._uppers:
            placement = self._placements[upper]
            sys.stdout.write(
                f"Shard {{{placement.lower}, {upper}}} on server {placement.server}\n"
            )