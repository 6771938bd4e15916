"""Shard ranges, key helpers and constants shared by every service."""

from __future__ import annotations

import re
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from .rpc import RpcError

# Thresholds for splitting and merging hot or cold shards.
HOT_THRESH = 100
COLD_THRESH = 10

# Inclusive range of keys that shards cover.
MIN_KEY = 0
MAX_KEY = 1000

_WHITESPACE = re.compile(r"\s+")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_INT_MIN = -(2**31)
_INT_MAX = 2**31 - 1


@dataclass(frozen=True)
class Shard:
    """An inclusive range of keys, ``lower`` to ``upper``."""

    lower: int
    upper: int

    def size(self) -> int:
        """Number of keys in the shard."""
        return self.upper - self.lower + 1

    def __str__(self) -> str:
        return f"{{{self.lower}, {self.upper}}}"


class OverlapStatus(Enum):
    """How one shard overlaps another."""

    NO_OVERLAP = "no_overlap"
    OVERLAP_START = "overlap_start"
    OVERLAP_END = "overlap_end"
    COMPLETELY_CONTAINS = "completely_contains"
    COMPLETELY_CONTAINED = "completely_contained"


@dataclass
class Post:
    """A post and the user who wrote it."""

    user_id: str = ""
    content: str = ""


def sort_ascending_interval(shards: Iterable[Shard]) -> list[Shard]:
    """Return the shards ordered by their lower bound."""
    return sorted(shards, key=lambda s: s.lower)


def sort_ascending_size(shards: Iterable[Shard]) -> list[Shard]:
    """Return the shards ordered from smallest to largest."""
    return sorted(shards, key=Shard.size)


def sort_descending_size(shards: Iterable[Shard]) -> list[Shard]:
    """Return the shards ordered from largest to smallest."""
    return sorted(shards, key=Shard.size, reverse=True)


def shard_range_size(shards: Iterable[Shard]) -> int:
    """Total number of keys covered by the shards."""
    return sum(shard.size() for shard in shards)


def split_shard(shard: Shard) -> tuple[Shard, Shard]:
    """Split a shard in two; the first half gets the extra key."""
    if shard.lower >= shard.upper:
        raise ValueError(f"cannot split shard {shard} of size {shard.size()}")
    midpoint = shard.lower + (shard.upper - shard.lower) // 2
    return Shard(shard.lower, midpoint), Shard(midpoint + 1, shard.upper)


def get_overlap(a: Shard, b: Shard) -> OverlapStatus:
    """Describe how ``a`` overlaps ``b``."""
    if a.upper < b.lower or b.upper < a.lower:
        return OverlapStatus.NO_OVERLAP
    if b.lower <= a.lower and a.upper <= b.upper:
        return OverlapStatus.COMPLETELY_CONTAINED
    if a.lower < b.lower and a.upper > b.upper:
        return OverlapStatus.COMPLETELY_CONTAINS
    if a.lower >= b.lower and a.upper > b.upper:
        return OverlapStatus.OVERLAP_START
    if a.lower < b.lower and a.upper <= b.upper:
        return OverlapStatus.OVERLAP_END
    raise RuntimeError("bad case in get_overlap")


def split(s: str) -> list[str]:
    """Split a line on runs of whitespace.

    Leading whitespace yields an empty first token; trailing whitespace
    yields nothing.
    """
    parts = _WHITESPACE.split(s)
    if parts and parts[-1] == "":
        parts.pop()
    return parts


def parse_value(val: str, delim: str) -> list[str]:
    """Split ``val`` on any character of ``delim``, dropping empty tokens."""
    if not delim:
        return [val] if val else []
    pattern = "[" + re.escape(delim) + "]"
    return [token for token in re.split(pattern, val) if token]


def extract_id(key: str) -> int:
    """Return the number that follows the first underscore of a key."""
    tokens = parse_value(key, "_")
    if len(tokens) <= 1:
        raise ValueError(f"ill-formed key: {key!r}")
    match = _LEADING_INT.match(tokens[1])
    if match is None:
        raise ValueError(f"key {key!r} has no numeric id")
    value = int(match.group(1))
    if not _INT_MIN <= value <= _INT_MAX:
        raise ValueError(f"id in key {key!r} is out of range")
    return value


def resize_shards(server_list: Sequence[str], add: bool) -> dict[str, list[Shard]]:
    """Spread the whole key range evenly over the servers, in list order.

    Earlier servers take the leftover keys. When ``add`` is false, servers
    that would receive no keys are left out.
    """
    servers = list(server_list)
    if not servers:
        return {}
    num_keys = MAX_KEY - MIN_KEY + 1
    per_shard, extra = divmod(num_keys, len(servers))

    layout: dict[str, list[Shard]] = {}
    lower = MIN_KEY
    for server in servers:
        upper = lower + per_shard - 1
        if extra:
            upper += 1
            extra -= 1
        elif not add and not per_shard:
            break
        shard = Shard(lower, upper)
        if add:
            layout.setdefault(server, []).append(shard)
        else:
            layout[server] = [shard]
        lower = upper + 1
    return layout


def log_error(method: str, error: RpcError) -> None:
    """Report a failed call on standard error."""
    if error.code_number == 0:
        raise ValueError("log_error called with a successful status")
    sys.stderr.write(
        f"method {method} failed with status code {error.code_number}\n"
        f"the error message was: {error.message}\n"
    )