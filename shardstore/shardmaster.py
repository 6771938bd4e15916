"""Static shardmaster: tracks which key-value server owns which key range."""

from __future__ import annotations

import socket
import sys
import threading
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from .common import (
    OverlapStatus,
    Shard,
    get_overlap,
    resize_shards,
    sort_ascending_interval,
)
from .rpc import RpcError, RpcServer

SERVICE_NAME = "Shardmaster"


def _as_shard(shard: Shard | Mapping[str, Any]) -> Shard:
    if isinstance(shard, Shard):
        return shard
    return Shard(int(shard["lower"]), int(shard["upper"]))


def _carve(shards: Iterable[Shard], moved: Shard) -> Iterator[Shard]:
    """Yield what remains of ``shards`` once ``moved`` is cut out of them."""
    for existing in shards:
        status = get_overlap(existing, moved)
        if status is OverlapStatus.NO_OVERLAP:
            yield existing
        elif status is OverlapStatus.OVERLAP_START:
            yield Shard(moved.upper + 1, existing.upper)
        elif status is OverlapStatus.OVERLAP_END:
            yield Shard(existing.lower, moved.lower - 1)
        elif status is OverlapStatus.COMPLETELY_CONTAINS:
            yield Shard(existing.lower, moved.lower - 1)
            yield Shard(moved.upper + 1, existing.upper)
        # A completely contained shard is dropped.


class StaticShardmaster:
    """Keeps the key range balanced over the servers that have joined.

    Requests and responses use plain JSON-friendly values so the object can
    be registered directly on an :class:`RpcServer`.
    """

    RPC_METHODS = ("join", "leave", "move", "query")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._server_shards: dict[str, list[Shard]] = {}
        self._servers: list[str] = []

    def join(self, server: str) -> None:
        """Add a server and rebalance; fails if it is already present."""
        with self._lock:
            if server in self._server_shards:
                raise RpcError("Server already exists in the configuration")
            self._servers.append(server)
            self._server_shards = resize_shards(self._servers, True)

    def leave(self, servers: Sequence[str]) -> None:
        """Remove servers and rebalance; fails on the first unknown server."""
        with self._lock:
            for server in servers:
                if server not in self._server_shards:
                    raise RpcError("The given server does not exist!")
                del self._server_shards[server]
                self._servers.remove(server)
            self._server_shards = resize_shards(self._servers, False)

    def move(self, server: str, shard: Shard | Mapping[str, Any]) -> None:
        """Give ``shard`` to ``server``, cutting it out of every other holding."""
        moved = _as_shard(shard)
        with self._lock:
            if server not in self._server_shards:
                raise RpcError("Server doesn't exist. Move Error!")
            self._server_shards = {
                name: list(_carve(shards, moved))
                for name, shards in self._server_shards.items()
            }
            self._server_shards[server] = sort_ascending_interval(
                [*self._server_shards[server], moved]
            )

    def query(self) -> dict[str, list[dict[str, Any]]]:
        """Current layout, one entry per server in join order."""
        with self._lock:
            return {
                "config": [
                    {
                        "server": server,
                        "shards": [
                            {"lower": shard.lower, "upper": shard.upper}
                            for shard in self._server_shards.setdefault(server, [])
                        ],
                    }
                    for server in self._servers
                ]
            }


def main(argv: Sequence[str] | None = None) -> int:
    """Run a shardmaster on this host at the given port."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        sys.stderr.write("usage: shardmaster <PORT>\n")
        return 1
    address = f"{socket.gethostname()}:{args[0]}"
    server = RpcServer(address)
    server.register(SERVICE_NAME, StaticShardmaster())
    server.start()
    print(f"Listening on: {address}", flush=True)
    server.wait()
    return 0


if __name__ == "__main__":
    sys.exit(main())