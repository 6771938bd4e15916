"""Front end that forwards key-value requests to its primary server."""

from __future__ import annotations

import socket
import sys
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import grpc

from .common import log_error
from .rpc import RpcError, RpcServer, Stub

SERVICE_NAME = "Shardkv"


@dataclass
class PingInterval:
    """Time of the last ping, as seconds since the epoch."""

    time: float = 0.0

    def get_ping_interval(self) -> int:
        """Milliseconds elapsed since the recorded time."""
        return int((time.time() - self.time) * 1000)

    def push(self, t: float) -> None:
        """Record ``t`` as the time of the last ping."""
        self.time = t


class ShardkvManager:
    """Relays get, put, append and delete to the server that last pinged it."""

    RPC_METHODS = ("get", "put", "append", "delete", "ping")

    def __init__(self, address: str, shardmaster_address: str):
        self.address = address
        self.shardmaster_address = shardmaster_address
        self.shardkv_address = ""

    def _forward(self, method: str, request: Mapping[str, Any]) -> Any:
        if not self.shardkv_address:
            raise RpcError(
                "no key-value server has pinged this manager", grpc.StatusCode.UNAVAILABLE
            )
        with Stub(self.shardkv_address, SERVICE_NAME) as stub:
            return stub.call(method, request)

    def get(self, key: str) -> dict[str, str]:
        """Fetch ``key`` from the primary; failures are reported to the caller."""
        print(f"Manager Get: Key - {key}", flush=True)
        try:
            response = self._forward("get", {"key": key})
        except RpcError as err:
            log_error("Get", err)
            raise RpcError(f"Get failed: {err.message}") from err
        print("Manager Get: Successful", flush=True)
        return {"data": (response or {}).get("data", "")}

    def put(self, key: str, data: str, user: str) -> None:
        """Store ``data`` under ``key`` on the primary; failures are only logged."""
        print(f"Manager Put: Key - {key}, Data - {data}, User - {user}", flush=True)
        try:
            self._forward("put", {"key": key, "data": data, "user": user})
        except RpcError as err:
            log_error("Put", err)
        else:
            print("Manager Put: Successful", flush=True)

    def append(self, key: str, data: str) -> None:
        """Append ``data`` to ``key`` on the primary; failures are only logged."""
        print(f"Manager Append: Key - {key}, Data - {data}", flush=True)
        try:
            self._forward("append", {"key": key, "data": data})
        except RpcError as err:
            log_error("Append", err)
        else:
            print("Manager Append: Successful", flush=True)

    def delete(self, key: str) -> None:
        """Delete ``key`` on the primary; failures are only logged."""
        print(f"Manager Delete: Key - {key}", flush=True)
        try:
            self._forward("delete", {"key": key})
        except RpcError as err:
            log_error("Delete", err)
        else:
            print("Manager Delete: Successful", flush=True)

    def ping(self, server: str) -> dict[str, str]:
        """Make ``server`` the primary and tell it where the shardmaster is."""
        self.shardkv_address = server
        return {"shardmaster": self.shardmaster_address}


def main(argv: Sequence[str] | None = None) -> int:
    """Run a manager on this host at the given port."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 3:
        sys.stderr.write("usage: shardmanager <PORT> <SHARDMASTER HOSTNAME> <SHARDMASTER PORT>\n")
        return 1
    address = f"{socket.gethostname()}:{args[0]}"
    print(f"Listening on: {address}", flush=True)
    shardmaster_address = f"{args[1]}:{args[2]}"
    print(f"Shardmaster on: {shardmaster_address}", flush=True)

    server = RpcServer(address)
    server.register(SERVICE_NAME, ShardkvManager(address, shardmaster_address))
    server.start()
    server.wait()
    return 0


if __name__ == "__main__":
    sys.exit(main())