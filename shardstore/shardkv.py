"""Key-value server holding the users and posts of the shards assigned to it."""

from __future__ import annotations

import re
import socket
import sys
import threading
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any

import grpc

from .common import Post, Shard, log_error
from .rpc import RpcError, RpcServer, Stub
from .shardkv_manager import SERVICE_NAME
from .shardmaster import SERVICE_NAME as SHARDMASTER_SERVICE

_INTERVAL = 0.1
_NO_REQ = "_no_req"
_ALL_USERS = "all_users"
_STOUL = re.compile(r"\s*([+-]?)(\d+)")
_ULONG_MAX = 2**64 - 1
_UINT_MASK = 2**32 - 1


class RequestType(Enum):
    """What a key asks a server for."""

    ALL_USERS = "all_users"
    POST = "post"
    USER = "user"
    OTHER = "other"


def request_type(key: str) -> RequestType:
    """Classify a key by the kind of data it names."""
    if _ALL_USERS in key:
        return RequestType.ALL_USERS
    if key.startswith("post"):
        return RequestType.POST
    if "posts" in key:
        return RequestType.USER
    return RequestType.OTHER


def _key_number(key: str) -> int:
    """The numeric id of a key such as ``user_12``, ``post_7`` or ``user_3_posts``."""
    if len(key) < 5:
        raise ValueError(f"key {key!r} is too short")
    digits = key[5:]
    if "posts" in key and len(digits) >= 6:
        digits = digits[:-6]
    match = _STOUL.match(digits)
    if match is None:
        raise ValueError(f"key {key!r} has no numeric id")
    value = int(match.group(2))
    if value > _ULONG_MAX:
        raise ValueError(f"id in key {key!r} is out of range")
    if match.group(1) == "-":
        value = -value % (_ULONG_MAX + 1)
    return value & _UINT_MASK


def key_assigned(key: str, shards: Iterable[Shard]) -> bool:
    """Whether the id of ``key`` falls inside one of ``shards``."""
    number = _key_number(key)
    return any(shard.lower <= number <= shard.upper for shard in shards)


def _shards_from(entries: Iterable[Mapping[str, Any]]) -> list[Shard]:
    return [Shard(int(entry["lower"]), int(entry["upper"])) for entry in entries]


class ShardkvServer:
    """Stores users and posts for the shards its manager's group owns."""

    RPC_METHODS = ("get", "put", "append", "delete", "dump")

    def __init__(self, address: str, shardmanager_address: str):
        self.address = address
        self.shardmanager_address = shardmanager_address
        self.shardmaster_address = ""
        self.users: dict[str, str] = {}
        self.posts: dict[str, Post] = {}
        self.other_managers: dict[str, list[Shard]] = {}
        self.shards_assigned: list[Shard] = []
        self._lock = threading.RLock()
        self._stubs: dict[tuple[str, str], Stub] = {}
        self._stubs_lock = threading.Lock()
        self._stopping = threading.Event()
        self._threads: list[threading.Thread] = []

    def _stub(self, address: str, service: str) -> Stub:
        with self._stubs_lock:
            stub = self._stubs.get((address, service))
            if stub is None:
                stub = self._stubs[(address, service)] = Stub(address, service)
            return stub

    def _owns(self, key: str) -> bool:
        try:
            return key_assigned(key, self.shards_assigned)
        except ValueError as err:
            raise RpcError(str(err)) from err

    def _print_users(self) -> None:
        print("Updated users map:", flush=True)
        for key in sorted(self.users):
            print(f"{{{key}: {self.users[key]}}}", flush=True)

    def get(self, key: str) -> dict[str, str]:
        """Look up a user, a post, a user's posts or the list of all users."""
        print(f"in shardkv, get, key: {key}", flush=True)
        no_req = _NO_REQ in key
        if no_req:
            key = key[: -len(_NO_REQ)]

        with self._lock:
            if not no_req and key != _ALL_USERS and not self._owns(key):
                sys.stderr.write("shrdkv not responsible of this key\n")
                raise RpcError("key is not assigned to this shardkv")

            kind = request_type(key)
            if kind is RequestType.ALL_USERS:
                print("listing all users", flush=True)
                return {"data": "".join(f"{user}," for user in sorted(self.users))}
            if kind is RequestType.POST:
                post = self.posts.get(key)
                if post is None:
                    raise RpcError("post does not exist")
                return {"data": post.content}
            if kind is RequestType.OTHER:
                if key not in self.users:
                    raise RpcError("user does not exist")
                return {"data": self.users[key]}

            user_key = key[:-6]
            result = "".join(
                f"{post_key}," for post_key in sorted(self.posts)
                if self.posts[post_key].user_id == user_key
            )
            managers = [] if no_req else list(self.other_managers)

        for manager in managers:
            print("asking to other managers", flush=True)
            try:
                response = self._stub(manager, SERVICE_NAME).call("get", {"key": key + _NO_REQ})
            except RpcError as err:
                print(f"{manager} DID NOT ANSWER {err.message}", flush=True)
                continue
            data = (response or {}).get("data", "")
            print(f"{manager} answered with {data}", flush=True)
            result += data

        if not result:
            raise RpcError("user does not have posts")
        return {"data": result}

    def put(self, key: str, data: str, user: str) -> None:
        """Store a post (keys starting with ``post``) or a user."""
        print(
            f"Processing put request in shardkv. Key: {key}, Data: {data}, User: {user}",
            flush=True,
        )
        with self._lock:
            if not self._owns(key):
                raise RpcError("the key is not assigned to this shardkv")
            if key.startswith("post"):
                self.posts[key] = Post(user_id=user, content=data)
            else:
                self.users[key] = data
            self._print_users()

    def append(self, key: str, data: str) -> None:
        """Append ``data`` to a key's value, or store it if the key is new."""
        print(f"in the shardkv append, key: {key}, data: {data}", flush=True)
        with self._lock:
            if not self._owns(key):
                raise RpcError("the key is not assigned to this shardkv")
            if key.startswith("post"):
                post = self.posts.get(key)
                if post is None:
                    self.posts[key] = Post(content=data)
                else:
                    post.content += data
            else:
                self.users[key] = self.users.get(key, "") + data

    def delete(self, key: str) -> None:
        """Remove a post or a user; fails if it is not stored here."""
        print(f"Processing delete request in shardkv. Key: {key}", flush=True)
        with self._lock:
            if key.startswith("post"):
                if key not in self.posts:
                    raise RpcError("Post does not exist")
                del self.posts[key]
            else:
                if key not in self.users:
                    raise RpcError("User does not exist")
                del self.users[key]
            self._print_users()

    def dump(self) -> dict[str, dict[str, Any]]:
        """Snapshot of every user and post stored here."""
        with self._lock:
            return {
                "users": dict(self.users),
                "posts": {
                    key: {"user_id": post.user_id, "content": post.content}
                    for key, post in self.posts.items()
                },
            }

    def _apply_config(self, config: Iterable[Mapping[str, Any]]) -> None:
        with self._lock:
            others: dict[str, list[Shard]] = {}
            for entry in config:
                shards = _shards_from(entry.get("shards", []))
                if entry["server"] != self.shardmanager_address:
                    others[entry["server"]] = shards
                else:
                    self.shards_assigned = shards
            self.other_managers = others

            stale = [key for key in self.users if not key_assigned(key, self.shards_assigned)]
            for key in stale:
                del self.users[key]
                print(f"Removed key: {key}", flush=True)

    def query_shardmaster(self) -> None:
        """Fetch the shard layout and drop users this server no longer owns."""
        if not self.shardmaster_address:
            raise RuntimeError("shardmaster address is not known yet")
        stub = self._stub(self.shardmaster_address, SHARDMASTER_SERVICE)
        try:
            response = stub.call("query")
        except RpcError as err:
            log_error("Query", err)
            return
        self._apply_config((response or {}).get("config", []))

    def ping_shardmanager(self) -> None:
        """Announce this server to its manager and learn the shardmaster's address."""
        stub = self._stub(self.shardmanager_address, SERVICE_NAME)
        try:
            response = stub.call("ping", {"server": self.address})
        except RpcError as err:
            log_error("Ping request", err)
            return
        self.shardmaster_address = (response or {}).get("shardmaster", "")

    def _query_loop(self) -> None:
        while not self._stopping.is_set() and not self.shardmaster_address:
            self._stopping.wait(_INTERVAL)
        while not self._stopping.is_set():
            self.query_shardmaster()
            self._stopping.wait(_INTERVAL)

    def _heartbeat_loop(self) -> None:
        while not self._stopping.is_set():
            self.ping_shardmanager()
            self._stopping.wait(_INTERVAL)

    def start_background(self) -> None:
        """Start pinging the manager and polling the shardmaster every 100 ms."""
        if self._threads:
            return
        self._stopping.clear()
        self._threads = [
            threading.Thread(target=self._query_loop, daemon=True),
            threading.Thread(target=self._heartbeat_loop, daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    def close(self) -> None:
        """Stop background work and close connections."""
        self._stopping.set()
        for thread in self._threads:
            thread.join()
        self._threads = []
        with self._stubs_lock:
            stubs, self._stubs = list(self._stubs.values()), {}
        for stub in stubs:
            stub.__exit__(None, None, None)

    def __enter__(self) -> ShardkvServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def main(argv: Sequence[str] | None = None) -> int:
    """Run a key-value server on this host, reporting to a manager."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 3:
        sys.stderr.write(
            "usage: shardkv <PORT> <SHARD MANAGER HOSTNAME> <SHARD MANAGER PORT>\n"
        )
        return 1
    address = f"{socket.gethostname()}:{args[0]}"
    print(f"Listening on: {address}", flush=True)
    manager_address = f"{args[1]}:{args[2]}"
    print(f"Shardmanager on: {manager_address}", flush=True)

    kv = ShardkvServer(address, manager_address)
    server = RpcServer(address)
    server.register(SERVICE_NAME, kv)
    server.start()
    kv.start_background()
    try:
        server.wait()
    finally:
        kv.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())