# shardstore

A small sharded key-value store for users and posts. Keys such as `user_17` and
`post_402` carry a numeric ID in the range 0 to 1000. Three servers make up the
system. They talk to each other with JSON messages carried over gRPC unary calls.

- **shardmaster** (`shardstore.shardmaster`): holds the configuration that says
  which server owns which key range. It spreads the range evenly over the
  servers as they join and leave. Ranges can also be moved by hand.
- **manager** (`shardstore.shardkv_manager`): the address that clients talk to.
  It forwards `get`, `put`, `append` and `delete` to the key-value server that
  pinged it last. In its reply to a ping it gives that server the shardmaster's
  address.
- **shardkv** (`shardstore.shardkv`): stores the users and posts. It pings its
  manager and asks the shardmaster for the configuration every 100 ms. It drops
  users whose IDs fall outside the ranges assigned to its manager.

## Installation

```
pip install .
```

## Running a cluster

Start a shardmaster on a port:

```
shardstore-shardmaster 8080
```

Start a manager. Pass its port and the shardmaster's host and port:

```
shardstore-manager 8081 myhost 8080
```

Start a key-value server. Pass its port and the manager's host and port:

```
shardstore-shardkv 8001 myhost 8081
```

Each server listens on `<hostname>:<port>`, using the local machine's host name.
A manager joins the configuration under its own address, so the shardmaster
assigns ranges to managers.

## Talking to the cluster

`shardstore.rpc.Stub` calls any of the services. The shardmaster's service is
named `Shardmaster` and has the methods `join`, `leave`, `move` and `query`.
Managers and key-value servers serve `Shardkv`.

```python
from shardstore.rpc import RpcError, Stub

with Stub("myhost:8080", "Shardmaster") as master:
    master.call("join", {"server": "myhost:8081"})
    print(master.call("query"))

with Stub("myhost:8081", "Shardkv") as manager:
    manager.call("put", {"key": "user_1", "data": "alice", "user": ""})
    manager.call("put", {"key": "post_5", "data": "hello", "user": "user_1"})
    print(manager.call("get", {"key": "user_1_posts"}))  # {'data': 'post_5,'}
    try:
        manager.call("get", {"key": "user_2"})
    except RpcError as err:
        print(err.code, err.message)
```

A key-value server handles these kinds of key in `get`:

- `all_users`: every user stored on that server, each followed by a comma.
- `post_<n>`: the post's content.
- `user_<n>_posts`: the keys of that user's posts. The server also asks the
  other managers in the configuration and adds their answers.
- any other key, such as `user_<n>`: the user's value.

A request fails with `INVALID_ARGUMENT` when the key is missing or when the
key's ID is not in a range that the server holds.

## Library use

The shard arithmetic and the shardmaster's bookkeeping work without a network:

```python
from shardstore.common import Shard
from shardstore.shardmaster import StaticShardmaster

master = StaticShardmaster()
master.join("a:1")
master.join("b:2")
master.move("b:2", Shard(0, 100))
print(master.query())
```

`shardstore.common` has the helpers for shard ranges: `split_shard`,
`get_overlap`, `resize_shards` and `extract_id`. `shardstore.config.Config`
maps keys to servers from a queried configuration. `shardstore.repl.Repl` is a
line-driven command loop. Each of its `RegexCommand` subclasses handles the
lines that fully match its pattern.

## What is not included

- The package has no interactive client command. Use `Stub` as shown above, or
  build a shell from `Repl` and `Config`.
- When a range moves away from a key-value server, that server discards the
  users outside its ranges. It does not send them to the new owner. Posts are
  not discarded.
- A manager forwards to one key-value server only, the one that pinged it last.
  It does not replicate data to backups. Its `PingInterval` records ping times,
  and nothing acts on them.

## Tests

Install the test extra and run `pytest`.