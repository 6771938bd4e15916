"""A sharded key-value store: shardmaster, shard managers and key-value servers over gRPC."""

__version__ = "0.1.0"