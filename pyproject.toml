[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "shardstore"
version = "0.1.0"
description = "A sharded key-value store for users and posts: a shardmaster, shard managers and key-value servers over gRPC"
requires-python = ">=3.10"
dependencies = [
    "grpcio",
]
keywords = ["sharding", "key-value", "distributed", "grpc", "shardmaster"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
shardstore-shardmaster = "shardstore.shardmaster:main"
shardstore-manager = "shardstore.shardkv_manager:main"
shardstore-shardkv = "shardstore.shardkv:main"

[tool.hatch.build.targets.wheel]
packages = ["shardstore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
