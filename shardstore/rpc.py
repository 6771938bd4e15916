"""JSON messages carried over gRPC unary calls.

A service is a mapping of method names to callables, or an object whose
``RPC_METHODS`` names the methods it exposes. Each request is a JSON object
whose fields become keyword arguments; the return value is the response.
Raising :class:`RpcError` from a handler sends that status to the caller.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from concurrent import futures
from typing import Any

import grpc

_MAX_WORKERS = 16


def _encode(obj: Any) -> bytes:
    return json.dumps(obj).encode("utf-8")


def _decode(data: bytes) -> Any:
    return json.loads(data.decode("utf-8")) if data else None


class RpcError(Exception):
    """A failed call, carrying a gRPC status code and message."""

    def __init__(self, message: str = "", code: grpc.StatusCode = grpc.StatusCode.INVALID_ARGUMENT):
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def code_number(self) -> int:
        """Numeric value of the status code."""
        return self.code.value[0]


def _resolve_methods(service: Any) -> dict[str, Callable[..., Any]]:
    if isinstance(service, Mapping):
        return dict(service)
    names = getattr(service, "RPC_METHODS", None)
    if names is None:
        raise TypeError("service must be a mapping or define RPC_METHODS")
    return {name: getattr(service, name) for name in names}


def _wrap(fn: Callable[..., Any]) -> Callable[[Any, grpc.ServicerContext], Any]:
    def handler(request: Any, context: grpc.ServicerContext) -> Any:
        try:
            return fn(**(request or {}))
        except RpcError as err:
            context.abort(err.code, err.message)

    return handler


class RpcServer:
    """A gRPC server hosting one or more JSON services."""

    def __init__(self, address: str):
        self.address = address
        self.port: int | None = None
        self._server = grpc.server(futures.ThreadPoolExecutor(max_workers=_MAX_WORKERS))

    def register(self, service_name: str, service: Any) -> None:
        """Expose a service's methods under ``service_name``."""
        handlers = {
            name: grpc.unary_unary_rpc_method_handler(
                _wrap(fn), request_deserializer=_decode, response_serializer=_encode
            )
            for name, fn in _resolve_methods(service).items()
        }
        self._server.add_generic_rpc_handlers(
            (grpc.method_handlers_generic_handler(service_name, handlers),)
        )

    def start(self) -> RpcServer:
        """Bind the address and start serving."""
        self.port = self._server.add_insecure_port(self.address)
        if not self.port:
            raise RpcError(f"cannot listen on {self.address}", grpc.StatusCode.UNAVAILABLE)
        self._server.start()
        return self

    def stop(self, grace: float | None = None) -> None:
        """Stop serving, waiting up to ``grace`` seconds for running calls."""
        self._server.stop(grace).wait()

    def wait(self) -> None:
        """Block until the server terminates."""
        self._server.wait_for_termination()

    def __enter__(self) -> RpcServer:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop(None)


class Stub:
    """Client side of a JSON service on a remote address."""

    def __init__(self, address: str, service_name: str):
        self.address = address
        self.service_name = service_name
        self._channel = grpc.insecure_channel(address)

    def call(self, method: str, request: Mapping[str, Any] | None = None) -> Any:
        """Invoke ``method`` with ``request`` and return the response."""
        rpc = self._channel.unary_unary(
            f"/{self.service_name}/{method}",
            request_serializer=_encode,
            response_deserializer=_decode,
        )
        try:
            return rpc(dict(request or {}))
        except grpc.RpcError as err:
            raise RpcError(err.details() or "", err.code()) from err

    def __enter__(self) -> Stub:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._channel.close()