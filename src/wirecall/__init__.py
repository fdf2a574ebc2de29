"""
wirecall — MessagePack RPC over TCP.
A Server binds named handlers (directly or via modules); a Client calls them by name.
"""
from wirecall.core import Module, Settings
from wirecall.rpc import (
    Client,
    ClientFactory,
    HandlerModule,
    LazyDecoder,
    RpcError,
    Server,
)

__all__ = [
    "Client",
    "ClientFactory",
    "HandlerModule",
    "LazyDecoder",
    "Module",
    "RpcError",
    "Server",
    "Settings",
]
