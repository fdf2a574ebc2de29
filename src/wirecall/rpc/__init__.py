from wirecall.rpc.client import Client, ClientFactory
from wirecall.rpc.decoder import LazyDecoder
from wirecall.rpc.module import HandlerModule
from wirecall.rpc.protocol import (
    DecodeError,
    Decoder,
    Error,
    FrameError,
    MessageType,
    Request,
    Response,
    RpcError,
)
from wirecall.rpc.registry import Handler, HandlerRegistry
from wirecall.rpc.server import Server

__all__ = [
    "Client",
    "ClientFactory",
    "DecodeError",
    "Decoder",
    "Error",
    "FrameError",
    "Handler",
    "HandlerModule",
    "HandlerRegistry",
    "LazyDecoder",
    "MessageType",
    "Request",
    "Response",
    "RpcError",
    "Server",
]
