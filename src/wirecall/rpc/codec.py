"""
MessagePack codec for frames.
Frames are positional arrays; parameters and results stay opaque until a typed consumer binds them.
"""
from __future__ import annotations

import asyncio
import dataclasses
import enum
from typing import Any

import msgpack

from wirecall.rpc.protocol import Error, FrameError, MessageType, Request, Response

READ_CHUNK_SIZE = 64 * 1024

_REQUEST_TYPES = (MessageType.CALL, MessageType.NOTIFICATION)


def encode_default(obj: Any) -> Any:
    """msgpack `default` hook for values it does not know natively."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    raise TypeError(f"can not serialize {type(obj).__name__!r} object")


def pack(value: Any) -> bytes:
    return msgpack.packb(value, use_bin_type=True, default=encode_default)


def unpack(payload: bytes) -> Any:
    return msgpack.unpackb(payload, raw=False, strict_map_key=False)


def encode_request(request: Request) -> bytes:
    return pack(request.to_wire())


def encode_response(response: Response) -> bytes:
    return pack(response.to_wire())


async def read_frame(reader: asyncio.StreamReader) -> Any:
    """Read bytes until one complete msgpack value is buffered; return it decoded."""
    unpacker = msgpack.Unpacker(raw=False, strict_map_key=False)
    while True:
        chunk = await reader.read(READ_CHUNK_SIZE)
        if not chunk:
            raise FrameError("connection closed before a complete frame was received")
        unpacker.feed(chunk)
        try:
            return unpacker.unpack()
        except msgpack.OutOfData:
            continue
        except (ValueError, msgpack.UnpackException) as e:
            raise FrameError(f"malformed frame: {e}") from e


def _check_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise FrameError(f"{name} must be an integer, got {type(value).__name__}")
    return value


def _check_array(obj: Any, kind: str) -> list[Any]:
    if not isinstance(obj, (list, tuple)):
        raise FrameError(f"{kind} must be an array, got {type(obj).__name__}")
    if len(obj) != 4:
        raise FrameError(f"{kind} must have 4 elements, got {len(obj)}")
    return list(obj)


def decode_request(obj: Any) -> Request:
    """Validate a decoded value as [type, message_id, method_name, parameters]."""
    type_, message_id, method_name, parameters = _check_array(obj, "request")
    _check_int(type_, "request type")
    if type_ not in _REQUEST_TYPES:
        raise FrameError(f"unexpected request type {type_}")
    _check_int(message_id, "message id")
    if not isinstance(method_name, str):
        raise FrameError(f"method name must be a string, got {type(method_name).__name__}")
    if not isinstance(parameters, (list, tuple)):
        raise FrameError(f"parameters must be an array, got {type(parameters).__name__}")
    return Request(
        type=MessageType(type_),
        message_id=message_id,
        method_name=method_name,
        parameters=list(parameters),
    )


def _decode_error(obj: Any) -> Error | None:
    if obj is None:
        return None
    if not isinstance(obj, (list, tuple)) or len(obj) != 2:
        raise FrameError("error must be an array of [description, code]")
    description, code = obj
    if not isinstance(description, str) or not isinstance(code, str):
        raise FrameError("error description and code must be strings")
    return Error(description=description, code=code)


def decode_response(obj: Any) -> Response:
    """Validate a decoded value as [1, message_id, error, result]."""
    type_, message_id, error, result = _check_array(obj, "response")
    _check_int(type_, "response type")
    if type_ != MessageType.RESPONSE:
        raise FrameError(f"unexpected response type {type_}")
    _check_int(message_id, "message id")
    return Response(
        message_id=message_id,
        error=_decode_error(error),
        result=result,
    )
