"""RPC protocol: message types, positional frames, errors. Field order is part of the wire contract."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


class MessageType(enum.IntEnum):
    """Type discriminator, first element of every frame."""

    CALL = 0
    RESPONSE = 1
    NOTIFICATION = 2


class RpcError(Exception):
    """Error carried in Response.error: description + code (code is empty by convention)."""

    def __init__(self, message: str, code: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def to_error(self) -> Error:
        return Error(description=self.message, code=self.code)


class FrameError(Exception):
    """Bytes on the connection are not a well-formed frame."""


class DecodeError(Exception):
    """An opaque decoded value cannot be converted to the requested type."""


@dataclass
class Error:
    description: str
    code: str = ""

    def to_wire(self) -> list[Any]:
        return [self.description, self.code]


@dataclass
class Request:
    """[type, message_id, method_name, parameters]. type is CALL or NOTIFICATION."""

    type: int
    message_id: int
    method_name: str
    parameters: list[Any] = field(default_factory=list)

    @property
    def is_notification(self) -> bool:
        return self.type == MessageType.NOTIFICATION

    def to_wire(self) -> list[Any]:
        return [int(self.type), self.message_id, self.method_name, list(self.parameters)]


@dataclass
class Response:
    """[1, message_id, error, result]. On error the result is always nil."""

    message_id: int
    error: Error | None = None
    result: Any = None
    type: int = MessageType.RESPONSE

    @classmethod
    def success(cls, message_id: int, result: Any) -> Response:
        return cls(message_id=message_id, error=None, result=result)

    @classmethod
    def failure(cls, message_id: int, error: RpcError) -> Response:
        return cls(message_id=message_id, error=error.to_error(), result=None)

    def to_wire(self) -> list[Any]:
        error = self.error.to_wire() if self.error is not None else None
        result = None if self.error is not None else self.result
        return [int(self.type), self.message_id, error, result]


@runtime_checkable
class Decoder(Protocol):
    """Deferred decode of an opaque value into a caller-chosen type."""

    def decode(self, target: Any = Any) -> Any:
        ...

    def is_valid(self) -> bool:
        ...
