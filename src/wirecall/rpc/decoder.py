"""
LazyDecoder: deferred, type-directed decode of an already-decoded opaque value.
The value is re-encoded at construction so it can be decoded again once the target type is known.
"""
from __future__ import annotations

from typing import Any

from wirecall.rpc.codec import pack, unpack
from wirecall.rpc.coerce import coerce, is_nullable, type_name
from wirecall.rpc.protocol import DecodeError


class LazyDecoder:
    """
    Holder around one opaque value. Nil makes an invalid holder: it does not fail on construction,
    but decoding it into a non-nullable type does. Single use.
    """

    def __init__(self, value: Any) -> None:
        self._payload: bytes | None = None
        self._consumed = False
        if value is not None:
            try:
                self._payload = pack(value)
            except (TypeError, ValueError, OverflowError) as e:
                raise DecodeError(str(e)) from e

    def is_valid(self) -> bool:
        return self._payload is not None

    def decode(self, target: Any = Any) -> Any:
        """Decode into target (a type annotation). Any returns the plain msgpack value."""
        if self._consumed:
            raise DecodeError("decoder already consumed")
        self._consumed = True
        if self._payload is None:
            if is_nullable(target):
                return None
            raise DecodeError(f"nil value for non-nullable type {type_name(target)}")
        return coerce(unpack(self._payload), target)

    def __repr__(self) -> str:
        state = "valid" if self.is_valid() else "invalid"
        return f"<LazyDecoder {state}{' consumed' if self._consumed else ''}>"
