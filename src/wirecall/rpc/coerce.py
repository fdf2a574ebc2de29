"""Type-directed conversion of opaque decoded values (what msgpack produced) into declared Python types."""
from __future__ import annotations

import dataclasses
import enum
import inspect
import types
import typing
from typing import Any, Union

from wirecall.rpc.protocol import DecodeError

_NoneType = type(None)


def type_name(tp: Any) -> str:
    if tp is _NoneType:
        return "None"
    if isinstance(tp, type) and not typing.get_args(tp):
        return tp.__name__
    return repr(tp).replace("typing.", "")


def _is_union(tp: Any) -> bool:
    origin = typing.get_origin(tp)
    return origin is Union or origin is types.UnionType


def is_nullable(tp: Any) -> bool:
    """True if nil is an acceptable value for the declared type."""
    if tp is Any or tp is object or tp is None or tp is _NoneType or tp is inspect.Parameter.empty:
        return True
    return _is_union(tp) and _NoneType in typing.get_args(tp)


def is_error_type(tp: Any) -> bool:
    """True for an exception class or an optional exception class (the trailing error slot)."""
    if _is_union(tp):
        members = [a for a in typing.get_args(tp) if a is not _NoneType]
        return len(members) == 1 and is_error_type(members[0])
    return isinstance(tp, type) and issubclass(tp, BaseException)


def _describe(value: Any) -> str:
    text = repr(value)
    if len(text) > 60:
        text = text[:57] + "..."
    return f"{type(value).__name__} {text}"


def _fail(value: Any, target: Any) -> DecodeError:
    return DecodeError(f"cannot decode {_describe(value)} into {type_name(target)}")


def _coerce_union(value: Any, target: Any) -> Any:
    args = typing.get_args(target)
    if value is None:
        if _NoneType in args:
            return None
        raise DecodeError(f"nil value for non-nullable type {type_name(target)}")
    for member in args:
        if member is _NoneType:
            continue
        try:
            return coerce(value, member)
        except DecodeError:
            continue
    raise _fail(value, target)


def _coerce_dataclass(value: Any, target: type) -> Any:
    fields = [f for f in dataclasses.fields(target) if f.init]
    hints = typing.get_type_hints(target)
    if isinstance(value, dict):
        kwargs: dict[str, Any] = {}
        for f in fields:
            if f.name in value:
                kwargs[f.name] = coerce(value[f.name], hints.get(f.name, Any))
            elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                raise DecodeError(f"missing field {f.name!r} for {target.__name__}")
        return target(**kwargs)
    if isinstance(value, (list, tuple)):
        if len(value) > len(fields):
            raise DecodeError(f"{target.__name__} takes {len(fields)} fields, got {len(value)}")
        args = [coerce(item, hints.get(f.name, Any)) for item, f in zip(value, fields)]
        try:
            return target(*args)
        except TypeError as e:
            raise DecodeError(f"cannot build {target.__name__}: {e}") from e
    raise _fail(value, target)


def _coerce_scalar(value: Any, target: type) -> Any:
    if target is bool:
        if isinstance(value, bool):
            return value
    elif target is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif target is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif target is str:
        if isinstance(value, str):
            return value
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"bytes are not valid UTF-8: {e}") from e
    elif target is bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, str):
            return value.encode("utf-8")
    raise _fail(value, target)


def _coerce_generic(value: Any, target: Any, origin: Any) -> Any:
    args = typing.get_args(target)
    if origin in (list, set, frozenset):
        if not isinstance(value, (list, tuple)):
            raise _fail(value, target)
        item_type = args[0] if args else Any
        return origin(coerce(item, item_type) for item in value)
    if origin is tuple:
        if not isinstance(value, (list, tuple)):
            raise _fail(value, target)
        if not args:
            return tuple(value)
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(coerce(item, args[0]) for item in value)
        if args == ((),):
            args = ()
        if len(value) != len(args):
            raise DecodeError(f"{type_name(target)} takes {len(args)} items, got {len(value)}")
        return tuple(coerce(item, item_type) for item, item_type in zip(value, args))
    if origin is dict:
        if not isinstance(value, dict):
            raise _fail(value, target)
        key_type, value_type = args if args else (Any, Any)
        return {coerce(k, key_type): coerce(v, value_type) for k, v in value.items()}
    raise DecodeError(f"unsupported parameter type {type_name(target)}")


def coerce(value: Any, target: Any) -> Any:
    """
    Convert value to target. Nil is accepted only for nullable targets (Any, Optional[T], T | None).
    Raises DecodeError when the value does not fit.
    """
    if target is Any or target is object or target is inspect.Parameter.empty:
        return value
    if target is None or target is _NoneType:
        if value is None:
            return None
        raise _fail(value, target)
    if _is_union(target):
        return _coerce_union(value, target)
    if value is None:
        raise DecodeError(f"nil value for non-nullable type {type_name(target)}")

    origin = typing.get_origin(target)
    if origin is not None:
        return _coerce_generic(value, target, origin)

    if not isinstance(target, type):
        raise DecodeError(f"unsupported parameter type {type_name(target)}")
    if target in (bool, int, float, str, bytes):
        return _coerce_scalar(value, target)
    if issubclass(target, enum.Enum):
        try:
            return target(value)
        except ValueError as e:
            raise DecodeError(str(e)) from e
    if dataclasses.is_dataclass(target):
        return _coerce_dataclass(value, target)
    if target in (list, tuple, set, frozenset, dict):
        return _coerce_generic(value, target, target)
    if isinstance(value, target):
        return value
    raise _fail(value, target)
