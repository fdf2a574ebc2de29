"""Handler registry: method name -> callable + declared parameter and return types, introspected once at bind."""
from __future__ import annotations

import inspect
import typing
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from wirecall.rpc.coerce import is_error_type

_NoneType = type(None)


def _type_hints(fn: Callable[..., Any]) -> dict[str, Any]:
    if inspect.isroutine(fn):
        target = fn
    elif inspect.isclass(fn):
        target = fn.__init__
    else:
        target = type(fn).__call__
    try:
        hints = typing.get_type_hints(target)
    except (NameError, TypeError) as e:
        raise TypeError(f"cannot resolve annotations of {fn!r} ({e})") from e
    if inspect.isclass(fn):
        hints["return"] = fn
    return hints


def _declared_returns(hints: dict[str, Any]) -> list[Any]:
    """Return slots: no annotation -> one untyped value, None -> zero, fixed tuple -> one per item."""
    if "return" not in hints:
        return [Any]
    ret = hints["return"]
    if ret is None or ret is _NoneType:
        return []
    if typing.get_origin(ret) is tuple:
        args = typing.get_args(ret)
        if args == ((),):
            return []
        if args and not (len(args) == 2 and args[1] is Ellipsis):
            return list(args)
    return [ret]


@dataclass
class Handler:
    function: Callable[..., Any]
    parameters: list[Any]
    returns: list[Any]
    trailing_error: bool = False
    is_coroutine: bool = False

    @property
    def num_results(self) -> int:
        """Declared return values without the trailing error slot."""
        return len(self.returns) - (1 if self.trailing_error else 0)

    @classmethod
    def from_callable(cls, fn: Callable[..., Any]) -> Handler:
        if not callable(fn):
            raise TypeError(f"{fn!r} is not callable")
        sig = inspect.signature(fn)
        hints = _type_hints(fn)
        parameters: list[Any] = []
        for name, param in sig.parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                raise TypeError(f"variadic parameter {name!r} is not supported")
            if param.kind is param.KEYWORD_ONLY:
                if param.default is param.empty:
                    raise TypeError(f"keyword-only parameter {name!r} needs a default")
                continue
            parameters.append(hints.get(name, Any))
        returns = _declared_returns(hints)
        trailing_error = bool(returns) and is_error_type(returns[-1])
        is_coroutine = inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
            getattr(fn, "__call__", None)
        )
        return cls(
            function=fn,
            parameters=parameters,
            returns=returns,
            trailing_error=trailing_error,
            is_coroutine=is_coroutine,
        )


class HandlerRegistry:
    """name -> Handler. Filled before serving, locked while dispatching."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        self._locked = True

    def unlock(self) -> None:
        self._locked = False

    def bind(self, name: str, fn: Callable[..., Any]) -> Handler:
        """Register fn under name. Last bind wins. Rejected while the registry is locked."""
        if self._locked:
            raise RuntimeError(f"cannot bind {name!r} while the server is serving")
        handler = Handler.from_callable(fn)
        if name in self._handlers:
            logger.warning(f"A function is already bound to name {name}! Rebinding..")
        self._handlers[name] = handler
        return handler

    def get(self, name: str) -> Handler | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
