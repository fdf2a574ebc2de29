"""
HandlerModule — building block for a group of handlers.
Configure via .handler(name, fn) and .service(obj); register with server.register(module).
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from wirecall.core.module import Module

if TYPE_CHECKING:
    from wirecall.rpc.server import Server


class HandlerModule(Module):
    """
    Handlers as object: name -> callable, optionally under a common prefix (e.g. "math.").
    One module can also expose every public method of a service object.
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        self._handlers: list[tuple[str, Callable[..., Any]]] = []

    def handler(self, name: str, fn: Callable[..., Any]) -> HandlerModule:
        self._handlers.append((name, fn))
        return self

    def service(self, obj: Any) -> HandlerModule:
        """Bind public callables of obj, or only the names listed in obj.__rpc_methods__."""
        for name in self._method_names(obj):
            self._handlers.append((name, getattr(obj, name)))
        return self

    def register_into(self, server: Server) -> None:
        for name, fn in self._handlers:
            server.bind(self.prefix + name, fn)

    def _method_names(self, obj: Any) -> list[str]:
        if hasattr(obj, "__rpc_methods__"):
            return list(obj.__rpc_methods__)
        return [
            m for m in dir(obj)
            if not m.startswith("_") and callable(getattr(obj, m, None))
        ]
