"""Handler sources: anything that knows how to bind its handlers into a Server."""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from wirecall.rpc.server import Server


@runtime_checkable
class Module(Protocol):
    """
    A group of RPC handlers bound in one step. Server(modules) and server.register(module)
    call register_into before serving; names bound here follow the registry's last-bind-wins rule.
    """

    def register_into(self, server: Server) -> None:
        """Call server.bind(name, fn) for every handler the module carries."""
        ...
