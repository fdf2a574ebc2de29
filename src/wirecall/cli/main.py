"""
CLI: serve handlers from an importable module, call or notify a running server.
Host/port defaults come from WIRECALL_HOST / WIRECALL_PORT.
"""
import asyncio
import importlib
import json
import os
import sys
from typing import Any, List, Optional

import typer

from wirecall.core.config import Settings
from wirecall.core.module import Module
from wirecall.rpc.client import ClientFactory
from wirecall.rpc.protocol import FrameError, RpcError
from wirecall.rpc.server import Server

app = typer.Typer(help="wirecall CLI: serve handlers, call remote methods.")

client_factory = ClientFactory()


def load_target(target: str) -> Any:
    """Import "package.module:attribute"."""
    module_path, _, attribute = target.partition(":")
    if not module_path or not attribute:
        raise typer.BadParameter(f"expected 'package.module:attribute', got {target!r}")
    module = importlib.import_module(module_path)
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise typer.BadParameter(f"{module_path} has no attribute {attribute!r}") from e


def build_server(target: Any) -> Server:
    """A Module, an iterable of modules, or a callable that binds into the server."""
    server = Server()
    if isinstance(target, Module):
        server.register(target)
    elif callable(target):
        target(server)
    else:
        for module in target:
            server.register(module)
    return server


def parse_param(raw: str) -> Any:
    """JSON if it parses, otherwise the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _show(value: Any) -> str:
    if isinstance(value, bytes):
        return repr(value)
    return json.dumps(value, default=repr)


@app.command()
def serve(
    target: str = typer.Argument(..., help="Handlers to serve: package.module:attribute"),
    host: Optional[str] = typer.Option(None, "--host", "-H", help="Interface to bind (default: all)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: WIRECALL_PORT or 9090)"),
) -> None:
    """Bind handlers from TARGET and serve until interrupted."""
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
    settings = Settings.load_from_env()
    server = build_server(load_target(target))
    typer.echo(f"Serving {len(server.registry)} handlers: {', '.join(server.registry.names())}")
    try:
        server.run(port if port is not None else settings.port, host or "")
    except KeyboardInterrupt:
        typer.echo("Stopped")


@app.command()
def call(
    method: str = typer.Argument(..., help="Method name"),
    params: Optional[List[str]] = typer.Argument(None, help="Parameters (JSON, or plain strings)"),
    host: Optional[str] = typer.Option(None, "--host", "-H", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Server port"),
) -> None:
    """Call METHOD and print its result as JSON."""
    settings = Settings.load_from_env()
    client = client_factory.create(host or settings.host, port if port is not None else settings.port)
    try:
        decoder = asyncio.run(client.call(method, *[parse_param(p) for p in params or []]))
    except RpcError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1)
    except (OSError, FrameError) as e:
        typer.echo(f"Connection failed: {e}", err=True)
        raise typer.Exit(2)
    typer.echo(_show(decoder.decode()))


@app.command()
def notify(
    method: str = typer.Argument(..., help="Method name"),
    params: Optional[List[str]] = typer.Argument(None, help="Parameters (JSON, or plain strings)"),
    host: Optional[str] = typer.Option(None, "--host", "-H", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Server port"),
) -> None:
    """Send METHOD as a notification (no response)."""
    settings = Settings.load_from_env()
    client = client_factory.create(host or settings.host, port if port is not None else settings.port)
    try:
        asyncio.run(client.notify(method, *[parse_param(p) for p in params or []]))
    except OSError as e:
        typer.echo(f"Connection failed: {e}", err=True)
        raise typer.Exit(2)


def main() -> None:
    """Entry point for the wirecall console command."""
    app()


if __name__ == "__main__":
    main()
