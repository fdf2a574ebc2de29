"""
Server: handler registry + TCP accept loop + per-request dispatch.
One call = one connection = one response frame (none for notifications).
"""
from __future__ import annotations

import asyncio
import contextvars
import socket
import threading
from typing import Any, Awaitable, Callable, Iterable

from loguru import logger

from wirecall.core.module import Module
from wirecall.rpc.codec import decode_request, encode_response, read_frame
from wirecall.rpc.decoder import LazyDecoder
from wirecall.rpc.protocol import DecodeError, FrameError, MessageType, Request, Response, RpcError
from wirecall.rpc.registry import Handler, HandlerRegistry

RespondFunction = Callable[[asyncio.StreamWriter, Response], Awaitable[None]]


async def respond(writer: asyncio.StreamWriter, response: Response) -> None:
    """Encode and write the response. Failures are logged and dropped."""
    try:
        payload = encode_response(response)
    except (TypeError, ValueError, OverflowError) as e:
        logger.error(f"Failed to encode RPC response ({e})")
        return
    try:
        writer.write(payload)
        await writer.drain()
    except OSError as e:
        logger.error(f"Failed to send RPC response ({e})")


async def empty_respond(writer: asyncio.StreamWriter, response: Response) -> None:
    """Notifications get no response; a dropped error is only logged."""
    if response.error is not None:
        logger.warning(
            f"Dropping error of notification {response.message_id}: {response.error.description}"
        )


RESPONDERS: dict[int, RespondFunction] = {
    MessageType.CALL: respond,
    MessageType.NOTIFICATION: empty_respond,
}


def _settle(future: asyncio.Future[Any], result: Any, error: BaseException | None) -> None:
    if future.cancelled():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def run_in_thread(function: Callable[..., Any], *args: Any) -> Any:
    """
    Run a blocking function on a thread of its own and await its result.
    No bounded pool sits in between, so long-running handlers never wait for each other.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()
    context = contextvars.copy_context()

    def target() -> None:
        try:
            result = context.run(function, *args)
        except BaseException as e:
            loop.call_soon_threadsafe(_settle, future, None, e)
        else:
            loop.call_soon_threadsafe(_settle, future, result, None)

    name = getattr(function, "__name__", "handler")
    threading.Thread(target=target, name=f"wirecall-{name}", daemon=True).start()
    return await future


class Server:
    """
    RPC server. Compose via register(module) or bind(name, fn); then run(port).
    Bindings must be complete before serving starts.
    """

    def __init__(self, modules: Iterable[Module] = ()) -> None:
        self._registry = HandlerRegistry()
        self._tasks: set[asyncio.Task[None]] = set()
        for module in modules:
            self.register(module)

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    def register(self, module: Module) -> Server:
        """Register a module (HandlerModule etc.). Returns self for chaining."""
        module.register_into(self)
        return self

    def bind(self, name: str, function: Callable[..., Any]) -> None:
        self._registry.bind(name, function)

    def run(self, port: int, host: str = "") -> None:
        """Serve forever (blocks). Returns only by raising the accept error that stopped the loop."""
        asyncio.run(self.serve(port, host))

    async def serve(self, port: int, host: str = "") -> None:
        sock = self.listen(port, host)
        with sock:
            await self.serve_socket(sock)

    def listen(self, port: int, host: str = "") -> socket.socket:
        """Bound, listening TCP socket. Port 0 picks a free port."""
        return socket.create_server((host, port))

    async def serve_socket(self, sock: socket.socket) -> None:
        """Accept loop on a listening socket: one task per connection. Accept errors propagate."""
        loop = asyncio.get_running_loop()
        sock.setblocking(False)
        self._registry.lock()
        host, port = sock.getsockname()[:2]
        logger.info(f"RPC server listening on {host}:{port} ({len(self._registry)} handlers)")
        try:
            while True:
                conn, address = await loop.sock_accept(sock)
                logger.debug(f"Accepted connection from {address}")
                task = loop.create_task(self.handle_connection(conn))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            self._registry.unlock()

    async def handle_connection(self, conn: socket.socket) -> None:
        """Read one request, dispatch it, respond per message type, close."""
        try:
            reader, writer = await asyncio.open_connection(sock=conn)
        except OSError as e:
            logger.error(f"Failed to open connection stream ({e})")
            conn.close()
            return
        try:
            try:
                request = await self.parse_request(reader)
            except FrameError as e:
                logger.error(str(e))
                return
            respond_fn = RESPONDERS[request.type]
            response = await self.process_request(request)
            await respond_fn(writer, response)
        except Exception:
            logger.exception("Unhandled error while serving connection; closing without response")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"Error while closing connection ({e})")

    async def parse_request(self, reader: asyncio.StreamReader) -> Request:
        try:
            return decode_request(await read_frame(reader))
        except FrameError as e:
            raise FrameError(f"Failed to decode request ({e})") from e
        except OSError as e:
            raise FrameError(f"Failed to read request ({e})") from e

    async def process_request(self, request: Request) -> Response:
        """Lookup, arity check, parameter decode, invoke, result extraction. Errors become Response.error."""
        try:
            result = await self.dispatch(request)
        except RpcError as e:
            logger.error(f"{request.method_name}: {e.message}")
            return Response.failure(request.message_id, e)
        return Response.success(request.message_id, result)

    async def dispatch(self, request: Request) -> Any:
        handler = self._registry.get(request.method_name)
        if handler is None:
            raise RpcError(f"No handler exists for method {request.method_name}")

        if len(handler.parameters) != len(request.parameters):
            raise RpcError(
                f"Parameter count for {request.method_name} doesn't match. "
                f"Should be {len(handler.parameters)}, but is {len(request.parameters)}"
            )

        parameters = self.decode_parameters(request.parameters, handler)
        value = await self.invoke(handler, parameters)
        return self.decode_function_result(request.method_name, handler, value)

    def decode_parameters(self, parameters: list[Any], handler: Handler) -> list[Any]:
        decoded: list[Any] = []
        for parameter, parameter_type in zip(parameters, handler.parameters):
            try:
                decoder = LazyDecoder(parameter)
            except DecodeError as e:
                raise RpcError(f"Failed to create the decoder for a parameter ({e})") from e
            try:
                decoded.append(decoder.decode(parameter_type))
            except DecodeError as e:
                raise RpcError(f"Failed to decode a parameter ({e})") from e
        return decoded

    async def invoke(self, handler: Handler, parameters: list[Any]) -> Any:
        """Coroutine handlers are awaited; plain ones run in a thread of their own."""
        if handler.is_coroutine:
            return await handler.function(*parameters)
        result = await run_in_thread(handler.function, *parameters)
        if hasattr(result, "__await__"):
            result = await result
        return result

    def decode_function_result(self, name: str, handler: Handler, value: Any) -> Any:
        """Apply the trailing error convention, then 0 values -> nil, 1 -> value, more -> list."""
        declared = len(handler.returns)
        if declared == 0:
            return None
        if declared == 1:
            values = [value]
        else:
            if not isinstance(value, (tuple, list)) or len(value) != declared:
                received = len(value) if isinstance(value, (tuple, list)) else 1
                raise RpcError(
                    f"Handler for {name} returned {received} values, but declares {declared}"
                )
            values = list(value)

        if handler.trailing_error:
            error = values.pop()
            if error is not None:
                raise RpcError(str(error))

        if not values:
            return None
        if len(values) == 1:
            return values[0]
        return values
