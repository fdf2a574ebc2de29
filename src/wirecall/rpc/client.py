"""
Client: one connection per call. call() waits for the response, notify() only writes.
"""
from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from wirecall.rpc.codec import decode_response, encode_request, read_frame
from wirecall.rpc.decoder import LazyDecoder
from wirecall.rpc.protocol import FrameError, MessageType, Request, RpcError

# At most one request is in flight per connection, so the id never varies.
MESSAGE_ID = 1


class Client:
    """
    Facade: call(method, *params) -> LazyDecoder for the result; notify(method, *params) -> None.
    A server-reported error raises RpcError with the server's description verbatim.
    Transport errors (OSError, FrameError) propagate as themselves.
    """

    def __init__(self, address: str, port: int) -> None:
        self.address = address
        self.port = port

    async def call(self, method_name: str, *parameters: Any) -> LazyDecoder:
        reader, writer = await self.get_connection()
        try:
            writer.write(self.encode_request(MessageType.CALL, method_name, parameters))
            await writer.drain()
            response = decode_response(await read_frame(reader))
        finally:
            await self._close(writer)

        if response.message_id != MESSAGE_ID:
            raise FrameError(
                f"response message id {response.message_id} does not match request id {MESSAGE_ID}"
            )
        if response.error is not None:
            raise RpcError(response.error.description, response.error.code)
        return LazyDecoder(response.result)

    async def notify(self, method_name: str, *parameters: Any) -> None:
        _, writer = await self.get_connection()
        try:
            writer.write(self.encode_request(MessageType.NOTIFICATION, method_name, parameters))
            await writer.drain()
        finally:
            await self._close(writer)

    async def get_connection(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        return await asyncio.open_connection(self.address, self.port)

    def encode_request(self, request_type: MessageType, method_name: str, parameters: Any) -> bytes:
        return encode_request(
            Request(
                type=request_type,
                message_id=MESSAGE_ID,
                method_name=method_name,
                parameters=list(parameters),
            )
        )

    async def _close(self, writer: asyncio.StreamWriter) -> None:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error while closing connection to {self.address}:{self.port} ({e})")


class ClientFactory:
    """Creates clients; lets callers swap the client type (e.g. in tests)."""

    def create(self, address: str, port: int) -> Client:
        return Client(address, port)
