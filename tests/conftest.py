"""Pytest fixtures: loguru capture and an in-process server on a free port."""

import asyncio
import contextlib

import pytest
from loguru import logger


@pytest.fixture
def log_messages():
    """Messages logged through loguru while the test runs."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@contextlib.asynccontextmanager
async def running_server(server):
    """Serve on 127.0.0.1 with a free port; yields the port."""
    sock = server.listen(0, "127.0.0.1")
    port = sock.getsockname()[1]
    task = asyncio.create_task(server.serve_socket(sock))
    try:
        yield port
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        sock.close()


async def raw_exchange(port, payload, read=True):
    """Send raw bytes on a fresh connection; return everything the server wrote before closing."""
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    writer.write(payload)
    await writer.drain()
    if hasattr(writer, "can_write_eof") and writer.can_write_eof():
        writer.write_eof()
    data = await asyncio.wait_for(reader.read(), timeout=5) if read else b""
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()
    return data
