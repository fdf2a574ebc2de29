"""Client and server over real TCP connections."""

import asyncio
import os
import threading
from dataclasses import dataclass
from typing import Optional

import msgpack
import pytest

from conftest import raw_exchange, running_server
from wirecall.rpc.client import Client, ClientFactory
from wirecall.rpc.module import HandlerModule
from wirecall.rpc.protocol import FrameError, RpcError
from wirecall.rpc.server import Server


@dataclass
class Point:
    x: int
    y: int


class Calculator:
    def add(self, a: int, b: int) -> int:
        return a + b

    def divide(self, a: int, b: int) -> tuple[int, Optional[Exception]]:
        if b == 0:
            return 0, ZeroDivisionError("division by zero")
        return a // b, None

    def pair(self, label: str) -> tuple[str, int]:
        return "x", 7

    def shift(self, p: Point, dx: int) -> Point:
        return Point(p.x + dx, p.y)


def make_server(noop=None):
    server = Server([HandlerModule().service(Calculator())])
    if noop is not None:
        server.bind("noop", noop)
    return server


@pytest.mark.asyncio
async def test_call_add():
    async with running_server(make_server()) as port:
        result = await Client("127.0.0.1", port).call("add", 2, 3)
    assert result.decode(int) == 5


@pytest.mark.asyncio
async def test_raw_call_frame():
    async with running_server(make_server()) as port:
        data = await raw_exchange(port, msgpack.packb([0, 1, "add", [2, 3]]))
    assert msgpack.unpackb(data) == [1, 1, None, 5]


@pytest.mark.asyncio
async def test_notification_writes_nothing_and_invokes_handler():
    invoked = []
    done = asyncio.Event()

    async def noop() -> None:
        invoked.append(True)
        done.set()

    async with running_server(make_server(noop)) as port:
        data = await raw_exchange(port, msgpack.packb([2, 7, "noop", []]))
        await asyncio.wait_for(done.wait(), timeout=5)
    assert data == b""
    assert invoked == [True]


@pytest.mark.asyncio
async def test_notification_with_error_writes_nothing():
    async with running_server(make_server()) as port:
        data = await raw_exchange(port, msgpack.packb([2, 8, "missing", []]))
    assert data == b""


@pytest.mark.asyncio
async def test_notification_with_trailing_error_writes_nothing(log_messages):
    async with running_server(make_server()) as port:
        data = await raw_exchange(port, msgpack.packb([2, 11, "divide", [10, 0]]))
    assert data == b""
    assert any("Dropping error of notification 11: division by zero" in m for m in log_messages)


@pytest.mark.asyncio
async def test_notification_with_raised_rpc_error_writes_nothing(log_messages):
    def reject(reason: str) -> None:
        raise RpcError(reason)

    server = make_server()
    server.bind("reject", reject)
    async with running_server(server) as port:
        data = await raw_exchange(port, msgpack.packb([2, 12, "reject", ["not today"]]))
    assert data == b""
    assert any("Dropping error of notification 12: not today" in m for m in log_messages)


@pytest.mark.asyncio
async def test_client_notify():
    done = asyncio.Event()

    async def noop() -> None:
        done.set()

    async with running_server(make_server(noop)) as port:
        await Client("127.0.0.1", port).notify("noop")
        await asyncio.wait_for(done.wait(), timeout=5)


@pytest.mark.asyncio
async def test_unknown_method_echoes_id():
    async with running_server(make_server()) as port:
        data = await raw_exchange(port, msgpack.packb([0, 42, "missing", []]))
    assert msgpack.unpackb(data) == [1, 42, ["No handler exists for method missing", ""], None]


@pytest.mark.asyncio
async def test_arity_mismatch_error():
    async with running_server(make_server()) as port:
        with pytest.raises(RpcError) as excinfo:
            await Client("127.0.0.1", port).call("add", 1, 2, 3)
    message = excinfo.value.message
    assert "Parameter count" in message
    assert "add" in message and "2" in message and "3" in message


@pytest.mark.asyncio
async def test_handler_error_verbatim():
    async with running_server(make_server()) as port:
        data = await raw_exchange(port, msgpack.packb([0, 9, "divide", [10, 0]]))
        with pytest.raises(RpcError, match="^division by zero$"):
            await Client("127.0.0.1", port).call("divide", 10, 0)
    assert msgpack.unpackb(data) == [1, 9, ["division by zero", ""], None]


@pytest.mark.asyncio
async def test_multiple_results_as_sequence():
    async with running_server(make_server()) as port:
        result = await Client("127.0.0.1", port).call("pair", "ignored")
    assert result.decode(tuple[str, int]) == ("x", 7)


@pytest.mark.asyncio
async def test_dataclass_round_trip():
    async with running_server(make_server()) as port:
        result = await Client("127.0.0.1", port).call("shift", Point(1, 2), 3)
    assert result.decode(Point) == Point(4, 2)


@pytest.mark.asyncio
async def test_rebind_dispatches_to_new_handler():
    server = make_server()
    server.bind("add", lambda a, b: a * b)
    async with running_server(server) as port:
        result = await Client("127.0.0.1", port).call("add", 2, 3)
    assert result.decode() == 6


@pytest.mark.asyncio
async def test_garbage_request_closes_without_response(log_messages):
    async with running_server(make_server()) as port:
        data = await raw_exchange(port, b"\xc1")
        assert data == b""
        # the loop keeps serving after a bad connection
        result = await Client("127.0.0.1", port).call("add", 1, 1)
    assert result.decode(int) == 2
    assert any("Failed to decode request" in m for m in log_messages)


@pytest.mark.asyncio
async def test_crashing_handler_closes_without_response(log_messages):
    def crash() -> int:
        raise RuntimeError("boom")

    server = make_server()
    server.bind("crash", crash)
    async with running_server(server) as port:
        with pytest.raises(FrameError):
            await Client("127.0.0.1", port).call("crash")
        result = await Client("127.0.0.1", port).call("add", 2, 2)
    assert result.decode(int) == 4
    assert any("Unhandled error while serving connection" in m for m in log_messages)


@pytest.mark.asyncio
async def test_concurrent_calls():
    async def slow(value: int) -> int:
        await asyncio.sleep(0.05)
        return value

    server = make_server()
    server.bind("slow", slow)
    async with running_server(server) as port:
        client = Client("127.0.0.1", port)
        decoders = await asyncio.gather(*(client.call("slow", i) for i in range(10)))
    assert [d.decode(int) for d in decoders] == list(range(10))


@pytest.mark.asyncio
async def test_blocking_handlers_all_run_at_once():
    # more parties than the default executor has threads
    parties = min(32, (os.cpu_count() or 1) + 4) + 2
    barrier = threading.Barrier(parties, timeout=5)

    def meet(value: int) -> int:
        barrier.wait()
        return value

    server = make_server()
    server.bind("meet", meet)
    async with running_server(server) as port:
        client = Client("127.0.0.1", port)
        decoders = await asyncio.gather(*(client.call("meet", i) for i in range(parties)))
    assert [d.decode(int) for d in decoders] == list(range(parties))


@pytest.mark.asyncio
async def test_bind_while_serving_rejected():
    server = make_server()
    async with running_server(server):
        await asyncio.sleep(0)
        with pytest.raises(RuntimeError):
            server.bind("late", lambda: None)
        with pytest.raises(RuntimeError):
            server.registry.bind("late", lambda: None)
    assert "late" not in server.registry
    server.bind("late", lambda: None)
    assert "late" in server.registry


@pytest.mark.asyncio
async def test_connection_refused_propagates():
    server = Server()
    sock = server.listen(0, "127.0.0.1")
    port = sock.getsockname()[1]
    sock.close()
    with pytest.raises(OSError):
        await Client("127.0.0.1", port).call("add", 1, 2)


def test_client_factory():
    client = ClientFactory().create("example.org", 1234)
    assert isinstance(client, Client)
    assert (client.address, client.port) == ("example.org", 1234)
