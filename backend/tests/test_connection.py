from __future__ import annotations

import asyncio

import pytest
from starlette.websockets import WebSocketState

from conftest import FakeWebSocket, settle
from services.connection import CLOSE_SLOW_CONSUMER, CLOSE_STALE, PlayerConnection


@pytest.mark.asyncio
async def test_frames_are_written_in_order() -> None:
    websocket = FakeWebSocket()
    connection = PlayerConnection(websocket)
    connection.start()

    for i in range(5):
        assert connection.send_nowait(f"frame-{i}") is True
    await settle(connection)

    assert websocket.sent == [f"frame-{i}" for i in range(5)]
    await connection.close()


@pytest.mark.asyncio
async def test_pending_updates_coalesce_per_key() -> None:
    websocket = FakeWebSocket()
    websocket.gate = asyncio.Event()
    connection = PlayerConnection(websocket)
    connection.start()

    connection.send_nowait("init")
    await asyncio.sleep(0)  # writer takes "init" and blocks on the gate
    connection.send_nowait("p1@1", coalesce_key="p1")
    connection.send_nowait("p2@1", coalesce_key="p2")
    connection.send_nowait("p1@2", coalesce_key="p1")
    websocket.gate.set()
    await settle(connection)

    assert websocket.sent == ["init", "p1@2", "p2@1"]
    await connection.close()


@pytest.mark.asyncio
async def test_keyless_frames_are_kept_and_fence_coalescing() -> None:
    websocket = FakeWebSocket()
    websocket.gate = asyncio.Event()
    connection = PlayerConnection(websocket)
    connection.start()

    connection.send_nowait("init")
    await asyncio.sleep(0)
    connection.send_nowait("p1@1", coalesce_key="p1")
    connection.send_nowait("left:p1")
    connection.send_nowait("joined:p1")
    connection.send_nowait("p1@2", coalesce_key="p1")
    connection.send_nowait("p1@3", coalesce_key="p1")
    websocket.gate.set()
    await settle(connection)

    assert websocket.sent == ["init", "p1@1", "left:p1", "joined:p1", "p1@3"]
    await connection.close()


@pytest.mark.asyncio
async def test_backlog_over_limit_closes_slow_client() -> None:
    websocket = FakeWebSocket()
    websocket.gate = asyncio.Event()
    connection = PlayerConnection(websocket, maxsize=2)
    connection.start()

    connection.send_nowait("a")
    await asyncio.sleep(0)
    assert connection.send_nowait("b") is True
    assert connection.send_nowait("c") is True
    assert connection.send_nowait("d") is False
    assert connection.is_open is False

    websocket.gate.set()
    await settle(connection)
    await connection.close()

    assert websocket.sent == ["a"]
    assert websocket.close_code == CLOSE_SLOW_CONSUMER


@pytest.mark.asyncio
async def test_write_failure_closes_only_that_connection() -> None:
    broken_ws, healthy_ws = FakeWebSocket(), FakeWebSocket()
    broken_ws.fail_with = RuntimeError("socket gone")
    broken, healthy = PlayerConnection(broken_ws), PlayerConnection(healthy_ws)
    broken.start()
    healthy.start()

    broken.send_nowait("x")
    broken.send_nowait("y")
    healthy.send_nowait("x")
    await settle(broken, healthy)

    assert broken.is_open is False
    assert broken.send_nowait("z") is False
    assert healthy.is_open is True
    assert healthy_ws.sent == ["x"]
    await broken.close()
    await healthy.close()


@pytest.mark.asyncio
async def test_socket_state_gates_sending() -> None:
    websocket = FakeWebSocket()
    connection = PlayerConnection(websocket)
    connection.start()

    websocket.client_state = WebSocketState.DISCONNECTED
    assert connection.is_open is False
    assert connection.send_nowait("late") is False
    await connection.close()
    assert websocket.sent == []


@pytest.mark.asyncio
async def test_close_drains_pending_then_closes_socket_with_code() -> None:
    websocket = FakeWebSocket()
    connection = PlayerConnection(websocket)
    connection.start()

    connection.send_nowait("last words")
    await connection.close(code=CLOSE_STALE, reason="inactive")

    assert websocket.sent == ["last words"]
    assert websocket.close_code == CLOSE_STALE
    assert connection.is_open is False
    # closing twice is a no-op
    await connection.close(code=1000)
    assert websocket.close_code == CLOSE_STALE


@pytest.mark.asyncio
async def test_close_gives_up_on_a_stuck_writer() -> None:
    websocket = FakeWebSocket()
    websocket.gate = asyncio.Event()
    connection = PlayerConnection(websocket, close_timeout=0.05)
    connection.start()

    connection.send_nowait("never delivered")
    await asyncio.wait_for(connection.close(), timeout=1.0)
    await settle(connection)
    assert websocket.sent == []
