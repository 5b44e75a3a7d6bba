from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest
from starlette.websockets import WebSocketState

from services.connection import PlayerConnection
from services.fanout import FanoutRouter
from services.registry import SessionRegistry


class FakeWebSocket:
    """Stands in for a starlette WebSocket; records every frame written to it."""

    def __init__(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[str] = []
        self.close_code: int | None = None
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def send_text(self, text: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def messages(self, type_: str | None = None) -> list[dict[str, Any]]:
        decoded = [json.loads(text) for text in self.sent]
        if type_ is None:
            return decoded
        return [m for m in decoded if m["type"] == type_]


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def settle(*connections: PlayerConnection) -> None:
    """Wait until each connection's writer has caught up."""
    for connection in connections:
        await asyncio.wait_for(connection.flush(), timeout=1.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def fanout(registry: SessionRegistry, clock: FakeClock) -> FanoutRouter:
    return FanoutRouter(registry, clock=clock)


@pytest.fixture
def connect(fanout: FanoutRouter) -> Callable[[], tuple[PlayerConnection, FakeWebSocket]]:
    """Factory for started connections backed by fake sockets (call inside a running loop)."""

    def _connect() -> tuple[PlayerConnection, FakeWebSocket]:
        websocket = FakeWebSocket()
        return fanout.open_connection(websocket), websocket

    return _connect
