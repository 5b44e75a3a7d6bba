from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

CLOSE_SUPERSEDED = 4003
CLOSE_STALE = 4008
CLOSE_SLOW_CONSUMER = 4009


@dataclass
class _Frame:
    text: str
    key: str | None = None           # frames sharing a key replace each other while pending


class PlayerConnection:
    """
    Outbound side of one client socket.

    - Frames are queued with send_nowait() and written by a single writer task,
      so no two flows ever write to the socket at once.
    - A frame sent with a `coalesce_key` replaces a still-pending frame with the
      same key in place (latest-wins per key), unless a keyless frame was queued
      in between. Frames without a key are never dropped.
    - If the pending backlog still exceeds `maxsize`, the client is too slow to
      keep up: the backlog is discarded and the socket is closed with
      CLOSE_SLOW_CONSUMER, so the usual disconnect cleanup runs.
    - A failed write marks the connection closed and discards what is pending.
    """

    def __init__(self, websocket: Any, *, maxsize: int = 256, close_timeout: float = 1.0) -> None:
        self._websocket = websocket
        self._frames: deque[_Frame] = deque()
        self._maxsize = maxsize
        self._close_timeout = close_timeout
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._writer: asyncio.Task[None] | None = None
        self._closing = False
        self._failed = False
        self._abort_code: int | None = None
        self.player_id: str | None = None

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    @property
    def is_open(self) -> bool:
        if self._stopping:
            return False
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    @property
    def _stopping(self) -> bool:
        return self._closing or self._failed or self._abort_code is not None

    def send_nowait(self, text: str, *, coalesce_key: str | None = None) -> bool:
        """Queue one serialized frame. Returns False if the connection is not writable."""
        if not self.is_open:
            return False
        if coalesce_key is not None:
            # Only frames queued after the last keyless frame may be replaced.
            for frame in reversed(self._frames):
                if frame.key is None:
                    break
                if frame.key == coalesce_key:
                    frame.text = text
                    return True
        if len(self._frames) >= self._maxsize:
            self._abort(CLOSE_SLOW_CONSUMER)
            return False
        self._frames.append(_Frame(text, coalesce_key))
        self._idle.clear()
        self._wakeup.set()
        return True

    async def flush(self) -> None:
        """Wait until every queued frame has been written or discarded."""
        await self._idle.wait()

    async def close(self, code: int | None = None, reason: str | None = None) -> None:
        """
        Stop the writer after it drains what is already queued.

        When `code` is given the socket itself is closed with it as well (used
        when the server ends a session the client still holds open).
        """
        if self._closing:
            return
        self._closing = True
        self._wakeup.set()
        if self._writer is not None:
            done, _ = await asyncio.wait({self._writer}, timeout=self._close_timeout)
            if not done:
                self._writer.cancel()
                with suppress(asyncio.CancelledError):
                    await self._writer
        self._frames.clear()
        self._idle.set()
        if code is not None:
            await self._close_socket(code, reason)

    def _abort(self, code: int) -> None:
        logger.warning(
            "[connection] Client too slow, %d frames pending; closing player_id=%r",
            len(self._frames),
            self.player_id,
        )
        self._abort_code = code
        self._frames.clear()
        self._wakeup.set()

    async def _close_socket(self, code: int, reason: str | None) -> None:
        if self._websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await self._websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug("[connection] close(%s) failed player_id=%r: %s", code, self.player_id, e)

    async def _write_loop(self) -> None:
        try:
            while True:
                if not self._frames:
                    self._idle.set()
                    if self._stopping:
                        break
                    self._wakeup.clear()
                    await self._wakeup.wait()
                    continue
                frame = self._frames.popleft()
                try:
                    await self._websocket.send_text(frame.text)
                except Exception as e:
                    self._failed = True
                    logger.warning("[connection] Write failed player_id=%r: %s", self.player_id, e)
                    self._frames.clear()
        finally:
            self._frames.clear()
            self._idle.set()
        if self._abort_code is not None:
            await self._close_socket(self._abort_code, "too slow")
