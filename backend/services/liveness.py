from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from models.messages import PlayerLeftMessage
from services.connection import CLOSE_STALE
from services.fanout import FanoutRouter

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 10.0
STALE_AFTER_SECONDS = 10.0


class LivenessSweeper:
    """
    Periodically evicts players that stopped reporting.

    Transport close events are not reliable (silently dropped connections never
    fire one), so this is the path that removes such players.
    """

    def __init__(
        self,
        fanout: FanoutRouter,
        *,
        interval: float = SWEEP_INTERVAL_SECONDS,
        threshold: float = STALE_AFTER_SECONDS,
    ) -> None:
        self._fanout = fanout
        self.interval = interval
        self.threshold = threshold
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("[liveness] Sweeper started interval=%.1fs threshold=%.1fs", self.interval, self.threshold)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def sweep_once(self, now: float | None = None) -> list[str]:
        """Evict every stale player, tell the others, and return the evicted ids."""
        now = self._fanout.clock() if now is None else now
        evicted = await self._fanout.registry.evict_stale(now, self.threshold)
        for player in evicted:
            logger.info("[liveness] Removed stale player: %s (%s)", player.name, player.id)
            await self._fanout.broadcast(PlayerLeftMessage(id=player.id))
        for player in evicted:
            if player.connection.player_id == player.id:
                player.connection.player_id = None
        await asyncio.gather(
            *(player.connection.close(code=CLOSE_STALE, reason="inactive") for player in evicted)
        )
        return [player.id for player in evicted]

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("[liveness] Sweep failed")
