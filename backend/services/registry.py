from __future__ import annotations

import asyncio
from dataclasses import dataclass

from models.messages import PlayerView
from models.player import Player, PlayerState
from services.connection import PlayerConnection


@dataclass
class JoinResult:
    others: list[PlayerView]             # public views for the joiner's init
    peers: list[PlayerConnection]        # who must hear about the joiner
    replaced: Player | None = None       # previous record under the same id, if any


class SessionRegistry:
    """
    In-memory table of live players keyed by player id.

    Every mutation runs under one asyncio.Lock. Reads never await, so on the
    event loop they always see a point-in-time view and never a half-applied
    mutation. The backing dict is never handed out.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._players: dict[str, Player] = {}

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    async def put(self, player: Player) -> Player | None:
        """Insert or replace; returns the record that was replaced, if any."""
        async with self._lock:
            return self._put(player)

    def get(self, player_id: str) -> Player | None:
        return self._players.get(player_id)

    async def remove(self, player_id: str, *, owner: PlayerConnection | None = None) -> Player | None:
        """
        Delete the record if present and return it.

        With `owner`, the record is only removed while it still belongs to that
        connection; a superseded connection cannot evict its successor.
        """
        async with self._lock:
            player = self._players.get(player_id)
            if player is None:
                return None
            if owner is not None and player.connection is not owner:
                return None
            del self._players[player_id]
            return player

    async def join(self, player: Player) -> JoinResult:
        """Insert `player` and capture, in the same step, who it sees and who sees it."""
        async with self._lock:
            replaced = self._put(player)
            return JoinResult(
                others=self.snapshot_all_except(player.id),
                peers=self.connections_except(player.id),
                replaced=replaced,
            )

    async def apply_update(
        self,
        player_id: str,
        state: PlayerState,
        *,
        owner: PlayerConnection,
        now: float,
    ) -> Player | None:
        async with self._lock:
            player = self._players.get(player_id)
            if player is None or player.connection is not owner:
                return None
            player.state = state
            player.last_activity = now
            return player

    def snapshot_all_except(self, player_id: str | None) -> list[PlayerView]:
        return [p.public_view() for pid, p in self._players.items() if pid != player_id]

    def connections_except(self, player_id: str | None) -> list[PlayerConnection]:
        return [p.connection for pid, p in self._players.items() if pid != player_id]

    async def evict_stale(self, now: float, threshold: float) -> list[Player]:
        """
        Remove and return every player idle for more than `threshold` seconds.

        Runs under the lock, so an update that lands while the sweep waits for
        the lock is applied first and keeps its player alive.
        """
        async with self._lock:
            stale = [p for p in self._players.values() if now - p.last_activity > threshold]
            for player in stale:
                del self._players[player.id]
        return stale

    def _put(self, player: Player) -> Player | None:
        replaced = self._players.get(player.id)
        self._players[player.id] = player
        return replaced
