"""Routes inbound player frames to the registry and fans the results out to peers."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from models.messages import (
    InitMessage,
    JoinMessage,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    PlayerUpdateMessage,
    UpdateMessage,
    parse_client_message,
)
from models.player import Player, PlayerState
from services.connection import CLOSE_SUPERSEDED, PlayerConnection
from services.registry import SessionRegistry

logger = logging.getLogger(__name__)


class FanoutRouter:
    def __init__(
        self,
        registry: SessionRegistry,
        *,
        clock: Callable[[], float] = time.time,
        outbox_maxsize: int = 256,
    ) -> None:
        self.registry = registry
        self.clock = clock
        self._outbox_maxsize = outbox_maxsize

    def open_connection(self, websocket: Any) -> PlayerConnection:
        """Wrap an accepted socket and start its writer task."""
        connection = PlayerConnection(websocket, maxsize=self._outbox_maxsize)
        connection.start()
        return connection

    async def handle_message(self, connection: PlayerConnection, raw: str | bytes) -> None:
        """Parse one inbound frame and dispatch it. Malformed frames are logged and dropped."""
        try:
            message = parse_client_message(raw)
        except ValidationError as e:
            logger.warning(
                "[fanout] Dropping malformed frame player_id=%r: %s",
                connection.player_id,
                e.errors(include_url=False, include_input=False),
            )
            return
        if isinstance(message, JoinMessage):
            await self.join(connection, message)
        else:
            await self.update(connection, message)

    async def join(self, connection: PlayerConnection, message: JoinMessage) -> None:
        previous_id = connection.player_id
        if previous_id is not None and previous_id != message.id:
            # Same socket re-joining under a new id retires the old one.
            await self._retire(connection, previous_id)

        player = Player(
            id=message.id,
            name=message.name,
            connection=connection,
            last_activity=self.clock(),
            state=PlayerState.from_join(message),
        )
        connection.player_id = player.id
        result = await self.registry.join(player)

        connection.send_nowait(InitMessage(players=result.others).model_dump_json())
        joined = PlayerJoinedMessage(player=player.public_view()).model_dump_json()
        for peer in result.peers:
            peer.send_nowait(joined)
        logger.info("[fanout] Player joined: %s (%s), %d others online", player.name, player.id, len(result.others))

        replaced = result.replaced
        if replaced is not None and replaced.connection is not connection:
            logger.warning("[fanout] Player id %s re-joined from another connection; closing the old one", player.id)
            replaced.connection.player_id = None
            await replaced.connection.close(code=CLOSE_SUPERSEDED, reason="superseded")

    async def update(self, connection: PlayerConnection, message: UpdateMessage) -> None:
        player_id = connection.player_id
        if player_id is None:
            logger.debug("[fanout] Ignoring update before join")
            return
        player = await self.registry.apply_update(
            player_id,
            PlayerState.from_update(message),
            owner=connection,
            now=self.clock(),
        )
        if player is None:
            logger.debug("[fanout] Ignoring update for unregistered player_id=%r", player_id)
            return
        await self.broadcast(PlayerUpdateMessage(player=player.delta()), exclude_id=player_id)

    async def disconnect(self, connection: PlayerConnection, *, error: BaseException | None = None) -> None:
        """Clean up after a socket closed or failed. Safe to call for a socket that never joined."""
        if error is not None:
            logger.warning("[fanout] Transport error player_id=%r: %s", connection.player_id, error)
        try:
            if connection.player_id is not None:
                player = await self.registry.remove(connection.player_id, owner=connection)
                if player is not None:
                    logger.info("[fanout] Player disconnected: %s (%s)", player.name, player.id)
                    await self.broadcast(PlayerLeftMessage(id=player.id))
        finally:
            await connection.close()

    async def broadcast(self, message: BaseModel, exclude_id: str | None = None) -> int:
        """
        Serialize `message` once and queue it for every open connection except
        `exclude_id`'s. Returns how many connections it was queued for.

        A still-pending player_update for the same player is overwritten
        instead of queued behind.
        """
        data = message.model_dump_json()
        coalesce_key = message.player.id if isinstance(message, PlayerUpdateMessage) else None
        delivered = 0
        for peer in self.registry.connections_except(exclude_id):
            if peer.send_nowait(data, coalesce_key=coalesce_key):
                delivered += 1
        return delivered

    async def _retire(self, connection: PlayerConnection, player_id: str) -> None:
        player = await self.registry.remove(player_id, owner=connection)
        connection.player_id = None
        if player is not None:
            logger.info("[fanout] Player %s (%s) replaced by a new join on the same connection", player.name, player.id)
            await self.broadcast(PlayerLeftMessage(id=player.id))
