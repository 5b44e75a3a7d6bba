from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING

from .messages import JoinMessage, PlayerDelta, PlayerView, UpdateMessage

if TYPE_CHECKING:
    from services.connection import PlayerConnection

EYE_HEIGHT = 1.7               # default y when a client joins without one
DEFAULT_HP = 100.0


@dataclass
class PlayerState:
    x: float = 0.0
    y: float = EYE_HEIGHT
    z: float = 0.0
    yaw: float = 0.0
    pitch: float = 0.0
    hp: float = DEFAULT_HP
    score: float = 0.0
    weapon: int | str = 0

    @classmethod
    def from_join(cls, message: JoinMessage) -> PlayerState:
        provided = {
            name: getattr(message, name)
            for name in cls.__dataclass_fields__
            if getattr(message, name) is not None
        }
        return cls(**provided)

    @classmethod
    def from_update(cls, message: UpdateMessage) -> PlayerState:
        return cls(**message.model_dump(exclude={"type"}))


@dataclass
class Player:
    id: str
    name: str
    connection: PlayerConnection = field(repr=False)
    last_activity: float                    # clock seconds of the last message from this player
    state: PlayerState = field(default_factory=PlayerState)

    def public_view(self) -> PlayerView:
        return PlayerView(id=self.id, name=self.name, **asdict(self.state))

    def delta(self) -> PlayerDelta:
        return PlayerDelta(id=self.id, **asdict(self.state))
