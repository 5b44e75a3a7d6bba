from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _WireModel(BaseModel):
    # NaN/Infinity would poison every peer's JSON parser
    model_config = ConfigDict(allow_inf_nan=False)


# --- client -> server ---


class JoinMessage(_WireModel):
    """Announce presence. Omitted (or null) state fields take the join defaults."""

    type: Literal["join"]
    id: str = Field(min_length=1)
    name: str
    x: float | None = None
    y: float | None = None
    z: float | None = None
    yaw: float | None = None
    pitch: float | None = None
    hp: float | None = None
    score: float | None = None
    weapon: int | str | None = None


class UpdateMessage(_WireModel):
    """Full replace of the sender's position, orientation and vitals."""

    type: Literal["update"]
    x: float
    y: float
    z: float
    yaw: float
    pitch: float
    hp: float
    score: float
    weapon: int | str


ClientMessage = Annotated[JoinMessage | UpdateMessage, Field(discriminator="type")]
_client_message_adapter: TypeAdapter[JoinMessage | UpdateMessage] = TypeAdapter(ClientMessage)


def parse_client_message(raw: str | bytes) -> JoinMessage | UpdateMessage:
    """Parse one inbound frame. Raises pydantic.ValidationError on anything malformed."""
    return _client_message_adapter.validate_json(raw)


# --- server -> client ---


class PlayerDelta(_WireModel):
    id: str
    x: float
    y: float
    z: float
    yaw: float
    pitch: float
    hp: float
    score: float
    weapon: int | str


class PlayerView(PlayerDelta):
    name: str


class InitMessage(_WireModel):
    type: Literal["init"] = "init"
    players: list[PlayerView]


class PlayerJoinedMessage(_WireModel):
    type: Literal["player_joined"] = "player_joined"
    player: PlayerView


class PlayerUpdateMessage(_WireModel):
    type: Literal["player_update"] = "player_update"
    player: PlayerDelta


class PlayerLeftMessage(_WireModel):
    type: Literal["player_left"] = "player_left"
    id: str


ServerMessage = InitMessage | PlayerJoinedMessage | PlayerUpdateMessage | PlayerLeftMessage
