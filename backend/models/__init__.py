from .messages import (
    InitMessage,
    JoinMessage,
    PlayerDelta,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    PlayerUpdateMessage,
    PlayerView,
    UpdateMessage,
    parse_client_message,
)
from .player import DEFAULT_HP, EYE_HEIGHT, Player, PlayerState

__all__ = [
    "Player",
    "PlayerState",
    "EYE_HEIGHT",
    "DEFAULT_HP",
    "JoinMessage",
    "UpdateMessage",
    "parse_client_message",
    "PlayerView",
    "PlayerDelta",
    "InitMessage",
    "PlayerJoinedMessage",
    "PlayerUpdateMessage",
    "PlayerLeftMessage",
]
