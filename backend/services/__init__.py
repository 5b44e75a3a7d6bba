from .connection import PlayerConnection
from .fanout import FanoutRouter
from .liveness import LivenessSweeper
from .registry import JoinResult, SessionRegistry
from .settings import Settings

__all__ = [
    "PlayerConnection",
    "SessionRegistry",
    "JoinResult",
    "FanoutRouter",
    "LivenessSweeper",
    "Settings",
]
