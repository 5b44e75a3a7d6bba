"""Runtime settings read from the environment (optionally via backend/.env)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from services.liveness import STALE_AFTER_SECONDS, SWEEP_INTERVAL_SECONDS

DEFAULT_PORT = 3000
DEFAULT_OUTBOX_MAXSIZE = 256


def _env_number(name: str, default: float, cast: type[int] | type[float]) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS
    stale_after_seconds: float = STALE_AFTER_SECONDS
    outbox_maxsize: int = DEFAULT_OUTBOX_MAXSIZE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            host=os.environ.get("HOST", "").strip() or cls.host,
            port=int(_env_number("PORT", DEFAULT_PORT, int)),
            sweep_interval_seconds=_env_number("SWEEP_INTERVAL_SECONDS", SWEEP_INTERVAL_SECONDS, float),
            stale_after_seconds=_env_number("STALE_AFTER_SECONDS", STALE_AFTER_SECONDS, float),
            outbox_maxsize=int(_env_number("OUTBOX_MAXSIZE", DEFAULT_OUTBOX_MAXSIZE, int)),
            log_level=os.environ.get("LOG_LEVEL", "").strip().upper() or cls.log_level,
        )
