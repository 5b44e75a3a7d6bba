from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routes.world_ws import router as world_router
from services.fanout import FanoutRouter
from services.liveness import LivenessSweeper
from services.registry import SessionRegistry
from services.settings import Settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Built per lifespan so the registry lock and tasks belong to the serving loop.
    settings: Settings = getattr(app.state, "settings", None) or Settings.from_env()
    registry = SessionRegistry()
    fanout = FanoutRouter(registry, outbox_maxsize=settings.outbox_maxsize)
    sweeper = LivenessSweeper(
        fanout,
        interval=settings.sweep_interval_seconds,
        threshold=settings.stale_after_seconds,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.fanout = fanout
    app.state.sweeper = sweeper
    sweeper.start()
    try:
        yield
    finally:
        await sweeper.stop()


app = FastAPI(title="World Relay", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(world_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
