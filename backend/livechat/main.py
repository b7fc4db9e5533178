# backend/livechat/main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import chat, ws
from .config import Settings
from .hub import ChatHub
from .logging_config import setup_logging


def create_app(settings: Optional[Settings] = None, hub: Optional[ChatHub] = None, sweep: bool = True) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.logs_as_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.hub = hub or ChatHub.from_settings(settings)
        await app.state.hub.start(sweep=sweep)
        try:
            yield
        finally:
            await app.state.hub.stop()

    app = FastAPI(title="Live support chat", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat.router, prefix="/api")
    app.include_router(ws.router)

    @app.get("/health")
    async def health():
        live = app.state.hub
        return {
            "status": "ok",
            "connections": len(live.registry),
            "waiting": len(live.store.list_waiting()),
        }

    return app


def run():
    import uvicorn

    uvicorn.run("livechat.main:create_app", factory=True, host="0.0.0.0", port=8000)
