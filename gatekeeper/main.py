from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from gatekeeper.logging.flight_recorder import register_log_middleware
from gatekeeper.routes import health, webhooks
from gatekeeper.services.gate import CommunityGate
from gatekeeper.services.messaging import MessagingClient
from gatekeeper.settings import Settings


def create_app(settings: Optional[Settings] = None, messaging: Optional[MessagingClient] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    gate = CommunityGate.from_settings(settings, messaging=messaging)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await gate.startup()
        try:
            yield
        finally:
            await gate.shutdown()

    app = FastAPI(title="Community Gatekeeper", version="0.1.0", lifespan=lifespan)
    app.state.gate = gate
    app.state.settings = settings

    register_log_middleware(app)

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])

    return app


app = create_app()
