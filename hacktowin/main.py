from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hacktowin import accounts
from hacktowin.auth import TokenIssuer
from hacktowin.config import Settings
from hacktowin.database import Database
from hacktowin.errors import register_error_handlers
from hacktowin.logging import configure_logging
from hacktowin.routes import router as payments_router
from hacktowin.stripe_service import StripeGateway

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, gateway=None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.database_url, timeout=settings.db_timeout)
        database.create_all()
        app.state.database = database
        logger.info("server_started", port=settings.port)
        try:
            yield
        finally:
            database.dispose()
            logger.info("server_stopped")

    app = FastAPI(title="Hacktowin Backend", lifespan=lifespan)

    app.state.settings = settings
    app.state.gateway = gateway or StripeGateway(
        settings.stripe_secret_key,
        settings.stripe_webhook_secret,
        timeout=settings.gateway_timeout,
    )
    app.state.token_issuer = TokenIssuer(
        settings.jwt_secret,
        timedelta(minutes=settings.jwt_expires_minutes),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app, message_keys={accounts.ROUTE_PREFIX: accounts.ERROR_KEY})

    app.include_router(payments_router)
    app.include_router(accounts.router)

    return app


def run():
    settings = Settings.from_env()
    uvicorn.run(
        "hacktowin.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )
