"""
Application lifespan handler.
Builds the event bus and verifies the schema on startup, closes the bus on
shutdown.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from factory_api.models import Base
from factory_shared.config.logging import api_logger as logger
from factory_shared.config.logging import setup_logging
from factory_shared.config.settings import settings
from factory_shared.infrastructure.events import EventBus


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        logger.warning("Running with insecure defaults (acceptable for development only)")

    logger.info("Starting factory API", port=settings.rest_api_port, env=settings.environment)

    Base.metadata.create_all(bind=app.state.engine)
    logger.info("Database tables created/verified")

    if app.state.event_bus is None:
        app.state.event_bus = EventBus.from_settings()
    app.state.event_bus.start()

    yield

    logger.info("Shutting down factory API")
    app.state.event_bus.close()
