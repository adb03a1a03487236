"""
Factory hierarchy REST API.
Entry point for the FastAPI server.

    uvicorn factory_api.main:app --port 8000
"""

from fastapi import FastAPI
from sqlalchemy import Engine, text
from sqlalchemy.orm import Session, sessionmaker

from factory_api.core.cors import configure_cors
from factory_api.core.errors import register_exception_handlers
from factory_api.core.lifespan import lifespan
from factory_api.routers.org_units import ORG_UNIT_MODULES
from factory_api.routers.users import router as users_router
from factory_shared.config.settings import settings
from factory_shared.infrastructure import db
from factory_shared.infrastructure.correlation import CorrelationIdMiddleware
from factory_shared.infrastructure.events import EventBus


def create_app(engine: Engine | None = None, event_bus: EventBus | None = None) -> FastAPI:
    """
    Build the application.

    engine defaults to the configured database; passing one also routes
    request sessions to it. event_bus defaults to one built from settings
    at startup.
    """
    app = FastAPI(
        title="Factory Hierarchy API",
        description="Factories, lines, teams and groups with delegated management",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine or db.engine
    app.state.event_bus = event_bus

    if engine is not None:
        session_factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)

        def get_engine_db():
            session: Session = session_factory()
            try:
                yield session
            finally:
                session.close()

        app.dependency_overrides[db.get_db] = get_engine_db

    register_exception_handlers(app)
    configure_cors(app)
    app.add_middleware(CorrelationIdMiddleware)

    for module in ORG_UNIT_MODULES:
        app.include_router(module.router)
    app.include_router(users_router)

    @app.get("/health")
    def health_check():
        """Basic health check endpoint."""
        with app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "healthy", "service": "factory-api", "environment": settings.environment}

    return app


app = create_app()
