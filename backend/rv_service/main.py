"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rv_service import __version__
from rv_service.api.errors import register_error_handlers
from rv_service.api.routes import health, pull_requests, teams, users
from rv_service.core.config import get_settings
from rv_service.core.database import init_db
from rv_service.core.logging_config import LoggingConfig
from rv_service.core.middleware import (LoggingContextMiddleware,
                                        MetricsMiddleware)

# Configure logging first
LoggingConfig.configure()

logger = LoggingConfig.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI app"""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode...")
    if app.state.init_db:
        init_db()
    yield
    logger.info(f"Shutting down {settings.app_name}...")


def create_app(init_database: bool = True) -> FastAPI:
    """
    Build the application

    Args:
        init_database: Create missing tables on startup
    """
    settings = get_settings()
    application = FastAPI(
        title=settings.app_name,
        description="Reviewer assignment and rotation for pull requests",
        version=__version__,
        lifespan=lifespan,
    )
    application.state.init_db = init_database

    application.add_middleware(MetricsMiddleware)
    application.add_middleware(LoggingContextMiddleware)

    register_error_handlers(application)

    application.include_router(teams.router)
    application.include_router(users.router)
    application.include_router(pull_requests.router)
    application.include_router(health.router)
    return application


app = create_app()


def run():
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "rv_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.app_env == "development",
    )


if __name__ == "__main__":
    run()
