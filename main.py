import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from restaurant_security import models  # noqa: F401  registers tables on Base.metadata
from restaurant_security.config import settings
from restaurant_security.database import Base, engine
from restaurant_security.exception_handlers import register_exception_handlers
from restaurant_security.middleware.logging import RequestLoggingMiddleware, setup_logging
from restaurant_security.routes import backup, security, two_factor
from restaurant_security.scheduler import install_backup_job, scheduler

setup_logging(settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)

CORS_ALLOWED_HEADERS = [
    "authorization",
    "x-client-info",
    "apikey",
    "content-type",
    "x-service-key",
    "x-session-token",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.backup_scheduler_enabled:
        install_backup_job()
        scheduler.start()
        logger.info("Backup scheduler started")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Backup scheduler stopped")
    await engine.dispose()


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Account security and data backup service for restaurants",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=CORS_ALLOWED_HEADERS,
    )

    register_exception_handlers(app)

    app.include_router(two_factor.router)
    app.include_router(two_factor.mutation_router)
    app.include_router(security.router)
    app.include_router(backup.router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict:
        return {"status": "ok", "version": settings.app_version}

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
