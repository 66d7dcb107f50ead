"""
FastAPI application for the Communication Lifecycle service.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .catalog.repository import CatalogRepository
from .config import get_settings
from .db.base import get_session_local, init_database
from .errors import (
    ConflictError,
    InvalidTransitionError,
    LifecycleError,
    NotFoundError,
    PublishFailedError,
)
from .lifecycle.routes import communications_router, simulator_router, types_router
from .logging_setup import configure_logging
from .messaging.publisher import create_publisher

logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging()
    logger.info("application_starting", environment=settings.environment)

    try:
        init_database()

        db = get_session_local()()
        try:
            repository = CatalogRepository(db)
            if settings.seed_catalog_on_startup:
                repository.seed()
            app.state.catalog = repository.snapshot()
        finally:
            db.close()
        logger.info("catalog_loaded", types=len(app.state.catalog))

        app.state.publisher = create_publisher(settings)
    except Exception as e:
        logger.error("application_start_failed", error=str(e))
        raise

    yield

    logger.info("application_stopping")
    app.state.publisher.close()
    logger.info("shutdown_complete")


app = FastAPI(
    title=settings.app_name,
    description="Lifecycle tracking and status-change events for member communications",
    version=importlib.metadata.version("communication-lifecycle"),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error mapping
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content=exc.to_dict())


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content=exc.to_dict())


@app.exception_handler(PublishFailedError)
async def publish_failed_handler(request: Request, exc: PublishFailedError) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "error": exc.code,
            "message": "The change was saved but its event could not be published",
            "communication_id": exc.communication_id,
        },
    )


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    # Operational faults are logged where they happen; keep details out of the response
    return JSONResponse(
        status_code=500,
        content={"error": exc.code, "message": "An internal error occurred"},
    )


# Health and Info Endpoints
@app.get("/healthz")
def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version")
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("communication-lifecycle")}


app.include_router(communications_router, prefix="/api")
app.include_router(types_router, prefix="/api")
app.include_router(simulator_router, prefix="/api")
