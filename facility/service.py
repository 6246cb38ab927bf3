"""Application wiring shared by every facility service."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .database import Base, engine
from .logging_middleware import add_audit_middleware, configure_logging
from .rate_limit import apply_rate_limiter

logger = logging.getLogger("facility.service")


@asynccontextmanager
async def lifespan(_: FastAPI):
    if get_settings().run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def backend_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Abort the whole computation; partial snapshots are never returned."""

    logger.error("Backend failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Facility data is temporarily unavailable, please refresh"},
    )


def create_service(title: str, service_name: str) -> FastAPI:
    settings = get_settings()
    configure_logging()
    fastapi_app = FastAPI(title=title, version="0.1.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, service_name)
    fastapi_app.add_exception_handler(SQLAlchemyError, backend_error_handler)
    if settings.metrics_enabled:
        Instrumentator().instrument(fastapi_app).expose(fastapi_app)

    @fastapi_app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok", "service": service_name}

    return fastapi_app
