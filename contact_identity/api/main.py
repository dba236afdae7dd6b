"""
Contact Identity Service - FastAPI Application

Routes:
- POST /identify: reconcile an email / phone number into a customer cluster
- GET /health, GET /ready
- GET /metrics (Prometheus), GET /api-docs (OpenAPI UI)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from contact_identity import __version__
from contact_identity.api.middleware import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
)
from contact_identity.api.routes import health, identify
from contact_identity.config import Settings, get_settings
from contact_identity.db.client import close_db, get_session_factory, init_db
from contact_identity.identity import ReconciliationEngine, SqlContactStoreProvider
from contact_identity.keepalive import init_keepalive, shutdown_keepalive
from contact_identity.kernel.http.errors import register_exception_handlers


def configure_logging(settings: Settings) -> None:
    """structlog to stdout: JSON in deployments, console renderer with LOG_FORMAT=text."""
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings())
logger = structlog.get_logger()


def build_engine(settings: Settings) -> ReconciliationEngine:
    """Reconciliation engine over the SQL store. Requires `init_db()` first."""
    return ReconciliationEngine(
        SqlContactStoreProvider(get_session_factory()),
        max_attempts=settings.identify_max_attempts,
        retry_backoff_seconds=settings.identify_retry_backoff_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "Contact identity service starting",
        version=__version__,
        environment=settings.environment,
    )

    await init_db()
    app.state.engine = build_engine(settings)

    keepalive_started = await init_keepalive()
    logger.info("Contact identity service ready", keepalive=keepalive_started)

    try:
        yield
    finally:
        logger.info("Contact identity service stopping")
        await shutdown_keepalive()
        app.state.engine = None
        await close_db()


app = FastAPI(
    title="Contact Identity Reconciliation API",
    description="Links emails and phone numbers that belong to the same customer",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api-docs",
    redoc_url=None,
)

# Starlette runs the last-added middleware first.
app.add_middleware(RequestIDMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

register_exception_handlers(app)

app.mount("/metrics", make_asgi_app())

app.include_router(health.router, tags=["Health"])
app.include_router(identify.router)


@app.get("/", include_in_schema=False)
async def root():
    return {
        "name": "contact-identity",
        "version": __version__,
        "docs": "/api-docs",
        "identify": "/identify",
        "health": "/health",
        "metrics": "/metrics",
    }


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "contact_identity.api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
