"""Liveness and readiness endpoints."""

from datetime import datetime

import structlog
from fastapi import APIRouter, Response
from sqlalchemy.exc import SQLAlchemyError

from contact_identity import __version__
from contact_identity.db.client import ping_db
from contact_identity.kernel.time import utc_now

router = APIRouter()
logger = structlog.get_logger()

_started_at: datetime = utc_now()


@router.get("/health")
async def health_check():
    """Liveness: 200 while the process serves requests. Touches no dependency."""
    now = utc_now()
    return {
        "status": "OK",
        "service": "contact-identity",
        "version": __version__,
        "timestamp": now.isoformat(),
        "uptime_seconds": (now - _started_at).total_seconds(),
    }


@router.get("/ready")
async def readiness_check(response: Response):
    """Readiness: 503 until the contact database answers."""
    database_ok = True
    try:
        await ping_db()
    except (SQLAlchemyError, OSError, RuntimeError) as exc:
        database_ok = False
        logger.warning("Readiness check failed", dependency="postgres", error=str(exc))

    if not database_ok:
        response.status_code = 503

    return {
        "status": "ready" if database_ok else "degraded",
        "checks": {"postgres": database_ok},
        "timestamp": utc_now().isoformat(),
    }
