from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from contact_identity.kernel.errors import (
    INTERNAL_ERROR_MESSAGE,
    MISSING_SIGNAL_MESSAGE,
    IdentityServiceError,
    StoreError,
)

logger = structlog.get_logger()


def _get_request_id(request: Request) -> str | None:
    return getattr(getattr(request, "state", None), "request_id", None)


def register_exception_handlers(app: FastAPI) -> None:
    """Register service-wide exception handlers on a FastAPI app.

    Every error body has the shape `{"error": <message>}`.
    """

    @app.exception_handler(IdentityServiceError)
    async def _service_error_handler(request: Request, exc: IdentityServiceError) -> Response:
        request_id = _get_request_id(request)
        if isinstance(exc, StoreError):
            logger.error(
                "Store failure",
                request_id=request_id,
                code=exc.code,
                error=exc.detail,
                **exc.meta,
            )
        else:
            logger.info("Request rejected", request_id=request_id, code=exc.code, **exc.meta)
        return JSONResponse(status_code=exc.status_code, content=exc.to_public_dict())

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> Response:
        headers = dict(exc.headers or {})
        return JSONResponse(
            status_code=int(exc.status_code),
            content={"error": exc.detail},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        logger.info(
            "Request body rejected",
            request_id=_get_request_id(request),
            errors=len(exc.errors()),
        )
        return JSONResponse(status_code=400, content={"error": MISSING_SIGNAL_MESSAGE})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
        request_id = _get_request_id(request)
        logger.exception("Unhandled exception", request_id=request_id, error=str(exc))
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})
