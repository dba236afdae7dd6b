from __future__ import annotations

import re
from typing import Any


_ERROR_CODE_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")

INTERNAL_ERROR_MESSAGE = "Internal server error"
MISSING_SIGNAL_MESSAGE = "At least one of email or phoneNumber is required"


class IdentityServiceError(Exception):
    """Base typed error for the contact identity service.

    - Stable `code` for programmatic handling and log correlation.
    - Public `message` that is safe to return to clients.
    - Optional `meta` payload, logged but never rendered.
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        status_code: int = 500,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if not _ERROR_CODE_RE.fullmatch(code):
            raise ValueError(
                "Invalid error code. Expected dot-separated lowercase tokens, "
                f"got: {code!r}"
            )
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = int(status_code)
        self.meta = dict(meta or {})

    def to_public_dict(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(IdentityServiceError):
    def __init__(
        self,
        *,
        message: str = MISSING_SIGNAL_MESSAGE,
        code: str = "request.validation_error",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=400, meta=meta)


class StoreError(IdentityServiceError):
    """Persistence failure. The public message never carries store detail."""

    def __init__(
        self,
        detail: str = "Store operation failed",
        *,
        code: str = "store.error",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=INTERNAL_ERROR_MESSAGE, status_code=500, meta=meta)
        self.detail = detail

    def __str__(self) -> str:
        return self.detail


class TransactionConflictError(StoreError):
    """Another transaction touched the same rows; safe to retry from scratch."""

    def __init__(
        self,
        detail: str = "Transaction conflict",
        *,
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(detail, code="store.conflict", meta=meta)
