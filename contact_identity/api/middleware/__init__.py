"""API middleware modules."""

from .security import (
    SecurityHeadersMiddleware,
    RequestIDMiddleware,
)

__all__ = [
    "SecurityHeadersMiddleware",
    "RequestIDMiddleware",
]
