"""Identify request validation.

Returns a tagged result instead of raising, so callers decide how a rejection
is surfaced. The engine only ever sees `IdentifyRequest` values that passed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal

from contact_identity.db.models.contact import EMAIL_MAX_LENGTH, PHONE_NUMBER_MAX_LENGTH
from contact_identity.kernel.errors import MISSING_SIGNAL_MESSAGE, ValidationError

from .types import IdentifyRequest

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class IdentifyValid:
    request: IdentifyRequest
    ok: Literal[True] = True


@dataclass(frozen=True)
class IdentifyInvalid:
    reason: Literal["missing_signal", "invalid_email", "invalid_phone"]
    message: str = MISSING_SIGNAL_MESSAGE
    ok: Literal[False] = False

    def to_error(self) -> ValidationError:
        return ValidationError(message=self.message, meta={"reason": self.reason})


IdentifyValidation = IdentifyValid | IdentifyInvalid


def _clean(value: str) -> str | None:
    value = value.strip()
    return value or None


def validate_identify_payload(email: Any, phone_number: Any) -> IdentifyValidation:
    """Validate raw `email` / `phoneNumber` values from a request body.

    - Strings are trimmed; empty strings count as absent.
    - `phone_number` may be an integer and is converted to its decimal form.
    - At least one signal must remain, and a present email must look like one.
    - Values longer than the contact columns are rejected.
    """
    if email is not None and not isinstance(email, str):
        return IdentifyInvalid(reason="invalid_email")
    clean_email = _clean(email) if email is not None else None
    if clean_email is not None and (
        len(clean_email) > EMAIL_MAX_LENGTH or not _EMAIL_RE.fullmatch(clean_email)
    ):
        return IdentifyInvalid(reason="invalid_email")

    if isinstance(phone_number, bool):
        return IdentifyInvalid(reason="invalid_phone")
    if isinstance(phone_number, int):
        phone_number = str(phone_number)
    if phone_number is not None and not isinstance(phone_number, str):
        return IdentifyInvalid(reason="invalid_phone")
    clean_phone = _clean(phone_number) if phone_number is not None else None
    if clean_phone is not None and len(clean_phone) > PHONE_NUMBER_MAX_LENGTH:
        return IdentifyInvalid(reason="invalid_phone")

    if clean_email is None and clean_phone is None:
        return IdentifyInvalid(reason="missing_signal")

    return IdentifyValid(IdentifyRequest(email=clean_email, phone_number=clean_phone))
