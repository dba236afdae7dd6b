"""
Identify API Route

POST /identify reconciles an email and/or phone number against stored
contacts and returns the consolidated identity of the matching cluster.
"""

import structlog
from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from contact_identity.identity import (
    IdentifyInvalid,
    IdentitySummary,
    ReconciliationEngine,
    validate_identify_payload,
)
from contact_identity.kernel.errors import StoreError

logger = structlog.get_logger()

router = APIRouter(tags=["Identity"])


# =============================================================================
# Request / Response Models
# =============================================================================


class IdentifyBody(BaseModel):
    """Raw request body. Semantic checks happen in `validate_identify_payload`."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: StrictStr | None = Field(default=None, description="Email address", examples=["lorraine@hillvalley.edu"])
    # Strict so JSON booleans and floats are rejected instead of coerced to int.
    phone_number: StrictStr | StrictInt | None = Field(
        default=None,
        alias="phoneNumber",
        description="Phone number",
        examples=["123456"],
    )


class ContactView(BaseModel):
    """Consolidated contact. `primaryContatctId` is spelt as clients expect it."""

    model_config = ConfigDict(populate_by_name=True)

    primary_contact_id: int = Field(alias="primaryContatctId")
    emails: list[str]
    phone_numbers: list[str] = Field(alias="phoneNumbers")
    secondary_contact_ids: list[int] = Field(alias="secondaryContactIds")

    @classmethod
    def from_summary(cls, summary: IdentitySummary) -> "ContactView":
        return cls(
            primary_contact_id=summary.primary_contact_id,
            emails=summary.emails,
            phone_numbers=summary.phone_numbers,
            secondary_contact_ids=summary.secondary_contact_ids,
        )


class IdentifyResponse(BaseModel):
    contact: ContactView


class ErrorResponse(BaseModel):
    error: str


# =============================================================================
# Dependencies
# =============================================================================


def get_engine(request: Request) -> ReconciliationEngine:
    """Engine built at startup and stored on the app."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise StoreError("Reconciliation engine not initialized")
    return engine


# =============================================================================
# Routes
# =============================================================================


@router.post(
    "/identify",
    response_model=IdentifyResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Neither email nor phoneNumber supplied, or malformed"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def identify_contact(
    body: IdentifyBody | None = Body(default=None),
    engine: ReconciliationEngine = Depends(get_engine),
) -> IdentifyResponse:
    """
    Identify a customer from an email and/or phone number.

    Links the signal into an existing cluster, merges clusters the request
    bridges, or starts a new cluster. Returns the cluster's primary contact
    id with every known email, phone number and secondary contact id.
    """
    validation = validate_identify_payload(
        body.email if body else None,
        body.phone_number if body else None,
    )
    if isinstance(validation, IdentifyInvalid):
        raise validation.to_error()

    summary = await engine.identify(validation.request)
    return IdentifyResponse(contact=ContactView.from_summary(summary))
