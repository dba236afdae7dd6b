"""
Identity Reconciliation Type Definitions

Domain types shared by the matcher, resolver and consolidator.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LinkPrecedence(str, Enum):
    """Role of a contact inside its cluster."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class Contact(BaseModel):
    """A stored contact signal."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    email: str | None = None
    phone_number: str | None = None
    linked_id: int | None = None
    link_precedence: LinkPrecedence = LinkPrecedence.PRIMARY
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @property
    def is_primary(self) -> bool:
        return self.link_precedence == LinkPrecedence.PRIMARY

    @property
    def age_key(self) -> tuple[datetime, int]:
        """Ordering key for "earliest created": created_at, then lowest id."""
        return (self.created_at, self.id)


class NewContact(BaseModel):
    """Fields for a contact about to be created."""

    email: str | None = None
    phone_number: str | None = None
    linked_id: int | None = None
    link_precedence: LinkPrecedence = LinkPrecedence.PRIMARY


class ContactChanges(BaseModel):
    """Partial update. Only explicitly set fields are written."""

    linked_id: int | None = None
    link_precedence: LinkPrecedence | None = None
    updated_at: datetime | None = None


class IdentifyRequest(BaseModel):
    """A validated identify request. At least one signal is present."""

    model_config = ConfigDict(frozen=True)

    email: str | None = None
    phone_number: str | None = None


class IdentitySummary(BaseModel):
    """Consolidated view of one cluster."""

    primary_contact_id: int
    emails: list[str] = Field(default_factory=list)
    phone_numbers: list[str] = Field(default_factory=list)
    secondary_contact_ids: list[int] = Field(default_factory=list)
