"""Database models."""

from contact_identity.db.models.contact import Base, ContactRecord

__all__ = [
    "Base",
    "ContactRecord",
]
