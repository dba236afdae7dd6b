"""
Contact Database Model

One row per observed (email, phone number) signal. Rows are grouped into
clusters through `linked_id`, which always points at the cluster's primary.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import declarative_base

from contact_identity.kernel.time import utc_now

Base = declarative_base()

# Column widths; request validation rejects longer values before they reach the store.
EMAIL_MAX_LENGTH = 320
PHONE_NUMBER_MAX_LENGTH = 32


class ContactRecord(Base):
    """Persisted contact row."""

    __tablename__ = "contact"

    id = Column(Integer, primary_key=True, autoincrement=True)

    email = Column(String(EMAIL_MAX_LENGTH), nullable=True, index=True)
    phone_number = Column(String(PHONE_NUMBER_MAX_LENGTH), nullable=True, index=True)

    # Cluster structure
    linked_id = Column(Integer, ForeignKey("contact.id"), nullable=True, index=True)
    link_precedence = Column(String(16), nullable=False, default="primary")  # primary, secondary

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "link_precedence IN ('primary', 'secondary')",
            name="contact_link_precedence_valid",
        ),
        CheckConstraint(
            "(link_precedence = 'primary' AND linked_id IS NULL) OR "
            "(link_precedence = 'secondary' AND linked_id IS NOT NULL)",
            name="contact_secondary_has_link",
        ),
        Index("ix_contact_created_at_id", "created_at", "id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ContactRecord(id={self.id}, email={self.email!r}, "
            f"phone_number={self.phone_number!r}, precedence={self.link_precedence})>"
        )
