"""Aggregate a cluster into the identity summary returned to clients."""

from __future__ import annotations

from typing import Iterable

from .store import ContactQuery, ContactStore
from .types import Contact, IdentitySummary


def _distinct(values: Iterable[str | None], first: str | None = None) -> list[str]:
    ordered: dict[str, None] = {}
    if first:
        ordered[first] = None
    for value in values:
        if value:
            ordered.setdefault(value, None)
    return list(ordered)


async def consolidate(store: ContactStore, primary_id: int) -> IdentitySummary:
    """Build the summary for the cluster rooted at `primary_id`.

    Emails and phone numbers keep first-seen order over (created_at, id), with
    the primary's own values first. If the primary row is not visible (e.g.
    soft-deleted outside this service) nothing is forced to the front.
    """
    members = await store.find_many(ContactQuery.build(ids=[primary_id], linked_ids=[primary_id]))
    members = sorted(members, key=lambda c: c.age_key)

    primary: Contact | None = next((c for c in members if c.id == primary_id), None)

    return IdentitySummary(
        primary_contact_id=primary_id,
        emails=_distinct(
            (c.email for c in members),
            first=primary.email if primary else None,
        ),
        phone_numbers=_distinct(
            (c.phone_number for c in members),
            first=primary.phone_number if primary else None,
        ),
        secondary_contact_ids=sorted(c.id for c in members if not c.is_primary),
    )
