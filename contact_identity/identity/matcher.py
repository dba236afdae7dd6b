"""Candidate lookup: every live contact sharing the request's email or phone."""

from __future__ import annotations

from .store import ContactQuery, ContactStore
from .types import Contact


async def find_candidates(
    store: ContactStore,
    email: str | None,
    phone_number: str | None,
) -> list[Contact]:
    """Return contacts whose email equals `email` OR whose phone equals `phone_number`.

    Rows come back locked for the rest of the transaction so a concurrent
    request touching the same cluster has to wait for this one.
    """
    query = ContactQuery.build(
        emails=[email],
        phone_numbers=[phone_number],
        lock=True,
    )
    if query.is_empty:
        return []
    return await store.find_many(query)
