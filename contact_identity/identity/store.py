"""Store port used by the reconciliation engine.

The engine never talks to a database client directly. It is handed a
`ContactStoreProvider`, opens one transaction per attempt and works against the
`ContactStore` bound to that transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncContextManager, Iterable, Protocol

from .types import Contact, ContactChanges, NewContact


@dataclass(frozen=True)
class ContactQuery:
    """OR-combined match predicate over contact rows.

    A row matches when any non-empty field matches it. Soft-deleted rows are
    excluded unless `include_deleted` is set.
    """

    emails: tuple[str, ...] = ()
    phone_numbers: tuple[str, ...] = ()
    ids: tuple[int, ...] = ()
    linked_ids: tuple[int, ...] = ()
    include_deleted: bool = False
    lock: bool = False

    @classmethod
    def build(
        cls,
        *,
        emails: Iterable[str | None] = (),
        phone_numbers: Iterable[str | None] = (),
        ids: Iterable[int | None] = (),
        linked_ids: Iterable[int | None] = (),
        include_deleted: bool = False,
        lock: bool = False,
    ) -> "ContactQuery":
        """Build a query, dropping empty values and duplicates."""
        return cls(
            emails=tuple(dict.fromkeys(v for v in emails if v)),
            phone_numbers=tuple(dict.fromkeys(v for v in phone_numbers if v)),
            ids=tuple(dict.fromkeys(v for v in ids if v is not None)),
            linked_ids=tuple(dict.fromkeys(v for v in linked_ids if v is not None)),
            include_deleted=include_deleted,
            lock=lock,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.emails or self.phone_numbers or self.ids or self.linked_ids)

    def matches(self, contact: Contact) -> bool:
        if contact.deleted_at is not None and not self.include_deleted:
            return False
        return (
            (contact.email is not None and contact.email in self.emails)
            or (contact.phone_number is not None and contact.phone_number in self.phone_numbers)
            or contact.id in self.ids
            or (contact.linked_id is not None and contact.linked_id in self.linked_ids)
        )


class ContactStore(Protocol):
    """Contact persistence bound to a single transaction."""

    async def find_many(self, query: ContactQuery) -> list[Contact]:
        """Return matching rows ordered by (created_at, id). Empty query -> []."""
        ...

    async def create(self, fields: NewContact) -> Contact:
        ...

    async def update(self, contact_id: int, fields: ContactChanges) -> Contact:
        """Apply the explicitly set fields. Raises StoreError if the row is missing."""
        ...


class ContactStoreProvider(Protocol):
    """Opens transactions. Commit on clean exit, rollback on any exception."""

    def transaction(self) -> AsyncContextManager[ContactStore]:
        ...
