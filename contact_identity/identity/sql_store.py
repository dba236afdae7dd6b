"""
SQLAlchemy-backed contact store.

Each `transaction()` opens its own session at SERIALIZABLE isolation. Serialization
failures and deadlocks surface as `TransactionConflictError` so the engine can
retry the whole identify attempt; every other database error becomes a plain
`StoreError`.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from contact_identity.db.models import ContactRecord
from contact_identity.kernel.errors import StoreError, TransactionConflictError
from contact_identity.kernel.time import Clock, coerce_utc, utc_now

from .store import ContactQuery
from .types import Contact, ContactChanges, NewContact

logger = structlog.get_logger()

# serialization_failure, deadlock_detected
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


def _sqlstate(exc: SQLAlchemyError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_db_error(exc: SQLAlchemyError) -> StoreError:
    """Map a SQLAlchemy error onto the store error taxonomy."""
    sqlstate = _sqlstate(exc)
    if sqlstate in _CONFLICT_SQLSTATES:
        return TransactionConflictError(str(exc), meta={"sqlstate": sqlstate})
    return StoreError(str(exc), meta={"sqlstate": sqlstate} if sqlstate else None)


def _to_contact(record: ContactRecord) -> Contact:
    contact = Contact.model_validate(record)
    # age_key compares timestamps, so naive values from the driver are read as UTC.
    return contact.model_copy(
        update={
            "created_at": coerce_utc(contact.created_at),
            "updated_at": coerce_utc(contact.updated_at),
            "deleted_at": coerce_utc(contact.deleted_at) if contact.deleted_at else None,
        }
    )


class SqlContactStore:
    """`ContactStore` over one `AsyncSession`."""

    def __init__(self, session: AsyncSession, *, clock: Clock = utc_now):
        self._session = session
        self._clock = clock

    async def find_many(self, query: ContactQuery) -> list[Contact]:
        if query.is_empty:
            return []

        clauses = []
        if query.emails:
            clauses.append(ContactRecord.email.in_(query.emails))
        if query.phone_numbers:
            clauses.append(ContactRecord.phone_number.in_(query.phone_numbers))
        if query.ids:
            clauses.append(ContactRecord.id.in_(query.ids))
        if query.linked_ids:
            clauses.append(ContactRecord.linked_id.in_(query.linked_ids))

        stmt = select(ContactRecord).where(or_(*clauses))
        if not query.include_deleted:
            stmt = stmt.where(ContactRecord.deleted_at.is_(None))
        stmt = stmt.order_by(ContactRecord.created_at, ContactRecord.id)
        if query.lock:
            stmt = stmt.with_for_update()

        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc
        return [_to_contact(record) for record in result.scalars().all()]

    async def create(self, fields: NewContact) -> Contact:
        now = self._clock()
        record = ContactRecord(
            email=fields.email,
            phone_number=fields.phone_number,
            linked_id=fields.linked_id,
            link_precedence=fields.link_precedence.value,
            created_at=now,
            updated_at=now,
        )
        self._session.add(record)
        try:
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc
        return _to_contact(record)

    async def update(self, contact_id: int, fields: ContactChanges) -> Contact:
        try:
            record = await self._session.get(ContactRecord, contact_id)
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc
        if record is None or record.deleted_at is not None:
            raise StoreError(f"Contact {contact_id} not found", meta={"contact_id": contact_id})

        changes = fields.model_dump(exclude_unset=True)
        if changes.get("link_precedence") is not None:
            changes["link_precedence"] = changes["link_precedence"].value
        if changes.get("updated_at") is None:
            changes["updated_at"] = self._clock()

        for key, value in changes.items():
            setattr(record, key, value)

        try:
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc
        return _to_contact(record)


class SqlContactStoreProvider:
    """Opens one session, and one database transaction, per `transaction()` block."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock = utc_now,
        isolation_level: str | None = "SERIALIZABLE",
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._isolation_level = isolation_level

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[SqlContactStore, None]:
        session = self._session_factory()
        try:
            if self._isolation_level:
                await session.connection(
                    execution_options={"isolation_level": self._isolation_level}
                )
            yield SqlContactStore(session, clock=self._clock)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            error = translate_db_error(exc)
            logger.warning("Contact transaction failed", code=error.code, error=str(exc)[:200])
            raise error from exc
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
