"""
Cluster Resolver

Decides which cluster an identify request belongs to and repairs the
primary/secondary structure when the request bridges several clusters.

Resolution:
1. No candidates: the request starts a new cluster (new primary).
2. Every candidate is dereferenced to its true primary through `linked_id`.
   Timestamps of secondaries are never used to pick the primary.
3. A root left as a secondary by a broken link chain is promoted to primary.
4. Several distinct primaries: the oldest survives, the rest are demoted and
   their secondaries relinked so every link stays one hop deep.
5. A secondary is created only when the request carries an email or phone
   the cluster has not seen, and its exact pair is not stored yet.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from contact_identity.kernel.time import Clock, utc_now

from .store import ContactQuery, ContactStore
from .types import Contact, ContactChanges, LinkPrecedence, NewContact

logger = structlog.get_logger()


@dataclass
class ResolveOutcome:
    """What a resolve call did to the store."""

    primary_id: int
    created_primary: bool = False
    created_secondary_id: int | None = None
    demoted_ids: list[int] = field(default_factory=list)
    relinked_ids: list[int] = field(default_factory=list)
    promoted_ids: list[int] = field(default_factory=list)

    @property
    def kind(self) -> str:
        if self.created_primary:
            return "created_primary"
        if self.demoted_ids:
            return "merged"
        if self.created_secondary_id is not None:
            return "created_secondary"
        return "matched"


class ClusterResolver:
    """Stateful step of the identify flow. Must run inside one store transaction."""

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    async def resolve(
        self,
        store: ContactStore,
        email: str | None,
        phone_number: str | None,
        candidates: list[Contact],
    ) -> ResolveOutcome:
        if not candidates:
            created = await store.create(
                NewContact(
                    email=email,
                    phone_number=phone_number,
                    link_precedence=LinkPrecedence.PRIMARY,
                )
            )
            return ResolveOutcome(primary_id=created.id, created_primary=True)

        roots = await self._true_primaries(store, candidates)
        roots, promoted_ids = await self._promote_orphans(store, roots)
        survivor, *others = sorted(roots, key=lambda c: c.age_key)
        outcome = ResolveOutcome(primary_id=survivor.id, promoted_ids=promoted_ids)

        if others:
            await self._merge(store, survivor, others, outcome)

        cluster = await store.find_many(
            ContactQuery.build(ids=[survivor.id], linked_ids=[survivor.id])
        )
        if _carries_new_information(cluster, email, phone_number):
            created = await store.create(
                NewContact(
                    email=email,
                    phone_number=phone_number,
                    linked_id=survivor.id,
                    link_precedence=LinkPrecedence.SECONDARY,
                )
            )
            outcome.created_secondary_id = created.id

        return outcome

    async def _true_primaries(
        self,
        store: ContactStore,
        candidates: list[Contact],
    ) -> list[Contact]:
        """Map the candidate set onto the distinct primaries it touches."""
        known: dict[int, Contact] = {c.id: c for c in candidates}

        # Fetch missing link targets level by level; one level for well-formed data.
        missing: set[int] = set()
        pending = _missing_targets(known.values(), known)
        while pending:
            found = await store.find_many(ContactQuery.build(ids=pending, lock=True))
            for contact in found:
                known[contact.id] = contact
            unresolved = set(pending) - {c.id for c in found}
            if unresolved:
                logger.warning("Secondary contacts link to missing rows", missing_ids=sorted(unresolved))
                missing |= unresolved
            pending = [i for i in _missing_targets(found, known) if i not in missing]

        roots: dict[int, Contact] = {}
        for contact in candidates:
            root = _dereference(contact, known)
            roots[root.id] = root
        return list(roots.values())

    async def _promote_orphans(
        self,
        store: ContactStore,
        roots: list[Contact],
    ) -> tuple[list[Contact], list[int]]:
        """Turn roots that are still secondaries into primaries.

        A root is a secondary only when its link chain is broken. Promoting it
        keeps every link one hop deep to a primary.
        """
        repaired: list[Contact] = []
        promoted_ids: list[int] = []
        for root in roots:
            if not root.is_primary:
                root = await store.update(
                    root.id,
                    ContactChanges(
                        link_precedence=LinkPrecedence.PRIMARY,
                        linked_id=None,
                        updated_at=self._clock(),
                    ),
                )
                promoted_ids.append(root.id)
                logger.warning("Promoted contact with broken link chain", contact_id=root.id)
            repaired.append(root)
        return repaired, promoted_ids

    async def _merge(
        self,
        store: ContactStore,
        survivor: Contact,
        others: list[Contact],
        outcome: ResolveOutcome,
    ) -> None:
        now = self._clock()
        other_ids = [o.id for o in others]

        followers = await store.find_many(ContactQuery.build(linked_ids=other_ids, lock=True))

        for other in others:
            await store.update(
                other.id,
                ContactChanges(
                    link_precedence=LinkPrecedence.SECONDARY,
                    linked_id=survivor.id,
                    updated_at=now,
                ),
            )
            outcome.demoted_ids.append(other.id)

        for follower in followers:
            if follower.id == survivor.id or follower.id in other_ids:
                continue
            await store.update(follower.id, ContactChanges(linked_id=survivor.id, updated_at=now))
            outcome.relinked_ids.append(follower.id)

        logger.info(
            "Merged contact clusters",
            primary_id=survivor.id,
            demoted_ids=outcome.demoted_ids,
            relinked=len(outcome.relinked_ids),
        )


def _missing_targets(contacts, known: dict[int, Contact]) -> list[int]:
    return sorted(
        {
            c.linked_id
            for c in contacts
            if not c.is_primary and c.linked_id is not None and c.linked_id not in known
        }
    )


def _dereference(contact: Contact, known: dict[int, Contact]) -> Contact:
    """Follow `linked_id` up to the primary.

    A dangling link or a cycle stops the walk at the last reachable contact,
    which the resolver then promotes to primary.
    """
    current = contact
    seen = {current.id}
    while not current.is_primary:
        parent = known.get(current.linked_id) if current.linked_id is not None else None
        if parent is None:
            logger.warning("Secondary contact has no reachable primary", contact_id=current.id)
            break
        if parent.id in seen:
            logger.warning("Contact link cycle detected", contact_id=current.id)
            break
        seen.add(parent.id)
        current = parent
    return current


def _carries_new_information(
    cluster: list[Contact],
    email: str | None,
    phone_number: str | None,
) -> bool:
    if any(c.email == email and c.phone_number == phone_number for c in cluster):
        return False
    emails = {c.email for c in cluster if c.email}
    phone_numbers = {c.phone_number for c in cluster if c.phone_number}
    return bool(
        (email and email not in emails)
        or (phone_number and phone_number not in phone_numbers)
    )
