import asyncio

import pytest

hypothesis = pytest.importorskip("hypothesis")

from hypothesis import given, settings, strategies as st  # noqa: E402

from contact_identity.identity import (  # noqa: E402
    ClusterResolver,
    IdentifyRequest,
    ReconciliationEngine,
)
from tests.support.clock import FakeClock  # noqa: E402
from tests.support.contact_store import InMemoryContactStoreProvider  # noqa: E402

# Small value pools so random requests overlap often enough to force merges.
EMAILS = [f"user{i}@x.com" for i in range(5)]
PHONES = [f"55500{i}" for i in range(5)]

requests_strategy = st.lists(
    st.tuples(
        st.one_of(st.none(), st.sampled_from(EMAILS)),
        st.one_of(st.none(), st.sampled_from(PHONES)),
    ).filter(lambda pair: pair != (None, None)),
    min_size=1,
    max_size=25,
)


def _components(contacts) -> list[set[int]]:
    """Connected components of the shared-email / shared-phone graph."""
    parent = {c.id: c.id for c in contacts}

    def find(x: int) -> int:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    owners: dict[tuple[str, str], int] = {}
    for contact in contacts:
        for key in (("email", contact.email), ("phone", contact.phone_number)):
            if key[1] is None:
                continue
            if key in owners:
                parent[find(contact.id)] = find(owners[key])
            else:
                owners[key] = contact.id

    groups: dict[int, set[int]] = {}
    for contact in contacts:
        groups.setdefault(find(contact.id), set()).add(contact.id)
    return list(groups.values())


def _assert_cluster_invariants(store: InMemoryContactStoreProvider) -> None:
    contacts = store.live()
    by_id = {c.id: c for c in contacts}

    for component in _components(contacts):
        primaries = [i for i in component if by_id[i].is_primary]
        assert len(primaries) == 1, f"component {sorted(component)} has primaries {primaries}"
        [primary_id] = primaries
        for contact_id in component - {primary_id}:
            assert by_id[contact_id].linked_id == primary_id

    for contact in contacts:
        if contact.is_primary:
            assert contact.linked_id is None


async def _replay(pairs) -> None:
    clock = FakeClock.fixed()
    store = InMemoryContactStoreProvider(clock=clock)
    engine = ReconciliationEngine(
        store,
        resolver=ClusterResolver(clock=clock.now),
        retry_backoff_seconds=0,
    )
    for email, phone_number in pairs:
        summary = await engine.identify(IdentifyRequest(email=email, phone_number=phone_number))

        _assert_cluster_invariants(store)
        assert store.rows[summary.primary_contact_id].is_primary
        if email is not None:
            assert email in summary.emails
        if phone_number is not None:
            assert phone_number in summary.phone_numbers


@settings(max_examples=75, deadline=None)
@given(pairs=requests_strategy)
def test_one_primary_per_connected_component(pairs) -> None:
    asyncio.run(_replay(pairs))


@settings(max_examples=25, deadline=None)
@given(pairs=requests_strategy)
def test_replaying_a_request_never_writes(pairs) -> None:
    async def scenario() -> None:
        clock = FakeClock.fixed()
        store = InMemoryContactStoreProvider(clock=clock)
        engine = ReconciliationEngine(
            store,
            resolver=ClusterResolver(clock=clock.now),
            retry_backoff_seconds=0,
        )
        for email, phone_number in pairs:
            await engine.identify(IdentifyRequest(email=email, phone_number=phone_number))

        email, phone_number = pairs[-1]
        writes_before = store.writes
        await engine.identify(IdentifyRequest(email=email, phone_number=phone_number))
        assert store.writes == writes_before

    asyncio.run(scenario())
