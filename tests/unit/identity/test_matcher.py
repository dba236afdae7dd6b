from __future__ import annotations

import pytest

from contact_identity.identity.matcher import find_candidates
from contact_identity.identity.store import ContactQuery


@pytest.mark.asyncio
class TestFindCandidates:
    async def test_empty_store_returns_nothing(self, contact_store):
        async with contact_store.transaction() as store:
            assert await find_candidates(store, "a@x.com", "111") == []

    async def test_matches_email_or_phone(self, contact_store):
        by_email = contact_store.seed("a@x.com", "111")
        by_phone = contact_store.seed("b@x.com", "222")
        contact_store.seed("c@x.com", "333")

        async with contact_store.transaction() as store:
            found = await find_candidates(store, "a@x.com", "222")

        assert [c.id for c in found] == [by_email.id, by_phone.id]

    async def test_single_signal_only_matches_that_field(self, contact_store):
        contact_store.seed("a@x.com", "111")
        other = contact_store.seed(None, "a@x.com")

        async with contact_store.transaction() as store:
            found = await find_candidates(store, None, "111")

        assert other.id not in {c.id for c in found}
        assert len(found) == 1

    async def test_soft_deleted_rows_are_ignored(self, contact_store, fake_clock):
        contact_store.seed("a@x.com", "111", deleted_at=fake_clock.now())

        async with contact_store.transaction() as store:
            assert await find_candidates(store, "a@x.com", "111") == []

    async def test_no_signals_skips_the_store(self, contact_store):
        contact_store.seed("a@x.com", "111")

        async with contact_store.transaction() as store:
            assert await find_candidates(store, None, None) == []

        assert contact_store.reads == 0

    async def test_no_side_effects(self, contact_store):
        contact_store.seed("a@x.com", "111")

        async with contact_store.transaction() as store:
            await find_candidates(store, "a@x.com", "999")

        assert contact_store.writes == 0


class TestContactQuery:
    def test_build_drops_empty_values_and_duplicates(self):
        query = ContactQuery.build(emails=["a@x.com", None, "", "a@x.com"], ids=[None, 3, 3])

        assert query.emails == ("a@x.com",)
        assert query.ids == (3,)
        assert query.phone_numbers == ()
        assert not query.is_empty

    def test_empty_query(self):
        assert ContactQuery.build(emails=[None], phone_numbers=[""]).is_empty

    def test_soft_delete_is_an_explicit_predicate(self, contact_store, fake_clock):
        deleted = contact_store.seed("a@x.com", "111", deleted_at=fake_clock.now())

        assert not ContactQuery.build(emails=["a@x.com"]).matches(deleted)
        assert ContactQuery.build(emails=["a@x.com"], include_deleted=True).matches(deleted)

    def test_linked_ids_match_secondaries(self, contact_store):
        primary = contact_store.seed("a@x.com", "111")
        secondary = contact_store.seed("a@x.com", "222", linked_id=primary.id)
        query = ContactQuery.build(ids=[primary.id], linked_ids=[primary.id])

        assert query.matches(primary)
        assert query.matches(secondary)
