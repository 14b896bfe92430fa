"""
Unit tests for the freshness filter
"""
from datetime import timedelta

import pytest

from reminder.core.errors import StoreError
from reminder.services.freshness import filter_eligible

from fakes import NOW, FakeStore, make_entity


@pytest.mark.asyncio
async def test_all_entities_eligible():
    entities = [make_entity(i) for i in (1, 2, 3)]
    store = FakeStore(entities, {e.id: NOW - timedelta(hours=2) for e in entities})

    eligible, last_updated = await filter_eligible(store, entities, timedelta(hours=1), now=NOW)

    assert eligible == entities
    assert last_updated == {e.id: NOW - timedelta(hours=2) for e in entities}


@pytest.mark.asyncio
async def test_recently_evaluated_entity_is_skipped():
    entities = [make_entity(i) for i in (1, 2, 3)]
    oldest = {e.id: NOW - timedelta(hours=2) for e in entities}
    oldest[entities[2].id] = NOW - timedelta(minutes=30)
    store = FakeStore(entities, oldest)

    eligible, last_updated = await filter_eligible(store, entities, timedelta(hours=1), now=NOW)

    assert eligible == entities[:2]
    assert entities[2].id not in last_updated


@pytest.mark.asyncio
async def test_timestamp_exactly_at_cutoff_is_not_eligible():
    entity = make_entity(1)
    store = FakeStore([entity], {entity.id: NOW - timedelta(hours=1)})

    eligible, _ = await filter_eligible(store, [entity], timedelta(hours=1), now=NOW)

    assert eligible == []


@pytest.mark.asyncio
async def test_entity_without_evaluations_is_never_eligible():
    entity = make_entity(1)
    store = FakeStore([entity], {})

    eligible, last_updated = await filter_eligible(store, [entity], timedelta(0), now=NOW)

    assert eligible == []
    assert last_updated == {}


@pytest.mark.asyncio
async def test_empty_batch_does_not_query_store():
    store = FakeStore()

    eligible, last_updated = await filter_eligible(store, [], timedelta(hours=1), now=NOW)

    assert (eligible, last_updated) == ([], {})
    assert store.oldest_calls == []


@pytest.mark.asyncio
async def test_store_error_propagates():
    entity = make_entity(1)
    store = FakeStore([entity], {entity.id: NOW - timedelta(hours=2)})
    store.fail_oldest = 1

    with pytest.raises(StoreError):
        await filter_eligible(store, [entity], timedelta(hours=1), now=NOW)


@pytest.mark.asyncio
async def test_zero_min_elapsed_accepts_any_past_evaluation():
    entity = make_entity(1)
    store = FakeStore([entity], {entity.id: NOW - timedelta(seconds=1)})

    eligible, _ = await filter_eligible(store, [entity], timedelta(0), now=NOW)

    assert eligible == [entity]
