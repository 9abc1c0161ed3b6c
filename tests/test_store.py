# File: tests/test_store.py
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from garderie_watch.errors import StoreError
from garderie_watch.store import RecordStore, as_instant

from conftest import detail, summary


@pytest_asyncio.fixture
async def store(db_url):
    async with RecordStore(db_url) as s:
        yield s


@pytest.mark.asyncio()
async def test_create_then_find(store):
    created = await store.create(summary(42, 2.5, title="Garderie Arc-en-ciel"), detail())
    assert created.is_new
    assert created.revision == 0

    found = await store.find_by_id(42)
    assert found is not None
    assert found.title == "Garderie Arc-en-ciel"
    assert found.distance == 2.5
    assert found.last_update == datetime(2014, 3, 15)
    assert found.place_info[0].age_group == "18 mois et +"
    assert await store.count() == 1


@pytest.mark.asyncio()
async def test_find_missing_returns_none(store):
    assert await store.find_by_id(999) is None


@pytest.mark.asyncio()
async def test_update_overwrites_in_place_and_bumps_revision(store):
    await store.create(summary(7, 1.0), detail(phone="111"))
    existing = await store.find_by_id(7)

    updated = await store.update(existing, summary(7, 1.1, title="Renamed"), detail(datetime(2015, 1, 2), phone="222"))

    assert updated is existing
    assert updated.revision == 1
    assert not updated.is_new
    reloaded = await store.find_by_id(7)
    assert reloaded.title == "Renamed"
    assert reloaded.phone == "222"
    assert reloaded.last_update == datetime(2015, 1, 2)
    assert reloaded.revision == 1
    assert await store.count() == 1


@pytest.mark.asyncio()
async def test_duplicate_create_is_a_store_error(store):
    await store.create(summary(5), detail())
    with pytest.raises(StoreError) as excinfo:
        await store.create(summary(5), detail())
    assert excinfo.value.operation == "create"
    assert excinfo.value.item_id == 5


@pytest.mark.asyncio()
async def test_all_sorted_by_distance(store):
    await store.create(summary(1, 3.0), detail())
    await store.create(summary(2, 1.0), detail())
    assert [r.id for r in await store.all()] == [2, 1]


@pytest.mark.asyncio()
async def test_aware_timestamps_are_stored_as_utc(store):
    aware = datetime(2014, 3, 15, 8, 0, tzinfo=timezone(timedelta(hours=-4)))
    await store.create(summary(3), detail(aware))
    found = await store.find_by_id(3)
    assert found.last_update == datetime(2014, 3, 15, 12, 0)
    assert as_instant(aware) == found.last_update
