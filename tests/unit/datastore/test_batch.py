import pytest
from unittest.mock import AsyncMock

from datastore.batch import BasicBatch
from datastore.errors import BatchCommitError
from datastore.key import Key
from datastore.memory import MapDatastore

pytestmark = pytest.mark.asyncio


async def test_commit_stops_at_first_failure():
    store = MapDatastore()
    failure = ConnectionError("backend unavailable")
    original_put = store.put

    async def flaky_put(key, value):
        if key == Key("/b"):
            raise failure
        await original_put(key, value)

    store.put = flaky_put
    batch = BasicBatch(store)
    await batch.put(Key("/a"), b"1")
    await batch.put(Key("/b"), b"2")
    await batch.put(Key("/c"), b"3")

    with pytest.raises(BatchCommitError) as exc_info:
        await batch.commit()

    assert exc_info.value.index == 1
    assert exc_info.value.op == "put"
    assert exc_info.value.key == Key("/b")
    assert exc_info.value.__cause__ is failure
    assert await store.has(Key("/a"))
    assert not await store.has(Key("/c"))
    # Failed and later operations stay queued
    assert len(batch) == 2


async def test_commit_retry_after_failure():
    store = AsyncMock()
    store.delete.side_effect = [TimeoutError("slow"), None]
    batch = BasicBatch(store)
    await batch.put(Key("/a"), b"1")
    await batch.delete(Key("/b"))

    with pytest.raises(BatchCommitError):
        await batch.commit()
    await batch.commit()

    store.put.assert_awaited_once_with(Key("/a"), b"1")
    assert store.delete.await_count == 2
    assert len(batch) == 0


async def test_empty_commit():
    store = AsyncMock()
    await BasicBatch(store).commit()
    store.put.assert_not_awaited()
    store.delete.assert_not_awaited()
