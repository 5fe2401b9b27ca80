"""Test class InMemoryVideoStore."""

import pytest

from tests.store import get_video
from ytpubsub.models.store import InMemoryVideoStore

CACHE_SIZE = 100

@pytest.fixture
def store() -> InMemoryVideoStore:
    """Create a mock InMemoryVideoStore instance."""
    return InMemoryVideoStore(cache_size=CACHE_SIZE)


def test_cache_size(store: InMemoryVideoStore) -> None:
    """Test the cache size of the InMemoryVideoStore class."""
    assert store.cache_size == CACHE_SIZE


@pytest.mark.asyncio
async def test_has(store: InMemoryVideoStore) -> None:
    """Test the has method of the InMemoryVideoStore class."""
    record = get_video().to_record()

    assert not await store.has(record["id"])

    store._records[record["id"]] = record

    assert await store.has(record["id"])
    assert await store.get(record["id"]) == record


@pytest.mark.asyncio
async def test_add(store: InMemoryVideoStore) -> None:
    """Test the add method of the InMemoryVideoStore class."""
    record = get_video("-1").to_record()

    assert await store.add(record)
    assert not await store.add({**record, "title": "Changed"}), "Should keep the first record"
    assert len(store._records) == 1
    assert await store.get("-1") == record

    for i in range(CACHE_SIZE + 1):
        await store.add(get_video(str(i)).to_record())

    assert len(store._records) == CACHE_SIZE
    assert "-1" not in store._records
