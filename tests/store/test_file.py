"""Test the FileVideoStore class."""
import json
from pathlib import Path

import pytest

from tests.store import get_video
from ytpubsub.models.store import FileVideoStore


@pytest.fixture
def store(tmp_path: Path) -> FileVideoStore:
    """Create a FileVideoStore instance."""
    return FileVideoStore(dir_path=tmp_path / "videos")


@pytest.mark.asyncio
async def test_has(store: FileVideoStore) -> None:
    """Test the has method of the FileVideoStore class."""
    record = get_video().to_record()
    path = store._get_path(record["id"])

    assert not await store.has(record["id"])

    path.parent.mkdir(parents=True)
    with path.open("w") as file:
        file.write(json.dumps(record))

    assert await store.has(record["id"])
    assert not await store.has("-1")


@pytest.mark.asyncio
async def test_add(store: FileVideoStore) -> None:
    """Test the add method of the FileVideoStore class."""
    record = get_video().to_record()
    path = store._get_path(record["id"])

    assert await store.add(record)

    with path.open("r") as file:
        assert json.load(file) == record

    assert not await store.add({**record, "title": "Changed"}), "Should keep the first record"
    assert await store.get(record["id"]) == record


@pytest.mark.asyncio
async def test_add_datetime(store: FileVideoStore) -> None:
    """Test that values JSON cannot represent are stored as strings."""
    video = get_video()
    record = {"id": video.id, "published": video.timestamp.published}

    await store.add(record)

    assert await store.get(video.id) == {
        "id": video.id,
        "published": str(video.timestamp.published),
    }
