from datetime import UTC, datetime

from tests import CHANNEL_ID
from ytpubsub.models.video import Author, Timestamp, Video


def get_video(video_id: str = "mock_video_id") -> Video:
    """Create a mock video."""
    return Video(
        id=video_id,
        title="Mock Video",
        url=f"https://www.youtube.com/watch?v={video_id}",
        timestamp=Timestamp(
            published=datetime(2023, 1, 1, 12, 0, 0, tzinfo=UTC),
            updated=datetime(2023, 1, 1, 13, 0, 0, tzinfo=UTC)
        ),
        author=Author(
            channel_id=CHANNEL_ID,
            name="Mock Channel",
            url=f"https://www.youtube.com/channel/{CHANNEL_ID}")
    )
