"""Contains the dataclasses for the videos announced in YouTube feeds."""

__all__ = ["Author", "Timestamp", "Video"]


from dataclasses import dataclass
from datetime import datetime


@dataclass
class Author:
    """Represents the channel that published a video."""

    channel_id: str
    """The unique ID of the channel"""

    name: str | None
    """The name of the channel"""

    url: str | None
    """The URL of the channel"""


@dataclass
class Timestamp:
    """Represents the timestamps of a video."""

    published: datetime
    """The published time of the video"""

    updated: datetime
    """The updated time of the video"""


@dataclass
class Video:
    """Represents a video entry of a feed notification."""

    id: str
    """The unique ID of the video"""

    title: str
    """The title of the video"""

    url: str | None
    """The URL of the video"""

    timestamp: Timestamp
    """The timestamps of the video"""

    author: Author
    """The channel of the video"""

    def to_record(self) -> dict[str, object]:
        """Convert the video to the record kept by a video store when no
        metadata lookup is available.

        :return: The record.
        """
        return {
            "id": self.id,
            "snippet": {
                "title": self.title,
                "channelId": self.author.channel_id,
                "channelTitle": self.author.name,
                "publishedAt": self.timestamp.published.isoformat(),
            },
            "url": self.url,
            "updated": self.timestamp.updated.isoformat(),
        }
