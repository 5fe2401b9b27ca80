"""Contains the dataclasses for subscriptions and the state of tracked channels."""

__all__ = ["ChannelState", "IntentVerification", "Subscription"]

from dataclasses import dataclass
from datetime import datetime, timedelta

from ytpubsub.enums import SubscriptionMode


@dataclass(frozen=True)
class Subscription:
    """Represents a single subscribe or unsubscribe request to a hub."""

    topic: str
    """The URL of the feed"""

    hub: str
    """The URL of the hub"""

    mode: SubscriptionMode
    """Whether to subscribe or unsubscribe"""

    lease_seconds: int = 0
    """The requested lease duration. Not sent if 0"""

    secret: str | None = None
    """The derived per-topic secret. Not sent if None"""


@dataclass(frozen=True)
class IntentVerification:
    """Represents the query of a verification-of-intent request from a hub."""

    mode: str
    """The value of hub.mode"""

    topic: str
    """The value of hub.topic"""

    hub: str | None
    """The hub URL carried in the callback URL"""

    lease_seconds: int
    """The value of hub.lease_seconds, or 0 if absent or not an integer"""

    challenge: str | None
    """The value of hub.challenge"""


@dataclass
class ChannelState:
    """Represents the subscription state of a tracked channel."""

    id: str
    """The unique ID of the channel"""

    title: str | None = None
    """The title of the channel, if known"""

    subscribed: bool = False
    """Whether the hub confirmed a subscription that has not expired"""

    lease: timedelta = timedelta(0)
    """The lease granted by the hub"""

    subscribed_at: datetime | None = None
    """The time the hub confirmed the subscription"""

    msg_count: int = 0
    """The number of feed notifications received"""

    last_msg: datetime | None = None
    """The time of the last feed notification"""

    last_msg_video: str | None = None
    """The ID of the video in the last feed notification"""

    def to_dict(self) -> dict[str, object]:
        """Convert the state to a JSON-compatible dictionary.

        :return: The dictionary.
        """
        return {
            "id": self.id,
            "title": self.title,
            "subscribed": self.subscribed,
            "lease": int(self.lease.total_seconds() * 1000),
            "subscribeDate": _to_millis(self.subscribed_at),
            "msgCount": self.msg_count,
            "lastMsg": _to_millis(self.last_msg),
            "lastMsgVideo": self.last_msg_video,
        }


def _to_millis(value: datetime | None) -> int | None:
    return None if value is None else int(value.timestamp() * 1000)
