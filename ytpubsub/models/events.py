"""Contains the dataclasses for the events emitted by the subscriber.

Every event exposes its :class:`~ytpubsub.enums.EventKind` through ``kind``, and
:data:`Event` is the union of all of them.
"""

__all__ = [
    "DeniedEvent",
    "ErrorEvent",
    "Event",
    "FeedEvent",
    "SubscribeEvent",
    "UnsubscribeEvent",
]

import traceback
from dataclasses import dataclass, field
from typing import ClassVar, Self

from ytpubsub.enums import EventKind


@dataclass(frozen=True)
class SubscribeEvent:
    """Emitted when the hub verifies the intent to subscribe."""

    kind: ClassVar[EventKind] = EventKind.SUBSCRIBE

    topic: str
    """The URL of the feed"""

    hub: str | None
    """The URL of the hub"""

    lease: int = 0
    """The lease granted by the hub in seconds"""


@dataclass(frozen=True)
class UnsubscribeEvent:
    """Emitted when the hub verifies the intent to unsubscribe."""

    kind: ClassVar[EventKind] = EventKind.UNSUBSCRIBE

    topic: str
    """The URL of the feed"""

    hub: str | None
    """The URL of the hub"""

    lease: int = 0
    """The lease sent by the hub in seconds, usually 0"""


@dataclass(frozen=True)
class DeniedEvent:
    """Emitted when the hub denies a subscription or a request to the hub fails."""

    kind: ClassVar[EventKind] = EventKind.DENIED

    topic: str
    """The URL of the feed"""

    hub: str | None = None
    """The URL of the hub"""

    error: Exception | None = None
    """The reason the request failed. None when the hub itself sent the denial"""


@dataclass(frozen=True)
class FeedEvent:
    """Emitted when the hub delivers a feed payload that passed validation."""

    kind: ClassVar[EventKind] = EventKind.FEED

    topic: str
    """The URL of the feed"""

    hub: str | None
    """The URL of the hub"""

    callback_url: str
    """The URL the hub posted to"""

    raw_body: bytes
    """The payload exactly as received"""

    headers: dict[str, str] = field(default_factory=dict)
    """The headers of the delivery request"""


@dataclass(frozen=True)
class ErrorEvent:
    """Emitted when handling another event raised an exception."""

    kind: ClassVar[EventKind] = EventKind.ERROR

    message: str
    """The error message"""

    stack: str = ""
    """The formatted traceback"""

    @classmethod
    def from_exception(cls, ex: BaseException) -> Self:
        """Create an error event from an exception.

        :param ex: The exception.
        :return: The error event.
        """
        return cls(
            message=str(ex) or ex.__class__.__name__,
            stack="".join(traceback.format_exception(ex)),
        )


Event = SubscribeEvent | UnsubscribeEvent | DeniedEvent | FeedEvent | ErrorEvent
