"""Defines Enum classes used in the package."""

__all__ = ["EventKind", "SubscriptionMode"]

from enum import Enum


class EventKind(Enum):
    """Enum for the kind of event emitted by the subscriber."""

    SUBSCRIBE = "subscribe"
    """The hub verified a subscription"""

    UNSUBSCRIBE = "unsubscribe"
    """The hub verified an unsubscription"""

    DENIED = "denied"
    """The hub denied a subscription, or the request to the hub failed"""

    FEED = "feed"
    """The hub delivered a feed payload with a valid signature"""

    ERROR = "error"
    """A listener failed while handling another event"""


class SubscriptionMode(str, Enum):
    """Enum for the ``hub.mode`` of a subscription request."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
