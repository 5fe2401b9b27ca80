"""Contains type hints for the library."""

__all__ = [
    "DeniedListener",
    "ErrorListener",
    "FeedListener",
    "Listener",
    "SubscribeListener",
    "T",
    "UnsubscribeListener",
]

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ytpubsub.models.events import (
    DeniedEvent,
    ErrorEvent,
    FeedEvent,
    SubscribeEvent,
    UnsubscribeEvent,
)

T = TypeVar("T")

SubscribeListener = Callable[[SubscribeEvent], Awaitable[None]]
UnsubscribeListener = Callable[[UnsubscribeEvent], Awaitable[None]]
DeniedListener = Callable[[DeniedEvent], Awaitable[None]]
FeedListener = Callable[[FeedEvent], Awaitable[None]]
ErrorListener = Callable[[ErrorEvent], Awaitable[None]]
Listener = Callable[[Any], Awaitable[None]]
