"""Contains the in-process event bus connecting the subscriber to its consumers."""

__all__ = ["EventBus"]

import logging
from collections.abc import Callable, Iterable
from typing import Self

from ytpubsub.enums import EventKind
from ytpubsub.models.events import ErrorEvent, Event
from ytpubsub.types import Listener


class EventBus:
    """Dispatches events to the listeners registered for their kind."""

    def __init__(self) -> None:
        """Create a new EventBus instance with no listeners."""
        self._logger = logging.getLogger(self.__class__.__name__)
        self._listeners: dict[EventKind, list[Listener]] = {
            kind: [] for kind in EventKind
        }

    def listener(self, kind: EventKind) -> Callable[[Listener], Listener]:
        """Decorate the function to add it as a listener for an event kind.

        :param kind: The kind of event to listen for.
        :return: The decorator function.
        """

        def decorator(func: Listener) -> Listener:
            self.add_listener(kind, func)

            return func

        return decorator

    def add_listener(self, kind: EventKind, func: Listener) -> Self:
        """Add a listener for an event kind.

        :param kind: The kind of event to listen for.
        :param func: The listener function to add.
        :return: The EventBus instance to allow for method chaining.
        """
        self._listeners[kind].append(func)
        self._logger.debug(
            "Added %s listener (%s)",
            kind.name,
            getattr(func, "__name__", repr(func)),
        )

        return self

    def remove_listener(self, kind: EventKind, func: Listener) -> Self:
        """Remove a listener for an event kind.

        :param kind: The kind of event the listener was added for.
        :param func: The listener function to remove.
        :return: The EventBus instance to allow for method chaining.
        :raises ValueError: If the function is not a listener of the kind.
        """
        self._listeners[kind].remove(func)

        return self

    def get_listeners(self, kind: EventKind) -> list[Listener]:
        """Get the listeners for an event kind.

        :param kind: The kind of event.
        :return: A copy of the listeners, in the order they were added.
        """
        return list(self._listeners[kind])

    async def emit(self, event: Event) -> None:
        """Call the listeners of the event's kind one after another.

        A listener that raises does not stop the others. Its exception is logged
        and emitted as an :class:`ErrorEvent`, unless the failing listener was
        itself handling an :class:`ErrorEvent`.

        :param event: The event to emit.
        """
        self._logger.debug("Emitting %s event: %s", event.kind.name, event)

        for func in self.get_listeners(event.kind):
            try:
                await func(event)
            except Exception as ex:
                self._logger.exception(
                    "Listener (%s) failed to handle %s event",
                    getattr(func, "__name__", repr(func)),
                    event.kind.name,
                )

                if event.kind != EventKind.ERROR:
                    await self.emit(ErrorEvent.from_exception(ex))

    async def emit_all(self, events: Iterable[Event]) -> None:
        """Emit events one after another, in order.

        :param events: The events to emit.
        """
        for event in events:
            await self.emit(event)
