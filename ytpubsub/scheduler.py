"""Contains the scheduler that renews subscriptions before their lease expires."""

__all__ = ["RenewalScheduler", "SweepResult"]

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from ytpubsub.models.store import ChannelStore
from ytpubsub.models.subscription import ChannelState


@dataclass
class SweepResult:
    """Represents the channels affected by one sweep."""

    renewed: list[str] = field(default_factory=list)
    """The IDs of the channels scheduled for renewal"""

    expired: list[str] = field(default_factory=list)
    """The IDs of the channels marked as no longer subscribed"""

    failed: list[str] = field(default_factory=list)
    """The IDs of the channels that could not be processed"""


class RenewalScheduler:
    """Periodically renews the subscriptions that are close to expiry and marks
    the expired ones as no longer subscribed.
    """

    def __init__(
        self,
        store: ChannelStore,
        renew: Callable[[ChannelState], Awaitable[object]],
        *,
        interval: timedelta = timedelta(hours=1),
        margin: timedelta = timedelta(hours=24),
        stagger: timedelta = timedelta(seconds=1),
    ) -> None:
        """Create a new RenewalScheduler instance.

        :param store: The table of tracked channels.
        :param renew: The function that sends a new subscription request for a
            channel.
        :param interval: The time between two sweeps.
        :param margin: How long before expiry a subscription is renewed.
        :param stagger: The delay between two renewals of the same sweep, so
            the hub does not receive them all at once.
        """
        self._logger = logging.getLogger(self.__class__.__name__)
        self._store = store
        self._renew = renew
        self._interval = interval
        self._margin = margin
        self._stagger = stagger
        self._tasks: set[asyncio.Task] = set()
        self._stopped = asyncio.Event()

    @property
    def pending(self) -> int:
        """Get the number of renewals that have not finished yet.

        :return: The number of renewals.
        """
        return len(self._tasks)

    def needs_renewal(self, channel: ChannelState, now: datetime) -> bool:
        """Check if a subscription expires within the margin.

        :param channel: The channel.
        :param now: The current time.
        :return: True if the subscription should be renewed, False otherwise.
        """
        elapsed = now - channel.subscribed_at
        return elapsed + self._margin > channel.lease

    @staticmethod
    def is_expired(channel: ChannelState, now: datetime) -> bool:
        """Check if the lease of a subscription is over.

        :param channel: The channel.
        :param now: The current time.
        :return: True if the subscription expired, False otherwise.
        """
        return now - channel.subscribed_at > channel.lease

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """Check every tracked channel once, in the order of the store.

        Both checks are independent: a channel can be scheduled for renewal and
        marked as expired in the same sweep. A failure on one channel is logged
        and does not stop the sweep.

        :param now: The current time. If not provided, the time is taken when
            the sweep starts.
        :return: The channels affected by the sweep.
        """
        now = now or datetime.now(UTC)
        result = SweepResult()

        for index, channel in enumerate(await self._store.all()):
            try:
                if not channel.subscribed or channel.subscribed_at is None:
                    continue

                if self.needs_renewal(channel, now):
                    self._logger.info("Renewing subscription of channel: %s", channel.id)
                    self._schedule(channel, self._stagger * index)
                    result.renewed.append(channel.id)

                if self.is_expired(channel, now):
                    self._logger.info("Subscription of channel expired: %s", channel.id)
                    await self._store.mark_unsubscribed(channel.id)
                    result.expired.append(channel.id)
            except Exception:
                self._logger.exception("Failed to check subscription of channel: %s", channel.id)
                result.failed.append(channel.id)

        return result

    def _schedule(self, channel: ChannelState, delay: timedelta) -> None:
        """Start a renewal in the background after a delay.

        :param channel: The channel to renew.
        :param delay: The delay.
        """
        task = asyncio.create_task(self._renew_later(channel, delay))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _renew_later(self, channel: ChannelState, delay: timedelta) -> None:
        await asyncio.sleep(delay.total_seconds())

        try:
            await self._renew(channel)
        except Exception:
            self._logger.exception("Failed to renew subscription of channel: %s", channel.id)

    async def run(self) -> None:
        """Sweep every interval until :meth:`stop` is called. A failing sweep
        is logged and retried at the next interval.
        """
        while not self._stopped.is_set():
            try:
                await self.sweep()
            except Exception:
                self._logger.exception("Failed to sweep subscriptions")

            try:
                await asyncio.wait_for(
                    self._stopped.wait(), self._interval.total_seconds()
                )
            except TimeoutError:
                continue

    def stop(self) -> None:
        """Stop sweeping, including a run that has not started yet. Renewals
        already scheduled still run.
        """
        self._stopped.set()
