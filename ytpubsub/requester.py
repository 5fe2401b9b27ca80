"""Contains the class that sends subscription requests to the hub."""

__all__ = ["SubscriptionRequester"]

import logging
import re
from http import HTTPStatus
from urllib.parse import quote

from httpx import AsyncClient

from ytpubsub.enums import SubscriptionMode
from ytpubsub.errors import HTTPError
from ytpubsub.events import EventBus
from ytpubsub.models.events import DeniedEvent
from ytpubsub.models.subscription import Subscription
from ytpubsub.signature import derive_secret

_SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)

# Characters left as they are by JavaScript's encodeURIComponent, which hubs
# commonly expect in callback URLs.
_URI_COMPONENT_SAFE = "!~*'()"


class SubscriptionRequester:
    """Builds subscribe and unsubscribe requests and sends them to the hub.

    Failures are never raised. A non-success status, a transport error or an
    invalid URL is emitted as a :class:`DeniedEvent`.
    """

    _SUCCESS_STATUSES = frozenset({HTTPStatus.ACCEPTED, HTTPStatus.NO_CONTENT})

    def __init__(
        self,
        events: EventBus,
        *,
        callback_url: str | None = None,
        secret: str | None = None,
        lease_seconds: int = 0,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Create a new SubscriptionRequester instance.

        :param events: The event bus to emit denials to.
        :param callback_url: The base callback URL. It can be set later, once
            it is known.
        :param secret: The master secret. If not provided, no hub.secret is sent.
        :param lease_seconds: The lease to request. Not sent if 0 or less.
        :param headers: Extra headers to send with every request.
        """
        self._logger = logging.getLogger(self.__class__.__name__)
        self._events = events
        self.callback_url = callback_url
        self._secret = secret
        self._lease_seconds = lease_seconds
        self._headers = headers or {}

    def build_callback_url(self, topic: str, hub: str) -> str:
        """Append the topic and the hub to the base callback URL as query
        parameters, so that the hub's calls identify the subscription.

        :param topic: The URL of the feed.
        :param hub: The URL of the hub.
        :return: The callback URL.
        :raises ValueError: If the base callback URL is not set.
        """
        if not self.callback_url:
            raise ValueError("The callback URL is not set")

        base = self.callback_url
        path_separator = "" if "/" in _SCHEME_PATTERN.sub("", base) else "/"
        query_separator = "&" if "?" in base else "?"

        return (
            f"{base}{path_separator}{query_separator}"
            f"topic={quote(topic, safe=_URI_COMPONENT_SAFE)}"
            f"&hub={quote(hub, safe=_URI_COMPONENT_SAFE)}"
        )

    def create_subscription(
        self, mode: SubscriptionMode, topic: str, hub: str
    ) -> Subscription:
        """Create the subscription to request.

        :param mode: Whether to subscribe or unsubscribe.
        :param topic: The URL of the feed.
        :param hub: The URL of the hub.
        :return: The subscription.
        """
        return Subscription(
            topic=topic,
            hub=hub,
            mode=mode,
            lease_seconds=self._lease_seconds,
            secret=derive_secret(self._secret, topic) if self._secret else None,
        )

    @staticmethod
    def to_form(subscription: Subscription, callback_url: str) -> dict[str, str]:
        """Convert a subscription to the form fields of the hub request.

        :param subscription: The subscription.
        :param callback_url: The callback URL the hub should call.
        :return: The form fields.
        """
        data = {
            "hub.callback": callback_url,
            "hub.mode": subscription.mode.value,
            "hub.topic": subscription.topic,
            "hub.verify": "async",
        }

        if subscription.lease_seconds > 0:
            data["hub.lease_seconds"] = str(subscription.lease_seconds)

        if subscription.secret:
            data["hub.secret"] = subscription.secret

        return data

    async def request(
        self,
        mode: SubscriptionMode,
        topic: str,
        hub: str,
        callback_url: str | None = None,
    ) -> bool:
        """Send a subscribe or unsubscribe request to the hub.

        :param mode: Whether to subscribe or unsubscribe.
        :param topic: The URL of the feed.
        :param hub: The URL of the hub.
        :param callback_url: The callback URL to send instead of the one built
            from the base callback URL.
        :return: True if the hub accepted the request, False if a
            :class:`DeniedEvent` was emitted instead.
        """
        subscription = self.create_subscription(mode, topic, hub)

        try:
            data = self.to_form(
                subscription, callback_url or self.build_callback_url(topic, hub)
            )

            self._logger.debug("Sending %s request for topic: %s", mode.value, topic)

            async with AsyncClient() as client:
                response = await client.post(hub, data=data, headers=self._headers)

            if response.status_code not in self._SUCCESS_STATUSES:
                raise HTTPError(
                    f"Invalid response status {response.status_code}",
                    response.status_code,
                )
        except Exception as ex:
            self._logger.warning(
                "Failed to %s topic %s: %s", mode.value, topic, ex
            )
            await self._events.emit(DeniedEvent(topic=topic, hub=hub, error=ex))
            return False

        self._logger.info("Sent %s request for topic: %s", mode.value, topic)
        return True
