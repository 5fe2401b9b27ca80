"""Contains the protocol logic of the callback endpoint the hub calls.

The handlers only produce :class:`HubResponse` values. Translating them into the
response objects of a web framework is left to the caller.
"""

__all__ = ["HubResponse", "NotificationReceiver", "parse_link_header"]

import logging
import re
from collections.abc import AsyncIterable, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Self

from ytpubsub.errors import SignatureError
from ytpubsub.models import DEFAULT_MAX_CONTENT_SIZE
from ytpubsub.models.events import (
    DeniedEvent,
    Event,
    FeedEvent,
    SubscribeEvent,
    UnsubscribeEvent,
)
from ytpubsub.models.subscription import IntentVerification
from ytpubsub.signature import SignatureVerifier, derive_secret, parse_signature_header

_LINK_PATTERN = re.compile(r"<([^>]+)>;\s*rel=[\"']?([A-Za-z]+)", re.IGNORECASE)

_PLAIN_TEXT = "text/plain"
_PLAIN_TEXT_UTF8 = "text/plain; charset=utf-8"


@dataclass(frozen=True)
class HubResponse:
    """Represents the outcome of a request from the hub."""

    status: HTTPStatus
    """The status code to respond with"""

    body: str = ""
    """The body to respond with"""

    headers: dict[str, str] = field(default_factory=dict)
    """The headers to respond with"""

    message: str | None = None
    """The reason phrase of an error response"""

    events: tuple[Event, ...] = ()
    """The events to emit once the response is sent"""

    @property
    def is_error(self) -> bool:
        """Check if the response is an error response.

        :return: True if the status code is 400 or above, False otherwise.
        """
        return self.status >= HTTPStatus.BAD_REQUEST

    @classmethod
    def error(cls, status: HTTPStatus, message: str) -> Self:
        """Create an error response.

        :param status: The status code.
        :param message: The reason phrase.
        :return: The error response.
        """
        return cls(status=status, message=message)

    @classmethod
    def text(
        cls,
        status: HTTPStatus,
        body: str = "",
        *,
        content_type: str = _PLAIN_TEXT,
        events: tuple[Event, ...] = (),
    ) -> Self:
        """Create a plain text response.

        :param status: The status code.
        :param body: The body.
        :param content_type: The content type of the body.
        :param events: The events to emit once the response is sent.
        :return: The response.
        """
        return cls(
            status=status,
            body=body,
            headers={"Content-Type": content_type},
            events=events,
        )


def parse_link_header(value: str) -> dict[str, str]:
    """Parse the ``Link`` header of a feed delivery.

    :param value: The value of the header, e.g.
        ``<https://example.com/feed>; rel="self", <https://hub.example>; rel="hub"``.
    :return: The URL of each relation, keyed by the lower-case relation name.
        Empty if the header is unparsable.
    """
    links = {}
    for url, rel in _LINK_PATTERN.findall(value):
        links.setdefault(rel.lower(), url)

    return links


class NotificationReceiver:
    """Handles the verification-of-intent and feed delivery requests of the hub."""

    def __init__(
        self,
        *,
        secret: str | None = None,
        max_content_size: int = DEFAULT_MAX_CONTENT_SIZE,
    ) -> None:
        """Create a new NotificationReceiver instance.

        :param secret: The master secret. If provided, every feed delivery must
            be signed with the secret derived for its topic.
        :param max_content_size: The maximum size in bytes of a feed delivery.
        """
        self._logger = logging.getLogger(self.__class__.__name__)
        self._secret = secret
        self._max_content_size = max_content_size

    def _fail(self, status: HTTPStatus, message: str) -> HubResponse:
        self._logger.error("%s: %s", status.value, message)
        return HubResponse.error(status, message)

    def method_not_allowed(self, method: str) -> HubResponse:
        """Handle a request with a method the hub never uses.

        :param method: The HTTP method of the request.
        :return: The 405 response.
        """
        self._logger.debug("Rejecting %s request", method)
        return self._fail(HTTPStatus.METHOD_NOT_ALLOWED, "Method Not Allowed")

    @staticmethod
    def parse_intent(query: Mapping[str, str]) -> IntentVerification | None:
        """Read a verification of intent from the query parameters.

        :param query: The query parameters of the request.
        :return: The verification, or None if hub.topic or hub.mode is missing.
        """
        topic = query.get("hub.topic")
        mode = query.get("hub.mode")
        if not topic or not mode:
            return None

        try:
            lease_seconds = int(query.get("hub.lease_seconds") or 0)
        except ValueError:
            lease_seconds = 0

        return IntentVerification(
            mode=mode,
            topic=topic,
            hub=query.get("hub"),
            lease_seconds=lease_seconds,
            challenge=query.get("hub.challenge"),
        )

    def verify_intent(self, query: Mapping[str, str]) -> HubResponse:
        """Handle a verification of intent (GET request) from the hub.

        A denial is acknowledged with the challenge or ``ok``. A subscription or
        an unsubscription is acknowledged by echoing the challenge as it is.

        :param query: The query parameters of the request.
        :return: The response.
        """
        intent = self.parse_intent(query)
        if intent is None:
            return self._fail(HTTPStatus.BAD_REQUEST, "Bad Request")

        match intent.mode:
            case "denied":
                self._logger.info("Hub denied subscription for topic: %s", intent.topic)
                return HubResponse.text(
                    HTTPStatus.OK,
                    intent.challenge or "ok",
                    events=(DeniedEvent(topic=intent.topic, hub=intent.hub),),
                )
            case "subscribe":
                event = SubscribeEvent(
                    topic=intent.topic, hub=intent.hub, lease=intent.lease_seconds
                )
            case "unsubscribe":
                event = UnsubscribeEvent(
                    topic=intent.topic, hub=intent.hub, lease=intent.lease_seconds
                )
            case _:
                return self._fail(HTTPStatus.FORBIDDEN, "Forbidden")

        self._logger.info("Hub verified %s for topic: %s", intent.mode, intent.topic)
        return HubResponse.text(
            HTTPStatus.OK, intent.challenge or "", events=(event,)
        )

    async def receive(
        self,
        *,
        query: Mapping[str, str],
        headers: Mapping[str, str],
        body: AsyncIterable[bytes],
        callback_url: str,
    ) -> HubResponse:
        """Handle a feed delivery (POST request) from the hub.

        The body is consumed chunk by chunk, in order, and the signature is
        computed over the chunks as they arrive. A delivery with a wrong
        signature is still acknowledged with 202 so the hub does not retry it,
        but no :class:`FeedEvent` is emitted for it.

        :param query: The query parameters of the request.
        :param headers: The headers of the request.
        :param body: The chunks of the body.
        :param callback_url: The URL the hub posted to.
        :return: The response.
        """
        headers = {key.lower(): value for key, value in headers.items()}
        topic = query.get("topic")
        hub = query.get("hub")

        links = parse_link_header(headers.get("link", ""))
        if not links:
            return self._fail(HTTPStatus.BAD_REQUEST, "Bad Request")

        topic = links.get("self", topic)
        hub = links.get("hub", hub)

        self._logger.info("Received feed delivery for topic %s from hub %s", topic, hub)

        if not topic:
            return self._fail(HTTPStatus.BAD_REQUEST, "Bad Request")

        verifier = None
        signature = ""
        if self._secret:
            header = headers.get("x-hub-signature")
            if not header:
                return self._fail(HTTPStatus.FORBIDDEN, "Forbidden")

            algorithm, signature = parse_signature_header(header)
            try:
                verifier = SignatureVerifier(
                    algorithm, derive_secret(self._secret, topic)
                )
            except SignatureError:
                return self._fail(HTTPStatus.FORBIDDEN, "Forbidden")

        chunks: list[bytes] = []
        size = 0
        too_large = False

        async for chunk in body:
            if too_large or not chunk:
                continue

            if size + len(chunk) > self._max_content_size:
                too_large = True
                continue

            chunks.append(chunk)
            size += len(chunk)
            if verifier is not None:
                verifier.update(chunk)

        if too_large:
            return self._fail(
                HTTPStatus.REQUEST_ENTITY_TOO_LARGE, "Request Entity Too Large"
            )

        if verifier is not None and not verifier.matches(signature):
            self._logger.warning("Invalid signature for topic: %s", topic)
            return HubResponse.text(HTTPStatus.ACCEPTED, content_type=_PLAIN_TEXT_UTF8)

        self._logger.info("Valid feed delivery for topic %s from hub %s", topic, hub)

        event = FeedEvent(
            topic=topic,
            hub=hub,
            callback_url=callback_url,
            raw_body=b"".join(chunks),
            headers=headers,
        )
        return HubResponse.text(
            HTTPStatus.NO_CONTENT, content_type=_PLAIN_TEXT_UTF8, events=(event,)
        )
