"""Contains the tests for the class SubscriptionRequester."""

from http import HTTPStatus
from urllib.parse import parse_qs

import httpx
import pytest
import respx
from httpx import Response

from tests import CALLBACK_URL, HUB, SECRET, TOPIC
from ytpubsub import EventBus, EventKind, SubscriptionMode
from ytpubsub.errors import HTTPError
from ytpubsub.models.events import DeniedEvent
from ytpubsub.requester import SubscriptionRequester
from ytpubsub.signature import derive_secret


@pytest.fixture
def denied() -> list[DeniedEvent]:
    """Fixture for the denied events emitted during a test."""
    return []


@pytest.fixture
def requester(denied: list[DeniedEvent]) -> SubscriptionRequester:
    """Fixture for SubscriptionRequester."""
    events = EventBus()

    async def listener(event: DeniedEvent) -> None:
        denied.append(event)

    events.add_listener(EventKind.DENIED, listener)
    return SubscriptionRequester(events, callback_url=CALLBACK_URL)


@pytest.mark.parametrize(
    ("base", "expected"),
    [
        ("http://example.com", "http://example.com/?topic="),
        ("https://example.com/hubbub", "https://example.com/hubbub?topic="),
        ("https://example.com/hubbub?key=1", "https://example.com/hubbub?key=1&topic="),
        ("HTTPS://example.com", "HTTPS://example.com/?topic="),
    ],
)
def test_build_callback_url(requester: SubscriptionRequester, base: str, expected: str) -> None:
    """Test appending the topic and the hub to the base callback URL."""
    requester.callback_url = base
    callback_url = requester.build_callback_url(TOPIC, HUB)

    assert callback_url.startswith(expected)
    assert callback_url.endswith(
        "topic=https%3A%2F%2Fexample.com%2Ffeed&hub=https%3A%2F%2Fhub.example.com%2F"
    )


def test_build_callback_url_without_base(requester: SubscriptionRequester) -> None:
    """Test building a callback URL before the base callback URL is known."""
    requester.callback_url = None

    with pytest.raises(ValueError):
        requester.build_callback_url(TOPIC, HUB)


def test_to_form(requester: SubscriptionRequester) -> None:
    """Test the optional fields of the request form."""
    subscription = requester.create_subscription(SubscriptionMode.SUBSCRIBE, TOPIC, HUB)
    form = requester.to_form(subscription, CALLBACK_URL)

    assert form == {
        "hub.callback": CALLBACK_URL,
        "hub.mode": "subscribe",
        "hub.topic": TOPIC,
        "hub.verify": "async",
    }

    requester = SubscriptionRequester(EventBus(), secret=SECRET, lease_seconds=3600)
    subscription = requester.create_subscription(SubscriptionMode.UNSUBSCRIBE, TOPIC, HUB)
    form = requester.to_form(subscription, CALLBACK_URL)

    assert form["hub.mode"] == "unsubscribe"
    assert form["hub.lease_seconds"] == "3600"
    assert form["hub.secret"] == derive_secret(SECRET, TOPIC)
    assert SECRET not in form.values()


@respx.mock
@pytest.mark.asyncio
@pytest.mark.parametrize("status", [HTTPStatus.ACCEPTED, HTTPStatus.NO_CONTENT])
async def test_request(
    requester: SubscriptionRequester, denied: list[DeniedEvent], status: HTTPStatus
) -> None:
    """Test sending a request the hub accepts."""
    route = respx.post(HUB).mock(Response(status))

    assert await requester.request(SubscriptionMode.SUBSCRIBE, TOPIC, HUB)

    assert route.call_count == 1
    form = parse_qs(route.calls.last.request.content.decode())
    assert form["hub.mode"] == ["subscribe"]
    assert form["hub.topic"] == [TOPIC]
    assert form["hub.verify"] == ["async"]
    assert form["hub.callback"] == [requester.build_callback_url(TOPIC, HUB)]
    assert "hub.secret" not in form
    assert "hub.lease_seconds" not in form
    assert not denied


@respx.mock
@pytest.mark.asyncio
async def test_request_explicit_callback(requester: SubscriptionRequester) -> None:
    """Test sending a request with a callback URL given by the caller."""
    route = respx.post(HUB).mock(Response(HTTPStatus.ACCEPTED))

    await requester.request(
        SubscriptionMode.SUBSCRIBE, TOPIC, HUB, "https://other.example.com/cb"
    )

    form = parse_qs(route.calls.last.request.content.decode())
    assert form["hub.callback"] == ["https://other.example.com/cb"]


@respx.mock
@pytest.mark.asyncio
async def test_request_headers() -> None:
    """Test sending the extra headers with the request."""
    requester = SubscriptionRequester(
        EventBus(), callback_url=CALLBACK_URL, headers={"User-Agent": "ytpubsub"}
    )
    route = respx.post(HUB).mock(Response(HTTPStatus.ACCEPTED))

    await requester.request(SubscriptionMode.SUBSCRIBE, TOPIC, HUB)

    assert route.calls.last.request.headers["User-Agent"] == "ytpubsub"


@respx.mock
@pytest.mark.asyncio
async def test_request_rejected(
    requester: SubscriptionRequester, denied: list[DeniedEvent]
) -> None:
    """Test that a rejected request is emitted as a denied event."""
    respx.post(HUB).mock(Response(HTTPStatus.CONFLICT))

    assert not await requester.request(SubscriptionMode.SUBSCRIBE, TOPIC, HUB)

    assert len(denied) == 1
    assert denied[0].topic == TOPIC
    assert isinstance(denied[0].error, HTTPError)
    assert denied[0].error.status_code == HTTPStatus.CONFLICT

    denied.clear()
    respx.post(HUB).mock(Response(HTTPStatus.OK))

    assert not await requester.request(SubscriptionMode.UNSUBSCRIBE, TOPIC, HUB)
    assert len(denied) == 1


@respx.mock
@pytest.mark.asyncio
async def test_request_transport_error(
    requester: SubscriptionRequester, denied: list[DeniedEvent]
) -> None:
    """Test that a transport failure is emitted as a denied event."""
    respx.post(HUB).mock(side_effect=httpx.ConnectError("Connection refused"))

    assert not await requester.request(SubscriptionMode.SUBSCRIBE, TOPIC, HUB)

    assert len(denied) == 1
    assert isinstance(denied[0].error, httpx.ConnectError)


@pytest.mark.asyncio
async def test_request_without_callback_url(denied: list[DeniedEvent]) -> None:
    """Test that a request without any callback URL is denied, not raised."""
    events = EventBus()

    async def listener(event: DeniedEvent) -> None:
        denied.append(event)

    events.add_listener(EventKind.DENIED, listener)
    requester = SubscriptionRequester(events)

    assert not await requester.request(SubscriptionMode.SUBSCRIBE, TOPIC, HUB)
    assert isinstance(denied[0].error, ValueError)


@pytest.mark.asyncio
async def test_request_invalid_hub(
    requester: SubscriptionRequester, denied: list[DeniedEvent]
) -> None:
    """Test that a malformed hub URL is emitted as a denied event, not raised."""
    assert not await requester.request(SubscriptionMode.SUBSCRIBE, TOPIC, "http://[::1")

    assert len(denied) == 1
    assert denied[0].topic == TOPIC
    assert denied[0].hub == "http://[::1"
    assert isinstance(denied[0].error, httpx.InvalidURL)
