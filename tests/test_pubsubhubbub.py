"""Contains the tests for the class PubSubHubbub."""

import logging
from http import HTTPStatus
from threading import Thread
from unittest.mock import AsyncMock, patch

import pytest
import respx
from httpx import Response

from tests import CALLBACK_URL, HUB, TOPIC
from ytpubsub import AsyncPubSubHubbub, PubSubHubbub


@pytest.fixture
def pubsub() -> PubSubHubbub:
    """Fixture for PubSubHubbub."""
    return PubSubHubbub(callback_url=CALLBACK_URL, hub=HUB)


@respx.mock
def test_subscribe(pubsub: PubSubHubbub) -> None:
    """Test subscribing and unsubscribing without an event loop."""
    route = respx.post(HUB).mock(Response(HTTPStatus.ACCEPTED))

    assert pubsub.subscribe(TOPIC) is pubsub
    assert pubsub.pending_topics == [TOPIC]
    assert route.call_count == 0

    pubsub._server_ready_event.set()

    pubsub.subscribe(TOPIC).unsubscribe(TOPIC)

    assert route.call_count == 2
    assert b"hub.mode=unsubscribe" in route.calls.last.request.content


@respx.mock
def test_subscribe_while_becoming_ready(pubsub: PubSubHubbub) -> None:
    """Test that a subscription racing the server becoming ready is not lost."""
    route = respx.post(HUB).mock(Response(HTTPStatus.ACCEPTED))
    thread = Thread(target=pubsub.subscribe, args=(TOPIC,))

    with pubsub._pending_lock:
        thread.start()
        thread.join(0.1)
        assert thread.is_alive(), "Should wait until the readiness is settled"

        pubsub._server_ready_event.set()

    thread.join()

    assert route.call_count == 1
    assert pubsub.pending_topics == []


@pytest.mark.asyncio
async def test_subscribe_in_event_loop(pubsub: PubSubHubbub) -> None:
    """Test that the blocking methods refuse to run inside an event loop."""
    with pytest.raises(RuntimeError):
        pubsub.subscribe(TOPIC)

    with pytest.raises(RuntimeError):
        pubsub.unsubscribe(TOPIC)

    assert pubsub.pending_topics == []


def test_run(pubsub: PubSubHubbub) -> None:
    """Test running the server in the current thread."""
    with patch.object(AsyncPubSubHubbub, "run", AsyncMock()) as run:
        pubsub.run(port=8080)

    run.assert_awaited_once_with(host="0.0.0.0", port=8080, log_level=logging.WARNING)  # noqa: S104


def test_run_in_background(pubsub: PubSubHubbub) -> None:
    """Test running the server in a separate thread."""

    received = {}

    def run(**configs: object) -> None:
        received.update(configs)
        pubsub._server_ready_event.set()

    with (
        patch.object(pubsub, "run", run),
        pubsub.run_in_background(port=8080) as thread,
    ):
        assert pubsub.is_ready

    assert not thread.is_alive()
    assert received["port"] == 8080
