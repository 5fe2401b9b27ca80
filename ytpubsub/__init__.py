"""Contains the PubSubHubbub class which is used to subscribe to feeds at a hub
and receive push notifications when they are updated.
"""

__all__ = [
    "AsyncPubSubHubbub",
    "DeniedEvent",
    "ErrorEvent",
    "Event",
    "EventBus",
    "EventKind",
    "FeedEvent",
    "HubResponse",
    "PubSubHubbub",
    "SubscribeEvent",
    "SubscriberConfig",
    "SubscriptionMode",
    "UnsubscribeEvent",
]

import asyncio
import logging
import time
import traceback
from asyncio import Task
from collections.abc import AsyncIterator, Callable, Coroutine, Iterator
from contextlib import asynccontextmanager, contextmanager, suppress
from datetime import timedelta
from http import HTTPStatus
from threading import Lock, Thread
from typing import Any, Self
from urllib.parse import urlparse

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response
from fastapi.responses import HTMLResponse
from fastapi.routing import APIRoute
from httpx import AsyncClient, ConnectError
from pyngrok import ngrok
from pyngrok.exception import PyngrokNgrokURLError
from starlette.background import BackgroundTask
from starlette.routing import Route
from uvicorn import Config, Server

from ytpubsub.enums import EventKind, SubscriptionMode
from ytpubsub.events import EventBus
from ytpubsub.models import DEFAULT_HUB, DEFAULT_MAX_CONTENT_SIZE, SubscriberConfig
from ytpubsub.models.events import (
    DeniedEvent,
    ErrorEvent,
    Event,
    FeedEvent,
    SubscribeEvent,
    UnsubscribeEvent,
)
from ytpubsub.receiver import HubResponse, NotificationReceiver
from ytpubsub.requester import SubscriptionRequester
from ytpubsub.types import (
    DeniedListener,
    ErrorListener,
    FeedListener,
    Listener,
    SubscribeListener,
    T,
    UnsubscribeListener,
)

_ERROR_PAGE = """<!doctype html>
<html>
    <head>
        <meta charset="utf-8"/>
        <title>{code} {message}</title>
    </head>
    <body>
        <h1>{code} {message}</h1>
    </body>
</html>"""


class AsyncPubSubHubbub:
    """A class that encapsulates the subscriber side of PubSubHubbub: sending
    subscription requests to a hub and receiving its callbacks.
    """

    _METHODS = ["GET", "POST", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"]
    _STARTUP_STAGGER = timedelta(seconds=1)

    def __init__(
        self,
        *,
        callback_url: str | None = None,
        hub: str = DEFAULT_HUB,
        secret: str | None = None,
        lease_seconds: int = 0,
        max_content_size: int = DEFAULT_MAX_CONTENT_SIZE,
        headers: dict[str, str] | None = None,
        endpoint: str | None = None,
        app: FastAPI | None = None,
    ) -> None:
        """Set up the PubSubHubbub instance.

        :param callback_url: The base URL the hub calls back.
            If not provided, ngrok will be used to create a temporary URL.
        :param hub: The hub to send subscription requests to.
        :param secret: The master secret used to sign subscriptions and verify
            notifications. If not provided, notifications are not verified.
        :param lease_seconds: The lease to request. If 0, the hub chooses.
        :param max_content_size: The maximum size in bytes of a notification.
        :param headers: Extra headers to send with every request to the hub.
        :param endpoint: The path of the callback endpoint when ngrok is used.
            Otherwise the path of the callback URL is used.
        :param app: The FastAPI app instance to embed the callback endpoint in.
            Errors are then raised as HTTPException for the app to render.
            If not provided, a new instance will be created.
        :raises ValueError: If the given app already has a route at the
            callback endpoint.
        """
        self._endpoint = self._get_endpoint(callback_url=callback_url, endpoint=endpoint)
        if app is not None:
            self._verify_app(app=app, endpoint=self._endpoint)

        self._logger = logging.getLogger(self.__class__.__name__)

        self._config = SubscriberConfig(
            callback_url=callback_url,
            hub=hub,
            secret=secret,
            lease_seconds=lease_seconds,
            max_content_size=max_content_size,
            headers=headers or {},
        )
        self._is_using_ngrok = callback_url is None
        self._is_embedded = app is not None
        self._app = app or FastAPI()

        self._events = EventBus()
        self._requester = SubscriptionRequester(
            self._events,
            callback_url=callback_url,
            secret=secret,
            lease_seconds=lease_seconds,
            headers=self._config.headers,
        )
        self._receiver = NotificationReceiver(
            secret=secret, max_content_size=max_content_size
        )

        self._pending: dict[str, str] = {}
        self._pending_lock = Lock()
        self._server: Server | None = None
        self._server_ready_event: asyncio.Event = asyncio.Event()

    @property
    def callback_url(self) -> str | None:
        """Get the base callback URL. If the callback URL was not provided when
        creating the instance, it will become available after the server is started.

        :return: The callback URL.
        """
        return self._config.callback_url

    @property
    def hub(self) -> str:
        """Get the hub subscription requests are sent to.

        :return: The URL of the hub.
        """
        return self._config.hub

    @property
    def app(self) -> FastAPI:
        """Get the FastAPI app the callback endpoint is served by.

        :return: The FastAPI app.
        """
        return self._app

    @property
    def events(self) -> EventBus:
        """Get the event bus the subscriber emits to.

        :return: The event bus.
        """
        return self._events

    @property
    def is_ready(self) -> bool:
        """Check if the server is ready to receive callbacks from the hub.

        :return: True if the server is ready, False otherwise.
        """
        return self._server_ready_event.is_set()

    @property
    def pending_topics(self) -> list[str]:
        """Get the topics waiting for the server to be ready to be subscribed.

        :return: The topics in the order they were subscribed.
        """
        with self._pending_lock:
            return list(self._pending)

    def listener(self, kind: EventKind) -> Callable[[Listener], Listener]:
        """Decorate the function to add a listener for an event kind.

        :param kind: The kind of event to listen for.
        :return: The decorator function.
        """
        return self._events.listener(kind)

    def on_subscribe(self) -> Callable[[SubscribeListener], SubscribeListener]:
        """Decorate the function to add a listener for when the hub verifies a
        subscription.

        :return: The decorator function.
        """
        return self._events.listener(EventKind.SUBSCRIBE)

    def on_unsubscribe(self) -> Callable[[UnsubscribeListener], UnsubscribeListener]:
        """Decorate the function to add a listener for when the hub verifies an
        unsubscription.

        :return: The decorator function.
        """
        return self._events.listener(EventKind.UNSUBSCRIBE)

    def on_denied(self) -> Callable[[DeniedListener], DeniedListener]:
        """Decorate the function to add a listener for when the hub denies a
        subscription or a request to the hub fails.

        :return: The decorator function.
        """
        return self._events.listener(EventKind.DENIED)

    def on_feed(self) -> Callable[[FeedListener], FeedListener]:
        """Decorate the function to add a listener for when the hub delivers a
        feed update.

        :return: The decorator function.
        """
        return self._events.listener(EventKind.FEED)

    def on_error(self) -> Callable[[ErrorListener], ErrorListener]:
        """Decorate the function to add a listener for when another listener fails.

        :return: The decorator function.
        """
        return self._events.listener(EventKind.ERROR)

    def add_listener(self, kind: EventKind, func: Listener) -> Self:
        """Add a listener for an event kind.

        :param kind: The kind of event to listen for.
        :param func: The listener function to add.
        :return: The PubSubHubbub instance to allow for method chaining.
        """
        self._events.add_listener(kind, func)
        return self

    def add_subscribe_listener(self, func: SubscribeListener) -> Self:
        """Add a listener for when the hub verifies a subscription.
        Alias for add_listener(EventKind.SUBSCRIBE, func).

        :param func: The listener function to add.
        :return: The PubSubHubbub instance to allow for method chaining.
        """
        return self.add_listener(EventKind.SUBSCRIBE, func)

    def add_unsubscribe_listener(self, func: UnsubscribeListener) -> Self:
        """Add a listener for when the hub verifies an unsubscription.
        Alias for add_listener(EventKind.UNSUBSCRIBE, func).

        :param func: The listener function to add.
        :return: The PubSubHubbub instance to allow for method chaining.
        """
        return self.add_listener(EventKind.UNSUBSCRIBE, func)

    def add_denied_listener(self, func: DeniedListener) -> Self:
        """Add a listener for denied subscriptions and failed requests.
        Alias for add_listener(EventKind.DENIED, func).

        :param func: The listener function to add.
        :return: The PubSubHubbub instance to allow for method chaining.
        """
        return self.add_listener(EventKind.DENIED, func)

    def add_feed_listener(self, func: FeedListener) -> Self:
        """Add a listener for feed updates.
        Alias for add_listener(EventKind.FEED, func).

        :param func: The listener function to add.
        :return: The PubSubHubbub instance to allow for method chaining.
        """
        return self.add_listener(EventKind.FEED, func)

    def add_error_listener(self, func: ErrorListener) -> Self:
        """Add a listener for failures of other listeners.
        Alias for add_listener(EventKind.ERROR, func).

        :param func: The listener function to add.
        :return: The PubSubHubbub instance to allow for method chaining.
        """
        return self.add_listener(EventKind.ERROR, func)

    @staticmethod
    def _get_endpoint(*, callback_url: str | None, endpoint: str | None = None) -> str:
        """Get the endpoint path from the callback URL.
        :param callback_url: The callback URL to use to determine the endpoint.
        :param endpoint: The endpoint path to use if there is no callback URL.
        :return: The endpoint path.
        """
        if callback_url is None:
            return endpoint or "/"

        return urlparse(callback_url).path or "/"

    @staticmethod
    def _verify_app(*, app: FastAPI, endpoint: str) -> None:
        """Verify if the given app instance has a route that conflicts with
            the callback endpoint.

        :param app: The FastAPI app instance to verify.
        :param endpoint: The path of the callback endpoint.
        """
        for route in app.routes:
            if isinstance(route, (APIRoute, Route)) and route.path == endpoint:
                raise ValueError(
                    f"Endpoint {endpoint} is reserved for {__package__} "
                    "so it cannot be used by the app"
                )

    def get_router(self) -> APIRouter:
        """Get a router serving the callback endpoint.

        :return: The router.
        """
        router = APIRouter()
        router.add_api_route(self._endpoint, self._handle, methods=self._METHODS)

        return router

    def _setup_notifier(self, *, app: FastAPI, port: int) -> str:
        """Set up the subscriber by configuring the FastAPI app instance.
        :param app: The FastAPI app instance to set up the subscriber for.
        :param port: The port to use for the ngrok tunnel.
        :return: The callback URL.
        """
        callback_url = self._config.callback_url
        if callback_url is None:
            public_url = ngrok.connect(str(port)).public_url

            if public_url is None:
                raise RuntimeError("Failed to create ngrok tunnel")

            callback_url = public_url.rstrip("/") + self._endpoint

            self._config.callback_url = callback_url
            self._requester.callback_url = callback_url

        self._logger.info("Callback URL: %s", callback_url)

        app.include_router(self.get_router())

        return callback_url

    async def _is_listening(self, callback_url: str) -> bool:
        """Check if the callback endpoint is reachable. A bare GET lacks the
        hub parameters, so a reachable endpoint answers it with 400.

        :param callback_url: The callback URL.
        :return: True if the endpoint is reachable, False otherwise.
        """
        try:
            async with AsyncClient() as client:
                response = await client.get(callback_url)
        except ConnectError:
            return False

        return response.status_code == HTTPStatus.BAD_REQUEST

    async def _on_startup(
        self, *, callback_url: str, predicate: Callable[[], bool] | None = None
    ) -> None:
        """Wait until the callback endpoint is reachable, then subscribe to the
        topics that were subscribed before the server was ready.

        :param callback_url: The callback URL for testing if the server is available.
        :param predicate: An optional predicate function that returns True to continue
            waiting for the server to be available.
        """
        while not predicate or predicate():
            await asyncio.sleep(0.1)

            if await self._is_listening(callback_url):
                break

        # Subscriptions made from another thread are either queued before
        # this point or sent directly after it
        with self._pending_lock:
            self._server_ready_event.set()
        self._logger.info("Ready to receive callbacks at %s", callback_url)

        await self._flush_pending()

    async def _flush_pending(self) -> None:
        """Subscribe to the pending topics, one every second."""
        with self._pending_lock:
            pending = list(self._pending.items())

        for index, (topic, hub) in enumerate(pending):
            if index > 0:
                await asyncio.sleep(self._STARTUP_STAGGER.total_seconds())

            with self._pending_lock:
                if self._pending.pop(topic, None) is None:
                    # Unsubscribed while waiting
                    continue

            await self._requester.request(SubscriptionMode.SUBSCRIBE, topic, hub)

    async def run(
        self,
        *,
        host: str = "0.0.0.0",  # noqa: S104
        port: int = 8000,
        log_level: int = logging.WARNING,
        **configs: object,
    ) -> None:
        """Start the FastAPI server to receive callbacks in an existing event
            loop and wait until the server stops.

        If the server cannot start listening, an :class:`ErrorEvent` is emitted
        and the method returns.

        :param host: The host to run the FastAPI server on.
        :param port: The port to run the FastAPI server on.
        :param log_level: The log level to use for the uvicorn server.
        :param configs: Additional arguments to pass to the Config class of uvicorn.
        """
        config = Config(
            app=self._app,
            host=host,
            port=port,
            log_level=log_level,
            **configs,  # ty: ignore[invalid-argument-type]
        )
        self._server = Server(config=config)

        callback_url = self._setup_notifier(app=self._app, port=port)
        startup = asyncio.create_task(self._on_startup(callback_url=callback_url))

        server = self._server
        try:
            await server.serve()
        except KeyboardInterrupt:  # pragma: no cover
            pass
        except (OSError, SystemExit) as ex:
            # uvicorn exits when it cannot bind the socket
            if server.started:
                raise

            await self._on_start_failure(ex, port)
        finally:
            startup.cancel()
            self._on_exit()

    async def _on_start_failure(self, ex: BaseException, port: int) -> None:
        """Report that the server could not start listening.

        :param ex: The exception raised by the server.
        :param port: The port the server tried to listen on.
        """
        cause = ex.__context__ if isinstance(ex, SystemExit) else ex
        message = f"Failed to start listening on port {port}"
        if cause is not None:
            message = f"{message} ({cause})"

        self._logger.error("%s", message)
        await self._events.emit(
            ErrorEvent(message=message, stack="".join(traceback.format_exception(ex)))
        )

    @asynccontextmanager
    async def run_in_background(
        self,
        *,
        host: str = "0.0.0.0",  # noqa: S104
        port: int = 8000,
        log_level: int = logging.WARNING,
        **configs: object,
    ) -> AsyncIterator[Task]:
        """Run the FastAPI server in an existing event loop and return immediately.

        :param host: The host IP address to bind the server.
        :param port: The port number to bind the server.
        :param log_level: The log level to use for the server.
        :param configs: Additional configurations to pass to the server.
        """
        task = asyncio.create_task(
            self.run(host=host, port=port, log_level=log_level, **configs)
        )
        ready = asyncio.create_task(self._server_ready_event.wait())
        try:
            # The server task ends early if it cannot start listening
            await asyncio.wait({ready, task}, return_when=asyncio.FIRST_COMPLETED)
            ready.cancel()
            yield task
        finally:
            self._on_exit()
            await task

    async def subscribe(
        self, topic: str, *, hub: str | None = None, callback_url: str | None = None
    ) -> Self:
        """Subscribe to a topic. This is lazy and will subscribe when the server
        is ready. If the server is already ready, it will subscribe immediately.

        Failures are not raised. They are emitted as :class:`DeniedEvent`.

        :param topic: The URL of the feed.
        :param hub: The hub to send the request to. Defaults to the configured hub.
        :param callback_url: The callback URL to send instead of the one built
            from the base callback URL.
        :return: The current instance for method chaining.
        """
        hub = hub or self._config.hub

        with self._pending_lock:
            if not self.is_ready and callback_url is None:
                self._logger.debug("Subscription to %s deferred until ready", topic)
                self._pending[topic] = hub
                return self

        await self._requester.request(
            SubscriptionMode.SUBSCRIBE, topic, hub, callback_url
        )
        return self

    async def unsubscribe(
        self, topic: str, *, hub: str | None = None, callback_url: str | None = None
    ) -> Self:
        """Unsubscribe from a topic. A subscription still waiting for the
        server to be ready is dropped instead.

        Failures are not raised. They are emitted as :class:`DeniedEvent`.

        :param topic: The URL of the feed.
        :param hub: The hub to send the request to. Defaults to the configured hub.
        :param callback_url: The callback URL to send instead of the one built
            from the base callback URL.
        :return: The current instance for method chaining.
        """
        with self._pending_lock:
            if self._pending.pop(topic, None) is not None and not self.is_ready:
                return self

        await self._requester.request(
            SubscriptionMode.UNSUBSCRIBE, topic, hub or self._config.hub, callback_url
        )
        return self

    def stop(self) -> None:
        """Gracefully stop the server and ngrok (if used).
        If the server is not running, this method will do nothing.
        """
        if self._server is None:
            return

        self._server.should_exit = True
        self._server = None
        self._server_ready_event.clear()

        if self._is_using_ngrok and self._config.callback_url is not None:
            with suppress(PyngrokNgrokURLError):
                ngrok.disconnect(self._config.callback_url)

    def _on_exit(self) -> None:
        """Perform a task after the server is stopped."""
        self.stop()

    async def _handle(self, request: Request) -> Response:
        """Handle a callback from the hub."""
        match request.method:
            case "GET":
                result = self._receiver.verify_intent(request.query_params)
            case "POST":
                result = await self._receiver.receive(
                    query=request.query_params,
                    headers=request.headers,
                    body=request.stream(),
                    callback_url=str(request.url),
                )
            case _:
                result = self._receiver.method_not_allowed(request.method)

        return self._to_response(result)

    def _to_response(self, result: HubResponse) -> Response:
        """Convert the outcome of a callback to a response. The events of the
        outcome are emitted after the response is sent.

        :param result: The outcome.
        :return: The response.
        :raises HTTPException: If the outcome is an error and the endpoint is
            embedded in an app given by the caller.
        """
        if result.is_error:
            if self._is_embedded:
                raise HTTPException(status_code=result.status, detail=result.message)

            return HTMLResponse(
                _ERROR_PAGE.format(code=result.status.value, message=result.message),
                status_code=result.status,
            )

        background = None
        if result.events:
            background = BackgroundTask(self._events.emit_all, result.events)

        return Response(
            content=result.body,
            status_code=result.status,
            headers=result.headers,
            background=background,
        )


class PubSubHubbub(AsyncPubSubHubbub):
    """A class that encapsulates the subscriber side of PubSubHubbub, with
    blocking methods for code that does not run an event loop.
    """

    def subscribe(  # noqa: D102
        self, topic: str, *, hub: str | None = None, callback_url: str | None = None
    ) -> Self:
        self._run_coroutine(
            super().subscribe(topic, hub=hub, callback_url=callback_url)
        )
        return self

    def unsubscribe(  # noqa: D102
        self, topic: str, *, hub: str | None = None, callback_url: str | None = None
    ) -> Self:
        self._run_coroutine(
            super().unsubscribe(topic, hub=hub, callback_url=callback_url)
        )
        return self

    def run(
        self,
        *,
        host: str = "0.0.0.0",  # noqa: S104
        port: int = 8000,
        log_level: int = logging.WARNING,
        **configs: object,
    ) -> None:
        """Start the FastAPI server to receive callbacks in the
            current thread and wait until the server stops.

        :param host: The host to run the FastAPI server on.
        :param port: The port to run the FastAPI server on.
        :param log_level: The log level to use for the uvicorn server.
        :param configs: Additional arguments to pass to the Config class of uvicorn.
        """
        asyncio.run(
            super().run(host=host, port=port, log_level=log_level, **configs)
        )

    @contextmanager
    def run_in_background(
        self,
        *,
        host: str = "0.0.0.0",  # noqa: S104
        port: int = 8000,
        log_level: int = logging.WARNING,
        **configs: object,
    ) -> Iterator[Thread]:
        """Start the FastAPI server to receive callbacks in a separate
            thread and return immediately.

        :param host: The host to run the FastAPI server on.
        :param port: The port to run the FastAPI server on.
        :param log_level: The log level to use for the uvicorn server.
        :param configs: Additional arguments to pass to the Config class of uvicorn.
        :return: A thread that runs the FastAPI server in the background.
        """
        configs["host"] = host
        configs["port"] = port
        configs["log_level"] = log_level

        thread = Thread(target=self.run, kwargs=configs, daemon=True)
        thread.start()
        try:
            while not self.is_ready and thread.is_alive():
                time.sleep(0.1)
            yield thread
        finally:
            self.stop()
            thread.join()

    @staticmethod
    def _run_coroutine(coro: Coroutine[Any, Any, T]) -> T:
        """Run a coroutine to completion.

        :param coro: The coroutine to run.
        :return: The result of the coroutine.
        :raises RuntimeError: If called from a running event loop.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)

        coro.close()
        raise RuntimeError(
            "Blocking methods cannot be called from a running event loop. "
            "Use AsyncPubSubHubbub instead."
        )
