"""Contains the YouTube feed service, which keeps a set of YouTube channels
subscribed at the hub and stores the videos they announce.
"""

__all__ = [
    "VideoInfoClient",
    "YouTubeFeedService",
    "get_channel_id",
    "get_topic",
    "parse_feed",
]

import asyncio
import logging
import re
import secrets
from datetime import UTC, datetime, timedelta
from http import HTTPStatus
from typing import Annotated
from urllib.parse import parse_qs, urlparse

import xmltodict
from fastapi import APIRouter, Depends, FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from httpx import AsyncClient
from pyexpat import ExpatError

from ytpubsub import AsyncPubSubHubbub
from ytpubsub.models import DEFAULT_HUB, ServiceSettings
from ytpubsub.models.events import (
    DeniedEvent,
    ErrorEvent,
    FeedEvent,
    SubscribeEvent,
    UnsubscribeEvent,
)
from ytpubsub.models.store import ChannelStore, FileVideoStore, InMemoryVideoStore, VideoStore
from ytpubsub.models.subscription import ChannelState
from ytpubsub.models.video import Author, Timestamp, Video
from ytpubsub.scheduler import RenewalScheduler

_TOPIC_URL = "https://www.youtube.com/xml/feeds/videos.xml"
_VIDEO_INFO_URL = "https://www.googleapis.com/youtube/v3/videos"
_CHANNEL_ID_LENGTH = 24
_FRACTION_PATTERN = re.compile(r"\.\d+")

_logger = logging.getLogger(__name__)


def get_topic(channel_id: str) -> str:
    """Get the feed URL of a YouTube channel.

    :param channel_id: The ID of the channel.
    :return: The feed URL.
    """
    return f"{_TOPIC_URL}?channel_id={channel_id}"


def get_channel_id(topic: str) -> str:
    """Get the ID of the YouTube channel of a feed URL.

    :param topic: The feed URL.
    :return: The value of its channel_id parameter, or its last 24 characters
        if it has none.
    """
    channel_ids = parse_qs(urlparse(topic).query).get("channel_id")
    return channel_ids[0] if channel_ids else topic[-_CHANNEL_ID_LENGTH:]


def _parse_timestamp(timestamp: str) -> datetime:
    # Fractional seconds can have more digits than datetime supports
    return datetime.fromisoformat(_FRACTION_PATTERN.sub("", timestamp, count=1))


def parse_feed(raw_body: bytes) -> list[Video]:
    """Parse the Atom payload of a YouTube feed notification.

    :param raw_body: The payload.
    :return: The videos of the payload. Empty if it announces a deleted video.
    :raises ValueError: If the payload is not a valid YouTube feed.
    """
    try:
        body = xmltodict.parse(raw_body)
    except ExpatError as ex:
        raise ValueError("Invalid XML payload") from ex

    try:
        feed = body["feed"]
        if "at:deleted-entry" in feed:
            _logger.debug("Ignoring notification for deleted video")
            return []

        # entry can be list of dict or just dict
        entries = feed["entry"] if isinstance(feed["entry"], list) else [feed["entry"]]

        videos = []
        for entry in entries:
            author = entry.get("author") or {}
            link = entry.get("link")
            if isinstance(link, list):
                link = link[0]

            videos.append(
                Video(
                    id=entry["yt:videoId"],
                    title=entry["title"],
                    url=link["@href"] if link else None,
                    timestamp=Timestamp(
                        published=_parse_timestamp(entry["published"]),
                        updated=_parse_timestamp(entry["updated"]),
                    ),
                    author=Author(
                        channel_id=entry["yt:channelId"],
                        name=author.get("name"),
                        url=author.get("uri"),
                    ),
                )
            )
    except (TypeError, KeyError, ValueError) as ex:
        raise ValueError("Invalid YouTube feed") from ex

    return videos


class VideoInfoClient:
    """Looks up video metadata with the YouTube Data API."""

    def __init__(self, api_key: str, *, url: str = _VIDEO_INFO_URL) -> None:
        """Create a new VideoInfoClient instance.

        :param api_key: The YouTube Data API key.
        :param url: The URL of the videos endpoint.
        """
        self._api_key = api_key
        self._url = url

    async def fetch(self, video_id: str) -> dict | None:
        """Get the metadata of a video.

        :param video_id: The ID of the video.
        :return: The video resource, or None if there is no such video.
        :raises httpx.HTTPError: If the request fails.
        """
        async with AsyncClient() as client:
            response = await client.get(
                self._url,
                params={
                    "id": video_id,
                    "key": self._api_key,
                    "part": "contentDetails,snippet,status",
                    "hl": "en",
                },
            )
            response.raise_for_status()

        items = response.json().get("items") or []
        return items[0] if items else None

    @staticmethod
    def annotate(info: dict, now: datetime) -> dict:
        """Add the bookkeeping fields of a newly announced video.

        :param info: The video resource.
        :param now: The time the video was announced.
        :return: The same resource, annotated.
        """
        info["downloaded"] = False
        info["downloading"] = False

        status = info.get("status") or {}
        snippet = info.get("snippet") or {}
        if (
            status.get("uploadStatus") == "uploaded"
            and snippet.get("liveBroadcastContent") == "live"
        ):
            info["live"] = True

        info["dateAdded"] = now.isoformat()
        info["pubsub"] = True
        return info


class YouTubeFeedService:
    """Keeps YouTube channels subscribed and stores the videos they announce."""

    def __init__(
        self,
        *,
        callback_url: str | None = None,
        secret: str | None = None,
        channel_ids: list[str] | None = None,
        video_info: VideoInfoClient | None = None,
        video_store: VideoStore | None = None,
        hub: str = DEFAULT_HUB,
        endpoint: str = "/hubbub",
        app: FastAPI | None = None,
    ) -> None:
        """Set up the YouTubeFeedService instance.

        :param callback_url: The URL the hub calls back.
            If not provided, ngrok will be used to create a temporary URL.
        :param secret: The master secret, also the password of the status endpoints.
        :param channel_ids: The IDs of the channels to subscribe to.
        :param video_info: The client to look up video metadata with.
            If not provided, videos are stored as announced by the feed.
        :param video_store: The store of the videos.
            If not provided, an InMemoryVideoStore is used.
        :param hub: The hub to subscribe at.
        :param endpoint: The path of the callback endpoint when ngrok is used.
        :param app: The FastAPI app instance to use. If not provided, a new
            instance will be created.
        """
        self._logger = logging.getLogger(self.__class__.__name__)
        self._secret = secret
        self._app = app or FastAPI()
        self._app.include_router(self._get_status_router())

        self._notifier = AsyncPubSubHubbub(
            callback_url=callback_url,
            hub=hub,
            secret=secret,
            endpoint=endpoint,
            app=self._app,
        )
        self._notifier.add_subscribe_listener(self._on_subscribe)
        self._notifier.add_unsubscribe_listener(self._on_unsubscribe)
        self._notifier.add_denied_listener(self._on_denied)
        self._notifier.add_feed_listener(self._on_feed)
        self._notifier.add_error_listener(self._on_error)

        self._channels = ChannelStore(
            ChannelState(id=channel_id) for channel_id in channel_ids or []
        )
        self._video_info = video_info
        self._video_store = video_store or InMemoryVideoStore()
        self._scheduler = RenewalScheduler(self._channels, self._renew)

    @classmethod
    def from_settings(cls, settings: ServiceSettings) -> "YouTubeFeedService":
        """Create a service from the settings of the process.

        :param settings: The settings.
        :return: The service.
        """
        return cls(
            callback_url=settings.callback_url,
            secret=settings.secret,
            channel_ids=settings.channel_ids,
            endpoint=settings.path,
            video_info=VideoInfoClient(settings.youtube_key) if settings.youtube_key else None,
            video_store=(
                FileVideoStore(dir_path=settings.data_dir) if settings.data_dir else None
            ),
        )

    @property
    def app(self) -> FastAPI:
        """Get the FastAPI app serving the callback and status endpoints.

        :return: The FastAPI app.
        """
        return self._app

    @property
    def notifier(self) -> AsyncPubSubHubbub:
        """Get the subscriber used by the service.

        :return: The subscriber.
        """
        return self._notifier

    @property
    def channels(self) -> ChannelStore:
        """Get the table of tracked channels.

        :return: The channel store.
        """
        return self._channels

    @property
    def scheduler(self) -> RenewalScheduler:
        """Get the scheduler renewing the subscriptions.

        :return: The renewal scheduler.
        """
        return self._scheduler

    async def run(
        self, *, host: str = "0.0.0.0", port: int = 1337, log_level: int = logging.WARNING  # noqa: S104
    ) -> None:
        """Subscribe to every channel once the server is ready, renew the
        subscriptions hourly and wait until the server stops.

        :param host: The host to run the server on.
        :param port: The port to run the server on.
        :param log_level: The log level to use for the uvicorn server.
        """
        for channel in await self._channels.all():
            await self._notifier.subscribe(get_topic(channel.id))

        renewals = asyncio.create_task(self._scheduler.run())
        try:
            await self._notifier.run(host=host, port=port, log_level=log_level)
        finally:
            self._scheduler.stop()
            await renewals

    async def _renew(self, channel: ChannelState) -> None:
        await self._notifier.subscribe(get_topic(channel.id))

    async def _on_subscribe(self, event: SubscribeEvent) -> None:
        channel_id = get_channel_id(event.topic)
        self._logger.info("Subscribed channel %s (lease %ss)", channel_id, event.lease)

        if not await self._channels.mark_subscribed(
            channel_id, timedelta(seconds=event.lease), datetime.now(UTC)
        ):
            self._logger.warning("Subscribed to untracked channel: %s", channel_id)

    async def _on_unsubscribe(self, event: UnsubscribeEvent) -> None:
        channel_id = get_channel_id(event.topic)
        self._logger.info("Unsubscribed channel %s", channel_id)
        await self._channels.mark_unsubscribed(channel_id)

    async def _on_denied(self, event: DeniedEvent) -> None:
        self._logger.info(
            "Denied subscription for topic %s from hub %s: %s",
            event.topic,
            event.hub,
            event.error,
        )

    async def _on_error(self, event: ErrorEvent) -> None:
        self._logger.error("Subscriber error: %s\n%s", event.message, event.stack)

    async def _on_feed(self, event: FeedEvent) -> None:
        try:
            videos = parse_feed(event.raw_body)
        except ValueError:
            self._logger.exception("Failed to parse feed of topic: %s", event.topic)
            return

        for video in videos:
            try:
                await self._store_video(video)
            except Exception:
                self._logger.exception("Failed to store video: %s", video.id)

    async def _store_video(self, video: Video) -> None:
        """Count the notification for the video's channel and store the video
        if it is not stored yet.

        :param video: The video announced by the feed.
        """
        now = datetime.now(UTC)
        self._logger.info(
            "Video %s (%s) from channel %s, published %s, updated %s",
            video.id,
            video.title,
            video.author.channel_id,
            video.timestamp.published,
            video.timestamp.updated,
        )

        await self._channels.record_message(video.author.channel_id, video.id, now)

        record = None
        if self._video_info is not None:
            record = await self._video_info.fetch(video.id)
            if record is None:
                self._logger.warning("No metadata found for video: %s", video.id)

        if record is None:
            record = video.to_record()

        if await self._video_store.add(VideoInfoClient.annotate(record, now)):
            self._logger.info("Stored video: %s", video.id)

    def _get_status_router(self) -> APIRouter:
        """Get the router of the status endpoints.

        :return: The router.
        """
        security = HTTPBasic()

        def authorize(credentials: Annotated[HTTPBasicCredentials, Depends(security)]) -> None:
            is_admin = secrets.compare_digest(credentials.username.encode(), b"admin")
            is_password = self._secret is not None and secrets.compare_digest(
                credentials.password.encode(), self._secret.encode()
            )
            if not (is_admin and is_password):
                raise HTTPException(
                    status_code=HTTPStatus.UNAUTHORIZED,
                    detail="Unauthorized",
                    headers={"WWW-Authenticate": "Basic"},
                )

        router = APIRouter()

        @router.get("/status", dependencies=[Depends(authorize)])
        async def status() -> dict[str, dict]:
            return {channel.id: channel.to_dict() for channel in await self._channels.all()}

        @router.get("/active", dependencies=[Depends(authorize)])
        async def active() -> list[dict]:
            return [channel.to_dict() for channel in await self._channels.all() if channel.subscribed]

        @router.get("/inactive", dependencies=[Depends(authorize)])
        async def inactive() -> list[dict]:
            return [channel.to_dict() for channel in await self._channels.all() if not channel.subscribed]

        root = APIRouter()
        root.add_api_route("/", self._hello, methods=["GET"], response_class=PlainTextResponse)
        root.include_router(router, prefix="/api")
        return root

    @staticmethod
    async def _hello() -> str:
        return "hello world"
