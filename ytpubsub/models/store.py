"""
This module contains the stores for channel states and video records.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from threading import Lock

import aiofiles
from aiofiles import os, ospath

from ytpubsub.models.subscription import ChannelState


class ChannelStore:
    """
    Represents the table of tracked channels. It is shared by the request
    handlers and the renewal scheduler, so every access is guarded by a lock.
    """

    def __init__(self, channels: Iterable[ChannelState] = ()) -> None:
        """
        Create a new ChannelStore instance.

        :param channels: The channels to track initially.
        """

        self._logger = logging.getLogger(self.__class__.__name__)
        self._channels: dict[str, ChannelState] = {channel.id: channel for channel in channels}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def __contains__(self, channel_id: object) -> bool:
        with self._lock:
            return channel_id in self._channels

    async def add(self, channel: ChannelState) -> None:
        """
        Start tracking a channel. A channel that is already tracked keeps its state.

        :param channel: The channel to track.
        """

        with self._lock:
            if channel.id in self._channels:
                return

            self._logger.debug("Tracking channel: %s", channel.id)
            self._channels[channel.id] = channel

    async def get(self, channel_id: str) -> ChannelState | None:
        """
        Get a snapshot of the state of a channel.

        :param channel_id: The ID of the channel.
        :return: A copy of the state, or None if the channel is not tracked.
        """

        with self._lock:
            channel = self._channels.get(channel_id)
            return None if channel is None else replace(channel)

    async def all(self) -> list[ChannelState]:
        """
        Get a snapshot of every tracked channel in the order they were added.

        :return: Copies of the states.
        """

        with self._lock:
            return [replace(channel) for channel in self._channels.values()]

    async def mark_subscribed(self, channel_id: str, lease: timedelta, at: datetime) -> bool:
        """
        Mark a channel as subscribed, setting the lease and the subscription time together.

        :param channel_id: The ID of the channel.
        :param lease: The lease granted by the hub.
        :param at: The time the hub confirmed the subscription.
        :return: True if the channel is tracked, False otherwise.
        """

        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                return False

            channel.subscribed = True
            channel.lease = lease
            channel.subscribed_at = at
            return True

    async def mark_unsubscribed(self, channel_id: str) -> bool:
        """
        Mark a channel as no longer subscribed.

        :param channel_id: The ID of the channel.
        :return: True if the channel is tracked, False otherwise.
        """

        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                return False

            channel.subscribed = False
            return True

    async def record_message(self, channel_id: str, video_id: str, at: datetime) -> bool:
        """
        Count a feed notification for a channel.

        :param channel_id: The ID of the channel.
        :param video_id: The ID of the video in the notification.
        :param at: The time the notification was received.
        :return: True if the channel is tracked, False otherwise.
        """

        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                return False

            channel.msg_count += 1
            channel.last_msg = at
            channel.last_msg_video = video_id
            return True


class VideoStore(ABC):
    """
    Represents the storage of video records.
    """

    @abstractmethod
    async def add(self, record: dict) -> bool:
        """
        Insert a video record unless a record with the same ID already exists.

        :param record: The record to insert. It must have an "id" key.
        :return: True if the record was inserted, False if it already existed.
        """

    @abstractmethod
    async def get(self, video_id: str) -> dict | None:
        """
        Get a video record.

        :param video_id: The ID of the video.
        :return: The record, or None if there is no such record.
        """

    async def has(self, video_id: str) -> bool:
        """
        Check if a video record exists.

        :param video_id: The ID of the video.
        :return: True if the record exists, False otherwise.
        """

        return await self.get(video_id) is not None


class InMemoryVideoStore(VideoStore):
    """
    Represents an in-memory storage of video records.
    """

    def __init__(self, *, cache_size: int = 5000) -> None:
        """
        Create a new InMemoryVideoStore instance.

        :param cache_size: The maximum number of records. If the store is full, the oldest record will be removed.
        """

        self._logger = logging.getLogger(self.__class__.__name__)
        self._records: OrderedDict[str, dict] = OrderedDict()
        self._cache_size = cache_size
        self._lock = Lock()

    @property
    def cache_size(self) -> int:
        """
        Get the maximum number of records.

        :return: The maximum number of records.
        """

        with self._lock:
            return self._cache_size

    async def add(self, record: dict) -> bool:
        with self._lock:
            video_id = record["id"]
            if video_id in self._records:
                return False

            if len(self._records) >= self._cache_size:
                self._records.popitem(last=False)

            self._logger.debug("Adding video (%s) to the store", video_id)
            self._records[video_id] = record
            return True

    async def get(self, video_id: str) -> dict | None:
        with self._lock:
            return self._records.get(video_id)


class FileVideoStore(VideoStore):
    """
    Represents a file-based storage of video records, one JSON file per video.
    """

    def __init__(self, *, dir_path: Path) -> None:
        """
        Create a new FileVideoStore instance.

        :param dir_path: The path to the directory to store the record files
        """

        self._logger = logging.getLogger(self.__class__.__name__)
        self._dir_path = dir_path
        self._lock = asyncio.Lock()

    def _get_path(self, video_id: str) -> Path:
        """
        Get the path to the record file of a video.

        :param video_id: The ID of the video.
        """

        return self._dir_path / f"{video_id}.json"

    async def add(self, record: dict) -> bool:
        await os.makedirs(self._dir_path, exist_ok=True)

        path = self._get_path(record["id"])

        async with self._lock:
            if await ospath.exists(path):
                return False

            async with aiofiles.open(path, "w", encoding="utf-8") as file:
                self._logger.debug("Adding video (%s) to the store at %s", record["id"], path)
                await file.write(json.dumps(record, default=str))

            return True

    async def get(self, video_id: str) -> dict | None:
        path = self._get_path(video_id)

        async with self._lock:
            if not await ospath.exists(path):
                return None

            async with aiofiles.open(path, "r", encoding="utf-8") as file:
                return json.loads(await file.read())
