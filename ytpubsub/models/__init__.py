"""Contains the dataclasses used to configure the subscriber."""

__all__ = ["DEFAULT_HUB", "DEFAULT_MAX_CONTENT_SIZE", "ServiceSettings", "SubscriberConfig"]

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Self

from dotenv import load_dotenv

DEFAULT_HUB = "https://pubsubhubbub.appspot.com/"
DEFAULT_MAX_CONTENT_SIZE = 3 * 1024 * 1024


@dataclass
class SubscriberConfig:
    """Represents the configuration of the PubSubHubbub subscriber."""

    callback_url: str | None = None
    """The base URL the hub calls back. Topic and hub are appended as query
    parameters. If None, an ngrok tunnel is opened when the server starts"""

    hub: str = DEFAULT_HUB
    """The hub every subscription request is sent to"""

    secret: str | None = None
    """The master secret. Only a per-topic value derived from it is sent to
    the hub"""

    lease_seconds: int = 0
    """The requested lease. 0 lets the hub choose"""

    max_content_size: int = DEFAULT_MAX_CONTENT_SIZE
    """The maximum size in bytes of a feed delivery"""

    headers: dict[str, str] = field(default_factory=dict)
    """Extra headers sent with every request to the hub"""


@dataclass
class ServiceSettings:
    """Represents the settings of the YouTube feed service process."""

    host: str | None
    """The public host name of the callback URL, or None to use ngrok"""

    secret: str | None
    """The master secret, also the password of the status endpoints"""

    youtube_key: str | None
    """The YouTube Data API key used for metadata lookups"""

    channel_ids: list[str]
    """The YouTube channel IDs to subscribe to"""

    data_dir: Path | None = None
    """The directory of the video store, or None to keep videos in memory"""

    port: int = 1337
    """The port the server listens on"""

    path: str = "/hubbub"
    """The path of the callback endpoint"""

    log_level: int = logging.INFO
    """The log level of the application"""

    ngrok_token: str | None = None
    """The ngrok auth token used when there is no host"""

    @property
    def callback_url(self) -> str | None:
        """Get the callback URL built from the host and the path.

        :return: The callback URL, or None if no host is configured.
        """
        if not self.host:
            return None

        return f"https://{self.host}{self.path}"

    @classmethod
    def from_env(cls, *, dotenv_path: str | Path | None = None) -> Self:
        """Create the settings from environment variables, loading a ``.env``
        file first if there is one.

        :param dotenv_path: The path to the ``.env`` file. If not provided, the
            file is searched from the current directory.
        :return: The settings.
        :raises ValueError: If PORT or LOG_LEVEL has an invalid value.
        """
        load_dotenv(dotenv_path)

        channel_ids = [
            channel_id.strip()
            for channel_id in os.getenv("CHANNEL_IDS", "").split(",")
            if channel_id.strip()
        ]

        log_level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(log_level, int):
            raise ValueError(f"Invalid log level: {os.getenv('LOG_LEVEL')}")

        data_dir = os.getenv("DATA_DIR")

        return cls(
            host=os.getenv("HOST") or None,
            secret=os.getenv("SECRET") or None,
            youtube_key=os.getenv("YOUTUBE_KEY") or None,
            channel_ids=channel_ids,
            data_dir=Path(data_dir) if data_dir else None,
            port=int(os.getenv("PORT", "1337")),
            log_level=log_level,
            ngrok_token=os.getenv("NGROK_TOKEN") or None,
        )
