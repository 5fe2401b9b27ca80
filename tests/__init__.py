"""Contains fixtures and utility functions."""

import hmac
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

from ytpubsub.models.subscription import ChannelState
from ytpubsub.signature import derive_secret

CALLBACK_URL = "http://localhost:8000/hubbub"
HUB = "https://hub.example.com/"
TOPIC = "https://example.com/feed"
SECRET = "abc"  # noqa: S105

CHANNEL_ID = "UCupvZG-5ko_eiXAupbDfxWw"

# ruff: noqa: E501

FEED_XML = f"""
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" xmlns="http://www.w3.org/2005/Atom">
  <link rel="hub" href="https://pubsubhubbub.appspot.com"/>
  <link rel="self" href="https://www.youtube.com/xml/feeds/videos.xml?channel_id={CHANNEL_ID}"/>
  <title>YouTube video feed</title>
  <updated>2015-04-01T19:05:24.552394234+00:00</updated>
  <entry>
    <id>yt:video:VIDEO_ID</id>
    <yt:videoId>VIDEO_ID</yt:videoId>
    <yt:channelId>{CHANNEL_ID}</yt:channelId>
    <title>Video title</title>
    <link rel="alternate" href="http://www.youtube.com/watch?v=VIDEO_ID"/>
    <author>
     <name>Channel title</name>
     <uri>http://www.youtube.com/channel/{CHANNEL_ID}</uri>
    </author>
    <published>2015-03-06T21:40:57+00:00</published>
    <updated>2015-03-09T19:05:24.552394234+00:00</updated>
  </entry>
</feed>
"""

DELETED_XML = f"""
<feed xmlns:at="http://purl.org/atompub/tombstones/1.0" xmlns="http://www.w3.org/2005/Atom">
    <at:deleted-entry ref="yt:video:VIDEO_ID" when="2024-09-09T22:34:19.642702+00:00">
      <link href="https://www.youtube.com/watch?v=VIDEO_ID" />
      <at:by>
          <name>Channel title</name>
          <uri>https://www.youtube.com/channel/{CHANNEL_ID}</uri>
      </at:by>
    </at:deleted-entry>
</feed>
"""


def sign(body: bytes, *, secret: str = SECRET, topic: str = TOPIC, algorithm: str = "sha1") -> str:
    """Create the X-Hub-Signature header a hub would send for a body."""
    digest = hmac.new(derive_secret(secret, topic).encode(), body, algorithm).hexdigest()
    return f"{algorithm}={digest}"


def link_header(topic: str = TOPIC, hub: str = HUB) -> str:
    """Create the Link header a hub would send for a topic."""
    return f'<{hub}>; rel="hub", <{topic}>; rel="self"'


async def chunks(*parts: bytes) -> AsyncIterator[bytes]:
    """Yield the parts of a body one by one."""
    for part in parts:
        yield part


def get_channel(
    channel_id: str = CHANNEL_ID,
    *,
    lease: timedelta = timedelta(days=5),
    age: timedelta = timedelta(hours=1),
    now: datetime | None = None,
) -> ChannelState:
    """Create a subscribed channel whose subscription is the given age."""
    now = now or datetime.now(UTC)
    return ChannelState(
        id=channel_id,
        subscribed=True,
        lease=lease,
        subscribed_at=now - age,
    )

