"""The following example demonstrates how to use the AsyncPubSubHubbub to receive
the updates of a feed.
"""

import asyncio

from pyngrok import ngrok

from ytpubsub import AsyncPubSubHubbub, FeedEvent


async def main() -> None:
    """Run the application."""
    ngrok.set_auth_token("Your ngrok token here")

    pubsub = AsyncPubSubHubbub(secret="Your secret here")

    @pubsub.on_feed()
    async def listener(event: FeedEvent) -> None:
        """It is called when the hub delivers an update of the feed."""
        print(f"Update of {event.topic}: {len(event.raw_body)} bytes")

    # Feed of CBC News
    await pubsub.subscribe(
        "https://www.youtube.com/xml/feeds/videos.xml?channel_id=UCuFFtHWoLl5fauMMD5Ww2jA"
    )
    await pubsub.run()


if __name__ == "__main__":
    asyncio.run(main())
