"""The following example demonstrates how to use the PubSubHubbub to receive
the updates of a feed.
"""

from pyngrok import ngrok

from ytpubsub import FeedEvent, PubSubHubbub


def main() -> None:
    """Run the application."""
    ngrok.set_auth_token("Your ngrok token here")

    pubsub = PubSubHubbub(secret="Your secret here")

    @pubsub.on_feed()
    async def listener(event: FeedEvent) -> None:
        """It is called when the hub delivers an update of the feed."""
        print(f"Update of {event.topic}: {len(event.raw_body)} bytes")

    # Feed of CBC News
    pubsub.subscribe(
        "https://www.youtube.com/xml/feeds/videos.xml?channel_id=UCuFFtHWoLl5fauMMD5Ww2jA"
    )
    pubsub.run()


if __name__ == "__main__":
    main()
