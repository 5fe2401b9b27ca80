"""
This is an example of how to use decorators to follow the subscriptions.
"""


from ytpubsub import (
    DeniedEvent,
    EventKind,
    FeedEvent,
    PubSubHubbub,
    SubscribeEvent,
    UnsubscribeEvent,
)
from ytpubsub.youtube import get_topic, parse_feed


def main():
    """
    Main function
    """

    pubsub = PubSubHubbub(callback_url="https://example.com/hubbub", secret="Your secret here")

    @pubsub.on_subscribe()
    async def listener1(event: SubscribeEvent):
        """
        Listener called when the hub confirms a subscription
        """

        print(f"subscribed to {event.topic} for {event.lease} seconds")

    @pubsub.on_denied()
    async def listener2(event: DeniedEvent):
        """
        Listener called when the hub denies a subscription or cannot be reached
        """

        print(f"denied {event.topic}: {event.error}")

    @pubsub.on_feed()
    async def listener3(event: FeedEvent):
        """
        Listener called when the hub delivers a feed update
        """

        for video in parse_feed(event.raw_body):
            print(video)

    @pubsub.listener(EventKind.UNSUBSCRIBE)
    @pubsub.listener(EventKind.SUBSCRIBE)
    async def listener4(event: SubscribeEvent | UnsubscribeEvent):
        """
        Listener called when the hub confirms a subscription or an unsubscription
        """

        print(event)

    pubsub.subscribe(get_topic("UCupvZG-5ko_eiXAupbDfxWw"))
    pubsub.subscribe(get_topic("UChLtXXpo4Ge1ReTEboVvTDg"))
    pubsub.run()


if __name__ == "__main__":
    main()
