"""Script for running the YouTube feed service."""

import asyncio
import logging

from pyngrok import ngrok

from ytpubsub.models import ServiceSettings
from ytpubsub.youtube import YouTubeFeedService


def main() -> None:
    """Run the YouTube feed service configured by the environment."""
    settings = ServiceSettings.from_env()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger(__name__)

    if settings.callback_url is None:
        logger.warning("HOST is not set, so an ngrok tunnel will be used")
        if settings.ngrok_token:
            ngrok.set_auth_token(settings.ngrok_token)

    service = YouTubeFeedService.from_settings(settings)
    logger.info(
        "Server listening on port %s for %d channel(s)",
        settings.port,
        len(settings.channel_ids),
    )

    try:
        asyncio.run(service.run(port=settings.port))
    finally:
        if settings.callback_url is None:
            ngrok.kill()


if __name__ == "__main__":  # pragma: no cover
    main()
