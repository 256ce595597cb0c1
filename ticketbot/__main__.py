"""
Ticket Bot entry point.

    python -m ticketbot

Runs the Discord client and, when `api_enabled` is set, the HTTP API
under uvicorn in the same event loop.
"""

import asyncio
import logging

import uvicorn

from .api.app import create_app
from .config import Settings, get_settings
from .runtime import Runtime
from .transport.gateway import DiscordTransport, TicketBotClient

logger = logging.getLogger("ticketbot")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    # discord.py is chatty at INFO
    logging.getLogger("discord").setLevel(logging.WARNING)


async def serve(settings: Settings) -> None:
    client = TicketBotClient(settings)
    runtime = Runtime(settings, DiscordTransport(client, settings))
    client.runtime = runtime

    tasks = [asyncio.create_task(client.start(settings.token), name="discord")]
    if settings.api_enabled:
        config = uvicorn.Config(
            create_app(runtime),
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower()
        )
        tasks.append(asyncio.create_task(uvicorn.Server(config).serve(), name="api"))
        logger.info("API listening on %s:%s", settings.api_host, settings.api_port)

    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            task.result()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if not client.is_closed():
            await client.close()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    if not settings.token:
        raise SystemExit("TICKETBOT_TOKEN is not set")
    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
