from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path

import uvicorn

from core.api import create_api_app
from core.bot import TicketBot
from core.config import AppConfig, load_config
from core.logging import configure_logging

LOGGER = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parent / "config" / "config.yaml"


def _build_api_server(bot: TicketBot) -> uvicorn.Server:
    dashboard = bot.config.dashboard
    server_config = uvicorn.Config(
        app=create_api_app(bot),
        host=dashboard.host,
        port=dashboard.port,
        log_level=bot.config.logging.level.lower(),
        log_config=None,
    )
    return uvicorn.Server(server_config)


async def run(config: AppConfig) -> None:
    async with TicketBot(config=config) as bot:
        server: uvicorn.Server | None = None
        server_task: asyncio.Task[None] | None = None
        if config.dashboard.enabled:
            server = _build_api_server(bot)
            server_task = asyncio.create_task(server.serve(), name="dashboard-api")
            LOGGER.info("Dashboard API listening on http://%s:%s", config.dashboard.host, config.dashboard.port)
        else:
            LOGGER.info("Dashboard API disabled")

        try:
            await bot.start(config.discord.token)
        finally:
            if server is not None and server_task is not None:
                server.should_exit = True
                with contextlib.suppress(asyncio.CancelledError):
                    await server_task


def main() -> None:
    config = load_config(CONFIG_PATH)
    configure_logging(config.logging)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run(config))


if __name__ == "__main__":
    main()
