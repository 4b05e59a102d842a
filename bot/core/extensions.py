from __future__ import annotations

import logging
from collections.abc import Iterable

from discord.ext import commands

LOGGER = logging.getLogger(__name__)


async def load_extensions(bot: commands.Bot, names: Iterable[str]) -> list[str]:
    """Load each cog module, skipping ones that fail so the rest still start."""
    loaded: list[str] = []
    requested = list(dict.fromkeys(names))
    for name in requested:
        if name in bot.extensions:
            LOGGER.debug("Extension %s is already loaded", name)
            continue
        try:
            await bot.load_extension(name)
        except commands.ExtensionError as exc:
            LOGGER.error("Could not load extension %s: %s", name, exc, exc_info=exc)
            continue
        loaded.append(name)
    LOGGER.info("Loaded %s of %s extensions: %s", len(loaded), len(requested), ", ".join(loaded) or "none")
    return loaded
