from __future__ import annotations

import logging
from pathlib import Path

import discord
from discord.ext import commands

from core.config import AppConfig, DiscordConfig
from core.errors import handle_app_command_error, handle_prefix_command_error
from core.extensions import load_extensions
from database.base import Database
from database.migrations.runner import run_migrations
from database.repositories import PanelRepository, StaffStatsRepository
from services.access_control import AccessControl
from services.cache import CacheBackend, build_cache
from services.gateway import DiscordGateway
from services.panel_publisher import PanelPublisher
from services.panel_service import PanelService
from services.stats_service import StatsService
from services.ticket_context import TicketContextResolver
from services.ticket_lifecycle import TicketLifecycle, TicketLifecycleDeps
from utils.i18n import I18N

LOGGER = logging.getLogger(__name__)

ACTIVITY_TYPES: dict[str, discord.ActivityType] = {
    "playing": discord.ActivityType.playing,
    "listening": discord.ActivityType.listening,
    "watching": discord.ActivityType.watching,
    "competing": discord.ActivityType.competing,
}


def _build_intents() -> discord.Intents:
    # Members resolve staff roles; message content is needed for prefix commands.
    intents = discord.Intents.default()
    intents.members = True
    intents.message_content = True
    return intents


def _build_activity(config: DiscordConfig) -> discord.BaseActivity:
    activity_type = ACTIVITY_TYPES.get(config.activity_type, discord.ActivityType.watching)
    if activity_type is discord.ActivityType.playing:
        return discord.Game(name=config.status_text)
    return discord.Activity(type=activity_type, name=config.status_text)


class TicketBot(commands.Bot):
    panel_service: PanelService
    stats_service: StatsService
    ticket_lifecycle: TicketLifecycle
    panel_publisher: PanelPublisher

    def __init__(self, config: AppConfig) -> None:
        super().__init__(
            command_prefix=commands.when_mentioned_or(config.discord.prefix),
            intents=_build_intents(),
            application_id=config.discord.application_id,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=True, users=True, replied_user=False),
            help_command=None,
        )
        self.config = config
        self.root_dir = Path(__file__).resolve().parent.parent
        db = config.database
        self.database = Database(
            url=db.url,
            timeout_seconds=db.timeout_seconds,
            pool_min_size=db.pool_min_size,
            pool_max_size=db.pool_max_size,
        )
        self.cache: CacheBackend | None = None
        self.i18n = I18N(self.root_dir / "config" / "locales", config.i18n.default_locale)
        self.gateway = DiscordGateway(self)

    def _build_services(self, cache: CacheBackend) -> None:
        tickets = self.config.tickets
        self.panel_service = PanelService(
            tickets, PanelRepository(self.database), cache, cache_ttl=self.config.redis.default_ttl
        )
        self.stats_service = StatsService(StaffStatsRepository(self.database), max_limit=tickets.leaderboard_max)
        self.ticket_lifecycle = TicketLifecycle(
            tickets,
            TicketLifecycleDeps(
                panels=self.panel_service,
                resolver=TicketContextResolver(self.panel_service),
                access=AccessControl(self.gateway),
                stats=self.stats_service,
                gateway=self.gateway,
                i18n=self.i18n,
            ),
        )
        self.panel_publisher = PanelPublisher(tickets, self.panel_service, self.gateway, self.ticket_lifecycle)

    async def setup_hook(self) -> None:
        await self.database.connect()
        await run_migrations(self.database, self.root_dir / "database" / "migrations")
        self.cache = await build_cache(self.config.redis)
        for locale in self.config.i18n.supported_locales:
            self.i18n.load_locale(locale)

        self._build_services(self.cache)
        await load_extensions(self, self.config.enabled_extensions)
        self.tree.on_error = handle_app_command_error  # type: ignore[assignment]

        if self.config.discord.sync_commands_on_start:
            synced = await self.tree.sync()
            LOGGER.info("Synced %s application commands", len(synced))

    async def on_ready(self) -> None:
        LOGGER.info("Logged in as %s in %s guilds", self.user, len(self.guilds))
        await self.change_presence(status=discord.Status.online, activity=_build_activity(self.config.discord))

    async def on_command_error(self, ctx: commands.Context[commands.Bot], error: commands.CommandError) -> None:
        if ctx.command and ctx.command.has_error_handler():
            return
        await handle_prefix_command_error(ctx, error)

    async def close(self) -> None:
        lifecycle = getattr(self, "ticket_lifecycle", None)
        if lifecycle is not None and lifecycle.pending_deletions:
            LOGGER.warning("Shutting down with %s ticket deletions still scheduled", len(lifecycle.pending_deletions))
        await super().close()
        await self.database.close()
        if self.cache is not None:
            await self.cache.close()
