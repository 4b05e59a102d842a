from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
import pytest_asyncio

from core.config import TicketsConfig
from database.base import Database
from database.migrations.runner import run_migrations
from database.models import MenuOption, TicketPanel
from database.repositories import StaffStatsRepository
from services.access_control import AccessControl
from services.stats_service import StatsService
from services.ticket_context import TicketContextResolver, format_ticket_topic
from services.ticket_lifecycle import TicketLifecycle, TicketLifecycleDeps
from utils.i18n import I18N, LOCALES_DIR

from fakes import GUILD_ID, OWNER_ID, STAFF_ID, STAFF_ROLE_ID


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    db = Database(url=f"sqlite:///{tmp_path / 'tickets.db'}")
    await db.connect()
    await run_migrations(db)
    yield db
    await db.close()


@pytest.fixture
def panel() -> TicketPanel:
    return TicketPanel(
        id="a1b2c3",
        guild_id=GUILD_ID,
        channel_id=321,
        embed_title="Support",
        embed_description="Pick a topic to open a ticket.",
        ticket_message="A staff member will be with you shortly.",
        claim_log_channel_id=880,
        close_log_channel_id=881,
        ticket_category_id=None,
        staff_role_ids=[STAFF_ROLE_ID],
        menu_options=[
            MenuOption(label="Billing", value="billing"),
            MenuOption(label="Technical", value="tech", description="Bugs and crashes"),
        ],
    )


@pytest.fixture
def guild() -> MagicMock:
    guild = MagicMock(spec=discord.Guild)
    guild.id = GUILD_ID
    guild.name = "Test Guild"
    guild.default_role = MagicMock(spec=discord.Role)
    guild.me = MagicMock(spec=discord.Member)
    staff_role = MagicMock(spec=discord.Role)
    staff_role.id = STAFF_ROLE_ID
    guild.get_role = MagicMock(side_effect=lambda role_id: staff_role if role_id == STAFF_ROLE_ID else None)
    return guild



@pytest.fixture
def gateway() -> AsyncMock:
    gateway = AsyncMock()
    gateway.has_guild = MagicMock(return_value=True)

    async def membership(_guild: object, user_id: int) -> set[int]:
        return {STAFF_ROLE_ID} if user_id == STAFF_ID else set()

    gateway.fetch_role_membership = AsyncMock(side_effect=membership)
    return gateway


@pytest.fixture
def stats(database: Database) -> StatsService:
    return StatsService(StaffStatsRepository(database))


@pytest.fixture
def lifecycle(panel: TicketPanel, gateway: AsyncMock, stats: StatsService) -> TicketLifecycle:
    panels = MagicMock()
    panels.get_panel = AsyncMock(side_effect=lambda panel_id: panel if panel_id == panel.id else None)
    deps = TicketLifecycleDeps(
        panels=panels,
        resolver=TicketContextResolver(panels),
        access=AccessControl(gateway),
        stats=stats,
        gateway=gateway,
        i18n=I18N(LOCALES_DIR, "en-US"),
    )
    return TicketLifecycle(TicketsConfig(close_delay_seconds=0), deps)


@pytest.fixture
def ticket_topic(panel: TicketPanel) -> str:
    return format_ticket_topic(OWNER_ID, panel.id)
