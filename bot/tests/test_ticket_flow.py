from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from core.config import TicketsConfig
from database.base import Database
from database.repositories import PanelRepository
from services.access_control import AccessControl
from services.cache import MemoryCache
from services.panel_publisher import PanelPublisher
from services.panel_service import PanelService
from services.stats_service import StatsService
from services.ticket_context import TicketContextResolver
from services.ticket_lifecycle import TicketLifecycle, TicketLifecycleDeps
from utils.constants import TicketAction
from utils.i18n import I18N, LOCALES_DIR
from views.ticket_panel import TicketPanelSelect

from fakes import GUILD_ID, OWNER_ID, STAFF_ROLE_ID, make_interaction, make_member, make_ticket_channel


@pytest.mark.asyncio
async def test_saved_panel_is_published_and_opens_a_ticket(
    database: Database, gateway: AsyncMock, guild: MagicMock, stats: StatsService
) -> None:
    config = TicketsConfig(close_delay_seconds=0)
    panels = PanelService(config, PanelRepository(database), MemoryCache())
    lifecycle = TicketLifecycle(
        config,
        TicketLifecycleDeps(
            panels=panels,
            resolver=TicketContextResolver(panels),
            access=AccessControl(gateway),
            stats=stats,
            gateway=gateway,
            i18n=I18N(LOCALES_DIR, "en-US"),
        ),
    )
    publisher = PanelPublisher(config, panels, gateway, lifecycle)

    saved = await panels.save_panel(
        GUILD_ID,
        {
            "channel_id": "321",
            "embed_title": "Support",
            "embed_description": "Pick a topic.",
            "staff_role_ids": [str(STAFF_ROLE_ID)],
            "menu_options": [{"label": "Billing", "value": "billing"}],
        },
    )

    gateway.fetch_text_channel.return_value = MagicMock(spec=discord.TextChannel)
    gateway.send_message.return_value = MagicMock(id=8080)
    published = await publisher.publish(GUILD_ID)
    assert published.message_id == 8080

    select = gateway.send_message.await_args.kwargs["view"].children[0]
    assert isinstance(select, TicketPanelSelect)
    assert select.custom_id == f"ticket-panel:{saved.id}"

    gateway.send_message.reset_mock()
    ticket_channel = make_ticket_channel(guild, topic=None)
    gateway.create_private_channel.return_value = ticket_channel
    opener = make_member(OWNER_ID, "alice")

    await lifecycle.open_ticket(make_interaction(guild, opener), select.panel_id, "billing")

    topic = gateway.create_private_channel.await_args.kwargs["topic"]
    assert topic == f"ticket:{OWNER_ID}:panel:{saved.id}"
    embed = gateway.send_message.await_args.kwargs["embed"]
    assert ("Selected option", "Billing") in [(field.name, field.value) for field in embed.fields]

    ticket_channel.topic = topic
    await lifecycle.handle_button(make_interaction(guild, opener, ticket_channel), TicketAction.CLOSE)
    await asyncio.gather(*list(lifecycle.pending_deletions))

    gateway.delete_channel.assert_awaited_once_with(ticket_channel, reason="Ticket closed")
