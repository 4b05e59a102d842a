from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from core.config import TicketsConfig
from core.errors import PanelNotFoundError, PermissionDeniedError, ValidationError
from database.models import MenuOption, TicketPanel
from services.panel_publisher import PanelPublisher
from services.ticket_lifecycle import TicketLifecycle
from views.ticket_panel import TicketPanelSelect, TicketPanelView


def _publisher(panel: TicketPanel | None, gateway: AsyncMock, lifecycle: TicketLifecycle) -> PanelPublisher:
    panels = MagicMock()
    panels.load_panel = AsyncMock(return_value=panel)
    panels.record_published_message = AsyncMock(
        side_effect=lambda stored, message_id: TicketPanel.from_dict({**stored.to_dict(), "message_id": message_id})
    )
    return PanelPublisher(TicketsConfig(), panels, gateway, lifecycle)


def test_select_options_fill_missing_labels(panel: TicketPanel) -> None:
    panel.menu_options = [MenuOption(label="", value="")] + [
        MenuOption(label=f"L{index}", value=f"v{index}") for index in range(30)
    ]

    options = PanelPublisher.build_select_options(panel)

    assert len(options) == 25
    assert (options[0].label, options[0].value) == ("Option 1", "option_1")
    assert options[1].value == "v0"


@pytest.mark.asyncio
async def test_publish_sends_panel_and_records_message(
    panel: TicketPanel, gateway: AsyncMock, lifecycle: TicketLifecycle
) -> None:
    panel.panel_content = "Need help?"
    panel.embed_image_url = "https://example.com/banner.png"
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = panel.channel_id
    gateway.fetch_text_channel.return_value = channel
    gateway.send_message.return_value = MagicMock(id=8080)
    publisher = _publisher(panel, gateway, lifecycle)

    published = await publisher.publish(panel.guild_id)

    gateway.ensure_manage_channels.assert_awaited_once_with(channel)
    sent_channel, content = gateway.send_message.await_args.args
    assert sent_channel is channel
    assert content == "Need help?"
    embed = gateway.send_message.await_args.kwargs["embed"]
    assert embed.title == panel.embed_title
    assert embed.color.value == panel.embed_color
    assert embed.image.url == panel.embed_image_url

    view = gateway.send_message.await_args.kwargs["view"]
    assert isinstance(view, TicketPanelView)
    select = view.children[0]
    assert isinstance(select, TicketPanelSelect)
    assert select.custom_id == f"ticket-panel:{panel.id}"
    assert select.placeholder == "Choose a ticket type"
    assert (select.min_values, select.max_values) == (1, 1)
    assert [option.value for option in select.options] == ["billing", "tech"]
    assert published.message_id == 8080


@pytest.mark.asyncio
async def test_publish_without_options_sends_nothing(
    panel: TicketPanel, gateway: AsyncMock, lifecycle: TicketLifecycle
) -> None:
    panel.menu_options = []
    gateway.fetch_text_channel.return_value = MagicMock(spec=discord.TextChannel)

    with pytest.raises(ValidationError):
        await _publisher(panel, gateway, lifecycle).publish(panel.guild_id)
    gateway.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_publish_preconditions(panel: TicketPanel, gateway: AsyncMock, lifecycle: TicketLifecycle) -> None:
    with pytest.raises(PanelNotFoundError):
        await _publisher(None, gateway, lifecycle).publish(panel.guild_id)

    gateway.fetch_text_channel.return_value = None
    with pytest.raises(ValidationError):
        await _publisher(panel, gateway, lifecycle).publish(panel.guild_id)

    gateway.fetch_text_channel.return_value = MagicMock(spec=discord.TextChannel)
    gateway.ensure_manage_channels.side_effect = PermissionDeniedError("needs Manage Channels")
    with pytest.raises(PermissionDeniedError):
        await _publisher(panel, gateway, lifecycle).publish(panel.guild_id)
    gateway.send_message.assert_not_awaited()
