from __future__ import annotations

import logging

import discord

from core.config import TicketsConfig
from core.errors import PanelNotFoundError, ValidationError
from database.models import TicketPanel
from services.gateway import Gateway
from services.panel_service import PanelService
from services.ticket_lifecycle import TicketLifecycle
from utils.constants import MAX_SELECT_OPTIONS
from views.ticket_panel import TicketPanelView

LOGGER = logging.getLogger(__name__)


class PanelPublisher:
    def __init__(
        self,
        config: TicketsConfig,
        panels: PanelService,
        gateway: Gateway,
        lifecycle: TicketLifecycle,
    ) -> None:
        self.config = config
        self.panels = panels
        self.gateway = gateway
        self.lifecycle = lifecycle

    @staticmethod
    def build_panel_embed(panel: TicketPanel) -> discord.Embed:
        embed = discord.Embed(
            title=panel.embed_title,
            description=panel.embed_description,
            color=panel.embed_color,
        )
        if panel.embed_image_url:
            embed.set_image(url=panel.embed_image_url)
        return embed

    @staticmethod
    def build_select_options(panel: TicketPanel) -> list[discord.SelectOption]:
        options: list[discord.SelectOption] = []
        for index, option in enumerate(panel.menu_options[:MAX_SELECT_OPTIONS], start=1):
            options.append(
                discord.SelectOption(
                    label=option.label or f"Option {index}",
                    value=option.value or f"option_{index}",
                    description=option.description or None,
                )
            )
        return options

    def build_view(self, panel: TicketPanel) -> TicketPanelView:
        return TicketPanelView(
            self.lifecycle,
            panel.id,
            options=self.build_select_options(panel),
            placeholder=panel.select_placeholder or self.config.default_select_placeholder,
        )

    async def publish(self, guild_id: int) -> TicketPanel:
        panel = await self.panels.load_panel(guild_id)
        if panel is None:
            raise PanelNotFoundError()

        channel = await self.gateway.fetch_text_channel(guild_id, panel.channel_id)
        if channel is None:
            raise ValidationError(f"Panel channel `{panel.channel_id}` does not exist or is not a text channel.")
        await self.gateway.ensure_manage_channels(channel)

        if not panel.menu_options:
            raise ValidationError("Add at least one menu option before publishing the panel.")

        message = await self.gateway.send_message(
            channel,
            panel.panel_content,
            embed=self.build_panel_embed(panel),
            view=self.build_view(panel),
        )
        LOGGER.info(
            "Published ticket panel message=%s",
            message.id,
            extra={"guild_id": guild_id, "channel_id": channel.id, "panel_id": panel.id},
        )
        return await self.panels.record_published_message(panel, message.id)
