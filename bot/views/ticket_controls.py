from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import discord

from core.errors import respond_interaction_error
from services.ticket_context import iter_components
from utils.constants import (
    CLAIM_CUSTOM_ID,
    CLAIMED_LABEL,
    CLOSE_CUSTOM_ID,
    COME_CUSTOM_ID,
    TicketAction,
)

if TYPE_CHECKING:
    from services.ticket_lifecycle import TicketLifecycle


class TicketControlsView(discord.ui.View):
    """Close/Come/Claim buttons posted in every ticket channel."""

    def __init__(self, lifecycle: TicketLifecycle) -> None:
        super().__init__(timeout=None)
        self.lifecycle = lifecycle

    def mark_claimed(self, rows: Iterable[Any]) -> TicketControlsView:
        disabled: dict[str, bool] = {}
        for component in iter_components(rows):
            custom_id = getattr(component, "custom_id", None)
            if custom_id:
                disabled[custom_id] = bool(getattr(component, "disabled", False))

        for item in self.children:
            if not isinstance(item, discord.ui.Button):
                continue
            if item.custom_id == CLAIM_CUSTOM_ID:
                item.disabled = True
                item.label = CLAIMED_LABEL
            elif item.custom_id in disabled:
                item.disabled = disabled[item.custom_id]
        return self

    @discord.ui.button(
        label="Close",
        style=discord.ButtonStyle.danger,
        emoji="🗑️",
        custom_id=CLOSE_CUSTOM_ID,
    )
    async def close_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        await self.lifecycle.handle_button(interaction, TicketAction.CLOSE)

    @discord.ui.button(
        label="Come",
        style=discord.ButtonStyle.primary,
        emoji="📣",
        custom_id=COME_CUSTOM_ID,
    )
    async def come_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        await self.lifecycle.handle_button(interaction, TicketAction.COME)

    @discord.ui.button(
        label="Claim",
        style=discord.ButtonStyle.success,
        emoji="📝",
        custom_id=CLAIM_CUSTOM_ID,
    )
    async def claim_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        await self.lifecycle.handle_button(interaction, TicketAction.CLAIM)

    async def on_error(
        self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item[Any]
    ) -> None:
        await respond_interaction_error(interaction, error)
