from __future__ import annotations

from typing import TYPE_CHECKING, Any

import discord

from core.errors import respond_interaction_error
from utils.constants import PANEL_SELECT_PREFIX

if TYPE_CHECKING:
    from services.ticket_lifecycle import TicketLifecycle


def panel_select_custom_id(panel_id: str) -> str:
    return f"{PANEL_SELECT_PREFIX}{panel_id}"


class TicketPanelSelect(discord.ui.Select["TicketPanelView"]):
    def __init__(
        self,
        lifecycle: TicketLifecycle,
        panel_id: str,
        options: list[discord.SelectOption],
        placeholder: str | None = None,
    ) -> None:
        super().__init__(
            custom_id=panel_select_custom_id(panel_id),
            placeholder=placeholder,
            options=options,
            min_values=1,
            max_values=1,
        )
        self.lifecycle = lifecycle
        self.panel_id = panel_id

    async def callback(self, interaction: discord.Interaction) -> None:
        await self.lifecycle.open_ticket(interaction, self.panel_id, self.values[0])


class TicketPanelView(discord.ui.View):
    def __init__(
        self,
        lifecycle: TicketLifecycle,
        panel_id: str,
        options: list[discord.SelectOption] | None = None,
        placeholder: str | None = None,
    ) -> None:
        super().__init__(timeout=None)
        self.panel_id = panel_id
        self.add_item(TicketPanelSelect(lifecycle, panel_id, options or [], placeholder))

    async def on_error(
        self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item[Any]
    ) -> None:
        await respond_interaction_error(interaction, error)
