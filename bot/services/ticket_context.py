from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import discord

from core.errors import NotATicketChannelError, PanelNotFoundError
from database.models import TicketPanel
from services.panel_service import PanelService
from utils.constants import CLAIM_CUSTOM_ID

# Channel topic written at creation time: ticket:<ownerId>:panel:<panelId>
TICKET_TOPIC_PATTERN = re.compile(r"ticket:(?P<owner_id>\d+):panel:(?P<panel_id>[^\s:]+)")


class TicketState(StrEnum):
    OPEN = "open"
    CLAIMED = "claimed"


@dataclass(frozen=True, slots=True)
class TicketChannelContext:
    channel_id: int
    owner_id: int
    panel: TicketPanel

    @property
    def panel_id(self) -> str:
        return self.panel.id


def format_ticket_topic(owner_id: int, panel_id: str) -> str:
    return f"ticket:{owner_id}:panel:{panel_id}"


def parse_ticket_topic(topic: str | None) -> tuple[int, str] | None:
    if not topic:
        return None
    match = TICKET_TOPIC_PATTERN.fullmatch(topic.strip())
    if not match:
        return None
    return int(match["owner_id"]), match["panel_id"]


def iter_components(rows: Iterable[Any]) -> Iterable[Any]:
    for row in rows:
        yield from getattr(row, "children", None) or getattr(row, "components", None) or []


def infer_state(rows: Iterable[Any]) -> TicketState:
    """Derive the ticket state from the control message's component rows."""
    for component in iter_components(rows):
        if getattr(component, "custom_id", None) == CLAIM_CUSTOM_ID and getattr(component, "disabled", False):
            return TicketState.CLAIMED
    return TicketState.OPEN


def is_claimed(message: discord.Message) -> bool:
    return infer_state(message.components) is TicketState.CLAIMED


class TicketContextResolver:
    def __init__(self, panels: PanelService) -> None:
        self.panels = panels

    async def resolve(self, channel: discord.abc.GuildChannel) -> TicketChannelContext:
        meta = parse_ticket_topic(getattr(channel, "topic", None))
        if meta is None:
            raise NotATicketChannelError()
        owner_id, panel_id = meta
        panel = await self.panels.get_panel(panel_id)
        if panel is None or panel.guild_id != channel.guild.id:
            raise PanelNotFoundError("The ticket panel linked to this channel no longer exists.")
        return TicketChannelContext(channel_id=channel.id, owner_id=owner_id, panel=panel)
