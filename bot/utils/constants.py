from __future__ import annotations

from enum import StrEnum


class TicketAction(StrEnum):
    OPEN = "open"
    CLOSE = "close"
    COME = "come"
    CLAIM = "claim"

    @property
    def custom_id(self) -> str:
        return f"ticket:{self.value}"


PANEL_SELECT_PREFIX = "ticket-panel:"

CLOSE_CUSTOM_ID = TicketAction.CLOSE.custom_id
COME_CUSTOM_ID = TicketAction.COME.custom_id
CLAIM_CUSTOM_ID = TicketAction.CLAIM.custom_id

MAX_SELECT_OPTIONS = 25
CLAIMED_LABEL = "Claimed"
TICKET_CHANNEL_PREFIX = "ticket"
MAX_LEADERBOARD_SIZE = 50
