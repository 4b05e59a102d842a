from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from core.config import DEFAULT_EMBED_COLOR


@dataclass(slots=True)
class MenuOption:
    label: str
    value: str
    description: str | None = None


@dataclass(slots=True)
class TicketPanel:
    id: str
    guild_id: int
    channel_id: int
    embed_title: str
    embed_description: str
    embed_color: int = DEFAULT_EMBED_COLOR
    message_id: int | None = None
    embed_image_url: str | None = None
    ticket_message: str | None = None
    select_placeholder: str | None = None
    panel_content: str | None = None
    claim_log_channel_id: int | None = None
    close_log_channel_id: int | None = None
    ticket_category_id: int | None = None
    staff_role_ids: list[int] = field(default_factory=list)
    menu_options: list[MenuOption] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TicketPanel:
        payload = dict(data)
        payload["menu_options"] = [MenuOption(**option) for option in payload.get("menu_options", [])]
        payload["staff_role_ids"] = [int(role_id) for role_id in payload.get("staff_role_ids", [])]
        return cls(**payload)

    def find_option(self, value: str) -> MenuOption | None:
        return next((option for option in self.menu_options if option.value == value), None)


@dataclass(slots=True)
class StaffStat:
    guild_id: int
    user_id: int
    claimed_count: int = 0
