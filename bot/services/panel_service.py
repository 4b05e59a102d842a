from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from core.config import TicketsConfig
from core.errors import ValidationError
from database.models import MenuOption, TicketPanel
from database.repositories import PanelRepository
from services.cache import CacheBackend, cache_get_json, cache_set_json
from utils.colors import parse_hex_color

LOGGER = logging.getLogger(__name__)

OPTION_TEXT_LIMIT = 100
OPTION_DESCRIPTION_LIMIT = 100
TICKET_MESSAGE_LIMIT = 1024
SELECT_PLACEHOLDER_LIMIT = 100
PANEL_CONTENT_LIMIT = 2000


def parse_color(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return parse_hex_color(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid embed color: {value!r}. Use a 24-bit hex value such as #5865F2.") from exc


def parse_snowflake(value: Any, field_name: str) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    if not text:
        return None
    if not text.isdigit():
        raise ValidationError(f"`{field_name}` must be a Discord id, got {value!r}")
    return int(text)


def clean_text(value: Any, limit: int | None = None) -> str | None:
    """Trim ``value`` and cap it at ``limit``; empty results become ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    if limit is not None:
        text = text[:limit]
    return text or None


def normalize_menu_options(raw_options: Any) -> list[MenuOption]:
    if not isinstance(raw_options, list):
        return []
    options: list[MenuOption] = []
    for item in raw_options:
        if not isinstance(item, Mapping):
            continue
        label = clean_text(item.get("label"), OPTION_TEXT_LIMIT)
        value = clean_text(item.get("value"), OPTION_TEXT_LIMIT)
        if not label or not value:
            continue
        options.append(
            MenuOption(
                label=label,
                value=value,
                description=clean_text(item.get("description"), OPTION_DESCRIPTION_LIMIT),
            )
        )

    counts = Counter(option.value for option in options)
    duplicates = [value for value, count in counts.items() if count > 1]
    if duplicates:
        raise ValidationError(
            f"Menu option values must be unique. Duplicated values: {', '.join(duplicates)}"
        )
    return options


def normalize_panel_input(guild_id: int, raw: Mapping[str, Any], default_color: int) -> TicketPanel:
    """Validate a dashboard submission and build the panel to persist.

    The returned panel carries a fresh id; the repository keeps the existing
    one when the guild already has a panel.
    """
    embed_color = parse_color(raw.get("embed_color"), default_color)

    raw_roles = raw.get("staff_role_ids") or []
    if not isinstance(raw_roles, list):
        raise ValidationError("`staff_role_ids` must be a list of role ids.")
    staff_role_ids: list[int] = []
    for role_id in raw_roles:
        if not role_id:
            continue
        parsed = parse_snowflake(role_id, "staff_role_ids")
        if parsed is not None and parsed not in staff_role_ids:
            staff_role_ids.append(parsed)

    menu_options = normalize_menu_options(raw.get("menu_options"))

    channel_id = parse_snowflake(raw.get("channel_id"), "channel_id")
    embed_title = clean_text(raw.get("embed_title"))
    embed_description = clean_text(raw.get("embed_description"))
    missing = [
        name
        for name, value in (
            ("channel_id", channel_id),
            ("embed_title", embed_title),
            ("embed_description", embed_description),
        )
        if not value
    ]
    if missing:
        raise ValidationError(f"Missing required panel fields: {', '.join(missing)}")
    assert channel_id is not None and embed_title is not None and embed_description is not None

    return TicketPanel(
        id=uuid4().hex,
        guild_id=guild_id,
        channel_id=channel_id,
        embed_title=embed_title,
        embed_description=embed_description,
        embed_color=embed_color,
        embed_image_url=clean_text(raw.get("embed_image_url")),
        ticket_message=clean_text(raw.get("ticket_message"), TICKET_MESSAGE_LIMIT),
        select_placeholder=clean_text(raw.get("select_placeholder"), SELECT_PLACEHOLDER_LIMIT),
        panel_content=clean_text(raw.get("panel_content"), PANEL_CONTENT_LIMIT),
        claim_log_channel_id=parse_snowflake(raw.get("claim_log_channel_id"), "claim_log_channel_id"),
        close_log_channel_id=parse_snowflake(raw.get("close_log_channel_id"), "close_log_channel_id"),
        ticket_category_id=parse_snowflake(raw.get("ticket_category_id"), "ticket_category_id"),
        staff_role_ids=staff_role_ids,
        menu_options=menu_options,
    )


class PanelService:
    def __init__(
        self,
        config: TicketsConfig,
        panel_repo: PanelRepository,
        cache: CacheBackend,
        cache_ttl: int = 120,
    ) -> None:
        self.config = config
        self.panel_repo = panel_repo
        self.cache = cache
        self.cache_ttl = cache_ttl

    @staticmethod
    def _guild_key(guild_id: int) -> str:
        return f"panel:guild:{guild_id}"

    @staticmethod
    def _id_key(panel_id: str) -> str:
        return f"panel:id:{panel_id}"

    async def _invalidate(self, panel: TicketPanel) -> None:
        await self.cache.delete(self._guild_key(panel.guild_id), self._id_key(panel.id))

    async def save_panel(self, guild_id: int, raw: Mapping[str, Any]) -> TicketPanel:
        draft = normalize_panel_input(guild_id, raw, self.config.default_embed_color)
        panel = await self.panel_repo.upsert(draft)
        await self._invalidate(panel)
        LOGGER.info(
            "Saved ticket panel guild=%s options=%s roles=%s category=%s",
            guild_id,
            len(panel.menu_options),
            len(panel.staff_role_ids),
            panel.ticket_category_id or "none",
        )
        return panel

    async def load_panel(self, guild_id: int) -> TicketPanel | None:
        cached = await cache_get_json(self.cache, self._guild_key(guild_id))
        if cached is not None:
            return TicketPanel.from_dict(cached)
        panel = await self.panel_repo.get_by_guild(guild_id)
        if panel:
            await cache_set_json(self.cache, self._guild_key(guild_id), panel.to_dict(), ttl=self.cache_ttl)
        return panel

    async def get_panel(self, panel_id: str) -> TicketPanel | None:
        cached = await cache_get_json(self.cache, self._id_key(panel_id))
        if cached is not None:
            return TicketPanel.from_dict(cached)
        panel = await self.panel_repo.get_by_id(panel_id)
        if panel:
            await cache_set_json(self.cache, self._id_key(panel_id), panel.to_dict(), ttl=self.cache_ttl)
        return panel

    async def list_panels(self) -> list[TicketPanel]:
        return await self.panel_repo.list_all()

    async def record_published_message(self, panel: TicketPanel, message_id: int) -> TicketPanel:
        await self.panel_repo.update_message_id(panel.id, message_id)
        await self._invalidate(panel)
        panel.message_id = message_id
        return panel
