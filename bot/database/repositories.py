from __future__ import annotations

import json
from typing import Any

from database.base import Database
from database.models import MenuOption, StaffStat, TicketPanel


def _json_load(value: str | None, default: Any) -> Any:
    if value is None:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def _json_dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _optional_int(value: Any) -> int | None:
    return int(value) if value is not None else None


class PanelRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def upsert(self, panel: TicketPanel) -> TicketPanel:
        # The conflict target is guild_id alone: a resubmission keeps the
        # original id and message_id and overwrites every configurable column.
        row = await self.db.execute_returning(
            """
            INSERT INTO ticket_panels(
                id, guild_id, channel_id, embed_title, embed_description, embed_color,
                embed_image_url, ticket_message, select_placeholder, panel_content,
                claim_log_channel_id, close_log_channel_id, ticket_category_id,
                staff_role_ids_json, menu_options_json, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(guild_id) DO UPDATE SET
                channel_id = excluded.channel_id,
                embed_title = excluded.embed_title,
                embed_description = excluded.embed_description,
                embed_color = excluded.embed_color,
                embed_image_url = excluded.embed_image_url,
                ticket_message = excluded.ticket_message,
                select_placeholder = excluded.select_placeholder,
                panel_content = excluded.panel_content,
                claim_log_channel_id = excluded.claim_log_channel_id,
                close_log_channel_id = excluded.close_log_channel_id,
                ticket_category_id = excluded.ticket_category_id,
                staff_role_ids_json = excluded.staff_role_ids_json,
                menu_options_json = excluded.menu_options_json,
                updated_at = CURRENT_TIMESTAMP
            RETURNING *;
            """,
            [
                panel.id,
                panel.guild_id,
                panel.channel_id,
                panel.embed_title,
                panel.embed_description,
                panel.embed_color,
                panel.embed_image_url,
                panel.ticket_message,
                panel.select_placeholder,
                panel.panel_content,
                panel.claim_log_channel_id,
                panel.close_log_channel_id,
                panel.ticket_category_id,
                _json_dump(panel.staff_role_ids),
                _json_dump(
                    [
                        {"label": option.label, "value": option.value, "description": option.description}
                        for option in panel.menu_options
                    ]
                ),
            ],
        )
        assert row is not None
        return self._row_to_panel(row)

    async def update_message_id(self, panel_id: str, message_id: int) -> None:
        await self.db.execute(
            """
            UPDATE ticket_panels
            SET message_id = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?;
            """,
            [message_id, panel_id],
        )

    async def get_by_guild(self, guild_id: int) -> TicketPanel | None:
        row = await self.db.fetchone(
            "SELECT * FROM ticket_panels WHERE guild_id = ?;",
            [guild_id],
        )
        return self._row_to_panel(row) if row else None

    async def get_by_id(self, panel_id: str) -> TicketPanel | None:
        row = await self.db.fetchone(
            "SELECT * FROM ticket_panels WHERE id = ?;",
            [panel_id],
        )
        return self._row_to_panel(row) if row else None

    async def list_all(self) -> list[TicketPanel]:
        rows = await self.db.fetchall("SELECT * FROM ticket_panels ORDER BY created_at ASC;")
        return [self._row_to_panel(row) for row in rows]

    def _row_to_panel(self, row: dict[str, Any]) -> TicketPanel:
        return TicketPanel(
            id=row["id"],
            guild_id=int(row["guild_id"]),
            channel_id=int(row["channel_id"]),
            message_id=_optional_int(row["message_id"]),
            embed_title=row["embed_title"],
            embed_description=row["embed_description"],
            embed_color=int(row["embed_color"]),
            embed_image_url=row["embed_image_url"],
            ticket_message=row["ticket_message"],
            select_placeholder=row["select_placeholder"],
            panel_content=row["panel_content"],
            claim_log_channel_id=_optional_int(row["claim_log_channel_id"]),
            close_log_channel_id=_optional_int(row["close_log_channel_id"]),
            ticket_category_id=_optional_int(row["ticket_category_id"]),
            staff_role_ids=[int(x) for x in _json_load(row["staff_role_ids_json"], [])],
            menu_options=[
                MenuOption(
                    label=str(item["label"]),
                    value=str(item["value"]),
                    description=item.get("description"),
                )
                for item in _json_load(row["menu_options_json"], [])
            ],
        )


class StaffStatsRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def increment_claimed(self, guild_id: int, user_id: int) -> int:
        row = await self.db.execute_returning(
            """
            INSERT INTO staff_stats(guild_id, user_id, claimed_count)
            VALUES (?, ?, 1)
            ON CONFLICT(guild_id, user_id) DO UPDATE SET
                claimed_count = staff_stats.claimed_count + 1,
                updated_at = CURRENT_TIMESTAMP
            RETURNING claimed_count;
            """,
            [guild_id, user_id],
        )
        assert row is not None
        return int(row["claimed_count"])

    async def get(self, guild_id: int, user_id: int) -> StaffStat | None:
        row = await self.db.fetchone(
            "SELECT guild_id, user_id, claimed_count FROM staff_stats WHERE guild_id = ? AND user_id = ?;",
            [guild_id, user_id],
        )
        return self._row_to_stat(row) if row else None

    async def leaderboard(self, guild_id: int, limit: int = 10) -> list[StaffStat]:
        rows = await self.db.fetchall(
            """
            SELECT guild_id, user_id, claimed_count
            FROM staff_stats
            WHERE guild_id = ?
            ORDER BY claimed_count DESC, user_id ASC
            LIMIT ?;
            """,
            [guild_id, limit],
        )
        return [self._row_to_stat(row) for row in rows]

    async def reset_user(self, guild_id: int, user_id: int) -> None:
        await self.db.execute(
            """
            INSERT INTO staff_stats(guild_id, user_id, claimed_count)
            VALUES (?, ?, 0)
            ON CONFLICT(guild_id, user_id) DO UPDATE SET
                claimed_count = 0,
                updated_at = CURRENT_TIMESTAMP;
            """,
            [guild_id, user_id],
        )

    async def reset_guild(self, guild_id: int) -> int:
        return await self.db.execute(
            """
            UPDATE staff_stats
            SET claimed_count = 0, updated_at = CURRENT_TIMESTAMP
            WHERE guild_id = ?;
            """,
            [guild_id],
        )

    def _row_to_stat(self, row: dict[str, Any]) -> StaffStat:
        return StaffStat(
            guild_id=int(row["guild_id"]),
            user_id=int(row["user_id"]),
            claimed_count=int(row["claimed_count"]),
        )
