from __future__ import annotations

import pytest

from core.config import DEFAULT_EMBED_COLOR, TicketsConfig
from core.errors import ValidationError
from database.base import Database
from database.repositories import PanelRepository
from services.cache import MemoryCache
from services.panel_service import (
    PanelService,
    normalize_menu_options,
    normalize_panel_input,
    parse_color,
)

GUILD_ID = 123


def _raw(**overrides: object) -> dict[str, object]:
    raw: dict[str, object] = {
        "channel_id": "321",
        "embed_title": "Support",
        "embed_description": "Open a ticket below.",
        "embed_color": "#ff0000",
        "staff_role_ids": ["", "4242", None, "4243"],
        "menu_options": [
            {"label": " Billing ", "value": "billing", "description": "  "},
            {"label": "No value", "value": "   "},
            {"label": "Technical", "value": "tech", "description": "x" * 150},
        ],
    }
    raw.update(overrides)
    return raw


@pytest.mark.parametrize(
    ("value", "expected"),
    [("#FF0000", 0xFF0000), ("00ff00", 0x00FF00), ("0x0000ff", 0x0000FF), (0x123456, 0x123456), (None, DEFAULT_EMBED_COLOR)],
)
def test_parse_color(value: object, expected: int) -> None:
    assert parse_color(value, DEFAULT_EMBED_COLOR) == expected


@pytest.mark.parametrize("value", ["#zzzzzz", "1000000", -1])
def test_parse_color_rejects_invalid(value: object) -> None:
    with pytest.raises(ValidationError):
        parse_color(value, DEFAULT_EMBED_COLOR)


def test_normalize_panel_input_cleans_fields() -> None:
    panel = normalize_panel_input(GUILD_ID, _raw(ticket_message="  ", panel_content="Hello"), DEFAULT_EMBED_COLOR)

    assert panel.embed_color == 0xFF0000
    assert panel.staff_role_ids == [4242, 4243]
    assert [option.value for option in panel.menu_options] == ["billing", "tech"]
    assert panel.menu_options[0].label == "Billing"
    assert panel.menu_options[0].description is None
    assert len(panel.menu_options[1].description or "") == 100
    assert panel.ticket_message is None
    assert panel.panel_content == "Hello"


def test_duplicate_option_values_are_named() -> None:
    with pytest.raises(ValidationError) as excinfo:
        normalize_menu_options(
            [
                {"label": "A", "value": "a"},
                {"label": "A again", "value": "a"},
                {"label": "B", "value": "b"},
                {"label": "B again", "value": "b"},
                {"label": "C", "value": "c"},
            ]
        )
    assert "a, b" in excinfo.value.user_message
    assert "c" not in excinfo.value.user_message.split(":")[-1]


def test_missing_required_fields_reported_together() -> None:
    with pytest.raises(ValidationError) as excinfo:
        normalize_panel_input(GUILD_ID, {"embed_title": "Only title"}, DEFAULT_EMBED_COLOR)
    assert "channel_id" in excinfo.value.user_message
    assert "embed_description" in excinfo.value.user_message


@pytest.mark.asyncio
async def test_save_panel_upserts_per_guild(database: Database) -> None:
    service = PanelService(TicketsConfig(), PanelRepository(database), MemoryCache())

    first = await service.save_panel(GUILD_ID, _raw(ticket_category_id="900", embed_image_url="https://x/y.png"))
    await service.record_published_message(first, 5555)
    second = await service.save_panel(GUILD_ID, _raw(embed_title="Updated"))

    assert second.id == first.id
    assert second.message_id == 5555
    assert second.embed_title == "Updated"
    assert second.ticket_category_id is None
    assert second.embed_image_url is None
    assert len(await service.list_panels()) == 1


@pytest.mark.asyncio
async def test_save_panel_invalidates_cached_lookups(database: Database) -> None:
    service = PanelService(TicketsConfig(), PanelRepository(database), MemoryCache())
    saved = await service.save_panel(GUILD_ID, _raw())

    cached_by_guild = await service.load_panel(GUILD_ID)
    cached_by_id = await service.get_panel(saved.id)
    assert cached_by_guild is not None and cached_by_guild.embed_title == "Support"
    assert cached_by_id is not None and cached_by_id.staff_role_ids == [4242, 4243]

    await service.save_panel(GUILD_ID, _raw(embed_title="Renamed"))

    reloaded_by_guild = await service.load_panel(GUILD_ID)
    reloaded_by_id = await service.get_panel(saved.id)
    assert reloaded_by_guild is not None and reloaded_by_guild.embed_title == "Renamed"
    assert reloaded_by_id is not None and reloaded_by_id.embed_title == "Renamed"


@pytest.mark.asyncio
async def test_failed_validation_keeps_existing_panel(database: Database) -> None:
    service = PanelService(TicketsConfig(), PanelRepository(database), MemoryCache())
    await service.save_panel(GUILD_ID, _raw())

    with pytest.raises(ValidationError):
        await service.save_panel(
            GUILD_ID,
            _raw(menu_options=[{"label": "A", "value": "dup"}, {"label": "B", "value": "dup"}]),
        )

    panel = await service.load_panel(GUILD_ID)
    assert panel is not None
    assert [option.value for option in panel.menu_options] == ["billing", "tech"]


@pytest.mark.asyncio
async def test_saved_optional_fields_survive_reload(database: Database) -> None:
    service = PanelService(TicketsConfig(), PanelRepository(database), MemoryCache())
    optional = {
        "ticket_message": "Tell us what happened.",
        "select_placeholder": "What do you need?",
        "panel_content": "@here support is open",
        "claim_log_channel_id": "880",
        "close_log_channel_id": "881",
        "ticket_category_id": "900",
        "embed_image_url": "https://example.com/banner.png",
    }

    saved = await service.save_panel(GUILD_ID, _raw(**optional))
    reloaded = await PanelService(TicketsConfig(), PanelRepository(database), MemoryCache()).load_panel(GUILD_ID)

    assert reloaded is not None
    assert reloaded == saved
    assert reloaded.ticket_message == "Tell us what happened."
    assert reloaded.select_placeholder == "What do you need?"
    assert reloaded.panel_content == "@here support is open"
    assert reloaded.claim_log_channel_id == 880
    assert reloaded.close_log_channel_id == 881
    assert reloaded.ticket_category_id == 900
    assert reloaded.embed_image_url == "https://example.com/banner.png"
    assert reloaded.embed_color == 0xFF0000
    assert reloaded.staff_role_ids == [4242, 4243]
    assert [(option.label, option.value) for option in reloaded.menu_options] == [
        ("Billing", "billing"),
        ("Technical", "tech"),
    ]
