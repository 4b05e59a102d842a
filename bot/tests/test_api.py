from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from core.api import create_api_app
from core.config import AppConfig, DashboardConfig, DiscordConfig
from core.errors import PermissionDeniedError, TransientPlatformError, ValidationError
from database.models import MenuOption, StaffStat, TicketPanel

API_KEY = "secret"
HEADERS = {"X-API-Key": API_KEY}


@pytest.fixture
def api_panel() -> TicketPanel:
    return TicketPanel(
        id="abc",
        guild_id=123456789012345678,
        channel_id=223456789012345678,
        embed_title="Support",
        embed_description="Open a ticket",
        embed_color=0x5865F2,
        staff_role_ids=[323456789012345678],
        menu_options=[MenuOption(label="Billing", value="billing")],
    )


@pytest.fixture
def bot(api_panel: TicketPanel) -> SimpleNamespace:
    gateway = MagicMock()
    gateway.has_guild = MagicMock(return_value=True)
    gateway.fetch_member = AsyncMock(
        side_effect=lambda guild_id, user_id: SimpleNamespace(display_name="Bob") if user_id == 11 else None
    )
    return SimpleNamespace(
        config=AppConfig(discord=DiscordConfig(token="x"), dashboard=DashboardConfig(api_key=API_KEY)),
        gateway=gateway,
        panel_service=SimpleNamespace(
            load_panel=AsyncMock(return_value=api_panel),
            save_panel=AsyncMock(return_value=api_panel),
        ),
        panel_publisher=SimpleNamespace(publish=AsyncMock(return_value=api_panel)),
        stats_service=SimpleNamespace(
            top_claimers=AsyncMock(
                return_value=[
                    StaffStat(guild_id=1, user_id=11, claimed_count=4),
                    StaffStat(guild_id=1, user_id=12, claimed_count=2),
                ]
            ),
            reset_claims=AsyncMock(),
        ),
    )


@pytest.fixture
def client(bot: SimpleNamespace) -> TestClient:
    return TestClient(create_api_app(bot))


def test_health_needs_no_key(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_api_key_is_enforced(client: TestClient) -> None:
    assert client.get("/api/guilds/1/panel").status_code == 401
    response = client.get("/api/guilds/1/panel", headers=HEADERS)
    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"


def test_panel_payload_uses_string_snowflakes(client: TestClient) -> None:
    body = client.get("/api/guilds/1/panel", headers=HEADERS).json()
    assert body["guildId"] == "123456789012345678"
    assert body["staffRoleIds"] == ["323456789012345678"]
    assert body["embedColor"] == "#5865F2"
    assert body["messageId"] is None
    assert body["menuOptions"] == [{"label": "Billing", "value": "billing", "description": None}]


def test_missing_panel_is_null(client: TestClient, bot: SimpleNamespace) -> None:
    bot.panel_service.load_panel.return_value = None
    response = client.get("/api/guilds/1/panel", headers=HEADERS)
    assert response.status_code == 200
    assert response.json() is None


@pytest.mark.parametrize("method", ["put", "post"])
def test_save_accepts_camel_case(client: TestClient, bot: SimpleNamespace, method: str) -> None:
    response = getattr(client, method)(
        "/api/guilds/42/panel",
        headers=HEADERS,
        json={
            "channelId": "321",
            "embedTitle": "Support",
            "embedDescription": "Pick one",
            "embedColor": "#ff0000",
            "staffRoleIds": ["4242"],
            "menuOptions": [{"label": "Billing", "value": "billing"}],
        },
    )
    assert response.status_code == 200
    guild_id, raw = bot.panel_service.save_panel.await_args.args
    assert guild_id == 42
    assert raw["channel_id"] == "321"
    assert raw["embed_color"] == "#ff0000"
    assert raw["menu_options"] == [{"label": "Billing", "value": "billing", "description": None}]


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (ValidationError("Menu option values must be unique."), 400),
        (PermissionDeniedError("Missing Manage Channels"), 403),
        (TransientPlatformError("Discord is down"), 502),
    ],
)
def test_errors_map_to_status_codes(client: TestClient, bot: SimpleNamespace, error: Exception, status: int) -> None:
    bot.panel_publisher.publish.side_effect = error
    response = client.post("/api/guilds/1/panel/publish", headers=HEADERS)
    assert response.status_code == status
    assert response.json() == {"message": error.user_message}


def test_top_stats_include_display_names(client: TestClient, bot: SimpleNamespace) -> None:
    response = client.get("/api/guilds/1/stats/top?limit=5", headers=HEADERS)
    assert response.json() == [
        {"userId": "11", "claimedCount": 4, "displayName": "Bob"},
        {"userId": "12", "claimedCount": 2, "displayName": "12"},
    ]
    bot.stats_service.top_claimers.assert_awaited_once_with(1, limit=5)


def test_reset_stats(client: TestClient, bot: SimpleNamespace) -> None:
    assert client.post("/api/guilds/1/stats/reset", headers=HEADERS, json={"userId": "11"}).json() == {"ok": True}
    bot.stats_service.reset_claims.assert_awaited_with(1, 11)

    assert client.post("/api/guilds/1/stats/reset", headers=HEADERS).json() == {"ok": True}
    bot.stats_service.reset_claims.assert_awaited_with(1, None)


def test_reset_stats_unknown_guild(client: TestClient, bot: SimpleNamespace) -> None:
    bot.gateway.has_guild.return_value = False
    response = client.post("/api/guilds/1/stats/reset", headers=HEADERS, json={})
    assert response.status_code == 404
    bot.stats_service.reset_claims.assert_not_awaited()

