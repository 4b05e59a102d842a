from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import discord
from fastapi import APIRouter, Body, Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.errors import (
    INTERNAL_ERROR_MESSAGE,
    BotError,
    NotFoundError,
    PermissionDeniedError,
    TransientPlatformError,
    ValidationError,
)
from database.models import StaffStat, TicketPanel
from services.panel_service import parse_snowflake

if TYPE_CHECKING:
    from core.bot import TicketBot

LOGGER = logging.getLogger(__name__)

ERROR_STATUS: tuple[tuple[type[BotError], int], ...] = (
    (ValidationError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (TransientPlatformError, 502),
)


def status_for(error: BotError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class MenuOptionPayload(_CamelModel):
    label: str | None = None
    value: str | None = None
    description: str | None = None


class PanelPayload(_CamelModel):
    channel_id: str | int | None = None
    embed_title: str | None = None
    embed_description: str | None = None
    embed_color: str | int | None = None
    embed_image_url: str | None = None
    ticket_message: str | None = None
    select_placeholder: str | None = None
    panel_content: str | None = None
    claim_log_channel_id: str | int | None = None
    close_log_channel_id: str | int | None = None
    ticket_category_id: str | int | None = None
    staff_role_ids: list[str | int | None] = Field(default_factory=list)
    menu_options: list[MenuOptionPayload] = Field(default_factory=list)


class ResetPayload(_CamelModel):
    user_id: str | int | None = None


def _snowflake(value: int | None) -> str | None:
    return str(value) if value is not None else None


def panel_payload(panel: TicketPanel) -> dict[str, Any]:
    """Serialize a panel for the dashboard; Discord ids are sent as strings."""
    return {
        "id": panel.id,
        "guildId": str(panel.guild_id),
        "channelId": str(panel.channel_id),
        "messageId": _snowflake(panel.message_id),
        "embedTitle": panel.embed_title,
        "embedDescription": panel.embed_description,
        "embedColor": f"#{panel.embed_color:06X}",
        "embedImageUrl": panel.embed_image_url,
        "ticketMessage": panel.ticket_message,
        "selectPlaceholder": panel.select_placeholder,
        "panelContent": panel.panel_content,
        "claimLogChannelId": _snowflake(panel.claim_log_channel_id),
        "closeLogChannelId": _snowflake(panel.close_log_channel_id),
        "ticketCategoryId": _snowflake(panel.ticket_category_id),
        "staffRoleIds": [str(role_id) for role_id in panel.staff_role_ids],
        "menuOptions": [
            {"label": option.label, "value": option.value, "description": option.description}
            for option in panel.menu_options
        ],
    }


def create_api_app(bot: TicketBot) -> FastAPI:
    app = FastAPI(title="Ticket Panel Dashboard API", version="1.0.0")
    dashboard = bot.config.dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[dashboard.origin] if dashboard.origin else ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BotError)
    async def bot_error_handler(request: Request, exc: BotError) -> JSONResponse:
        status = status_for(exc)
        LOGGER.warning("API request failed path=%s status=%s error=%s", request.url.path, status, exc.user_message)
        return JSONResponse(status_code=status, content={"message": exc.user_message})

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.error("API request crashed path=%s", request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"message": INTERNAL_ERROR_MESSAGE})

    async def require_api_key(response: Response, x_api_key: str | None = Header(default=None)) -> None:
        response.headers["Cache-Control"] = "no-store"
        if dashboard.api_key and x_api_key != dashboard.api_key:
            raise HTTPException(status_code=401, detail="Unauthorized")

    router = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @router.get("/guilds/{guild_id}/panel")
    async def get_panel(guild_id: int) -> dict[str, Any] | None:
        panel = await bot.panel_service.load_panel(guild_id)
        return panel_payload(panel) if panel else None

    @router.api_route("/guilds/{guild_id}/panel", methods=["PUT", "POST"])
    async def save_panel(guild_id: int, payload: PanelPayload) -> dict[str, Any]:
        panel = await bot.panel_service.save_panel(guild_id, payload.model_dump())
        return panel_payload(panel)

    @router.post("/guilds/{guild_id}/panel/publish")
    async def publish_panel(guild_id: int) -> dict[str, Any]:
        panel = await bot.panel_publisher.publish(guild_id)
        return panel_payload(panel)

    async def _display_name(guild_id: int, stat: StaffStat) -> str:
        member: discord.Member | None = await bot.gateway.fetch_member(guild_id, stat.user_id)
        if member is None:
            return str(stat.user_id)
        return member.display_name

    @router.get("/guilds/{guild_id}/stats/top")
    async def top_claimers(guild_id: int, limit: int = Query(default=10)) -> list[dict[str, Any]]:
        stats = await bot.stats_service.top_claimers(guild_id, limit=limit)
        return [
            {
                "userId": str(stat.user_id),
                "claimedCount": stat.claimed_count,
                "displayName": await _display_name(guild_id, stat),
            }
            for stat in stats
        ]

    @router.post("/guilds/{guild_id}/stats/reset")
    async def reset_stats(guild_id: int, payload: ResetPayload | None = Body(default=None)) -> dict[str, bool]:
        if not bot.gateway.has_guild(guild_id):
            raise NotFoundError("The bot is not a member of this server.")
        user_id = parse_snowflake(payload.user_id, "userId") if payload else None
        await bot.stats_service.reset_claims(guild_id, user_id)
        return {"ok": True}

    app.include_router(router)
    return app
