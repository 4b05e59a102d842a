from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

import discord

from core.config import TicketsConfig
from core.errors import BotError, NotATicketChannelError, ValidationError
from services.access_control import AccessControl
from services.gateway import Gateway, Overwrites
from services.panel_service import PanelService
from services.stats_service import StatsService
from services.ticket_context import (
    TicketChannelContext,
    TicketContextResolver,
    format_ticket_topic,
    is_claimed,
)
from utils.constants import TICKET_CHANNEL_PREFIX, TicketAction
from utils.embeds import field_embed
from utils.i18n import I18N
from views.ticket_controls import TicketControlsView

LOGGER = logging.getLogger(__name__)

_CHANNEL_NAME_INVALID = re.compile(r"[^a-z0-9_-]+")
CHANNEL_NAME_LIMIT = 100


def ticket_channel_name(username: str) -> str:
    slug = _CHANNEL_NAME_INVALID.sub("-", username.lower()).strip("-") or "user"
    return f"{TICKET_CHANNEL_PREFIX}-{slug}"[:CHANNEL_NAME_LIMIT]


@dataclass(slots=True)
class TicketLifecycleDeps:
    panels: PanelService
    resolver: TicketContextResolver
    access: AccessControl
    stats: StatsService
    gateway: Gateway
    i18n: I18N


class TicketLifecycle:
    def __init__(self, config: TicketsConfig, deps: TicketLifecycleDeps) -> None:
        self.config = config
        self.deps = deps
        self.pending_deletions: set[asyncio.Task[None]] = set()

    def _t(self, key: str, **kwargs: object) -> str:
        return self.deps.i18n.t(key, **kwargs)

    def build_overwrites(
        self, guild: discord.Guild, opener: discord.Member, staff_role_ids: list[int]
    ) -> Overwrites:
        overwrites: Overwrites = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            opener: discord.PermissionOverwrite(view_channel=True, send_messages=True),
        }
        if guild.me is not None:
            overwrites[guild.me] = discord.PermissionOverwrite(
                view_channel=True, send_messages=True, manage_channels=True
            )
        for role_id in staff_role_ids:
            role = guild.get_role(role_id)
            if role is None:
                LOGGER.warning("Staff role %s no longer exists", role_id, extra={"guild_id": guild.id})
                continue
            overwrites[role] = discord.PermissionOverwrite(view_channel=True, send_messages=True)
        return overwrites

    async def open_ticket(self, interaction: discord.Interaction, panel_id: str, value: str) -> None:
        guild = interaction.guild
        opener = interaction.user
        if guild is None or not isinstance(opener, discord.Member):
            raise ValidationError("Tickets can only be opened inside a server.")

        await interaction.response.defer(ephemeral=True, thinking=True)
        panel = await self.deps.panels.get_panel(panel_id)
        if panel is None or panel.guild_id != guild.id:
            await interaction.edit_original_response(content=self._t("panel.missing"))
            return

        option = panel.find_option(value)
        label = option.label if option else value
        try:
            channel = await self.deps.gateway.create_private_channel(
                guild,
                name=ticket_channel_name(opener.name),
                overwrites=self.build_overwrites(guild, opener, panel.staff_role_ids),
                topic=format_ticket_topic(opener.id, panel.id),
                parent_id=panel.ticket_category_id,
                reason=f"Ticket opened by {opener}",
            )
        except BotError:
            await interaction.edit_original_response(content=self._t("ticket.open_failed"))
            raise

        embed = field_embed(
            title=self._t("ticket.opened_title", label=label),
            description=panel.ticket_message or self._t("ticket.default_message"),
            color=panel.embed_color,
            fields=[
                (self._t("ticket.field_owner"), opener.mention),
                (self._t("ticket.field_option"), label),
            ],
            timestamp=False,
        )
        staff_mentions = " ".join(f"<@&{role_id}>" for role_id in panel.staff_role_ids)
        content = f"{staff_mentions} - {opener.mention}" if staff_mentions else opener.mention
        message = await self.deps.gateway.send_message(
            channel,
            content,
            embed=embed,
            view=TicketControlsView(self),
            allowed_mentions=discord.AllowedMentions(
                everyone=False,
                users=[discord.Object(id=opener.id)],
                roles=[discord.Object(id=role_id) for role_id in panel.staff_role_ids],
            ),
        )
        try:
            await self.deps.gateway.pin_message(message)
        except BotError as exc:
            LOGGER.warning(
                "Could not pin ticket message: %s",
                exc.user_message,
                extra={"guild_id": guild.id, "channel_id": channel.id},
            )

        LOGGER.info(
            "Ticket opened option=%s",
            value,
            extra={
                "guild_id": guild.id,
                "channel_id": channel.id,
                "user_id": opener.id,
                "panel_id": panel.id,
                "action": TicketAction.OPEN.value,
            },
        )
        await interaction.edit_original_response(content=self._t("ticket.opened", channel=channel.mention))

    async def handle_button(self, interaction: discord.Interaction, action: TicketAction) -> None:
        guild = interaction.guild
        channel = interaction.channel
        if guild is None or not isinstance(channel, discord.TextChannel):
            return
        try:
            context = await self.deps.resolver.resolve(channel)
        except NotATicketChannelError:
            return

        access = await self.deps.access.authorize(guild, interaction.user.id, context)
        if not access.permits(action):
            key = "ticket.denied" if not (access.is_owner or access.is_staff) else "ticket.claim_staff_only"
            await interaction.response.send_message(self._t(key), ephemeral=True)
            return

        LOGGER.info(
            "Ticket action",
            extra={
                "guild_id": guild.id,
                "channel_id": channel.id,
                "user_id": interaction.user.id,
                "panel_id": context.panel_id,
                "action": action.value,
            },
        )
        if action is TicketAction.CLOSE:
            await self._close(interaction, channel, context)
        elif action is TicketAction.COME:
            await self._come(interaction, channel, context)
        elif action is TicketAction.CLAIM:
            await self._claim(interaction, channel, context)

    async def _post_log(self, guild_id: int, channel_id: int | None, embed: discord.Embed) -> None:
        if not channel_id:
            return
        try:
            log_channel = await self.deps.gateway.fetch_text_channel(guild_id, channel_id)
            if log_channel is None:
                LOGGER.warning("Log channel %s is not a text channel", channel_id, extra={"guild_id": guild_id})
                return
            await self.deps.gateway.send_message(log_channel, embed=embed)
        except BotError as exc:
            LOGGER.warning(
                "Could not post to log channel %s: %s",
                channel_id,
                exc.user_message,
                extra={"guild_id": guild_id},
            )

    async def _close(
        self, interaction: discord.Interaction, channel: discord.TextChannel, context: TicketChannelContext
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        await self.deps.gateway.send_message(
            channel, self._t("ticket.close_announce", user=interaction.user.mention)
        )
        await interaction.edit_original_response(
            content=self._t("ticket.close_pending", seconds=f"{self.config.close_delay_seconds:g}")
        )
        embed = field_embed(
            title=self._t("log.close_title"),
            color=discord.Color.red(),
            fields=[
                (self._t("log.field_channel"), channel.mention),
                (self._t("log.field_owner"), f"<@{context.owner_id}>"),
                (self._t("log.field_closer"), interaction.user.mention),
            ],
        )
        self._schedule_deletion(channel)
        await self._post_log(channel.guild.id, context.panel.close_log_channel_id, embed)

    def _schedule_deletion(self, channel: discord.TextChannel) -> None:
        task = asyncio.create_task(self._delete_later(channel))
        self.pending_deletions.add(task)
        task.add_done_callback(self.pending_deletions.discard)

    async def _delete_later(self, channel: discord.TextChannel) -> None:
        await asyncio.sleep(self.config.close_delay_seconds)
        try:
            await self.deps.gateway.delete_channel(channel, reason="Ticket closed")
        except BotError as exc:
            LOGGER.error(
                "Could not delete ticket channel: %s",
                exc.user_message,
                extra={"guild_id": channel.guild.id, "channel_id": channel.id},
            )

    async def _come(
        self, interaction: discord.Interaction, channel: discord.TextChannel, context: TicketChannelContext
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            await self.deps.gateway.send_direct_message(
                context.owner_id,
                self._t("ticket.come_dm", channel=channel.name, url=channel.jump_url),
            )
        except BotError as exc:
            LOGGER.warning(
                "Reminder DM failed: %s",
                exc.user_message,
                extra={"channel_id": channel.id, "user_id": context.owner_id},
            )
            await interaction.edit_original_response(content=self._t("ticket.come_failed"))
            return
        await interaction.edit_original_response(content=self._t("ticket.come_sent"))

    async def _claim(
        self, interaction: discord.Interaction, channel: discord.TextChannel, context: TicketChannelContext
    ) -> None:
        if interaction.message is None:
            await interaction.response.send_message(self._t("ticket.message_unavailable"), ephemeral=True)
            return
        message = await self.deps.gateway.fetch_message(channel, interaction.message.id)
        if is_claimed(message):
            await interaction.response.send_message(self._t("ticket.already_claimed"), ephemeral=True)
            return

        await interaction.response.defer()
        view = TicketControlsView(self).mark_claimed(message.components)
        await self.deps.gateway.edit_message_components(message, view)
        await self.deps.gateway.send_message(
            channel, self._t("ticket.claim_announce", user=interaction.user.mention)
        )

        count = await self.deps.stats.increment_claim(channel.guild.id, interaction.user.id)
        embed = field_embed(
            title=self._t("log.claim_title"),
            color=discord.Color.green(),
            fields=[
                (self._t("log.field_channel"), channel.mention),
                (self._t("log.field_claimer"), interaction.user.mention),
                (self._t("log.field_owner"), f"<@{context.owner_id}>"),
                (self._t("log.field_claim_count"), str(count)),
            ],
        )
        await self._post_log(channel.guild.id, context.panel.claim_log_channel_id, embed)
