from __future__ import annotations

import logging
from typing import Protocol

import discord

from core.errors import PermissionDeniedError, TransientPlatformError, ValidationError

LOGGER = logging.getLogger(__name__)

Overwrites = dict[discord.Role | discord.Member, discord.PermissionOverwrite]


class Gateway(Protocol):
    """Outbound Discord operations used by the ticket engine."""

    async def create_private_channel(
        self,
        guild: discord.Guild,
        *,
        name: str,
        overwrites: Overwrites,
        topic: str,
        parent_id: int | None = None,
        reason: str | None = None,
    ) -> discord.TextChannel: ...

    async def delete_channel(self, channel: discord.abc.GuildChannel, *, reason: str | None = None) -> None: ...

    async def send_message(
        self,
        channel: discord.abc.Messageable,
        content: str | None = None,
        *,
        embed: discord.Embed | None = None,
        view: discord.ui.View | None = None,
        allowed_mentions: discord.AllowedMentions | None = None,
    ) -> discord.Message: ...

    async def edit_message_components(self, message: discord.Message, view: discord.ui.View) -> None: ...

    async def fetch_message(self, channel: discord.TextChannel, message_id: int) -> discord.Message: ...

    async def pin_message(self, message: discord.Message) -> None: ...

    async def send_direct_message(self, user_id: int, content: str) -> None: ...

    async def fetch_role_membership(self, guild: discord.Guild, user_id: int) -> set[int]: ...

    async def fetch_member(self, guild_id: int, user_id: int) -> discord.Member | None: ...

    async def fetch_text_channel(self, guild_id: int, channel_id: int) -> discord.TextChannel | None: ...

    async def ensure_manage_channels(self, channel: discord.TextChannel) -> None: ...

    def has_guild(self, guild_id: int) -> bool: ...


class DiscordGateway(Gateway):
    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def _get_guild(self, guild_id: int) -> discord.Guild | None:
        guild = self.client.get_guild(guild_id)
        if guild is not None:
            return guild
        try:
            return await self.client.fetch_guild(guild_id)
        except (discord.NotFound, discord.Forbidden):
            return None
        except discord.HTTPException as exc:
            raise TransientPlatformError(f"Guild lookup failed: {exc.text or exc.status}") from exc

    async def create_private_channel(
        self,
        guild: discord.Guild,
        *,
        name: str,
        overwrites: Overwrites,
        topic: str,
        parent_id: int | None = None,
        reason: str | None = None,
    ) -> discord.TextChannel:
        category: discord.CategoryChannel | None = None
        if parent_id:
            resolved = guild.get_channel(parent_id)
            if not isinstance(resolved, discord.CategoryChannel):
                raise ValidationError(f"Ticket category `{parent_id}` is not a channel category.")
            category = resolved
        try:
            return await guild.create_text_channel(
                name=name,
                category=category,
                overwrites=overwrites,
                topic=topic,
                reason=reason,
            )
        except discord.Forbidden as exc:
            raise PermissionDeniedError("The bot is missing the Manage Channels permission.") from exc
        except discord.HTTPException as exc:
            raise TransientPlatformError(f"Channel creation failed: {exc.text or exc.status}") from exc

    async def delete_channel(self, channel: discord.abc.GuildChannel, *, reason: str | None = None) -> None:
        try:
            await channel.delete(reason=reason)
        except discord.NotFound:
            LOGGER.info("Channel %s was already deleted", channel.id)
        except discord.Forbidden as exc:
            raise PermissionDeniedError("The bot cannot delete this channel.") from exc
        except discord.HTTPException as exc:
            raise TransientPlatformError(f"Channel deletion failed: {exc.text or exc.status}") from exc

    async def send_message(
        self,
        channel: discord.abc.Messageable,
        content: str | None = None,
        *,
        embed: discord.Embed | None = None,
        view: discord.ui.View | None = None,
        allowed_mentions: discord.AllowedMentions | None = None,
    ) -> discord.Message:
        kwargs: dict[str, object] = {}
        if embed is not None:
            kwargs["embed"] = embed
        if view is not None:
            kwargs["view"] = view
        if allowed_mentions is not None:
            kwargs["allowed_mentions"] = allowed_mentions
        try:
            return await channel.send(content=content, **kwargs)
        except discord.Forbidden as exc:
            raise PermissionDeniedError("The bot cannot send messages in that channel.") from exc
        except discord.HTTPException as exc:
            raise TransientPlatformError(f"Sending a message failed: {exc.text or exc.status}") from exc

    async def edit_message_components(self, message: discord.Message, view: discord.ui.View) -> None:
        try:
            await message.edit(view=view)
        except discord.HTTPException as exc:
            raise TransientPlatformError(f"Editing message components failed: {exc.text or exc.status}") from exc

    async def fetch_message(self, channel: discord.TextChannel, message_id: int) -> discord.Message:
        try:
            return await channel.fetch_message(message_id)
        except discord.HTTPException as exc:
            raise TransientPlatformError(f"Fetching message {message_id} failed: {exc.text or exc.status}") from exc

    async def pin_message(self, message: discord.Message) -> None:
        try:
            await message.pin(reason="Ticket opened")
        except discord.HTTPException as exc:
            raise TransientPlatformError(f"Pinning message failed: {exc.text or exc.status}") from exc

    async def send_direct_message(self, user_id: int, content: str) -> None:
        try:
            user = self.client.get_user(user_id) or await self.client.fetch_user(user_id)
            await user.send(content)
        except discord.Forbidden as exc:
            raise PermissionDeniedError("The user does not accept direct messages.") from exc
        except discord.HTTPException as exc:
            raise TransientPlatformError(f"Direct message failed: {exc.text or exc.status}") from exc

    async def fetch_role_membership(self, guild: discord.Guild, user_id: int) -> set[int]:
        member = guild.get_member(user_id)
        if member is None:
            try:
                member = await guild.fetch_member(user_id)
            except discord.NotFound:
                return set()
            except discord.HTTPException as exc:
                raise TransientPlatformError(f"Fetching member failed: {exc.text or exc.status}") from exc
        return {role.id for role in member.roles}

    async def fetch_member(self, guild_id: int, user_id: int) -> discord.Member | None:
        guild = await self._get_guild(guild_id)
        if guild is None:
            return None
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.HTTPException:
            return None

    async def fetch_text_channel(self, guild_id: int, channel_id: int) -> discord.TextChannel | None:
        guild = await self._get_guild(guild_id)
        if guild is None:
            return None
        channel = guild.get_channel(channel_id)
        if channel is None:
            try:
                channel = await guild.fetch_channel(channel_id)
            except (discord.NotFound, discord.Forbidden):
                return None
            except discord.HTTPException as exc:
                raise TransientPlatformError(f"Fetching channel failed: {exc.text or exc.status}") from exc
        return channel if isinstance(channel, discord.TextChannel) else None

    async def ensure_manage_channels(self, channel: discord.TextChannel) -> None:
        me = channel.guild.me
        if me is None:
            me = await channel.guild.fetch_member(self.client.user.id)  # type: ignore[union-attr]
        if not channel.permissions_for(me).manage_channels:
            raise PermissionDeniedError(
                f"The bot needs the Manage Channels permission in #{channel.name}."
            )

    def has_guild(self, guild_id: int) -> bool:
        return self.client.get_guild(guild_id) is not None
