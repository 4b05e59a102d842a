from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

import discord

from database.models import StaffStat


def make_embed(
    title: str,
    description: str | None = None,
    color: discord.Color | int | None = None,
    footer: str | None = None,
    timestamp: bool = True,
) -> discord.Embed:
    resolved_color = color if color is not None else discord.Color.blurple()
    embed = discord.Embed(
        title=title,
        description=description,
        color=resolved_color,
        timestamp=datetime.now(UTC) if timestamp else None,
    )
    if footer:
        embed.set_footer(text=footer)
    return embed


def success_embed(message: str) -> discord.Embed:
    return make_embed(title="Success", description=message, color=discord.Color.green())


def field_embed(
    title: str,
    fields: Sequence[tuple[str, str]],
    color: discord.Color | int | None = None,
    description: str | None = None,
    timestamp: bool = True,
) -> discord.Embed:
    embed = make_embed(title=title, description=description, color=color, timestamp=timestamp)
    for name, value in fields:
        embed.add_field(name=name, value=value, inline=True)
    return embed


def leaderboard_embed(guild_name: str, stats: Sequence[StaffStat]) -> discord.Embed:
    if not stats:
        return make_embed(
            title=f"Top ticket claimers in {guild_name}",
            description="No tickets have been claimed yet.",
            color=discord.Color.gold(),
        )
    lines = [
        f"**{position}.** <@{stat.user_id}> - {stat.claimed_count}"
        for position, stat in enumerate(stats, start=1)
    ]
    return make_embed(
        title=f"Top ticket claimers in {guild_name}",
        description="\n".join(lines),
        color=discord.Color.gold(),
    )
