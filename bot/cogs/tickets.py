from __future__ import annotations

import logging

import discord
from discord.ext import commands

from core.bot import TicketBot
from core.errors import PermissionDeniedError, ValidationError
from utils.embeds import leaderboard_embed, make_embed, success_embed
from views.ticket_controls import TicketControlsView

LOGGER = logging.getLogger(__name__)


def _can_manage(member: discord.Member) -> bool:
    return member.guild_permissions.administrator or member.guild_permissions.manage_guild


class TicketsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.bot.add_view(TicketControlsView(self.bot.ticket_lifecycle))
        panels = await self.bot.panel_service.list_panels()
        for panel in panels:
            self.bot.add_view(self.bot.panel_publisher.build_view(panel))
        LOGGER.info("Registered persistent views for %s ticket panels", len(panels))

    def _assert_manager(self, ctx: commands.Context[TicketBot]) -> discord.Guild:
        if not ctx.guild or not isinstance(ctx.author, discord.Member):
            raise ValidationError("This command can only be used inside a server.")
        if not _can_manage(ctx.author):
            raise PermissionDeniedError("The Manage Server permission is required.")
        return ctx.guild

    @commands.hybrid_group(name="tickets", with_app_command=True, description="Ticket panel commands.")
    async def tickets(self, ctx: commands.Context[TicketBot]) -> None:
        if ctx.invoked_subcommand is None:
            await ctx.reply(
                embed=make_embed(
                    "Ticket Commands",
                    "`/tickets publish` to post the ticket panel\n"
                    "`/tickets leaderboard [limit]` for top claimers\n"
                    "`/tickets resetclaims [member]` to reset claim counters",
                ),
                mention_author=False,
            )

    @tickets.command(name="publish", description="Post the configured ticket panel.")
    async def tickets_publish(self, ctx: commands.Context[TicketBot]) -> None:
        guild = self._assert_manager(ctx)
        await ctx.defer(ephemeral=True)
        panel = await self.bot.panel_publisher.publish(guild.id)
        await ctx.reply(
            embed=success_embed(f"Ticket panel published in <#{panel.channel_id}>."),
            mention_author=False,
            ephemeral=True,
        )

    @tickets.command(name="leaderboard", description="Show the staff members with the most claimed tickets.")
    async def tickets_leaderboard(self, ctx: commands.Context[TicketBot], limit: int = 10) -> None:
        if not ctx.guild:
            raise ValidationError("This command can only be used inside a server.")
        stats = await self.bot.stats_service.top_claimers(ctx.guild.id, limit=limit)
        await ctx.reply(embed=leaderboard_embed(ctx.guild.name, stats), mention_author=False)

    @tickets.command(name="resetclaims", description="Reset claim counters for one member or the whole server.")
    async def tickets_resetclaims(
        self, ctx: commands.Context[TicketBot], member: discord.Member | None = None
    ) -> None:
        guild = self._assert_manager(ctx)
        await self.bot.stats_service.reset_claims(guild.id, member.id if member else None)
        target = member.mention if member else "every staff member"
        await ctx.reply(embed=success_embed(f"Claim counters reset for {target}."), mention_author=False)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(TicketsCog(bot))
