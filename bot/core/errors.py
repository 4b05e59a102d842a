from __future__ import annotations

import logging
from dataclasses import dataclass

import discord
from discord import app_commands
from discord.ext import commands

LOGGER = logging.getLogger(__name__)


class BotError(RuntimeError):
    user_message: str = "An unexpected error occurred."


@dataclass(slots=True)
class ValidationError(BotError):
    user_message: str = "The provided input is not valid."


@dataclass(slots=True)
class PermissionDeniedError(BotError):
    user_message: str = "You do not have permission to run this action."


@dataclass(slots=True)
class NotFoundError(BotError):
    user_message: str = "The requested resource could not be found."


@dataclass(slots=True)
class PanelNotFoundError(NotFoundError):
    user_message: str = "No ticket panel is configured for this server."


@dataclass(slots=True)
class NotATicketChannelError(NotFoundError):
    user_message: str = "This channel is not a ticket channel."


@dataclass(slots=True)
class TransientPlatformError(BotError):
    user_message: str = "Discord rejected the request. Please try again shortly."


INTERNAL_ERROR_MESSAGE = "An internal error occurred."


# First match wins, so subclasses must come before their bases.
COMMAND_ERROR_MESSAGES: tuple[tuple[type[Exception], str], ...] = (
    (commands.NoPrivateMessage, "This command can only be used inside a server."),
    (commands.MissingPermissions, "You are missing required Discord permissions."),
    (app_commands.MissingPermissions, "You are missing required Discord permissions."),
    (commands.CheckFailure, "You are not authorized for this command."),
    (app_commands.CheckFailure, "You are not authorized for this command."),
    (commands.UserInputError, "Command argument was invalid."),
    (app_commands.TransformerError, "Command argument was invalid."),
)


def _unwrap(error: Exception) -> Exception:
    while getattr(error, "original", None) is not None:
        error = error.original  # type: ignore[attr-defined]
    return error


def describe_command_error(error: Exception) -> tuple[str, bool]:
    """Return the message for the invoker and whether the failure was unexpected."""
    cause = _unwrap(error)
    if isinstance(cause, BotError):
        return cause.user_message, False
    for error_type, message in COMMAND_ERROR_MESSAGES:
        if isinstance(cause, error_type):
            return message, False
    return INTERNAL_ERROR_MESSAGE, True


def _error_embed(message: str) -> discord.Embed:
    return discord.Embed(title="Error", description=message, color=discord.Color.red())


async def respond_interaction_error(interaction: discord.Interaction, error: Exception) -> None:
    """Report a failed component interaction to the actor at most once.

    Domain errors surface their ``user_message``; anything else is logged with
    its traceback and answered with a generic message. Nothing is sent when the
    interaction was already acknowledged, so a handler that replied before
    failing never triggers a second response.
    """
    message, unexpected = describe_command_error(error)
    context = (getattr(interaction.guild, "id", None), getattr(interaction.user, "id", None))
    if unexpected:
        LOGGER.error("Interaction failed. guild=%s user=%s", *context, exc_info=error)
    else:
        LOGGER.warning("Interaction rejected. guild=%s user=%s error=%s", *context, message)
    if interaction.response.is_done():
        return
    await interaction.response.send_message(content=message, ephemeral=True)


async def handle_prefix_command_error(ctx: commands.Context[commands.Bot], error: commands.CommandError) -> None:
    if isinstance(error, commands.CommandNotFound):
        return
    message, unexpected = describe_command_error(error)
    command = getattr(ctx.command, "qualified_name", None)
    if unexpected:
        LOGGER.error(
            "Command %s crashed. guild=%s user=%s",
            command,
            getattr(ctx.guild, "id", None),
            ctx.author.id,
            exc_info=error,
        )
    else:
        LOGGER.info("Command %s refused: %s", command, message)
    await ctx.reply(embed=_error_embed(message), mention_author=False)


async def handle_app_command_error(
    interaction: discord.Interaction[commands.Bot], error: app_commands.AppCommandError
) -> None:
    message, unexpected = describe_command_error(error)
    command = getattr(interaction.command, "qualified_name", None)
    if unexpected:
        LOGGER.error(
            "Slash command %s crashed. guild=%s user=%s",
            command,
            getattr(interaction.guild, "id", None),
            interaction.user.id,
            exc_info=error,
        )
    else:
        LOGGER.info("Slash command %s refused: %s", command, message)

    embed = _error_embed(message)
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=True)
