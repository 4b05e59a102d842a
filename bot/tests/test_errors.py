from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from discord.ext import commands

from core.errors import (
    INTERNAL_ERROR_MESSAGE,
    PanelNotFoundError,
    ValidationError,
    describe_command_error,
    respond_interaction_error,
)


def test_domain_error_inside_invoke_error_is_unwrapped() -> None:
    wrapped = commands.CommandInvokeError(PanelNotFoundError())
    message, unexpected = describe_command_error(wrapped)
    assert message == "No ticket panel is configured for this server."
    assert unexpected is False


def test_library_errors_map_to_friendly_messages() -> None:
    message, unexpected = describe_command_error(commands.NoPrivateMessage())
    assert message == "This command can only be used inside a server."
    assert unexpected is False


def test_unknown_errors_are_flagged_unexpected() -> None:
    message, unexpected = describe_command_error(commands.CommandInvokeError(KeyError("boom")))
    assert message == INTERNAL_ERROR_MESSAGE
    assert unexpected is True


@pytest.mark.asyncio
async def test_interaction_error_replies_once() -> None:
    interaction = MagicMock()
    interaction.response.is_done.return_value = False
    interaction.response.send_message = AsyncMock()

    await respond_interaction_error(interaction, ValidationError("Pick an option first."))

    interaction.response.send_message.assert_awaited_once_with(content="Pick an option first.", ephemeral=True)


@pytest.mark.asyncio
async def test_interaction_error_is_silent_after_acknowledgement() -> None:
    interaction = MagicMock()
    interaction.response.is_done.return_value = True
    interaction.response.send_message = AsyncMock()

    await respond_interaction_error(interaction, RuntimeError("late failure"))

    interaction.response.send_message.assert_not_awaited()
