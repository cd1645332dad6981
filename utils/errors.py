from __future__ import annotations

import logging
import uuid

import discord

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again or contact a staff member."
HIERARCHY_HINT = "Make sure the bot's role is above the roles it manages."


def new_error_id() -> str:
    return uuid.uuid4().hex[:8]


def log_interaction_error(
    error: Exception,
    interaction: discord.Interaction,
    *,
    source: str,
    error_id: str | None = None,
) -> None:
    command_name = getattr(interaction.command, "name", None)
    custom_id = (interaction.data or {}).get("custom_id") if isinstance(interaction.data, dict) else None
    prefix = f"[error_id={error_id}] " if error_id else ""
    channel_id = getattr(interaction.channel, "id", None) if interaction.channel else None
    user_id = getattr(interaction.user, "id", None)
    logging.error(
        "%sInteraction error source=%s channel=%s user=%s command=%s custom_id=%s",
        prefix,
        source,
        channel_id,
        user_id,
        command_name,
        custom_id,
        exc_info=error,
    )


async def send_interaction_error(
    interaction: discord.Interaction,
    message: str = GENERIC_ERROR_MESSAGE,
    error_id: str | None = None,
) -> None:
    if error_id:
        message = f"{message} (ref: {error_id})"
    try:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
    except discord.DiscordException:
        logging.warning("Could not deliver error reply for interaction %s.", interaction.id)


def describe_discord_error(error: Exception) -> str:
    """
    Short staff-facing description of a failed Discord call.
    """
    if isinstance(error, discord.Forbidden):
        return f"Missing permissions. {HIERARCHY_HINT}"
    if isinstance(error, discord.NotFound):
        return "Not found (it may have been deleted)."
    if isinstance(error, discord.HTTPException):
        return f"Discord API error ({error.status})."
    return "Unexpected error."
