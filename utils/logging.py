from __future__ import annotations

import logging
from typing import Any

import discord


def _interaction_context(interaction: discord.Interaction) -> dict[str, Any]:
    channel_id = getattr(interaction.channel, "id", None) if interaction.channel else None
    user_id = getattr(interaction.user, "id", None) if interaction.user else None
    command = getattr(interaction.command, "qualified_name", None)
    return {
        "channel_id": channel_id,
        "user_id": user_id,
        "command": command,
        "interaction_id": getattr(interaction, "id", None),
    }


def log_command_event(interaction: discord.Interaction, *, status: str, **fields: Any) -> None:
    """
    Emit a structured log line for a command interaction. Extra keyword fields are appended
    as key=value pairs.
    """
    ctx = _interaction_context(interaction)
    extra_text = "".join(f" {key}={value}" for key, value in sorted(fields.items()))
    logging.info(
        "command event status=%s channel=%s user=%s command=%s%s",
        status,
        ctx["channel_id"],
        ctx["user_id"],
        ctx["command"],
        extra_text,
        extra=ctx,
    )
