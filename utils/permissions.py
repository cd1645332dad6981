from __future__ import annotations

import logging

import discord

from config.settings import Settings

STAFF_ONLY_COGS = {"OnboardingCog", "RolesCog", "MessagesCog", "StarboardCog"}
NO_PERMISSION_MESSAGE = "You do not have permission to use this command. Staff role required."


def is_staff_user(user: discord.abc.User, settings: Settings | None) -> bool:
    """
    Staff means holding the configured staff role. Without a configured staff role the
    Manage Server permission stands in for it.
    """
    if settings is None:
        return False
    if settings.staff_role_id is None:
        perms = getattr(user, "guild_permissions", None)
        return bool(perms and getattr(perms, "manage_guild", False))
    user_roles = {r.id for r in getattr(user, "roles", []) if hasattr(r, "id")}
    return settings.staff_role_id in user_roles


def command_requires_staff(command: discord.app_commands.Command | None) -> bool:
    if command is None:
        return False
    binding = getattr(command, "binding", None)
    return binding is not None and type(binding).__name__ in STAFF_ONLY_COGS


async def enforce_command_permissions(interaction: discord.Interaction) -> bool:
    """
    Global guard attached to the command tree.
    """
    if not command_requires_staff(interaction.command):
        return True
    settings = getattr(interaction.client, "settings", None)
    if is_staff_user(interaction.user, settings):
        return True
    logging.info(
        "Denied staff command command=%s user=%s",
        getattr(interaction.command, "qualified_name", None),
        getattr(interaction.user, "id", None),
    )
    try:
        await interaction.response.send_message(NO_PERMISSION_MESSAGE, ephemeral=True)
    except discord.DiscordException:
        logging.debug("Could not send permission denial for interaction %s.", interaction.id)
    return False
