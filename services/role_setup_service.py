from __future__ import annotations

import logging
from dataclasses import dataclass

import discord

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleSpec:
    name: str
    color: int
    env_name: str


REACTION_ROLE_SPECS: tuple[RoleSpec, ...] = (
    RoleSpec("She/Her", 0xF1948A, "DISCORD_GENDER_SHE_HER_ROLE_ID"),
    RoleSpec("He/Him", 0x5DADE2, "DISCORD_GENDER_HE_HIM_ROLE_ID"),
    RoleSpec("She/Them", 0x76D7C4, "DISCORD_GENDER_SHE_THEM_ROLE_ID"),
    RoleSpec("He/Them", 0xC39BD3, "DISCORD_GENDER_HE_THEM_ROLE_ID"),
    RoleSpec("They/Them", 0xF8B229, "DISCORD_GENDER_THEY_THEM_ROLE_ID"),
    RoleSpec("Other/Neopronoun", 0x95A5A6, "DISCORD_GENDER_ASK_ROLE_ID"),
    RoleSpec("OK to PM", 0x52C41A, "DISCORD_PM_OK_ROLE_ID"),
    RoleSpec("Ask to PM", 0xFAAD14, "DISCORD_PM_ASK_ROLE_ID"),
    RoleSpec("No PMs", 0xF5222D, "DISCORD_PM_NO_ROLE_ID"),
)


@dataclass(frozen=True)
class RoleSetupResult:
    actions: list[str]
    env_lines: list[str]


def _find_role(guild: discord.Guild, name: str) -> discord.Role | None:
    wanted = name.casefold()
    for role in guild.roles:
        if not role.is_default() and role.name.casefold() == wanted:
            return role
    return None


async def ensure_reaction_roles(
    guild: discord.Guild,
    *,
    requested_by: str,
    specs: tuple[RoleSpec, ...] = REACTION_ROLE_SPECS,
) -> RoleSetupResult:
    """
    Create any missing pronoun and PM roles and report the ``ENV=ID`` lines to configure.
    """
    actions: list[str] = []
    env_lines: list[str] = []
    for spec in specs:
        role = _find_role(guild, spec.name)
        if role is not None:
            actions.append(f"✓ {spec.name} (already exists)")
            env_lines.append(f"{spec.env_name}={role.id}")
            continue
        try:
            role = await guild.create_role(
                name=spec.name,
                colour=discord.Colour(spec.color),
                mentionable=False,
                hoist=False,
                reason=f"Reaction role created by {requested_by}",
            )
        except discord.DiscordException:
            LOGGER.exception("Failed to create role %s.", spec.name)
            actions.append(f"❌ {spec.name} (failed)")
            continue
        LOGGER.info("Created reaction role %s (id=%s).", spec.name, role.id)
        actions.append(f"✅ {spec.name} (created)")
        env_lines.append(f"{spec.env_name}={role.id}")
    return RoleSetupResult(actions=actions, env_lines=env_lines)


def format_role_setup(result: RoleSetupResult) -> str:
    env_block = "\n".join(result.env_lines) or "(none)"
    return (
        "✅ **Reaction roles setup complete!**\n\n"
        f"**Roles created/verified:**\n" + "\n".join(result.actions) + "\n\n"
        f"**Add these to your environment:**\n```\n{env_block}\n```\n\n"
        "After updating the configuration, restart the bot and use `/setup-reaction-roles` "
        "or `/setup-button-roles` to post the role menus."
    )
