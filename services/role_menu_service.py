from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

import discord

from config import constants
from config.settings import Settings
from services.role_service import RoleChange, add_role, member_has_role, remove_role
from utils.embeds import BLURPLE, GUILD_GOLD, PM_PURPLE, make_embed

LOGGER = logging.getLogger(__name__)

MENU_PRONOUNS = "pronouns"
MENU_PM = "pm"
MENU_INTERESTS = "interests"
MENU_REGIONS = "regions"
MENU_KEYS = (MENU_PRONOUNS, MENU_PM, MENU_INTERESTS, MENU_REGIONS)


@dataclass(frozen=True)
class RoleOption:
    label: str
    role_id: int
    emoji: str
    style: discord.ButtonStyle = discord.ButtonStyle.primary
    description: str | None = None


@dataclass(frozen=True)
class RoleMenu:
    key: str
    title: str
    description: str
    color: int
    exclusive: bool
    options: tuple[RoleOption, ...] = field(default_factory=tuple)

    @property
    def role_ids(self) -> list[int]:
        return [option.role_id for option in self.options]

    def option_for_role(self, role_id: int) -> RoleOption | None:
        return next((o for o in self.options if o.role_id == role_id), None)

    def option_for_emoji(self, emoji: str) -> RoleOption | None:
        return next((o for o in self.options if o.emoji == emoji), None)


# (env name, label, emoji, style, description) per menu.
_PRONOUN_OPTIONS = (
    ("DISCORD_GENDER_SHE_HER_ROLE_ID", "She/Her", "🟥", discord.ButtonStyle.primary, None),
    ("DISCORD_GENDER_HE_HIM_ROLE_ID", "He/Him", "🟦", discord.ButtonStyle.primary, None),
    ("DISCORD_GENDER_SHE_THEM_ROLE_ID", "She/Them", "🟩", discord.ButtonStyle.primary, None),
    ("DISCORD_GENDER_HE_THEM_ROLE_ID", "He/Them", "🟪", discord.ButtonStyle.primary, None),
    ("DISCORD_GENDER_THEY_THEM_ROLE_ID", "They/Them", "🟧", discord.ButtonStyle.primary, None),
    ("DISCORD_GENDER_ASK_ROLE_ID", "Other/Neopronoun", "⬜", discord.ButtonStyle.secondary, None),
)
_PM_OPTIONS = (
    ("DISCORD_PM_OK_ROLE_ID", "OK to PM", "✅", discord.ButtonStyle.success,
     "Feel free to send me a direct message anytime!"),
    ("DISCORD_PM_ASK_ROLE_ID", "Ask to PM", "❔", discord.ButtonStyle.primary,
     "Please ask before sending me a DM."),
    ("DISCORD_PM_NO_ROLE_ID", "No PMs", "🚫", discord.ButtonStyle.danger,
     "Please don't send me direct messages."),
)
_INTEREST_OPTIONS = (
    ("DISCORD_SURVIVALIST_ROLE_ID", "Survivalist", "🏹", discord.ButtonStyle.success,
     "Pings for hunting, fishing and foraging."),
    ("DISCORD_CRAFTER_ROLE_ID", "Crafter", "🔨", discord.ButtonStyle.primary,
     "Pings for crafting and trade."),
    ("DISCORD_QUEST_SEEKER_ROLE_ID", "Quest Seeker", "📜", discord.ButtonStyle.secondary,
     "Pings when new quests are posted."),
)
_REGION_OPTIONS = (
    ("DISCORD_REGION_AFRICA_ROLE_ID", "Africa", "🌍", discord.ButtonStyle.secondary, None),
    ("DISCORD_REGION_ASIA_ROLE_ID", "Asia", "🌏", discord.ButtonStyle.secondary, None),
    ("DISCORD_REGION_EUROPE_ROLE_ID", "Europe", "🏰", discord.ButtonStyle.secondary, None),
    ("DISCORD_REGION_NORTH_AMERICA_ROLE_ID", "North America", "🌎", discord.ButtonStyle.secondary, None),
    ("DISCORD_REGION_OCEANIA_ROLE_ID", "Oceania", "🏝️", discord.ButtonStyle.secondary, None),
    ("DISCORD_REGION_SOUTH_AMERICA_ROLE_ID", "South America", "🌄", discord.ButtonStyle.secondary, None),
)


def _options(role_ids: dict[str, int], rows: Iterable[tuple]) -> tuple[RoleOption, ...]:
    out: list[RoleOption] = []
    for env_name, label, emoji, style, description in rows:
        role_id = role_ids.get(env_name)
        if role_id is None:
            LOGGER.debug("Role menu option %s skipped; %s not set.", label, env_name)
            continue
        out.append(RoleOption(label=label, role_id=role_id, emoji=emoji, style=style, description=description))
    return tuple(out)


def build_role_menus(settings: Settings) -> dict[str, RoleMenu]:
    """
    The four self-service menus, each holding only the options whose role id is configured.
    """
    ids = settings.self_role_ids
    menus = [
        RoleMenu(
            key=MENU_PRONOUNS,
            title="Player's Pronouns",
            description=(
                "At Triboar Guildhall, we value respect and inclusivity. Please select your "
                "preferred pronouns below so others know how to address you. You can select "
                "multiple options, and you can change your selection at any time."
            ),
            color=GUILD_GOLD,
            exclusive=False,
            options=_options(ids, _PRONOUN_OPTIONS),
        ),
        RoleMenu(
            key=MENU_PM,
            title="💬 PM/DM Preferences",
            description=(
                "Set your PM/DM preference.\n\n"
                "**You can only have ONE of these roles at a time.**"
            ),
            color=PM_PURPLE,
            exclusive=True,
            options=_options(ids, _PM_OPTIONS),
        ),
        RoleMenu(
            key=MENU_INTERESTS,
            title="🔔 Interests & Notifications",
            description="Pick the activities you want to be pinged about. Select as many as you like.",
            color=BLURPLE,
            exclusive=False,
            options=_options(ids, _INTEREST_OPTIONS),
        ),
        RoleMenu(
            key=MENU_REGIONS,
            title="🌐 Region",
            description=(
                "Let other adventurers know roughly where you play from.\n\n"
                "**You can only have ONE region at a time.**"
            ),
            color=GUILD_GOLD,
            exclusive=True,
            options=_options(ids, _REGION_OPTIONS),
        ),
    ]
    return {menu.key: menu for menu in menus}


def missing_role_envs(menu_key: str, settings: Settings) -> list[str]:
    envs = {
        MENU_PRONOUNS: constants.PRONOUN_ROLE_ENVS,
        MENU_PM: constants.PM_ROLE_ENVS,
        MENU_INTERESTS: constants.INTEREST_ROLE_ENVS,
        MENU_REGIONS: constants.REGION_ROLE_ENVS,
    }[menu_key]
    return [name for name in envs if name not in settings.self_role_ids]


@dataclass(frozen=True)
class SelectionOutcome:
    role_id: int
    change: RoleChange
    cleared: tuple[int, ...] = ()

    @property
    def ok(self) -> bool:
        return self.change.ok

    def message(self, menu: RoleMenu) -> str:
        if self.change is RoleChange.FORBIDDEN:
            return "I can't manage that role. Please ask a staff member to check my role position."
        if not self.ok:
            return "Failed to update your role. Please contact a staff member."
        if menu.exclusive:
            if self.change is RoleChange.ADDED:
                return "✅ Updated your preference!"
            return "✅ Removed your preference!"
        if self.change is RoleChange.ADDED:
            return "✅ Added the role!"
        return "✅ Removed the role!"


async def _clear_siblings(
    member: discord.Member, menu: RoleMenu, keep_role_id: int
) -> tuple[list[int], RoleChange | None]:
    cleared: list[int] = []
    for other in menu.role_ids:
        if other == keep_role_id or not member_has_role(member, other):
            continue
        change = await remove_role(member, other, reason=f"Role menu '{menu.key}' selection")
        if not change.ok:
            return cleared, change
        if change is RoleChange.REMOVED:
            cleared.append(other)
    return cleared, None


async def select_role(member: discord.Member, menu: RoleMenu, role_id: int) -> SelectionOutcome:
    """
    Button semantics. Non-exclusive menus toggle the chosen role. Exclusive menus drop every
    other role of the menu first, then toggle the chosen one, so clicking the held option
    clears the selection.
    """
    if menu.option_for_role(role_id) is None:
        LOGGER.warning("Role %s is not part of menu %s.", role_id, menu.key)
        return SelectionOutcome(role_id=role_id, change=RoleChange.FAILED)

    had_role = member_has_role(member, role_id)
    cleared: list[int] = []
    if menu.exclusive:
        cleared, failure = await _clear_siblings(member, menu, role_id)
        if failure is not None:
            return SelectionOutcome(role_id=role_id, change=failure, cleared=tuple(cleared))

    reason = f"Role menu '{menu.key}' selection"
    if had_role:
        change = await remove_role(member, role_id, reason=reason)
    else:
        change = await add_role(member, role_id, reason=reason)
    LOGGER.info(
        "Role menu selection (user=%s menu=%s role=%s change=%s cleared=%s).",
        member.id,
        menu.key,
        role_id,
        change.value,
        cleared,
    )
    return SelectionOutcome(role_id=role_id, change=change, cleared=tuple(cleared))


async def apply_reaction(
    member: discord.Member, menu: RoleMenu, role_id: int, added: bool
) -> SelectionOutcome:
    """
    Reaction semantics: adding a reaction grants the role (clearing siblings in exclusive
    menus), removing it revokes the role.
    """
    reason = f"Reaction role menu '{menu.key}'"
    if not added:
        change = await remove_role(member, role_id, reason=reason)
        return SelectionOutcome(role_id=role_id, change=change)

    cleared: list[int] = []
    if menu.exclusive:
        cleared, failure = await _clear_siblings(member, menu, role_id)
        if failure is not None:
            return SelectionOutcome(role_id=role_id, change=failure, cleared=tuple(cleared))
    change = await add_role(member, role_id, reason=reason)
    LOGGER.info(
        "Reaction role applied (user=%s menu=%s role=%s change=%s).",
        member.id,
        menu.key,
        role_id,
        change.value,
    )
    return SelectionOutcome(role_id=role_id, change=change, cleared=tuple(cleared))


def button_menu_embed(menu: RoleMenu) -> discord.Embed:
    description = menu.description
    described = [o for o in menu.options if o.description]
    if described:
        lines = "\n".join(f"{o.emoji} **{o.label}** - {o.description}" for o in described)
        description = f"{description}\n\n{lines}"
    return make_embed(title=menu.title, description=description, color=menu.color)


def reaction_menu_embed(menu: RoleMenu) -> discord.Embed:
    hint = (
        "React below to set your choice. Only one of these roles can be held at a time."
        if menu.exclusive
        else "React below to get the matching role. Remove your reaction to drop it."
    )
    embed = make_embed(
        title=menu.title,
        description=hint,
        color=menu.color,
        footer="Click on a reaction to add/remove the role",
    )
    for option in menu.options:
        embed.add_field(
            name=f"{option.emoji} {option.label}",
            value=option.description or "\u200b",
            inline=not menu.exclusive,
        )
    return embed
