from __future__ import annotations

import enum
import logging

import discord

from utils.discord_wrappers import fetch_member

LOGGER = logging.getLogger(__name__)


class RoleChange(enum.Enum):
    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"
    FORBIDDEN = "forbidden"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self in {RoleChange.ADDED, RoleChange.REMOVED, RoleChange.UNCHANGED}


def member_has_role(member: discord.Member, role_id: int) -> bool:
    return any(role.id == role_id for role in member.roles)


async def add_role(member: discord.Member, role_id: int, *, reason: str | None = None) -> RoleChange:
    """
    Add ``role_id`` to ``member``. Already holding the role is a successful no-op.
    """
    if member_has_role(member, role_id):
        return RoleChange.UNCHANGED
    try:
        await member.add_roles(discord.Object(id=role_id), reason=reason)
    except discord.Forbidden:
        LOGGER.error(
            "Missing permissions to add role %s to %s; check role hierarchy.", role_id, member.id
        )
        return RoleChange.FORBIDDEN
    except discord.HTTPException:
        LOGGER.exception("Failed to add role %s to %s.", role_id, member.id)
        return RoleChange.FAILED
    return RoleChange.ADDED


async def remove_role(
    member: discord.Member, role_id: int, *, reason: str | None = None
) -> RoleChange:
    """
    Remove ``role_id`` from ``member``. Not holding the role is a successful no-op.
    """
    if not member_has_role(member, role_id):
        return RoleChange.UNCHANGED
    try:
        await member.remove_roles(discord.Object(id=role_id), reason=reason)
    except discord.Forbidden:
        LOGGER.error(
            "Missing permissions to remove role %s from %s; check role hierarchy.",
            role_id,
            member.id,
        )
        return RoleChange.FORBIDDEN
    except discord.HTTPException:
        LOGGER.exception("Failed to remove role %s from %s.", role_id, member.id)
        return RoleChange.FAILED
    return RoleChange.REMOVED


class RoleService:
    """
    Subscribed-role operations against the configured guild.
    Every method reports failure as a return value; nothing here raises for API errors.
    """

    def __init__(self, client: discord.Client, *, guild_id: int, subscribed_role_id: int) -> None:
        self.client = client
        self.guild_id = guild_id
        self.subscribed_role_id = subscribed_role_id

    async def _guild(self) -> discord.Guild | None:
        guild = self.client.get_guild(self.guild_id)
        if guild is not None:
            return guild
        try:
            return await self.client.fetch_guild(self.guild_id)
        except discord.DiscordException:
            LOGGER.exception("Failed to fetch guild %s.", self.guild_id)
            return None

    async def _member(self, discord_id: int) -> discord.Member | None:
        guild = await self._guild()
        if guild is None:
            return None
        try:
            member = await fetch_member(guild, discord_id)
        except discord.DiscordException:
            LOGGER.exception("Failed to fetch member %s.", discord_id)
            return None
        if member is None:
            LOGGER.warning("Member %s is not in guild %s.", discord_id, self.guild_id)
        return member

    async def add_subscribed_role(self, discord_id: int, reason: str = "Subscription active") -> bool:
        member = await self._member(discord_id)
        if member is None:
            return False
        change = await add_role(member, self.subscribed_role_id, reason=reason)
        if change is RoleChange.ADDED:
            LOGGER.info("Added subscribed role to %s.", discord_id)
        elif change is RoleChange.UNCHANGED:
            LOGGER.debug("Member %s already has subscribed role.", discord_id)
        return change.ok

    async def remove_subscribed_role(
        self, discord_id: int, reason: str = "Subscription ended"
    ) -> bool:
        member = await self._member(discord_id)
        if member is None:
            return False
        change = await remove_role(member, self.subscribed_role_id, reason=reason)
        if change is RoleChange.REMOVED:
            LOGGER.info("Removed subscribed role from %s (reason=%s).", discord_id, reason)
        elif change is RoleChange.UNCHANGED:
            LOGGER.debug("Member %s does not have subscribed role.", discord_id)
        return change.ok

    async def has_subscribed_role(self, discord_id: int) -> bool:
        member = await self._member(discord_id)
        return member is not None and member_has_role(member, self.subscribed_role_id)

    async def sync_user_role(self, discord_id: int, is_subscribed: bool) -> bool:
        if is_subscribed:
            return await self.add_subscribed_role(discord_id)
        return await self.remove_subscribed_role(discord_id)

    async def get_all_subscribed_members(self) -> list[int]:
        """
        Ids of every member holding the subscribed role. Needs the members intent so the
        role's member list is populated from the guild cache.
        """
        guild = await self._guild()
        if guild is None:
            return []
        role = guild.get_role(self.subscribed_role_id)
        if role is None:
            LOGGER.error("Subscribed role %s not found.", self.subscribed_role_id)
            return []
        return [member.id for member in role.members]
