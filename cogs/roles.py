from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from interactions.views import post_role_menu
from services.role_menu_service import (
    MENU_INTERESTS,
    MENU_KEYS,
    MENU_PM,
    MENU_PRONOUNS,
    MENU_REGIONS,
    missing_role_envs,
)
from services.role_setup_service import ensure_reaction_roles, format_role_setup
from utils.discord_wrappers import fetch_member
from utils.logging import log_command_event

LOGGER = logging.getLogger(__name__)

BUTTON_MENU_CHOICES = {
    "pronouns": (MENU_PRONOUNS,),
    "pm": (MENU_PM,),
    "interests": (MENU_INTERESTS,),
    "regions": (MENU_REGIONS,),
    "all": MENU_KEYS,
}
REACTION_MENU_CHOICES = {
    "pronouns": (MENU_PRONOUNS,),
    "pm": (MENU_PM,),
    "both": (MENU_PRONOUNS, MENU_PM),
}


class RolesCog(commands.Cog):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    def _menus_for(self, keys: tuple[str, ...]) -> tuple[list, list[str]]:
        menus = []
        problems: list[str] = []
        for key in keys:
            menu = self.bot.role_menus[key]
            if not menu.options:
                missing = ", ".join(missing_role_envs(key, self.bot.settings))
                problems.append(f"⚠️ `{key}` skipped: no roles configured ({missing}).")
                continue
            menus.append(menu)
        return menus, problems

    @app_commands.command(
        name="create-reaction-roles",
        description="Create the pronoun and PM preference roles if they are missing.",
    )
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def create_reaction_roles(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        guild = interaction.guild
        if guild is None:
            await interaction.followup.send("This command only works inside the server.", ephemeral=True)
            return
        result = await ensure_reaction_roles(guild, requested_by=str(interaction.user))
        await interaction.followup.send(format_role_setup(result), ephemeral=True)
        log_command_event(interaction, status="result", roles=len(result.env_lines))

    @app_commands.command(name="setup-button-roles", description="Post button role menus in this channel.")
    @app_commands.describe(type="Which role menu to post")
    @app_commands.choices(
        type=[
            app_commands.Choice(name="Pronouns", value="pronouns"),
            app_commands.Choice(name="PM/DM Preferences", value="pm"),
            app_commands.Choice(name="Interests", value="interests"),
            app_commands.Choice(name="Regions", value="regions"),
            app_commands.Choice(name="All", value="all"),
        ]
    )
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def setup_button_roles(
        self, interaction: discord.Interaction, type: app_commands.Choice[str]
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        channel = interaction.channel
        if not isinstance(channel, discord.abc.Messageable):
            await interaction.followup.send("Cannot post in this channel.", ephemeral=True)
            return
        menus, lines = self._menus_for(BUTTON_MENU_CHOICES[type.value])
        for menu in menus:
            message = await post_role_menu(channel, menu)
            lines.append(f"✅ `{menu.key}` posted ({message.jump_url})")
        await interaction.followup.send("\n".join(lines) or "Nothing to post.", ephemeral=True)
        log_command_event(interaction, status="result", menus=len(menus))

    @app_commands.command(
        name="setup-reaction-roles", description="Post reaction role menus in this channel."
    )
    @app_commands.describe(type="Which role menu to post")
    @app_commands.choices(
        type=[
            app_commands.Choice(name="Pronouns", value="pronouns"),
            app_commands.Choice(name="PM/DM Preferences", value="pm"),
            app_commands.Choice(name="Both (Pronouns + PM)", value="both"),
        ]
    )
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def setup_reaction_roles(
        self, interaction: discord.Interaction, type: app_commands.Choice[str]
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        channel = interaction.channel
        if not isinstance(channel, discord.abc.Messageable):
            await interaction.followup.send("Cannot post in this channel.", ephemeral=True)
            return
        menus, lines = self._menus_for(REACTION_MENU_CHOICES[type.value])
        for menu in menus:
            message = await self.bot.reaction_roles.post_menu(channel, menu)
            lines.append(f"✅ `{menu.key}` posted ({message.jump_url})")
        await interaction.followup.send("\n".join(lines) or "Nothing to post.", ephemeral=True)
        log_command_event(interaction, status="result", menus=len(menus))

    async def _handle_reaction(self, payload: discord.RawReactionActionEvent, *, added: bool) -> None:
        if payload.guild_id is None or self.bot.user is None or payload.user_id == self.bot.user.id:
            return
        if self.bot.reaction_roles.menu_for_message(payload.message_id) is None:
            return
        guild = self.bot.get_guild(payload.guild_id)
        if guild is None:
            return
        member = payload.member if added and payload.member else await fetch_member(guild, payload.user_id)
        if member is None or member.bot:
            return
        outcome = await self.bot.reaction_roles.handle_reaction(
            member, payload.message_id, str(payload.emoji), added=added
        )
        if outcome is not None and not outcome.ok:
            LOGGER.warning(
                "Reaction role update failed (user=%s role=%s change=%s).",
                member.id,
                outcome.role_id,
                outcome.change.value,
            )

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self._handle_reaction(payload, added=True)

    @commands.Cog.listener()
    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        await self._handle_reaction(payload, added=False)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(RolesCog(bot))
