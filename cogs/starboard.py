from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from services.starboard_report_service import (
    StarboardReportError,
    collect_author_names,
    extract_message_id,
    format_report,
)
from services.starboard_service import STAR_EMOJI, StarredMessage
from utils.discord_wrappers import fetch_channel
from utils.logging import log_command_event

LOGGER = logging.getLogger(__name__)


class StarboardCog(commands.Cog):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    async def _starred_message(self, payload: discord.RawReactionActionEvent) -> StarredMessage | None:
        channel = await fetch_channel(self.bot, payload.channel_id)
        if channel is None or not hasattr(channel, "fetch_message"):
            return None
        try:
            message = await channel.fetch_message(payload.message_id)  # type: ignore[union-attr]
        except discord.DiscordException:
            LOGGER.warning(
                "Could not fetch starred message %s in channel %s.", payload.message_id, payload.channel_id
            )
            return None
        return StarredMessage.from_message(message)

    async def _on_star(self, payload: discord.RawReactionActionEvent, *, added: bool) -> None:
        starboard = self.bot.starboard
        if not starboard.enabled or str(payload.emoji) != STAR_EMOJI or payload.guild_id is None:
            return
        message = await self._starred_message(payload)
        if message is None:
            return
        if added:
            await starboard.on_reaction_add(message, payload.user_id, str(payload.emoji))
        else:
            await starboard.on_reaction_remove(message, payload.user_id, str(payload.emoji))

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self._on_star(payload, added=True)

    @commands.Cog.listener()
    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        await self._on_star(payload, added=False)

    @app_commands.command(
        name="starboard-report",
        description="List the unique PCs starred between two starboard posts.",
    )
    @app_commands.describe(
        start="Link to the first (older) starboard message",
        end="Link to the second (newer) starboard message",
    )
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def starboard_report(self, interaction: discord.Interaction, start: str, end: str) -> None:
        await interaction.response.defer(thinking=True)
        board_id = self.bot.settings.starboard_channel_id
        if board_id is None:
            await interaction.followup.send("❌ Starboard channel is not configured.")
            return
        start_id = extract_message_id(start)
        end_id = extract_message_id(end)
        if start_id is None or end_id is None:
            await interaction.followup.send(
                "❌ Invalid message links. Please provide valid Discord message links."
            )
            return
        channel = await fetch_channel(self.bot, board_id)
        if not isinstance(channel, discord.TextChannel):
            await interaction.followup.send("❌ Could not find starboard channel.")
            return
        try:
            names = await collect_author_names(channel, start_id, end_id)
        except StarboardReportError as exc:
            await interaction.followup.send(f"❌ {exc}")
            return
        if not names:
            await interaction.followup.send("❌ No PCs found in the specified range.")
            return
        for chunk in format_report(names):
            await interaction.followup.send(chunk)
        log_command_event(interaction, status="result", start=start_id, end=end_id, names=len(names))


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(StarboardCog(bot))
