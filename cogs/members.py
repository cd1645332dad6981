from __future__ import annotations

import logging

import discord
from discord.ext import commands

from services.notification_service import (
    OPT_IN_REPLY,
    OPT_OUT_REPLY,
    parse_dm_preference,
    welcome_embed,
)
from utils.discord_wrappers import (
    WELCOME_WEBHOOK,
    fetch_channel,
    get_identity_webhook,
    send_as_identity,
)

LOGGER = logging.getLogger(__name__)


class MembersCog(commands.Cog):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    async def _post_welcome(self, member: discord.Member) -> None:
        channel_id = self.bot.settings.channel_welcome_id
        if channel_id is None:
            return
        channel = await fetch_channel(self.bot, channel_id)
        if not isinstance(channel, discord.TextChannel):
            LOGGER.warning("Welcome channel %s is not a text channel.", channel_id)
            return
        try:
            webhook = await get_identity_webhook(channel, name=WELCOME_WEBHOOK, owner_id=self.bot.user.id)
            await send_as_identity(
                webhook,
                member.mention,
                embed=welcome_embed(self.bot.settings, member),
                allowed_mentions=discord.AllowedMentions(users=True, roles=False, everyone=False),
            )
        except discord.DiscordException:
            LOGGER.exception("Failed to send welcome message for %s.", member.id)
            return
        LOGGER.info("Sent welcome message for %s in channel %s.", member.id, channel_id)

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        if member.guild.id != self.bot.settings.guild_id or member.bot:
            return
        LOGGER.info("New member joined: %s.", member.id)
        await self._post_welcome(member)
        await self.bot.sync_service.sync_new_member(member.id)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is not None or message.author.bot:
            return
        enabled = parse_dm_preference(message.content)
        if enabled is None:
            return
        try:
            await message.reply(OPT_IN_REPLY if enabled else OPT_OUT_REPLY)
        except discord.DiscordException:
            LOGGER.warning("Could not reply to DM preference from %s.", message.author.id)
        await self.bot.backend.set_grace_period_dm_preference(message.author.id, enabled)
        LOGGER.info("User %s set grace period DMs enabled=%s.", message.author.id, enabled)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(MembersCog(bot))
