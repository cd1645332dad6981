from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from interactions.modals import EditMessageModal, ForumPostModal, SendMessageModal
from services.message_service import ManagedMessageError, can_manage, delete_managed_message
from utils.discord_wrappers import fetch_channel
from utils.logging import log_command_event
from utils.message_links import MessageRef, parse_channel_link, parse_message_link

INVALID_MESSAGE_REF = (
    "Invalid message URL or ID. Please provide a Discord message URL or a message ID with a channel."
)


class MessagesCog(commands.Cog):
    """Staff tools for posting and maintaining messages under the Big Al identity."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    async def _resolve_message(
        self,
        interaction: discord.Interaction,
        ref: MessageRef | None,
    ) -> tuple[discord.abc.GuildChannel | discord.Thread, discord.Message] | None:
        if ref is None:
            await interaction.followup.send(INVALID_MESSAGE_REF, ephemeral=True)
            return None
        channel = await fetch_channel(self.bot, ref.channel_id)
        if channel is None or not hasattr(channel, "fetch_message"):
            await interaction.followup.send(
                "Could not find the channel. Make sure the bot has access to it.", ephemeral=True
            )
            return None
        try:
            message = await channel.fetch_message(ref.message_id)  # type: ignore[union-attr]
        except discord.NotFound:
            await interaction.followup.send(
                "Could not find the message. Make sure the message ID/URL is correct.", ephemeral=True
            )
            return None
        return channel, message

    @app_commands.command(name="message-send", description="Send a message as Big Al via a form.")
    @app_commands.describe(channel_url="Channel or thread link/ID (defaults to this channel)")
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def message_send(self, interaction: discord.Interaction, channel_url: str | None = None) -> None:
        channel_id = parse_channel_link(channel_url) if channel_url else interaction.channel_id
        if channel_id is None:
            await interaction.response.send_message(
                "Invalid channel URL or ID. Please provide a Discord channel link or ID.", ephemeral=True
            )
            return
        await interaction.response.send_modal(SendMessageModal(channel_id=channel_id))
        log_command_event(interaction, status="modal_opened", channel=channel_id)

    @app_commands.command(name="message-edit", description="Edit a message previously sent by the bot.")
    @app_commands.describe(
        message_url="Discord message URL or message ID",
        channel="Channel of the message (required when using a bare message ID)",
    )
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def message_edit(
        self,
        interaction: discord.Interaction,
        message_url: str,
        channel: discord.abc.GuildChannel | None = None,
    ) -> None:
        ref = parse_message_link(message_url, channel.id if channel else None)
        if ref is None:
            await interaction.response.send_message(INVALID_MESSAGE_REF, ephemeral=True)
            return
        target = await fetch_channel(self.bot, ref.channel_id)
        if target is None or not hasattr(target, "fetch_message"):
            await interaction.response.send_message(
                "Could not find the channel. Make sure the bot has access to it.", ephemeral=True
            )
            return
        try:
            message = await target.fetch_message(ref.message_id)  # type: ignore[union-attr]
        except discord.NotFound:
            await interaction.response.send_message(
                "Could not find the message. Make sure the message ID/URL is correct.", ephemeral=True
            )
            return
        if not await can_manage(self.bot, target, message):
            await interaction.response.send_message(
                "Cannot edit this message - the bot is not the author. "
                "You can only edit messages sent via `/message-send`.",
                ephemeral=True,
            )
            return
        # Modals must be the first response, so every check above runs before deferring.
        await interaction.response.send_modal(
            EditMessageModal(
                channel_id=ref.channel_id, message_id=ref.message_id, current_content=message.content
            )
        )
        log_command_event(interaction, status="modal_opened", message=ref.message_id)

    @app_commands.command(name="message-delete", description="Delete a message previously sent by the bot.")
    @app_commands.describe(
        message_url="Discord message URL or message ID",
        channel="Channel of the message (required when using a bare message ID)",
    )
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def message_delete(
        self,
        interaction: discord.Interaction,
        message_url: str,
        channel: discord.abc.GuildChannel | None = None,
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        resolved = await self._resolve_message(
            interaction, parse_message_link(message_url, channel.id if channel else None)
        )
        if resolved is None:
            return
        target, message = resolved
        try:
            await delete_managed_message(self.bot, target, message)
        except ManagedMessageError as exc:
            await interaction.followup.send(str(exc), ephemeral=True)
            return
        await interaction.followup.send(f"Message deleted successfully from <#{target.id}>.", ephemeral=True)
        log_command_event(interaction, status="result", message=message.id)

    @app_commands.command(name="message-post", description="Create a forum post as Big Al via a form.")
    @app_commands.describe(forum_url="Forum channel link or ID")
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def message_post(self, interaction: discord.Interaction, forum_url: str) -> None:
        forum_id = parse_channel_link(forum_url)
        if forum_id is None:
            await interaction.response.send_message(
                "Invalid forum URL or ID. Please provide a Discord forum channel link or ID.",
                ephemeral=True,
            )
            return
        forum = await fetch_channel(self.bot, forum_id)
        if not isinstance(forum, discord.ForumChannel):
            await interaction.response.send_message(
                "That channel is not a forum channel.", ephemeral=True
            )
            return
        await interaction.response.send_modal(ForumPostModal(forum_id=forum_id))
        log_command_event(interaction, status="modal_opened", forum=forum_id)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(MessagesCog(bot))
