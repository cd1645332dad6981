from __future__ import annotations

import logging
from typing import Any

import discord

from services.message_service import (
    MAX_CONTENT_LENGTH,
    MAX_THREAD_TITLE_LENGTH,
    ManagedMessageError,
    create_forum_post,
    edit_managed_message,
    send_managed_message,
)
from utils.discord_wrappers import fetch_channel
from utils.errors import (
    describe_discord_error,
    log_interaction_error,
    new_error_id,
    send_interaction_error,
)
from utils.message_links import message_url


class SafeModal(discord.ui.Modal):
    async def on_error(
        self,
        interaction: discord.Interaction,
        error: Exception,
        item: discord.ui.Item[Any] | None = None,
        /,
    ) -> None:
        error_id = new_error_id()
        log_interaction_error(error, interaction, source="modal", error_id=error_id)
        await send_interaction_error(interaction, error_id=error_id)


async def _channel_or_reply(
    interaction: discord.Interaction, channel_id: int
) -> discord.abc.GuildChannel | discord.Thread | None:
    channel = await fetch_channel(interaction.client, channel_id)
    if channel is None:
        await interaction.followup.send(
            "Could not find the channel. Make sure the bot has access to it.", ephemeral=True
        )
    return channel


class SendMessageModal(SafeModal, title="Send Message"):
    content: discord.ui.TextInput = discord.ui.TextInput(
        label="Message Content",
        style=discord.TextStyle.paragraph,
        placeholder="Enter the message content...",
        max_length=MAX_CONTENT_LENGTH,
    )

    def __init__(self, *, channel_id: int) -> None:
        super().__init__()
        self.channel_id = channel_id

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        channel = await _channel_or_reply(interaction, self.channel_id)
        if channel is None:
            return
        try:
            sent = await send_managed_message(interaction.client, channel, self.content.value)
        except ManagedMessageError as exc:
            await interaction.followup.send(str(exc), ephemeral=True)
            return
        except discord.HTTPException as exc:
            logging.warning("Managed send failed channel=%s status=%s", self.channel_id, exc.status)
            await interaction.followup.send(
                f"Failed to send the message: {describe_discord_error(exc)}", ephemeral=True
            )
            return
        link = message_url(interaction.guild_id or 0, self.channel_id, sent.id)
        await interaction.followup.send(
            f"Message sent successfully!\n\n**Message link:** {link}\n\n"
            "Save this link to edit or delete the message later.",
            ephemeral=True,
        )


class EditMessageModal(SafeModal, title="Edit Message"):
    content: discord.ui.TextInput = discord.ui.TextInput(
        label="Message Content",
        style=discord.TextStyle.paragraph,
        max_length=MAX_CONTENT_LENGTH,
    )

    def __init__(self, *, channel_id: int, message_id: int, current_content: str | None = None) -> None:
        super().__init__()
        self.channel_id = channel_id
        self.message_id = message_id
        if current_content:
            self.content.default = current_content[:MAX_CONTENT_LENGTH]

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        channel = await _channel_or_reply(interaction, self.channel_id)
        if channel is None:
            return
        try:
            message = await channel.fetch_message(self.message_id)  # type: ignore[union-attr]
            await edit_managed_message(interaction.client, channel, message, self.content.value)
        except discord.NotFound:
            await interaction.followup.send("The message no longer exists.", ephemeral=True)
            return
        except ManagedMessageError as exc:
            await interaction.followup.send(str(exc), ephemeral=True)
            return
        link = message_url(interaction.guild_id or 0, self.channel_id, self.message_id)
        await interaction.followup.send(
            f"Message edited successfully!\n\n**Message link:** {link}", ephemeral=True
        )


class ForumPostModal(SafeModal, title="Create Forum Post"):
    post_title: discord.ui.TextInput = discord.ui.TextInput(
        label="Post Title",
        placeholder="Enter the forum post title...",
        max_length=MAX_THREAD_TITLE_LENGTH,
    )
    content: discord.ui.TextInput = discord.ui.TextInput(
        label="Post Content",
        style=discord.TextStyle.paragraph,
        placeholder="Enter the first message of the post...",
        max_length=MAX_CONTENT_LENGTH,
    )

    def __init__(self, *, forum_id: int) -> None:
        super().__init__()
        self.forum_id = forum_id

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        forum = await _channel_or_reply(interaction, self.forum_id)
        if forum is None:
            return
        if not isinstance(forum, discord.ForumChannel):
            await interaction.followup.send("That channel is not a forum.", ephemeral=True)
            return
        try:
            sent = await create_forum_post(
                interaction.client, forum, title=self.post_title.value, content=self.content.value
            )
        except discord.HTTPException as exc:
            logging.warning("Forum post failed forum=%s status=%s", self.forum_id, exc.status)
            await interaction.followup.send(
                f"Failed to create the forum post: {describe_discord_error(exc)}", ephemeral=True
            )
            return
        guild_id = interaction.guild_id or 0
        logging.info("Forum post created by user=%s forum=%s", interaction.user.id, self.forum_id)
        await interaction.followup.send(
            "Forum post created successfully!\n\n"
            f"**Post link:** {message_url(guild_id, sent.channel.id)}\n"
            f"**First message link:** {message_url(guild_id, sent.channel.id, sent.id)}\n\n"
            "Save these links to edit or delete later.",
            ephemeral=True,
        )
