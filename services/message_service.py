from __future__ import annotations

import logging
from dataclasses import dataclass

import discord

from utils.discord_wrappers import (
    MESSAGE_MANAGER_WEBHOOK,
    fetch_channel,
    get_identity_webhook,
    send_as_identity,
)

LOGGER = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 2000
MAX_THREAD_TITLE_LENGTH = 100


class ManagedMessageError(Exception):
    """Raised with a staff-facing message when a managed message action cannot proceed."""


@dataclass(frozen=True)
class WebhookTarget:
    channel: discord.TextChannel | discord.ForumChannel
    thread: discord.Thread | None


async def resolve_webhook_target(
    client: discord.Client, channel: discord.abc.GuildChannel | discord.Thread
) -> WebhookTarget:
    """
    Webhooks live on the parent channel; threads and forum posts are addressed through it.
    """
    if isinstance(channel, discord.Thread):
        parent = channel.parent or await fetch_channel(client, channel.parent_id)
        if not isinstance(parent, (discord.TextChannel, discord.ForumChannel)):
            raise ManagedMessageError("Could not resolve the thread's parent channel.")
        return WebhookTarget(channel=parent, thread=channel)
    if isinstance(channel, (discord.TextChannel, discord.ForumChannel)):
        return WebhookTarget(channel=channel, thread=None)
    raise ManagedMessageError("Messages can only be managed in text channels, threads and forums.")


async def send_managed_message(
    client: discord.Client,
    channel: discord.abc.GuildChannel | discord.Thread,
    content: str,
) -> discord.WebhookMessage:
    target = await resolve_webhook_target(client, channel)
    if isinstance(target.channel, discord.ForumChannel) and target.thread is None:
        raise ManagedMessageError("Use /message-post to start a new forum post.")
    webhook = await get_identity_webhook(
        target.channel, name=MESSAGE_MANAGER_WEBHOOK, owner_id=client.user.id  # type: ignore[union-attr]
    )
    kwargs = {"thread": target.thread} if target.thread is not None else {}
    sent = await send_as_identity(webhook, content, **kwargs)
    LOGGER.info("Sent managed message (channel=%s message=%s).", channel.id, sent.id)
    return sent


async def create_forum_post(
    client: discord.Client,
    forum: discord.ForumChannel,
    *,
    title: str,
    content: str,
) -> discord.WebhookMessage:
    webhook = await get_identity_webhook(
        forum, name=MESSAGE_MANAGER_WEBHOOK, owner_id=client.user.id  # type: ignore[union-attr]
    )
    sent = await send_as_identity(webhook, content, thread_name=title[:MAX_THREAD_TITLE_LENGTH])
    LOGGER.info("Created forum post (forum=%s thread=%s message=%s).", forum.id, sent.channel.id, sent.id)
    return sent


async def _owned_webhook(
    client: discord.Client, target: WebhookTarget, webhook_id: int
) -> discord.Webhook | None:
    for webhook in await target.channel.webhooks():
        owner = webhook.user
        if webhook.id == webhook_id and owner is not None and owner.id == client.user.id:  # type: ignore[union-attr]
            return webhook
    return None


async def can_manage(
    client: discord.Client,
    channel: discord.abc.GuildChannel | discord.Thread,
    message: discord.Message,
) -> bool:
    """
    The bot may edit or delete messages it wrote itself or sent through one of its webhooks.
    """
    if client.user is not None and message.author.id == client.user.id:
        return True
    if message.webhook_id is None:
        return False
    target = await resolve_webhook_target(client, channel)
    return await _owned_webhook(client, target, message.webhook_id) is not None


async def edit_managed_message(
    client: discord.Client,
    channel: discord.abc.GuildChannel | discord.Thread,
    message: discord.Message,
    content: str,
) -> None:
    if message.webhook_id is None:
        await message.edit(content=content)
    else:
        target = await resolve_webhook_target(client, channel)
        webhook = await _owned_webhook(client, target, message.webhook_id)
        if webhook is None:
            raise ManagedMessageError("Could not find the webhook for this message.")
        kwargs = {"thread": target.thread} if target.thread is not None else {}
        await webhook.edit_message(message.id, content=content, **kwargs)
    LOGGER.info("Edited managed message (channel=%s message=%s).", channel.id, message.id)


async def delete_managed_message(
    client: discord.Client,
    channel: discord.abc.GuildChannel | discord.Thread,
    message: discord.Message,
) -> None:
    if not await can_manage(client, channel, message):
        raise ManagedMessageError(
            "Cannot delete this message - the bot is not the author. "
            "You can only delete messages sent via `/message-send`."
        )
    await message.delete()
    LOGGER.info("Deleted managed message (channel=%s message=%s).", channel.id, message.id)
