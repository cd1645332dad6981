from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import discord

T = TypeVar("T")

IDENTITY_NAME = "Big Al, Sheriff of Triboar"
IDENTITY_AVATAR_URL = "https://cdn.tupperbox.app/pfp/753294841227640955/9qT8Evo4yT45GBTx.webp"
MESSAGE_MANAGER_WEBHOOK = "Message Manager"
WELCOME_WEBHOOK = "Welcome Bot"

DEFAULT_ALLOWED_MENTIONS = discord.AllowedMentions(
    everyone=False, users=True, roles=False, replied_user=False
)


async def with_backoff(
    coro_func: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    base_delay: float = 0.5,
    timeout: float = 10.0,
) -> T:
    """
    Retry transient Discord failures. NotFound and Forbidden are final and re-raised at once.
    """
    last_exc: Exception | None = None
    for attempt in range(retries):
        try:
            return await asyncio.wait_for(coro_func(), timeout=timeout)
        except (discord.NotFound, discord.Forbidden):
            raise
        except discord.HTTPException as exc:
            last_exc = exc
            delay = getattr(exc, "retry_after", None) or base_delay * (2**attempt)
            if attempt == retries - 1:
                break
            await asyncio.sleep(float(delay))
        except asyncio.TimeoutError as exc:
            last_exc = exc
            if attempt == retries - 1:
                break
            await asyncio.sleep(base_delay * (2**attempt))
    if last_exc:
        raise last_exc
    raise RuntimeError("with_backoff exhausted without exception detail")


async def fetch_channel(
    client: discord.Client,
    channel_id: int,
) -> discord.abc.GuildChannel | discord.Thread | None:
    channel = client.get_channel(channel_id)
    if channel is not None:
        return channel  # type: ignore[return-value]

    async def _do() -> Any:
        return await client.fetch_channel(channel_id)

    try:
        return await with_backoff(_do)
    except (discord.DiscordException, asyncio.TimeoutError):
        logging.warning("Could not fetch channel %s.", channel_id)
        return None


async def fetch_member(guild: discord.Guild, user_id: int) -> discord.Member | None:
    member = guild.get_member(user_id)
    if member is not None:
        return member

    async def _do() -> discord.Member:
        return await guild.fetch_member(user_id)

    try:
        return await with_backoff(_do)
    except discord.NotFound:
        return None


async def send_message(
    channel: discord.abc.Messageable,
    content: str | None = None,
    **kwargs: Any,
) -> discord.Message | None:
    kwargs.setdefault("allowed_mentions", DEFAULT_ALLOWED_MENTIONS)

    async def _do() -> discord.Message:
        return await channel.send(content, **kwargs)

    try:
        return await with_backoff(_do)
    except (discord.DiscordException, asyncio.TimeoutError):
        logging.warning("Failed to send message to channel %s.", getattr(channel, "id", None))
        return None


async def get_identity_webhook(
    channel: discord.TextChannel | discord.ForumChannel,
    *,
    name: str,
    owner_id: int,
) -> discord.Webhook:
    """
    Find the bot-owned webhook called ``name`` in ``channel`` or create it.
    """
    for webhook in await channel.webhooks():
        owner = webhook.user
        if webhook.name == name and owner is not None and owner.id == owner_id:
            return webhook
    webhook = await channel.create_webhook(
        name=name,
        reason="Webhook for managed messages with custom display",
    )
    logging.info("Created %s webhook in channel %s.", name, channel.id)
    return webhook


async def send_as_identity(
    webhook: discord.Webhook,
    content: str | None = None,
    **kwargs: Any,
) -> discord.WebhookMessage:
    kwargs.setdefault("allowed_mentions", DEFAULT_ALLOWED_MENTIONS)
    return await webhook.send(
        content,
        username=IDENTITY_NAME,
        avatar_url=IDENTITY_AVATAR_URL,
        wait=True,
        **kwargs,
    )
