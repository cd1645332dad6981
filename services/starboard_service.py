from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import discord

from config.settings import Settings
from repositories.starboard_repo import StarEntry, StarEntryStore
from utils.async_utils import KeyedLock
from utils.discord_wrappers import fetch_channel
from utils.embeds import STAR_GOLD

LOGGER = logging.getLogger(__name__)

STAR_EMOJI = "⭐"


class StarboardError(Exception):
    pass


class MirrorNotFound(StarboardError):
    pass


@dataclass(frozen=True)
class StarredMessage:
    """
    The parts of a reacted-to message needed to count stars and render its mirror.
    """

    id: int
    channel_id: int
    author_id: int
    author_name: str
    author_avatar_url: str | None
    content: str | None
    created_at: datetime
    jump_url: str

    @classmethod
    def from_message(cls, message: discord.Message) -> StarredMessage:
        author = message.author
        return cls(
            id=message.id,
            channel_id=message.channel.id,
            author_id=author.id,
            author_name=author.display_name or author.name,
            author_avatar_url=author.display_avatar.url,
            content=message.content or None,
            created_at=message.created_at,
            jump_url=message.jump_url,
        )


class StarboardGateway(Protocol):
    async def fetch_star_reactor_ids(self, message: StarredMessage) -> set[int]: ...

    async def send_mirror(self, content: str, embed: discord.Embed) -> int: ...

    async def edit_mirror(self, mirror_message_id: int, content: str, embed: discord.Embed) -> None: ...

    async def delete_mirror(self, mirror_message_id: int) -> None: ...


def qualifying_count(reactor_ids: set[int], author_id: int) -> int:
    return len(reactor_ids - {author_id})


def render_mirror(message: StarredMessage, star_count: int) -> tuple[str, discord.Embed]:
    content = f"{STAR_EMOJI} **{star_count}** | <#{message.channel_id}>"
    embed = discord.Embed(color=STAR_GOLD, timestamp=message.created_at)
    embed.set_author(name=message.author_name, icon_url=message.author_avatar_url)
    if message.content:
        embed.description = message.content
    embed.add_field(name="Original", value=f"[Jump to message]({message.jump_url})", inline=False)
    embed.set_footer(text=f"Message ID: {message.id}")
    return content, embed


class DiscordStarboardGateway:
    """
    StarboardGateway backed by the live discord.py client and the configured board channel.
    """

    def __init__(self, client: discord.Client, board_channel_id: int) -> None:
        self.client = client
        self.board_channel_id = board_channel_id

    async def _channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = await fetch_channel(self.client, channel_id)
        if channel is None or not hasattr(channel, "fetch_message"):
            raise StarboardError(f"Channel {channel_id} is unavailable.")
        return channel

    async def fetch_star_reactor_ids(self, message: StarredMessage) -> set[int]:
        channel = await self._channel(message.channel_id)
        try:
            fresh = await channel.fetch_message(message.id)
            reaction = next((r for r in fresh.reactions if str(r.emoji) == STAR_EMOJI), None)
            if reaction is None:
                return set()
            return {user.id async for user in reaction.users() if not user.bot}
        except discord.DiscordException as exc:
            raise StarboardError(f"Could not read reactions for message {message.id}.") from exc

    async def send_mirror(self, content: str, embed: discord.Embed) -> int:
        channel = await self._channel(self.board_channel_id)
        try:
            sent = await channel.send(content=content, embed=embed)
        except discord.DiscordException as exc:
            raise StarboardError("Could not post to the starboard channel.") from exc
        return sent.id

    async def edit_mirror(self, mirror_message_id: int, content: str, embed: discord.Embed) -> None:
        channel = await self._channel(self.board_channel_id)
        try:
            mirror = channel.get_partial_message(mirror_message_id)  # type: ignore[attr-defined]
            await mirror.edit(content=content, embed=embed)
        except discord.NotFound as exc:
            raise MirrorNotFound(str(mirror_message_id)) from exc
        except discord.DiscordException as exc:
            raise StarboardError(f"Could not edit starboard message {mirror_message_id}.") from exc

    async def delete_mirror(self, mirror_message_id: int) -> None:
        channel = await self._channel(self.board_channel_id)
        try:
            await channel.get_partial_message(mirror_message_id).delete()  # type: ignore[attr-defined]
        except discord.NotFound as exc:
            raise MirrorNotFound(str(mirror_message_id)) from exc
        except discord.DiscordException as exc:
            raise StarboardError(f"Could not delete starboard message {mirror_message_id}.") from exc


class StarboardService:
    """
    Mirrors messages whose star count (author excluded) reaches the threshold into the
    board channel, and retires the mirror once the count drops below it again.

    Events for one message are serialized on a per-message lock and the reactor set is
    re-read under that lock, so each event works from the latest count.
    """

    def __init__(
        self,
        gateway: StarboardGateway,
        settings: Settings,
        store: StarEntryStore | None = None,
    ) -> None:
        self.gateway = gateway
        self.board_channel_id = settings.starboard_channel_id
        self.threshold = settings.starboard_threshold
        self.store = store if store is not None else StarEntryStore()
        self._locks: KeyedLock[int] = KeyedLock()

    @property
    def enabled(self) -> bool:
        return self.board_channel_id is not None

    def _accepts(self, message: StarredMessage, reactor_id: int, emoji: str) -> bool:
        if emoji != STAR_EMOJI or not self.enabled:
            return False
        if reactor_id == message.author_id:
            LOGGER.debug("Ignoring self-star (user=%s message=%s).", reactor_id, message.id)
            return False
        return message.channel_id != self.board_channel_id

    async def on_reaction_add(self, message: StarredMessage, reactor_id: int, emoji: str) -> None:
        await self._handle(message, reactor_id, emoji, event="add")

    async def on_reaction_remove(self, message: StarredMessage, reactor_id: int, emoji: str) -> None:
        await self._handle(message, reactor_id, emoji, event="remove")

    async def upsert_mirror(self, message: StarredMessage, count: int) -> None:
        async with self._locks.hold(message.id):
            await self._upsert(message, count)

    async def _handle(self, message: StarredMessage, reactor_id: int, emoji: str, *, event: str) -> None:
        if not self._accepts(message, reactor_id, emoji):
            return
        async with self._locks.hold(message.id):
            try:
                reactors = await self.gateway.fetch_star_reactor_ids(message)
            except StarboardError:
                LOGGER.exception("Dropping star %s for message %s: reactors unavailable.", event, message.id)
                return
            count = qualifying_count(reactors, message.author_id)
            LOGGER.debug(
                "Star count check (message=%s event=%s count=%s threshold=%s).",
                message.id,
                event,
                count,
                self.threshold,
            )
            await self._apply_count(message, count)

    async def _apply_count(self, message: StarredMessage, count: int) -> None:
        if count >= self.threshold:
            await self._upsert(message, count)
        else:
            await self._retire(message.id)

    def _entry_for(self, message: StarredMessage, mirror_message_id: int | None, count: int) -> StarEntry:
        return StarEntry(
            original_message_id=message.id,
            original_channel_id=message.channel_id,
            original_author_id=message.author_id,
            original_content=message.content,
            original_timestamp=message.created_at,
            original_url=message.jump_url,
            mirror_message_id=mirror_message_id,
            star_count=count,
        )

    async def _upsert(self, message: StarredMessage, count: int) -> None:
        content, embed = render_mirror(message, count)
        entry = self.store.get(message.id)

        if entry is not None and entry.mirror_message_id is not None:
            try:
                await self.gateway.edit_mirror(entry.mirror_message_id, content, embed)
            except MirrorNotFound:
                LOGGER.info(
                    "Starboard message %s for %s is gone; recreating.",
                    entry.mirror_message_id,
                    message.id,
                )
                self.store.put(entry.with_mirror(None))
            except StarboardError:
                LOGGER.exception("Failed to update starboard message for %s.", message.id)
                return
            else:
                self.store.put(self._entry_for(message, entry.mirror_message_id, count))
                LOGGER.debug("Updated starboard message (message=%s count=%s).", message.id, count)
                return

        try:
            mirror_id = await self.gateway.send_mirror(content, embed)
        except StarboardError:
            LOGGER.exception("Failed to create starboard message for %s.", message.id)
            return
        self.store.put(self._entry_for(message, mirror_id, count))
        LOGGER.info(
            "Created starboard message (message=%s mirror=%s count=%s).", message.id, mirror_id, count
        )

    async def _retire(self, original_message_id: int) -> None:
        entry = self.store.get(original_message_id)
        if entry is None:
            return
        if entry.mirror_message_id is not None:
            try:
                await self.gateway.delete_mirror(entry.mirror_message_id)
            except MirrorNotFound:
                LOGGER.debug("Starboard message %s already deleted.", entry.mirror_message_id)
            except StarboardError:
                LOGGER.exception("Failed to delete starboard message for %s.", original_message_id)
                return
        self.store.discard(original_message_id)
        LOGGER.info(
            "Removed starboard message (message=%s mirror=%s).",
            original_message_id,
            entry.mirror_message_id,
        )
