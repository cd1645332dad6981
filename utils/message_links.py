from __future__ import annotations

import re
from dataclasses import dataclass

# discord.com, discordapp.com and the ptb/canary subdomains all share this path shape.
_LINK_PATTERN = re.compile(
    r"(?:https?://)?(?:(?:ptb|canary)\.)?discord(?:app)?\.com/channels/(\d+|@me)/(\d+)(?:/(\d+))?"
)
_CHANNEL_MENTION = re.compile(r"^<#(\d+)>$")
_SNOWFLAKE = re.compile(r"^\d{1,20}$")


@dataclass(frozen=True)
class MessageRef:
    channel_id: int
    message_id: int
    guild_id: int | None = None


def parse_message_link(value: str | None, channel_id: int | None = None) -> MessageRef | None:
    """
    Accept a full message link, or a bare message id when ``channel_id`` is supplied.
    """
    raw = (value or "").strip()
    match = _LINK_PATTERN.search(raw)
    if match and match.group(3):
        guild = match.group(1)
        return MessageRef(
            channel_id=int(match.group(2)),
            message_id=int(match.group(3)),
            guild_id=int(guild) if guild.isdigit() else None,
        )
    if _SNOWFLAKE.match(raw) and channel_id is not None:
        return MessageRef(channel_id=channel_id, message_id=int(raw))
    return None


def parse_channel_link(value: str | None) -> int | None:
    """
    Channel id from a channel link, a message link (its channel, threads included),
    a ``<#id>`` mention or a bare id.
    """
    raw = (value or "").strip()
    match = _LINK_PATTERN.search(raw)
    if match:
        return int(match.group(2))
    mention = _CHANNEL_MENTION.match(raw)
    if mention:
        return int(mention.group(1))
    if _SNOWFLAKE.match(raw):
        return int(raw)
    return None


def message_url(guild_id: int, channel_id: int, message_id: int | None = None) -> str:
    base = f"https://discord.com/channels/{guild_id}/{channel_id}"
    return f"{base}/{message_id}" if message_id is not None else base
