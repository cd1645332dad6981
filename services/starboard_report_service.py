from __future__ import annotations

import logging
import re
from typing import Iterable

import discord

LOGGER = logging.getLogger(__name__)

MESSAGE_LINK_ID = re.compile(r"channels/\d+/\d+/(\d+)")
MAX_MESSAGE_LENGTH = 2000
CHUNK_LENGTH = 1900


class StarboardReportError(Exception):
    pass


def extract_message_id(link: str) -> int | None:
    match = MESSAGE_LINK_ID.search(link or "")
    return int(match.group(1)) if match else None


def extract_author_name(message: discord.Message) -> str | None:
    if not message.embeds:
        return None
    author = message.embeds[0].author
    return author.name if author and author.name else None


def sort_names(names: Iterable[str]) -> list[str]:
    return sorted(set(names), key=lambda name: (name.casefold(), name))


def format_report(names: Iterable[str]) -> list[str]:
    """
    Render the numbered list of names. The first item is the headline message; when the whole
    report would exceed Discord's message limit the list follows in chunks of at most 1900
    characters.
    """
    ordered = sort_names(names)
    header = f"**⭐ Starred PCs ({len(ordered)} unique)**"
    lines = [f"{index}. {name}" for index, name in enumerate(ordered, start=1)]
    single = f"{header}\n\n" + "\n".join(lines)
    if len(single) <= MAX_MESSAGE_LENGTH:
        return [single]

    messages = [header]
    chunk = ""
    for line in lines:
        entry = f"{line}\n"
        if chunk and len(chunk) + len(entry) > CHUNK_LENGTH:
            messages.append(chunk)
            chunk = entry
        else:
            chunk += entry
    if chunk:
        messages.append(chunk)
    return messages


async def collect_author_names(
    channel: discord.TextChannel,
    start_id: int,
    end_id: int,
) -> list[str]:
    """
    Unique mirror author names between two board messages, both ends included, in either order.
    """
    try:
        first = await channel.fetch_message(start_id)
        last = await channel.fetch_message(end_id)
    except discord.NotFound as exc:
        raise StarboardReportError(
            "Could not find one or both messages. Make sure they are from the starboard channel."
        ) from exc
    if first.created_at > last.created_at:
        first, last = last, first

    names: set[str] = set()
    for message in (first, last):
        name = extract_author_name(message)
        if name:
            names.add(name)
    async for message in channel.history(limit=None, after=first, before=last):
        name = extract_author_name(message)
        if name:
            names.add(name)
    LOGGER.info(
        "Collected starboard authors (start=%s end=%s unique=%s).", first.id, last.id, len(names)
    )
    return sort_names(names)
