from __future__ import annotations

import discord

# Centralized embed styling so colors stay consistent across commands.
GUILD_GOLD = 0xB8860B
STAR_GOLD = 0xFFAC33
BLURPLE = 0x5865F2
PM_PURPLE = 0xB041FF
SUCCESS_COLOR = 0x57F287
WARNING_COLOR = 0xFEE75C


def make_embed(
    *,
    title: str,
    description: str | None = None,
    color: int = GUILD_GOLD,
    footer: str | None = None,
) -> discord.Embed:
    embed = discord.Embed(title=title, description=description or "", color=color)
    if footer:
        embed.set_footer(text=footer)
    return embed


def channel_mention(channel_id: int | None) -> str:
    return f"<#{channel_id}>" if channel_id else "the appropriate channel"
