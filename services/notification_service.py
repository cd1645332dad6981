from __future__ import annotations

import logging

import discord

from config.settings import Settings
from utils.embeds import GUILD_GOLD, SUCCESS_COLOR, WARNING_COLOR, make_embed
from utils.time_utils import utc_now

LOGGER = logging.getLogger(__name__)

OPT_OUT_HINT = 'Reply "STOP" to stop these reminders, or "START" to turn them back on.'


def subscription_confirmation_embed(settings: Settings) -> discord.Embed:
    return make_embed(
        title="Welcome to the Guildhall!",
        description=(
            "Your subscription is active and your Subscribed role has been granted.\n\n"
            "The doors of the Triboar Guildhall are open to you. "
            f"Manage your membership any time at {settings.website_url}.\n\n"
            "*May your dice roll high and your blades stay sharp!*"
        ),
        color=SUCCESS_COLOR,
    )


def grace_period_reminder_embed(settings: Settings, days_remaining: int) -> discord.Embed:
    noun = "day" if days_remaining == 1 else "days"
    return make_embed(
        title="Your subscription has lapsed",
        description=(
            f"You have **{days_remaining} {noun}** left in your grace period before your "
            "Guildhall access is removed.\n\n"
            f"Renew here to keep your access: {settings.checkout_url}"
        ),
        color=WARNING_COLOR,
        footer=OPT_OUT_HINT,
    )


def subscription_expired_embed(settings: Settings) -> discord.Embed:
    return make_embed(
        title="Your Guildhall access has ended",
        description=(
            "Your grace period is over and the Subscribed role has been removed.\n\n"
            f"You are welcome back any time: {settings.checkout_url}"
        ),
        color=GUILD_GOLD,
    )


class NotificationService:
    """
    Direct-message notices for subscription state changes.
    """

    def __init__(self, client: discord.Client, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    async def _send_dm(self, discord_id: int, embed: discord.Embed, *, kind: str) -> bool:
        try:
            user = self.client.get_user(discord_id) or await self.client.fetch_user(discord_id)
            await user.send(embed=embed)
        except discord.Forbidden:
            LOGGER.warning("Could not DM %s (%s); user may have DMs disabled.", discord_id, kind)
            return False
        except discord.DiscordException:
            LOGGER.exception("Failed to send %s DM to %s.", kind, discord_id)
            return False
        LOGGER.info("Sent %s DM to %s.", kind, discord_id)
        return True

    async def send_subscription_confirmation(self, discord_id: int) -> bool:
        return await self._send_dm(
            discord_id, subscription_confirmation_embed(self.settings), kind="subscription_confirmation"
        )

    async def send_grace_period_reminder(self, discord_id: int, days_remaining: int) -> bool:
        return await self._send_dm(
            discord_id,
            grace_period_reminder_embed(self.settings, days_remaining),
            kind="grace_period_reminder",
        )

    async def send_subscription_expired(self, discord_id: int) -> bool:
        return await self._send_dm(
            discord_id, subscription_expired_embed(self.settings), kind="subscription_expired"
        )


OPT_OUT_REPLY = (
    "You've opted out of grace period reminders. "
    'You can opt back in anytime by replying with "START".'
)
OPT_IN_REPLY = (
    "You've opted back in to grace period reminders. "
    "You'll receive daily reminders during your grace period."
)


def parse_dm_preference(content: str) -> bool | None:
    """
    ``STOP`` turns reminders off and ``START`` turns them on; anything else is not a command.
    """
    keyword = (content or "").strip().upper()
    if keyword == "STOP":
        return False
    if keyword == "START":
        return True
    return None


def welcome_embed(settings: Settings, member: discord.abc.User) -> discord.Embed:
    staff = f"<@&{settings.staff_role_id}>" if settings.staff_role_id else "staff"
    embed = make_embed(
        title=f"Welcome to Triboar, {member.name}!",
        description=(
            "Greetings, traveler! The town of Triboar welcomes you.\n\n"
            "**Not Yet a Guildhall Member?**\n"
            f"Visit our website at {settings.website_url} for information on joining the Guildhall "
            "and gaining access to all our adventures.\n\n"
            "**Already Subscribed?**\n"
            "You should receive a private message confirmation shortly. "
            "If you don't see it, check your DM settings.\n\n"
            "**Questions?**\n"
            f"Feel free to ping the {staff} role and we'll be happy to assist you.\n\n"
            "*May your dice roll high and your blades stay sharp!*"
        ),
        color=GUILD_GOLD,
    )
    embed.timestamp = utc_now()
    if settings.welcome_image_url:
        embed.set_image(url=settings.welcome_image_url)
    return embed
