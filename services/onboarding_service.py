from __future__ import annotations

import logging
from dataclasses import dataclass

import discord

from config.settings import Settings
from services.backend_service import (
    GIFT_DURATIONS,
    BackendAuthError,
    BackendError,
    BackendRequestError,
    BackendUnavailable,
    GiftResult,
)
from services.role_service import RoleChange, add_role, member_has_role, remove_role
from utils.embeds import BLURPLE, SUCCESS_COLOR, WARNING_COLOR, channel_mention, make_embed
from utils.errors import HIERARCHY_HINT
from utils.time_utils import discord_timestamp, utc_now

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalResult:
    returning_player: bool
    player_role: RoleChange | None
    roll_dice_role: RoleChange | None

    @property
    def hierarchy_problem(self) -> bool:
        return RoleChange.FORBIDDEN in {self.player_role, self.roll_dice_role}


async def approve_character(member: discord.Member, settings: Settings) -> ApprovalResult:
    """
    Promote ``member`` to Player and take away Roll Dice. A None change means the role is
    not configured.
    """
    returning = settings.player_role_id is not None and member_has_role(member, settings.player_role_id)

    player_change: RoleChange | None = None
    if settings.player_role_id is not None:
        player_change = await add_role(member, settings.player_role_id, reason="Character approved")
    else:
        LOGGER.warning("DISCORD_PLAYER_ROLE_ID not configured; skipping Player role.")

    roll_dice_change: RoleChange | None = None
    if settings.roll_dice_role_id is not None:
        roll_dice_change = await remove_role(
            member, settings.roll_dice_role_id, reason="Character approved"
        )
    else:
        LOGGER.warning("DISCORD_ROLL_DICE_ROLE_ID not configured; skipping Roll Dice role.")

    LOGGER.info(
        "Character approved (user=%s returning=%s player=%s roll_dice=%s).",
        member.id,
        returning,
        player_change.value if player_change else None,
        roll_dice_change.value if roll_dice_change else None,
    )
    return ApprovalResult(
        returning_player=returning, player_role=player_change, roll_dice_role=roll_dice_change
    )


def character_approved_embed(
    settings: Settings,
    *,
    member: discord.abc.User,
    approver: discord.abc.User,
    returning_player: bool,
) -> discord.Embed:
    intro = (
        "Your new character has been reviewed and approved."
        if returning_player
        else "Your character has been reviewed and approved, and you're now an official member of the Guild."
    )
    sections = [
        f"Welcome to the Triboar Guildhall, {member.mention}!\n{intro}",
        "**Next Steps**",
        "**Import & Setup Your Character**\n"
        f"**This is important and required:** go to {channel_mention(settings.channel_character_setup_id)} "
        "and use Avrae to import your sheet and set up your bags. Follow the pinned instructions "
        "in that channel and ping a staff member if you need help.",
        "**Prepare for Adventure**\n"
        f"Add yourself to the {channel_mention(settings.channel_queue_id)} and view the "
        f"{channel_mention(settings.channel_quest_board_id)}. Characters are selected for most "
        "quests based on queue position, so get in line!",
        "**Get a Job!**\n"
        f"Every day you can work for gold in {channel_mention(settings.channel_daily_job_id)} "
        "using the !job alias. Higher rolls earn more, so use your best skills!",
        "**Try Your Hand at Survival**\n"
        f"Head to {channel_mention(settings.channel_survival_id)} to hunt, fish, or forage once an "
        "hour for a chance at prized species that offer XP and gold rewards.",
    ]
    if not returning_player:
        sections.append(
            "**Meet the Guild**\n"
            f"Optionally, stop by {channel_mention(settings.channel_player_intros_id)} to introduce "
            "yourself and say hello to your fellow adventurers."
        )
    sections.append(
        "Welcome again to the Triboar Guildhall.\n"
        "The fires are warm, the ale is flowing, and adventure awaits!\n"
        "*May your rolls be high and your blades stay sharp.*"
    )
    embed = make_embed(
        title="Character Approved!",
        description="\n\n".join(sections),
        color=BLURPLE,
        footer=f"Approved by {approver}",
    )
    embed.set_thumbnail(url=member.display_avatar.url)
    embed.timestamp = utc_now()
    return embed


def _role_status(change: RoleChange | None, *, done: str, noop: str) -> str:
    if change is None:
        return "⚠️ Not configured"
    if change is RoleChange.FORBIDDEN:
        return "❌ Missing permissions (role hierarchy)"
    if change is RoleChange.FAILED:
        return "❌ Failed"
    if change is RoleChange.UNCHANGED:
        return noop
    return done


def approval_status_embed(
    member: discord.abc.User,
    result: ApprovalResult,
    *,
    posted: bool,
    dm_sent: bool,
) -> discord.Embed:
    embed = make_embed(
        title="Player Approved!",
        description=f"Successfully approved {member.mention}",
        color=WARNING_COLOR if result.hierarchy_problem else SUCCESS_COLOR,
        footer=f"⚠️ Tip: {HIERARCHY_HINT}" if result.hierarchy_problem else None,
    )
    embed.add_field(
        name="Player Role",
        value=_role_status(result.player_role, done="✅ Added", noop="✅ Already had role"),
        inline=True,
    )
    embed.add_field(
        name="Roll Dice Role",
        value=_role_status(result.roll_dice_role, done="✅ Removed", noop="⚠️ User did not have role"),
        inline=True,
    )
    embed.add_field(
        name="Welcome Message",
        value="✅ Posted in this channel" if posted else "❌ Could not post",
        inline=True,
    )
    embed.add_field(
        name="DM Sent", value="✅ Sent" if dm_sent else "⚠️ Failed (DMs disabled)", inline=True
    )
    return embed


def gift_success_message(member: discord.abc.User, result: GiftResult, reason: str | None) -> str:
    expires = discord_timestamp(result.expires_at) if result.expires_at else "unknown"
    return (
        "✅ **Gift subscription granted!**\n\n"
        f"**User:** {member}\n"
        f"**Duration:** {GIFT_DURATIONS.get(result.duration, result.duration)}\n"
        f"**Expires:** {expires}\n"
        f"**Reason:** {reason or 'Gift subscription'}\n\n"
        "The user has been granted the Subscribed role and will receive a welcome DM."
    )


def gift_error_message(error: BackendError) -> str:
    prefix = "❌ Failed to grant gift subscription. "
    if isinstance(error, BackendRequestError) and error.status == 400:
        return prefix + (error.message or "Invalid request.")
    if isinstance(error, BackendAuthError):
        return prefix + "Authentication failed. Check BACKEND_API_TOKEN configuration."
    if isinstance(error, BackendUnavailable):
        return prefix + "Could not connect to backend API. Is it running?"
    return prefix + "An unexpected error occurred. Check the logs."
