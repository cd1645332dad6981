from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from services import onboarding_service
from services.backend_service import GIFT_DURATIONS, BackendError
from utils.discord_wrappers import send_message
from utils.logging import log_command_event

LOGGER = logging.getLogger(__name__)

GIFT_CHOICES = [
    app_commands.Choice(name=label.title(), value=value) for value, label in GIFT_DURATIONS.items()
]


class OnboardingCog(commands.Cog):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @app_commands.command(
        name="approve-character",
        description="Approve a player's character: grant Player, remove Roll Dice and welcome them.",
    )
    @app_commands.describe(user="The player whose character is approved")
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def approve_character(self, interaction: discord.Interaction, user: discord.Member) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        settings = self.bot.settings
        result = await onboarding_service.approve_character(user, settings)

        welcome = onboarding_service.character_approved_embed(
            settings,
            member=user,
            approver=interaction.user,
            returning_player=result.returning_player,
        )
        posted = False
        if isinstance(interaction.channel, discord.abc.Messageable):
            posted = await send_message(interaction.channel, embed=welcome) is not None
        dm_sent = False
        try:
            await user.send(embed=welcome)
            dm_sent = True
        except discord.DiscordException:
            LOGGER.warning("Failed to send welcome DM to %s; user may have DMs disabled.", user.id)

        await interaction.followup.send(
            embed=onboarding_service.approval_status_embed(
                user, result, posted=posted, dm_sent=dm_sent
            ),
            ephemeral=True,
        )
        await self.bot.backend.log_bot_action(
            user.id,
            "character_approved",
            {
                "approvedBy": str(interaction.user.id),
                "returningPlayer": result.returning_player,
                "hierarchyProblem": result.hierarchy_problem,
            },
        )
        log_command_event(interaction, status="result", target=user.id)

    @app_commands.command(name="gift-subscription", description="Grant a gift subscription to a user.")
    @app_commands.describe(
        user="The user to receive the gift subscription",
        duration="How long the gift subscription should last",
        reason="Reason for the gift (optional)",
    )
    @app_commands.choices(duration=GIFT_CHOICES)
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def gift_subscription(
        self,
        interaction: discord.Interaction,
        user: discord.Member,
        duration: app_commands.Choice[str],
        reason: str | None = None,
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        LOGGER.info(
            "Processing gift subscription staff=%s target=%s duration=%s",
            interaction.user.id,
            user.id,
            duration.value,
        )
        try:
            result = await self.bot.backend.gift_subscription(
                user.id,
                duration=duration.value,
                reason=reason or f"Gifted by {interaction.user}",
            )
        except BackendError as exc:
            LOGGER.error("Gift subscription failed for %s: %s", user.id, exc)
            await interaction.followup.send(onboarding_service.gift_error_message(exc), ephemeral=True)
            return
        await interaction.followup.send(
            onboarding_service.gift_success_message(user, result, reason), ephemeral=True
        )
        log_command_event(interaction, status="result", target=user.id, duration=duration.value)

    @app_commands.command(
        name="sync-subscriptions",
        description="Run the subscription reconciliation pass now.",
    )
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.guild_only()
    async def sync_subscriptions(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            report = await self.bot.sync_service.perform_daily_sync()
        except BackendError:
            await interaction.followup.send(
                "❌ Could not read subscription state from the backend. Nothing was changed.",
                ephemeral=True,
            )
            return
        await interaction.followup.send(f"Subscription sync finished.\n`{report.summary()}`", ephemeral=True)
        log_command_event(interaction, status="result", skipped=report.skipped)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(OnboardingCog(bot))
