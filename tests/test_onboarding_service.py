from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import discord
import pytest

from config.settings import Settings
from services import onboarding_service
from services.backend_service import (
    BackendAuthError,
    BackendRequestError,
    BackendUnavailable,
    GiftResult,
)
from services.notification_service import (
    grace_period_reminder_embed,
    parse_dm_preference,
    welcome_embed,
)
from services.role_service import RoleChange

PLAYER, ROLL_DICE = 301, 302


def _settings(**overrides) -> Settings:
    values = dict(
        discord_token="token",
        guild_id=10,
        subscribed_role_id=20,
        backend_api_token="x" * 32,
        player_role_id=PLAYER,
        roll_dice_role_id=ROLL_DICE,
        staff_role_id=400,
        channel_character_setup_id=1001,
        welcome_image_url="https://example.test/welcome.png",
    )
    values.update(overrides)
    return Settings(**values)


class FakeMember:
    def __init__(self, *role_ids: int, forbidden_roles: set[int] | None = None) -> None:
        self.id = 555
        self.name = "grimble"
        self.mention = "<@555>"
        self.display_avatar = SimpleNamespace(url="https://cdn.example.test/a.png")
        self.roles = [SimpleNamespace(id=r) for r in role_ids]
        self.forbidden_roles = forbidden_roles or set()

    @property
    def role_ids(self) -> set[int]:
        return {r.id for r in self.roles}

    def _check(self, role_id: int) -> None:
        if role_id in self.forbidden_roles:
            raise discord.Forbidden(SimpleNamespace(status=403, reason="Forbidden"), "Missing Permissions")

    async def add_roles(self, role, *, reason=None) -> None:
        self._check(role.id)
        self.roles.append(SimpleNamespace(id=role.id))

    async def remove_roles(self, role, *, reason=None) -> None:
        self._check(role.id)
        self.roles = [r for r in self.roles if r.id != role.id]


@pytest.mark.asyncio
async def test_approve_new_player() -> None:
    member = FakeMember(ROLL_DICE)
    result = await onboarding_service.approve_character(member, _settings())

    assert not result.returning_player
    assert result.player_role is RoleChange.ADDED
    assert result.roll_dice_role is RoleChange.REMOVED
    assert member.role_ids == {PLAYER}
    assert not result.hierarchy_problem


@pytest.mark.asyncio
async def test_approve_returning_player() -> None:
    member = FakeMember(PLAYER)
    result = await onboarding_service.approve_character(member, _settings())

    assert result.returning_player
    assert result.player_role is RoleChange.UNCHANGED
    assert result.roll_dice_role is RoleChange.UNCHANGED


@pytest.mark.asyncio
async def test_approve_reports_hierarchy_problem() -> None:
    member = FakeMember(ROLL_DICE, forbidden_roles={PLAYER})
    result = await onboarding_service.approve_character(member, _settings())

    assert result.player_role is RoleChange.FORBIDDEN
    assert result.hierarchy_problem
    embed = onboarding_service.approval_status_embed(member, result, posted=True, dm_sent=False)
    assert embed.footer.text.startswith("⚠️ Tip:")


@pytest.mark.asyncio
async def test_approve_without_configured_roles() -> None:
    member = FakeMember()
    result = await onboarding_service.approve_character(
        member, _settings(player_role_id=None, roll_dice_role_id=None)
    )
    assert result.player_role is None
    assert result.roll_dice_role is None
    assert member.role_ids == set()


def test_welcome_embed_mentions_character_setup_channel() -> None:
    member = FakeMember()
    new = onboarding_service.character_approved_embed(
        _settings(), member=member, approver="Staff#0001", returning_player=False
    )
    returning = onboarding_service.character_approved_embed(
        _settings(), member=member, approver="Staff#0001", returning_player=True
    )
    assert "<#1001>" in new.description
    assert "Meet the Guild" in new.description
    assert "Meet the Guild" not in returning.description


def test_gift_messages() -> None:
    result = GiftResult(discord_id=1, duration="3_months", expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc))
    success = onboarding_service.gift_success_message("grimble", result, None)
    assert "3 months" in success
    assert "<t:1893456000:F>" in success

    assert "User not found" in onboarding_service.gift_error_message(
        BackendRequestError(400, "User not found")
    )
    assert "BACKEND_API_TOKEN" in onboarding_service.gift_error_message(BackendAuthError("no"))
    assert "Is it running" in onboarding_service.gift_error_message(BackendUnavailable("down"))


@pytest.mark.parametrize(
    ("content", "expected"),
    [("STOP", False), (" stop ", False), ("Start", True), ("please stop", None), ("", None)],
)
def test_parse_dm_preference(content: str, expected: bool | None) -> None:
    assert parse_dm_preference(content) is expected


def test_grace_reminder_wording() -> None:
    assert "**1 day**" in grace_period_reminder_embed(_settings(), 1).description
    assert "**3 days**" in grace_period_reminder_embed(_settings(), 3).description


def test_member_welcome_embed() -> None:
    embed = welcome_embed(_settings(), FakeMember())
    assert embed.title == "Welcome to Triboar, grimble!"
    assert "<@&400>" in embed.description
    assert embed.image.url == "https://example.test/welcome.png"
