from __future__ import annotations

from types import SimpleNamespace

import discord
import pytest

from config.settings import Settings
from interactions.views import RoleMenuView, role_button_custom_id
from services.role_menu_service import MENU_PM, MENU_REGIONS, build_role_menus
from services.role_setup_service import REACTION_ROLE_SPECS, ensure_reaction_roles, format_role_setup


def _settings() -> Settings:
    return Settings(
        discord_token="token",
        guild_id=10,
        subscribed_role_id=20,
        backend_api_token="x" * 32,
        self_role_ids={
            "DISCORD_PM_OK_ROLE_ID": 201,
            "DISCORD_PM_ASK_ROLE_ID": 202,
            "DISCORD_PM_NO_ROLE_ID": 203,
            "DISCORD_REGION_AFRICA_ROLE_ID": 301,
            "DISCORD_REGION_ASIA_ROLE_ID": 302,
            "DISCORD_REGION_EUROPE_ROLE_ID": 303,
            "DISCORD_REGION_NORTH_AMERICA_ROLE_ID": 304,
            "DISCORD_REGION_OCEANIA_ROLE_ID": 305,
            "DISCORD_REGION_SOUTH_AMERICA_ROLE_ID": 306,
        },
    )


@pytest.mark.asyncio
async def test_role_menu_view_is_persistent() -> None:
    menu = build_role_menus(_settings())[MENU_PM]
    view = RoleMenuView(menu)

    assert view.timeout is None
    assert view.is_persistent()
    assert [item.custom_id for item in view.children] == [
        role_button_custom_id(MENU_PM, 201),
        role_button_custom_id(MENU_PM, 202),
        role_button_custom_id(MENU_PM, 203),
    ]


@pytest.mark.asyncio
async def test_large_menus_wrap_onto_a_second_row() -> None:
    view = RoleMenuView(build_role_menus(_settings())[MENU_REGIONS])
    assert [item.row for item in view.children] == [0, 0, 0, 0, 0, 1]


class FakeGuild:
    def __init__(self, existing: dict[str, int]) -> None:
        self.roles = [
            SimpleNamespace(name=name, id=role_id, is_default=lambda: False)
            for name, role_id in existing.items()
        ]
        self.created: list[str] = []

    async def create_role(self, *, name, colour, mentionable, hoist, reason):
        self.created.append(name)
        return SimpleNamespace(name=name, id=1000 + len(self.created))


@pytest.mark.asyncio
async def test_ensure_reaction_roles_creates_only_missing() -> None:
    guild = FakeGuild({"she/her": 11, "No PMs": 12})
    result = await ensure_reaction_roles(guild, requested_by="Staff")

    assert len(guild.created) == len(REACTION_ROLE_SPECS) - 2
    assert "She/Her" not in guild.created
    assert "DISCORD_GENDER_SHE_HER_ROLE_ID=11" in result.env_lines
    assert "DISCORD_PM_NO_ROLE_ID=12" in result.env_lines
    assert len(result.env_lines) == len(REACTION_ROLE_SPECS)

    text = format_role_setup(result)
    assert "✓ She/Her (already exists)" in text
    assert "✅ He/Him (created)" in text


@pytest.mark.asyncio
async def test_ensure_reaction_roles_reports_failures() -> None:
    class BrokenGuild(FakeGuild):
        async def create_role(self, **kwargs):
            raise discord.Forbidden(SimpleNamespace(status=403, reason="Forbidden"), "Missing Permissions")

    result = await ensure_reaction_roles(BrokenGuild({}), requested_by="Staff")
    assert result.env_lines == []
    assert all(line.startswith("❌") for line in result.actions)
