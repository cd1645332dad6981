from __future__ import annotations

from types import SimpleNamespace

import discord
import mongomock
import pytest

import database
from config.settings import Settings
from services.reaction_role_service import ReactionRoleService
from services.role_menu_service import (
    MENU_PM,
    MENU_PRONOUNS,
    MENU_REGIONS,
    build_role_menus,
    missing_role_envs,
    reaction_menu_embed,
    select_role,
)
from services.role_service import RoleChange

SHE_HER, HE_HIM = 101, 102
PM_OK, PM_ASK, PM_NO = 201, 202, 203


def _settings(**overrides) -> Settings:
    values = dict(
        discord_token="token",
        guild_id=10,
        subscribed_role_id=20,
        backend_api_token="x" * 32,
        self_role_ids={
            "DISCORD_GENDER_SHE_HER_ROLE_ID": SHE_HER,
            "DISCORD_GENDER_HE_HIM_ROLE_ID": HE_HIM,
            "DISCORD_PM_OK_ROLE_ID": PM_OK,
            "DISCORD_PM_ASK_ROLE_ID": PM_ASK,
            "DISCORD_PM_NO_ROLE_ID": PM_NO,
        },
    )
    values.update(overrides)
    return Settings(**values)


class FakeMember:
    def __init__(self, *role_ids: int, forbidden: bool = False) -> None:
        self.id = 555
        self.roles = [SimpleNamespace(id=r) for r in role_ids]
        self.forbidden = forbidden

    @property
    def role_ids(self) -> set[int]:
        return {r.id for r in self.roles}

    async def add_roles(self, role, *, reason=None) -> None:
        if self.forbidden:
            raise discord.Forbidden(SimpleNamespace(status=403, reason="Forbidden"), "Missing Permissions")
        self.roles.append(SimpleNamespace(id=role.id))

    async def remove_roles(self, role, *, reason=None) -> None:
        if self.forbidden:
            raise discord.Forbidden(SimpleNamespace(status=403, reason="Forbidden"), "Missing Permissions")
        self.roles = [r for r in self.roles if r.id != role.id]


def test_menus_only_contain_configured_roles() -> None:
    menus = build_role_menus(_settings())
    assert menus[MENU_PRONOUNS].role_ids == [SHE_HER, HE_HIM]
    assert menus[MENU_PM].role_ids == [PM_OK, PM_ASK, PM_NO]
    assert menus[MENU_PM].exclusive
    assert not menus[MENU_PRONOUNS].exclusive
    assert menus[MENU_REGIONS].options == ()
    assert "DISCORD_REGION_EUROPE_ROLE_ID" in missing_role_envs(MENU_REGIONS, _settings())
    assert missing_role_envs(MENU_PM, _settings()) == []


def test_reaction_menu_embed_lists_every_option() -> None:
    menu = build_role_menus(_settings())[MENU_PM]
    embed = reaction_menu_embed(menu)
    assert [f.name for f in embed.fields] == ["✅ OK to PM", "❔ Ask to PM", "🚫 No PMs"]


@pytest.mark.asyncio
async def test_non_exclusive_menu_toggles() -> None:
    menu = build_role_menus(_settings())[MENU_PRONOUNS]
    member = FakeMember(HE_HIM)

    outcome = await select_role(member, menu, SHE_HER)
    assert outcome.change is RoleChange.ADDED
    assert member.role_ids == {SHE_HER, HE_HIM}

    outcome = await select_role(member, menu, SHE_HER)
    assert outcome.change is RoleChange.REMOVED
    assert member.role_ids == {HE_HIM}


@pytest.mark.asyncio
async def test_exclusive_menu_keeps_a_single_role() -> None:
    menu = build_role_menus(_settings())[MENU_PM]
    member = FakeMember(PM_OK, 999)

    outcome = await select_role(member, menu, PM_NO)
    assert outcome.change is RoleChange.ADDED
    assert outcome.cleared == (PM_OK,)
    assert member.role_ids == {PM_NO, 999}
    assert outcome.message(menu) == "✅ Updated your preference!"

    outcome = await select_role(member, menu, PM_NO)
    assert outcome.change is RoleChange.REMOVED
    assert member.role_ids == {999}


@pytest.mark.asyncio
async def test_select_role_outside_menu_fails() -> None:
    menu = build_role_menus(_settings())[MENU_PM]
    member = FakeMember()
    outcome = await select_role(member, menu, SHE_HER)
    assert not outcome.ok
    assert member.role_ids == set()


@pytest.mark.asyncio
async def test_forbidden_role_change_is_reported() -> None:
    menu = build_role_menus(_settings())[MENU_PRONOUNS]
    outcome = await select_role(FakeMember(forbidden=True), menu, SHE_HER)
    assert outcome.change is RoleChange.FORBIDDEN
    assert "role position" in outcome.message(menu)


class FakeMenuMessage:
    def __init__(self, message_id: int) -> None:
        self.id = message_id
        self.reactions: list[str] = []

    async def add_reaction(self, emoji: str) -> None:
        self.reactions.append(emoji)


class FakeChannel:
    id = 77

    async def send(self, *, embed) -> FakeMenuMessage:
        return FakeMenuMessage(4242)


@pytest.mark.asyncio
async def test_reaction_menu_post_and_apply() -> None:
    menus = build_role_menus(_settings())
    service = ReactionRoleService(menus)

    message = await service.post_menu(FakeChannel(), menus[MENU_PM])
    assert message.reactions == ["✅", "❔", "🚫"]
    assert service.menu_for_message(4242) is menus[MENU_PM]

    member = FakeMember(PM_OK)
    outcome = await service.handle_reaction(member, 4242, "🚫", added=True)
    assert outcome.change is RoleChange.ADDED
    assert member.role_ids == {PM_NO}

    outcome = await service.handle_reaction(member, 4242, "🚫", added=False)
    assert outcome.change is RoleChange.REMOVED
    assert member.role_ids == set()

    assert await service.handle_reaction(member, 4242, "🔥", added=True) is None
    assert await service.handle_reaction(member, 1, "✅", added=True) is None


def test_register_rejects_unknown_menu() -> None:
    service = ReactionRoleService(build_role_menus(_settings()))
    with pytest.raises(KeyError):
        service.register(1, "colours")


def test_reaction_role_messages_survive_restart(monkeypatch) -> None:
    monkeypatch.setattr(database, "MongoClient", mongomock.MongoClient)
    monkeypatch.setattr(database, "_CLIENT", None)
    settings = _settings(mongodb_uri="mongodb://localhost", mongodb_db_name="testdb")
    menus = build_role_menus(settings)

    first = ReactionRoleService(menus, settings)
    first.register(4242, MENU_PM, channel_id=77)
    first.register(4343, MENU_PRONOUNS, channel_id=77)

    restarted = ReactionRoleService(menus, settings)
    assert restarted.load() == 2
    assert restarted.menu_for_message(4242) is menus[MENU_PM]
    assert restarted.menu_for_message(4343) is menus[MENU_PRONOUNS]
