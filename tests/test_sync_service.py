from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from config.settings import Settings
from services.backend_service import (
    BackendError,
    BackendService,
    BackendUnavailable,
    GracePeriodUser,
    Subscriber,
)
from services.sync_service import (
    REASON_GRACE_EXPIRED,
    REASON_NO_SUBSCRIPTION,
    SyncService,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _settings(**overrides) -> Settings:
    values = dict(
        discord_token="token",
        guild_id=10,
        subscribed_role_id=20,
        backend_api_token="x" * 32,
    )
    values.update(overrides)
    return Settings(**values)


class FakeRoles:
    def __init__(self, holders: set[int] | None = None) -> None:
        self.holders = set(holders or ())
        self.added: list[int] = []
        self.removed: list[tuple[int, str]] = []
        self.broken: set[int] = set()
        self.missing: set[int] = set()

    async def add_subscribed_role(self, discord_id: int, reason: str = "Subscription active") -> bool:
        if discord_id in self.broken:
            raise RuntimeError("discord exploded")
        if discord_id in self.missing:
            return False
        self.added.append(discord_id)
        self.holders.add(discord_id)
        return True

    async def remove_subscribed_role(self, discord_id: int, reason: str = "Subscription ended") -> bool:
        self.removed.append((discord_id, reason))
        self.holders.discard(discord_id)
        return True

    async def sync_user_role(self, discord_id: int, is_subscribed: bool) -> bool:
        if is_subscribed:
            return await self.add_subscribed_role(discord_id)
        return await self.remove_subscribed_role(discord_id)

    async def get_all_subscribed_members(self) -> list[int]:
        return sorted(self.holders)


class FakeBackend:
    def __init__(self, active=(), grace=()) -> None:
        self.active = list(active)
        self.grace = list(grace)
        self.fail = False
        self.removed_from_grace: list[int] = []
        self.gate: asyncio.Event | None = None

    async def get_active_subscribers(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise BackendUnavailable("down")
        return list(self.active)

    async def get_grace_period_users(self):
        if self.fail:
            raise BackendUnavailable("down")
        return list(self.grace)

    async def remove_from_grace_period(self, user_id, discord_id: int) -> bool:
        self.removed_from_grace.append(discord_id)
        return True


class FakeNotifier:
    def __init__(self) -> None:
        self.confirmations: list[int] = []
        self.reminders: list[tuple[int, int]] = []
        self.expired: list[int] = []

    async def send_subscription_confirmation(self, discord_id: int) -> bool:
        self.confirmations.append(discord_id)
        return True

    async def send_grace_period_reminder(self, discord_id: int, days_remaining: int) -> bool:
        self.reminders.append((discord_id, days_remaining))
        return True

    async def send_subscription_expired(self, discord_id: int) -> bool:
        self.expired.append(discord_id)
        return True


def _grace(discord_id: int, ends_at: datetime, *, dm_enabled: bool = True) -> GracePeriodUser:
    return GracePeriodUser(
        user_id=f"u{discord_id}", discord_id=discord_id, grace_period_ends_at=ends_at, dm_enabled=dm_enabled
    )


def _service(roles, backend, notifier, **settings) -> SyncService:
    return SyncService(roles, backend, notifier, _settings(**settings), clock=lambda: NOW)


@pytest.mark.asyncio
async def test_active_subscribers_get_role() -> None:
    roles = FakeRoles()
    backend = FakeBackend(active=[Subscriber(user_id="a", discord_id=1), Subscriber(user_id="b", discord_id=2)])
    report = await _service(roles, backend, FakeNotifier()).perform_daily_sync()

    assert roles.added == [1, 2]
    assert report.active_subscribers == 2
    assert report.roles_ensured == 2
    assert report.failures == 0


@pytest.mark.asyncio
async def test_grace_user_with_time_left_keeps_role_and_is_reminded() -> None:
    roles = FakeRoles()
    notifier = FakeNotifier()
    backend = FakeBackend(grace=[_grace(5, NOW + timedelta(days=2, hours=3))])

    report = await _service(roles, backend, notifier).perform_daily_sync()

    assert roles.added == [5]
    assert notifier.reminders == [(5, 3)]
    assert roles.removed == []
    assert report.reminders_sent == 1


@pytest.mark.asyncio
async def test_grace_ending_one_second_from_now_counts_as_one_day() -> None:
    roles = FakeRoles()
    notifier = FakeNotifier()
    backend = FakeBackend(grace=[_grace(5, NOW + timedelta(seconds=1))])

    await _service(roles, backend, notifier).perform_daily_sync()

    assert notifier.reminders == [(5, 1)]
    assert roles.removed == []


@pytest.mark.asyncio
async def test_grace_ending_now_expires() -> None:
    roles = FakeRoles(holders={5})
    notifier = FakeNotifier()
    backend = FakeBackend(grace=[_grace(5, NOW)])

    report = await _service(roles, backend, notifier).perform_daily_sync()

    assert roles.removed == [(5, REASON_GRACE_EXPIRED)]
    assert notifier.expired == [5]
    assert notifier.reminders == []
    assert report.expirations == 1


@pytest.mark.asyncio
async def test_reminder_respects_user_opt_out() -> None:
    notifier = FakeNotifier()
    backend = FakeBackend(grace=[_grace(5, NOW + timedelta(days=3), dm_enabled=False)])

    await _service(FakeRoles(), backend, notifier).perform_daily_sync()

    assert notifier.reminders == []


@pytest.mark.asyncio
async def test_reminder_respects_global_switch() -> None:
    notifier = FakeNotifier()
    backend = FakeBackend(grace=[_grace(5, NOW + timedelta(days=3))])

    await _service(FakeRoles(), backend, notifier, grace_period_dm_enabled=False).perform_daily_sync()

    assert notifier.reminders == []


@pytest.mark.asyncio
async def test_drift_removes_only_unknown_holders() -> None:
    roles = FakeRoles(holders={1, 5, 99})
    backend = FakeBackend(
        active=[Subscriber(user_id="a", discord_id=1)],
        grace=[_grace(5, NOW + timedelta(days=1))],
    )

    report = await _service(roles, backend, FakeNotifier()).perform_daily_sync()

    assert roles.removed == [(99, REASON_NO_SUBSCRIPTION)]
    assert roles.holders == {1, 5}
    assert report.drift_removed == 1


@pytest.mark.asyncio
async def test_backend_failure_aborts_without_touching_roles() -> None:
    roles = FakeRoles(holders={1, 2})
    backend = FakeBackend(active=[Subscriber(user_id="a", discord_id=1)])
    backend.fail = True

    with pytest.raises(BackendUnavailable):
        await _service(roles, backend, FakeNotifier()).perform_daily_sync()

    assert roles.added == []
    assert roles.removed == []
    assert roles.holders == {1, 2}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["<html>maintenance</html>", "", "{}"])
async def test_unusable_backend_body_aborts_without_touching_roles(body: str) -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.Response(text=body, content_type="text/html")

    app = web.Application()
    app.router.add_get("/api/admin/subscribers", handler)
    app.router.add_get("/api/admin/grace-period", handler)
    server = TestServer(app)
    await server.start_server()
    try:
        settings = _settings(backend_api_url=str(server.make_url("")), backend_http_timeout_seconds=5)
        roles = FakeRoles(holders={1, 2, 3})
        service = SyncService(roles, BackendService(settings), FakeNotifier(), settings, clock=lambda: NOW)

        with pytest.raises(BackendError):
            await service.perform_daily_sync()
    finally:
        await server.close()

    assert roles.removed == []
    assert roles.holders == {1, 2, 3}

@pytest.mark.asyncio
async def test_per_member_failure_is_counted_and_pass_continues() -> None:
    roles = FakeRoles()
    roles.broken.add(1)
    backend = FakeBackend(active=[Subscriber(user_id="a", discord_id=1), Subscriber(user_id="b", discord_id=2)])

    report = await _service(roles, backend, FakeNotifier()).perform_daily_sync()

    assert roles.added == [2]
    assert report.failures == 1
    assert report.roles_ensured == 1


@pytest.mark.asyncio
async def test_overlapping_sync_is_skipped() -> None:
    roles = FakeRoles()
    backend = FakeBackend(active=[Subscriber(user_id="a", discord_id=1)])
    backend.gate = asyncio.Event()
    service = _service(roles, backend, FakeNotifier())

    first = asyncio.create_task(service.perform_daily_sync())
    await asyncio.sleep(0)
    assert service.running
    second = await service.perform_daily_sync()
    backend.gate.set()
    completed = await first

    assert second.skipped
    assert not completed.skipped
    assert roles.added == [1]


@pytest.mark.asyncio
async def test_payment_grants_role_and_clears_grace_period() -> None:
    roles = FakeRoles()
    notifier = FakeNotifier()
    backend = FakeBackend(grace=[_grace(7, NOW + timedelta(days=2))])

    granted = await _service(roles, backend, notifier).sync_user_on_payment(7)

    assert granted
    assert roles.added == [7]
    assert notifier.confirmations == [7]
    assert backend.removed_from_grace == [7]


@pytest.mark.asyncio
async def test_payment_succeeds_when_grace_lookup_fails() -> None:
    roles = FakeRoles()
    backend = FakeBackend()
    backend.fail = True

    assert await _service(roles, backend, FakeNotifier()).sync_user_on_payment(7)
    assert roles.added == [7]


@pytest.mark.asyncio
async def test_new_member_gets_role_only_when_subscribed() -> None:
    roles = FakeRoles()
    notifier = FakeNotifier()
    backend = FakeBackend(active=[Subscriber(user_id="a", discord_id=1)])
    service = _service(roles, backend, notifier)

    assert await service.sync_new_member(1)
    assert not await service.sync_new_member(2)
    assert roles.added == [1]
    assert notifier.confirmations == [1]


@pytest.mark.asyncio
async def test_payment_confirmation_is_sent_even_when_role_grant_fails() -> None:
    roles = FakeRoles()
    roles.missing.add(7)
    notifier = FakeNotifier()

    granted = await _service(roles, FakeBackend(), notifier).sync_user_on_payment(7)

    assert not granted
    assert roles.added == []
    assert notifier.confirmations == [7]
