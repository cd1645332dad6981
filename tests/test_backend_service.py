from __future__ import annotations

from datetime import datetime, timezone

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from config.settings import Settings
from services.backend_service import (
    BackendAuthError,
    BackendParseError,
    BackendRequestError,
    BackendService,
    BackendUnavailable,
    parse_discord_id,
    parse_grace_period_users,
    parse_subscribers,
)

TOKEN = "b" * 40


def _settings(url: str) -> Settings:
    return Settings(
        discord_token="token",
        guild_id=10,
        subscribed_role_id=20,
        backend_api_token=TOKEN,
        backend_api_url=url,
        backend_http_timeout_seconds=5,
    )


def test_parse_discord_id() -> None:
    assert parse_discord_id("123") == 123
    assert parse_discord_id(456) == 456
    assert parse_discord_id(" 789 ") == 789
    assert parse_discord_id(None) is None
    assert parse_discord_id("abc") is None
    assert parse_discord_id(True) is None


def test_parse_subscribers_skips_rows_without_discord_id() -> None:
    rows = parse_subscribers(
        {
            "subscribers": [
                {"userId": "u1", "discordId": "1", "expiresAt": "2030-01-01T00:00:00Z"},
                {"userId": "u2", "discordId": None},
                "junk",
            ]
        }
    )
    assert [r.discord_id for r in rows] == [1]
    assert rows[0].expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)


def test_parse_grace_period_users() -> None:
    rows = parse_grace_period_users(
        {
            "gracePeriodUsers": [
                {"userId": "u1", "discordId": "1", "gracePeriodEndsAt": "2030-01-01T00:00:00Z"},
                {"userId": "u2", "discordId": "2", "gracePeriodEndsAt": "2030-01-02T00:00:00Z", "dmEnabled": False},
                {"userId": "u3", "discordId": "3"},
            ]
        }
    )
    assert [r.discord_id for r in rows] == [1, 2]
    assert rows[0].dm_enabled is True
    assert rows[1].dm_enabled is False


def _backend_app(calls: list[tuple[str, str, object]]) -> web.Application:
    async def subscribers(request: web.Request) -> web.Response:
        calls.append((request.method, request.path, request.headers.get("Authorization")))
        return web.json_response({"subscribers": [{"userId": "u1", "discordId": "11"}]})

    async def grace(request: web.Request) -> web.Response:
        calls.append((request.method, request.path, None))
        return web.json_response(
            {"gracePeriodUsers": [{"userId": "u2", "discordId": "22", "gracePeriodEndsAt": "2030-01-01T00:00:00Z"}]}
        )

    async def grace_action(request: web.Request) -> web.Response:
        calls.append((request.method, request.path, await request.json()))
        return web.json_response({"ok": True})

    async def dm_preference(request: web.Request) -> web.Response:
        calls.append((request.method, request.path, await request.json()))
        return web.json_response({"ok": True})

    async def gift(request: web.Request) -> web.Response:
        body = await request.json()
        calls.append((request.method, request.path, body))
        if body["discordId"] == "404":
            return web.json_response({"error": "User not found"}, status=404)
        return web.json_response({"user": {"expiresAt": "2030-02-01T00:00:00Z"}})

    app = web.Application()
    app.router.add_get("/api/admin/subscribers", subscribers)
    app.router.add_get("/api/admin/grace-period", grace)
    app.router.add_post("/api/admin/grace-period/{action}", grace_action)
    app.router.add_put("/api/admin/users/{user_id}/grace-dm-preference", dm_preference)
    app.router.add_post("/api/admin/subscriptions/gift", gift)
    return app


@pytest.mark.asyncio
async def test_backend_service_round_trip() -> None:
    calls: list[tuple[str, str, object]] = []
    server = TestServer(_backend_app(calls))
    await server.start_server()
    try:
        backend = BackendService(_settings(str(server.make_url(""))))

        subscribers = await backend.get_active_subscribers()
        assert [s.discord_id for s in subscribers] == [11]
        assert calls[-1] == ("GET", "/api/admin/subscribers", f"Bearer {TOKEN}")

        grace = await backend.get_grace_period_users()
        assert [g.discord_id for g in grace] == [22]

        assert await backend.move_to_grace_period("u1", 11)
        assert calls[-1] == ("POST", "/api/admin/grace-period/add", {"userId": "u1", "discordId": "11"})

        assert await backend.remove_from_grace_period("u2", 22)
        assert calls[-1] == ("POST", "/api/admin/grace-period/remove", {"userId": "u2", "discordId": "22"})

        assert await backend.set_grace_period_dm_preference(22, False)
        assert calls[-1] == ("PUT", "/api/admin/users/22/grace-dm-preference", {"dmEnabled": False})

        result = await backend.gift_subscription(33, duration="1_month", reason="Event winner")
        assert result.expires_at == datetime(2030, 2, 1, tzinfo=timezone.utc)
        assert calls[-1][2] == {"discordId": "33", "duration": "1_month", "reason": "Event winner"}

        with pytest.raises(BackendRequestError) as excinfo:
            await backend.gift_subscription(404, duration="1_month", reason="x")
        assert excinfo.value.status == 404
        assert excinfo.value.message == "User not found"
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_gift_rejects_unknown_duration() -> None:
    backend = BackendService(_settings("http://127.0.0.1:9"))
    with pytest.raises(ValueError):
        await backend.gift_subscription(1, duration="forever", reason="x")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "error"),
    [(401, BackendAuthError), (403, BackendAuthError), (503, BackendUnavailable)],
)
async def test_backend_status_errors(status: int, error: type[Exception]) -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.json_response({"error": "nope"}, status=status)

    app = web.Application()
    app.router.add_get("/api/admin/subscribers", handler)
    server = TestServer(app)
    await server.start_server()
    try:
        backend = BackendService(_settings(str(server.make_url(""))))
        with pytest.raises(error):
            await backend.get_active_subscribers()
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_backend_non_object_body_is_a_parse_error() -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.json_response([1, 2, 3])

    app = web.Application()
    app.router.add_get("/api/admin/grace-period", handler)
    server = TestServer(app)
    await server.start_server()
    try:
        backend = BackendService(_settings(str(server.make_url(""))))
        with pytest.raises(BackendParseError):
            await backend.get_grace_period_users()
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_backend_unreachable_is_unavailable() -> None:
    backend = BackendService(_settings("http://127.0.0.1:9"))
    with pytest.raises(BackendUnavailable):
        await backend.get_active_subscribers()


@pytest.mark.asyncio
async def test_best_effort_calls_swallow_backend_errors() -> None:
    backend = BackendService(_settings("http://127.0.0.1:9"))
    assert await backend.expire_grace_period("u1", 1) is False
    assert await backend.set_grace_period_dm_preference(1, True) is False
    await backend.log_bot_action(1, "character_approved", {"approvedBy": "2"})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    ["<html>maintenance</html>", "", "{}", '{"subscribers": null, "gracePeriodUsers": "none"}'],
)
async def test_source_set_reads_reject_unusable_bodies(body: str) -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.Response(text=body, content_type="text/html")

    app = web.Application()
    app.router.add_get("/api/admin/subscribers", handler)
    app.router.add_get("/api/admin/grace-period", handler)
    server = TestServer(app)
    await server.start_server()
    try:
        backend = BackendService(_settings(str(server.make_url(""))))
        with pytest.raises(BackendParseError):
            await backend.get_active_subscribers()
        with pytest.raises(BackendParseError):
            await backend.get_grace_period_users()
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_empty_source_lists_are_valid() -> None:
    async def subscribers(_request: web.Request) -> web.Response:
        return web.json_response({"subscribers": []})

    async def grace(_request: web.Request) -> web.Response:
        return web.json_response({"gracePeriodUsers": []})

    app = web.Application()
    app.router.add_get("/api/admin/subscribers", subscribers)
    app.router.add_get("/api/admin/grace-period", grace)
    server = TestServer(app)
    await server.start_server()
    try:
        backend = BackendService(_settings(str(server.make_url(""))))
        assert await backend.get_active_subscribers() == []
        assert await backend.get_grace_period_users() == []
    finally:
        await server.close()
