from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import aiohttp

from config.settings import Settings
from utils.time_utils import parse_iso_datetime

LOGGER = logging.getLogger(__name__)

GIFT_DURATIONS: dict[str, str] = {
    "1_month": "1 month",
    "3_months": "3 months",
    "6_months": "6 months",
    "1_year": "1 year",
}


class BackendError(Exception):
    pass


class BackendAuthError(BackendError):
    pass


class BackendUnavailable(BackendError):
    pass


class BackendParseError(BackendError):
    pass


class BackendRequestError(BackendError):
    def __init__(self, status: int, message: str | None = None) -> None:
        super().__init__(message or f"Backend rejected request (status={status}).")
        self.status = status
        self.message = message


@dataclass(frozen=True)
class Subscriber:
    user_id: str | None
    discord_id: int
    expires_at: datetime | None = None
    is_active: bool = True


@dataclass(frozen=True)
class GracePeriodUser:
    user_id: str | None
    discord_id: int
    grace_period_ends_at: datetime
    dm_enabled: bool = True


@dataclass(frozen=True)
class GiftResult:
    discord_id: int
    duration: str
    expires_at: datetime | None


def parse_discord_id(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _parse_user_id(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_rows(payload: dict[str, Any], key: str) -> None:
    # An empty list is a valid answer; a missing one must never read as "nobody".
    if not isinstance(payload.get(key), list):
        LOGGER.warning("Backend response is missing the %s list.", key)
        raise BackendParseError(f"Response is missing the {key!r} list.")


def parse_subscribers(payload: dict[str, Any]) -> list[Subscriber]:
    rows = payload.get("subscribers")
    if not isinstance(rows, list):
        return []
    out: list[Subscriber] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        discord_id = parse_discord_id(row.get("discordId"))
        if discord_id is None:
            LOGGER.warning("Skipping subscriber without discordId (userId=%s).", row.get("userId"))
            continue
        out.append(
            Subscriber(
                user_id=_parse_user_id(row.get("userId")),
                discord_id=discord_id,
                expires_at=parse_iso_datetime(row.get("expiresAt")),
                is_active=bool(row.get("isActive", True)),
            )
        )
    return out


def parse_grace_period_users(payload: dict[str, Any]) -> list[GracePeriodUser]:
    rows = payload.get("gracePeriodUsers")
    if not isinstance(rows, list):
        return []
    out: list[GracePeriodUser] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        discord_id = parse_discord_id(row.get("discordId"))
        ends_at = parse_iso_datetime(row.get("gracePeriodEndsAt") or row.get("graceEndsAt"))
        if discord_id is None or ends_at is None:
            LOGGER.warning(
                "Skipping grace period user with missing discordId/gracePeriodEndsAt (userId=%s).",
                row.get("userId"),
            )
            continue
        out.append(
            GracePeriodUser(
                user_id=_parse_user_id(row.get("userId")),
                discord_id=discord_id,
                grace_period_ends_at=ends_at,
                dm_enabled=bool(row.get("dmEnabled", True)),
            )
        )
    return out


class BackendService:
    """
    Bearer-authenticated client for the billing backend admin API.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.base_url = settings.backend_api_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.backend_api_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        require_body: bool = False,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=float(self.settings.backend_http_timeout_seconds))
        async with aiohttp.ClientSession(timeout=timeout, headers=self._headers()) as session:
            try:
                async with session.request(method, url, json=json) as resp:
                    status = resp.status
                    try:
                        data = await resp.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError):
                        data = None
                    if status in {401, 403}:
                        LOGGER.error("Backend rejected credentials (status=%s url=%s).", status, url)
                        raise BackendAuthError(f"Authentication failed (status={status}).")
                    if status >= 500:
                        LOGGER.warning("Backend upstream error (status=%s url=%s).", status, url)
                        raise BackendUnavailable(f"Upstream error (status={status}).")
                    if status >= 400:
                        message = data.get("error") if isinstance(data, dict) else None
                        LOGGER.warning("Backend request rejected (status=%s url=%s).", status, url)
                        raise BackendRequestError(status, message)
            except asyncio.TimeoutError as exc:
                LOGGER.warning("Backend request timed out (url=%s).", url)
                raise BackendUnavailable("Request timed out.") from exc
            except aiohttp.ClientError as exc:
                LOGGER.warning("Backend HTTP client error (url=%s): %s", url, exc)
                raise BackendUnavailable("Could not connect to backend API.") from exc

        if data is None:
            if require_body:
                LOGGER.warning("Backend returned no JSON body (url=%s).", url)
                raise BackendParseError("Expected a JSON body.")
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Backend JSON shape mismatch (expected object url=%s).", url)
            raise BackendParseError("Expected JSON object.")
        return data

    async def get_active_subscribers(self) -> list[Subscriber]:
        data = await self._request("GET", "/api/admin/subscribers", require_body=True)
        _require_rows(data, "subscribers")
        return parse_subscribers(data)

    async def get_grace_period_users(self) -> list[GracePeriodUser]:
        data = await self._request("GET", "/api/admin/grace-period", require_body=True)
        _require_rows(data, "gracePeriodUsers")
        return parse_grace_period_users(data)

    async def _grace_period_action(self, action: str, user_id: str | None, discord_id: int) -> bool:
        try:
            await self._request(
                "POST",
                f"/api/admin/grace-period/{action}",
                json={"userId": user_id, "discordId": str(discord_id)},
            )
        except BackendError:
            LOGGER.exception("Grace period %s failed (user=%s discord=%s).", action, user_id, discord_id)
            return False
        LOGGER.info("Grace period %s succeeded (user=%s discord=%s).", action, user_id, discord_id)
        return True

    async def move_to_grace_period(self, user_id: str | None, discord_id: int) -> bool:
        return await self._grace_period_action("add", user_id, discord_id)

    async def remove_from_grace_period(self, user_id: str | None, discord_id: int) -> bool:
        return await self._grace_period_action("remove", user_id, discord_id)

    async def expire_grace_period(self, user_id: str | None, discord_id: int) -> bool:
        return await self._grace_period_action("expire", user_id, discord_id)

    async def set_grace_period_dm_preference(self, user_id: str | int, enabled: bool) -> bool:
        try:
            await self._request(
                "PUT",
                f"/api/admin/users/{user_id}/grace-dm-preference",
                json={"dmEnabled": enabled},
            )
        except BackendError:
            LOGGER.exception("Failed to update DM preference (user=%s).", user_id)
            return False
        LOGGER.info("Updated grace period DM preference (user=%s enabled=%s).", user_id, enabled)
        return True

    async def log_bot_action(
        self,
        user_id: str | int | None,
        action: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        try:
            await self._request(
                "POST",
                "/api/admin/audit-log",
                json={
                    "userId": None if user_id is None else str(user_id),
                    "eventType": f"bot.{action}",
                    "payload": details or {},
                },
            )
        except BackendError:
            LOGGER.exception("Failed to log bot action (user=%s action=%s).", user_id, action)

    async def gift_subscription(
        self,
        discord_id: int,
        *,
        duration: str,
        reason: str,
    ) -> GiftResult:
        if duration not in GIFT_DURATIONS:
            raise ValueError(f"Unsupported gift duration {duration!r}.")
        data = await self._request(
            "POST",
            "/api/admin/subscriptions/gift",
            json={"discordId": str(discord_id), "duration": duration, "reason": reason},
        )
        user = data.get("user") if isinstance(data.get("user"), dict) else {}
        return GiftResult(
            discord_id=discord_id,
            duration=duration,
            expires_at=parse_iso_datetime(user.get("expiresAt")),
        )
