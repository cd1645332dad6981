from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Iterable

from utils.time_utils import parse_daily_schedule, resolve_timezone

from . import constants


@dataclass(frozen=True)
class Settings:
    discord_token: str
    guild_id: int
    subscribed_role_id: int
    backend_api_token: str
    discord_client_id: int | None = None
    player_role_id: int | None = None
    roll_dice_role_id: int | None = None
    staff_role_id: int | None = None
    channel_character_setup_id: int | None = None
    channel_queue_id: int | None = None
    channel_quest_board_id: int | None = None
    channel_daily_job_id: int | None = None
    channel_player_intros_id: int | None = None
    channel_survival_id: int | None = None
    channel_welcome_id: int | None = None
    self_role_ids: dict[str, int] = field(default_factory=dict)
    backend_api_url: str = constants.DEFAULT_BACKEND_API_URL
    backend_http_timeout_seconds: int = 10
    checkout_url: str = constants.DEFAULT_CHECKOUT_URL
    website_url: str = constants.DEFAULT_WEBSITE_URL
    welcome_image_url: str | None = None
    grace_period_days: int = 7
    grace_period_dm_enabled: bool = True
    starboard_channel_id: int | None = None
    starboard_threshold: int = 1
    daily_sync_schedule: str = constants.DEFAULT_DAILY_SYNC_SCHEDULE
    schedule_timezone: str | None = None
    webhook_host: str = "0.0.0.0"
    webhook_port: int = 3001
    mongodb_uri: str | None = None
    mongodb_db_name: str | None = None


def _required_str(name: str, missing: list[str]) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        missing.append(name)
    return value


def _required_int(name: str, missing: list[str], invalid: list[str]) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        missing.append(name)
        return 0
    try:
        return int(raw)
    except ValueError:
        invalid.append(name)
        return 0


def _optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer.") from None


def _optional_int_default(name: str, default: int) -> int:
    value = _optional_int(name)
    return default if value is None else value


def _optional_str(name: str) -> str | None:
    raw = os.getenv(name, "").strip()
    return raw or None


def _optional_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"{name} must be a boolean (true/false).")


def _optional_int_map(names: Iterable[str]) -> dict[str, int]:
    values: dict[str, int] = {}
    for name in names:
        value = _optional_int(name)
        if value is not None:
            values[name] = value
    return values


def _format_list(values: Iterable[str]) -> str:
    return ", ".join(sorted(values))


def load_settings() -> Settings:
    """
    Load and validate environment configuration.
    Raises RuntimeError with a consolidated message when required values are missing/invalid.
    """
    missing: list[str] = []
    invalid: list[str] = []

    discord_token = _required_str(constants.DISCORD_TOKEN_ENV, missing)
    guild_id = _required_int(constants.DISCORD_GUILD_ID_ENV, missing, invalid)
    subscribed_role_id = _required_int(constants.DISCORD_SUBSCRIBED_ROLE_ID_ENV, missing, invalid)
    backend_api_token = _required_str(constants.BACKEND_API_TOKEN_ENV, missing)

    if missing or invalid:
        details = []
        if missing:
            details.append(f"Missing required config: {_format_list(missing)}")
        if invalid:
            details.append(f"Invalid integer config: {_format_list(invalid)}")
        raise RuntimeError("; ".join(details))

    if len(backend_api_token) < constants.BACKEND_API_TOKEN_MIN_LENGTH:
        raise RuntimeError(
            f"{constants.BACKEND_API_TOKEN_ENV} must be at least "
            f"{constants.BACKEND_API_TOKEN_MIN_LENGTH} characters long."
        )

    command_envs = (
        constants.DISCORD_PLAYER_ROLE_ID_ENV,
        constants.DISCORD_ROLL_DICE_ROLE_ID_ENV,
        constants.DISCORD_STAFF_ROLE_ID_ENV,
    )
    missing_command_envs = [name for name in command_envs if not os.getenv(name, "").strip()]
    if missing_command_envs:
        logging.warning(
            "Missing optional slash command config: %s. Some staff commands will be limited.",
            _format_list(missing_command_envs),
        )

    starboard_threshold = _optional_int_default(constants.STARBOARD_THRESHOLD_ENV, default=1)
    if starboard_threshold <= 0:
        raise RuntimeError("STARBOARD_THRESHOLD must be > 0.")
    grace_period_days = _optional_int_default(constants.GRACE_PERIOD_DAYS_ENV, default=7)
    if grace_period_days <= 0:
        raise RuntimeError("GRACE_PERIOD_DAYS must be > 0.")
    backend_http_timeout_seconds = _optional_int_default(
        constants.BACKEND_HTTP_TIMEOUT_SECONDS_ENV, default=10
    )
    if backend_http_timeout_seconds <= 0:
        raise RuntimeError("BACKEND_HTTP_TIMEOUT_SECONDS must be > 0.")

    daily_sync_schedule = (
        _optional_str(constants.DAILY_SYNC_SCHEDULE_ENV) or constants.DEFAULT_DAILY_SYNC_SCHEDULE
    )
    schedule_timezone = _optional_str(constants.SCHEDULE_TIMEZONE_ENV)
    try:
        parse_daily_schedule(daily_sync_schedule)
        resolve_timezone(schedule_timezone)
    except ValueError as exc:
        raise RuntimeError(str(exc)) from None

    return Settings(
        discord_token=discord_token,
        guild_id=guild_id,
        subscribed_role_id=subscribed_role_id,
        backend_api_token=backend_api_token,
        discord_client_id=_optional_int(constants.DISCORD_CLIENT_ID_ENV),
        player_role_id=_optional_int(constants.DISCORD_PLAYER_ROLE_ID_ENV),
        roll_dice_role_id=_optional_int(constants.DISCORD_ROLL_DICE_ROLE_ID_ENV),
        staff_role_id=_optional_int(constants.DISCORD_STAFF_ROLE_ID_ENV),
        channel_character_setup_id=_optional_int(constants.CHANNEL_CHARACTER_SETUP_ID_ENV),
        channel_queue_id=_optional_int(constants.CHANNEL_QUEUE_ID_ENV),
        channel_quest_board_id=_optional_int(constants.CHANNEL_QUEST_BOARD_ID_ENV),
        channel_daily_job_id=_optional_int(constants.CHANNEL_DAILY_JOB_ID_ENV),
        channel_player_intros_id=_optional_int(constants.CHANNEL_PLAYER_INTROS_ID_ENV),
        channel_survival_id=_optional_int(constants.CHANNEL_SURVIVAL_ID_ENV),
        channel_welcome_id=_optional_int(constants.CHANNEL_WELCOME_ID_ENV),
        self_role_ids=_optional_int_map(constants.SELF_ROLE_ENVS),
        backend_api_url=(
            _optional_str(constants.BACKEND_API_URL_ENV) or constants.DEFAULT_BACKEND_API_URL
        ).rstrip("/"),
        backend_http_timeout_seconds=backend_http_timeout_seconds,
        checkout_url=_optional_str(constants.CHECKOUT_URL_ENV) or constants.DEFAULT_CHECKOUT_URL,
        website_url=_optional_str(constants.WEBSITE_URL_ENV) or constants.DEFAULT_WEBSITE_URL,
        welcome_image_url=_optional_str(constants.WELCOME_IMAGE_URL_ENV),
        grace_period_days=grace_period_days,
        grace_period_dm_enabled=_optional_bool(constants.GRACE_PERIOD_DM_ENABLED_ENV, default=True),
        starboard_channel_id=_optional_int(constants.STARBOARD_CHANNEL_ID_ENV),
        starboard_threshold=starboard_threshold,
        daily_sync_schedule=daily_sync_schedule,
        schedule_timezone=schedule_timezone,
        webhook_host=_optional_str(constants.WEBHOOK_HOST_ENV) or "0.0.0.0",
        webhook_port=_optional_int_default(constants.WEBHOOK_PORT_ENV, default=3001),
        mongodb_uri=_optional_str(constants.MONGODB_URI_ENV),
        mongodb_db_name=_optional_str(constants.MONGODB_DB_NAME_ENV),
    )


def summarize_settings(settings: Settings) -> dict[str, object]:
    """
    Produce a non-secret snapshot of configuration for startup logging.
    """
    return {
        "guild_id": settings.guild_id,
        "client_id_present": bool(settings.discord_client_id),
        "backend_api_url": settings.backend_api_url,
        "roles": {
            "subscribed": settings.subscribed_role_id,
            "player": settings.player_role_id,
            "roll_dice": settings.roll_dice_role_id,
            "staff": settings.staff_role_id,
            "self_service_configured": len(settings.self_role_ids),
        },
        "grace_period": {
            "days": settings.grace_period_days,
            "dm_enabled": settings.grace_period_dm_enabled,
        },
        "starboard": {
            "channel": settings.starboard_channel_id,
            "threshold": settings.starboard_threshold,
        },
        "schedule": {
            "daily_sync": settings.daily_sync_schedule,
            "timezone": settings.schedule_timezone or "local",
        },
        "webhook": {"host": settings.webhook_host, "port": settings.webhook_port},
        "welcome_channel": settings.channel_welcome_id,
        "mongodb_uri_present": bool(settings.mongodb_uri),
        "mongodb_db_name": settings.mongodb_db_name,
    }
