from __future__ import annotations

import logging
from typing import Any, Final

from config.settings import Settings
from services.backend_service import parse_discord_id
from services.notification_service import NotificationService
from services.sync_service import SyncService

LOGGER = logging.getLogger(__name__)

EVENT_ACTIVATED: Final[str] = "subscription.activated"
EVENT_RENEWED: Final[str] = "subscription.renewed"
EVENT_CANCELLED: Final[str] = "subscription.cancelled"
EVENT_GRACE_STARTED: Final[str] = "grace_period.started"

HANDLED_PAYMENT: Final[str] = "payment_synced"
HANDLED_LOGGED: Final[str] = "logged"
HANDLED_REMINDER: Final[str] = "reminder_sent"
HANDLED_SKIPPED: Final[str] = "skipped"
HANDLED_UNKNOWN: Final[str] = "unknown_type"
HANDLED_FAILED: Final[str] = "failed"


class BackendEventHandler:
    """
    Dispatches billing backend events. The webhook contract is fire-and-forget, so
    ``handle`` never raises: failures are logged and reported only through the returned label.
    """

    def __init__(self, sync: SyncService, notifier: NotificationService, settings: Settings) -> None:
        self.sync = sync
        self.notifier = notifier
        self.settings = settings

    async def handle(self, event: dict[str, Any]) -> str:
        event_type = event.get("type")
        data = event.get("data") if isinstance(event.get("data"), dict) else {}
        discord_id = parse_discord_id(data.get("discordId"))
        LOGGER.info("Processing webhook event (type=%s discord=%s).", event_type, discord_id)

        try:
            return await self._dispatch(event_type, discord_id)
        except Exception:
            LOGGER.exception("Failed to process webhook event (type=%s discord=%s).", event_type, discord_id)
            return HANDLED_FAILED

    async def _dispatch(self, event_type: Any, discord_id: int | None) -> str:
        if event_type in {EVENT_ACTIVATED, EVENT_RENEWED}:
            if discord_id is None:
                LOGGER.warning("Webhook event %s has no discordId; ignoring.", event_type)
                return HANDLED_SKIPPED
            await self.sync.sync_user_on_payment(discord_id)
            return HANDLED_PAYMENT

        if event_type == EVENT_CANCELLED:
            # The backend moves the user into the grace period itself.
            LOGGER.info("Subscription cancelled event received (discord=%s).", discord_id)
            return HANDLED_LOGGED

        if event_type == EVENT_GRACE_STARTED:
            if not self.settings.grace_period_dm_enabled:
                return HANDLED_SKIPPED
            if discord_id is None:
                LOGGER.warning("Webhook event %s has no discordId; ignoring.", event_type)
                return HANDLED_SKIPPED
            await self.notifier.send_grace_period_reminder(discord_id, self.settings.grace_period_days)
            return HANDLED_REMINDER

        LOGGER.warning("Unknown webhook event type %r.", event_type)
        return HANDLED_UNKNOWN
