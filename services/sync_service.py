from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from config.settings import Settings
from services.backend_service import BackendError, BackendService
from services.notification_service import NotificationService
from services.role_service import RoleService
from utils.time_utils import days_remaining, utc_now

LOGGER = logging.getLogger(__name__)

REASON_GRACE_EXPIRED = "Grace period expired"
REASON_NO_SUBSCRIPTION = "No active subscription found"


@dataclass
class SyncReport:
    active_subscribers: int = 0
    grace_period_users: int = 0
    roles_ensured: int = 0
    reminders_sent: int = 0
    expirations: int = 0
    drift_removed: int = 0
    failures: int = 0
    skipped: bool = False

    def summary(self) -> str:
        if self.skipped:
            return "Sync skipped: another pass is already running."
        return (
            f"active={self.active_subscribers} grace={self.grace_period_users} "
            f"ensured={self.roles_ensured} reminders={self.reminders_sent} "
            f"expired={self.expirations} drift_removed={self.drift_removed} "
            f"failures={self.failures}"
        )


class SyncService:
    """
    Converges the subscribed role onto the billing backend's view of who is paying.
    """

    def __init__(
        self,
        roles: RoleService,
        backend: BackendService,
        notifier: NotificationService,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.roles = roles
        self.backend = backend
        self.notifier = notifier
        self.settings = settings
        self.clock = clock
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def _step(self, report: SyncReport, label: str, discord_id: int, action: Awaitable[bool]) -> bool:
        try:
            ok = await action
        except Exception:
            LOGGER.exception("Sync step %s failed for %s.", label, discord_id)
            ok = False
        if not ok:
            report.failures += 1
        return ok

    async def perform_daily_sync(self) -> SyncReport:
        """
        Run one reconciliation pass. Raises BackendError when either source set cannot be
        read; per-member failures are counted and never stop the pass.
        """
        if self._lock.locked():
            LOGGER.warning("Daily sync already running; skipping overlapping invocation.")
            return SyncReport(skipped=True)

        async with self._lock:
            LOGGER.info("Starting daily subscription sync.")
            try:
                active = await self.backend.get_active_subscribers()
                grace = await self.backend.get_grace_period_users()
            except BackendError:
                LOGGER.exception("Daily sync aborted: could not read subscription state.")
                raise

            report = SyncReport(active_subscribers=len(active), grace_period_users=len(grace))
            LOGGER.info(
                "Processing %s active subscribers and %s grace period users.",
                len(active),
                len(grace),
            )

            for subscriber in active:
                if await self._step(
                    report,
                    "ensure_role",
                    subscriber.discord_id,
                    self.roles.sync_user_role(subscriber.discord_id, True),
                ):
                    report.roles_ensured += 1

            now = self.clock()
            for user in grace:
                remaining = days_remaining(user.grace_period_ends_at, now=now)
                if remaining > 0:
                    if await self._step(
                        report,
                        "ensure_grace_role",
                        user.discord_id,
                        self.roles.add_subscribed_role(user.discord_id),
                    ):
                        report.roles_ensured += 1
                    if user.dm_enabled and self.settings.grace_period_dm_enabled:
                        if await self._step(
                            report,
                            "grace_reminder",
                            user.discord_id,
                            self.notifier.send_grace_period_reminder(user.discord_id, remaining),
                        ):
                            report.reminders_sent += 1
                else:
                    removed = await self._step(
                        report,
                        "expire_grace",
                        user.discord_id,
                        self.roles.remove_subscribed_role(user.discord_id, REASON_GRACE_EXPIRED),
                    )
                    if removed:
                        report.expirations += 1
                    await self._step(
                        report,
                        "expired_notice",
                        user.discord_id,
                        self.notifier.send_subscription_expired(user.discord_id),
                    )

            try:
                holders = await self.roles.get_all_subscribed_members()
            except Exception:
                LOGGER.exception("Could not list subscribed role holders; skipping drift correction.")
                holders = []
                report.failures += 1

            valid_ids = {s.discord_id for s in active} | {u.discord_id for u in grace}
            for member_id in holders:
                if member_id in valid_ids:
                    continue
                LOGGER.warning("Member %s has subscribed role but no valid subscription.", member_id)
                if await self._step(
                    report,
                    "drift_remove",
                    member_id,
                    self.roles.remove_subscribed_role(member_id, REASON_NO_SUBSCRIPTION),
                ):
                    report.drift_removed += 1

            LOGGER.info("Daily sync completed: %s", report.summary())
            return report

    async def sync_user_on_payment(self, discord_id: int) -> bool:
        """
        Grant access for a confirmed payment without re-reading the subscriber list, then
        clear any grace period the user was in. The confirmation DM goes out either way;
        only the role grant decides the result.
        """
        LOGGER.info("Syncing user %s on payment.", discord_id)
        granted = await self.roles.add_subscribed_role(discord_id)
        if not granted:
            LOGGER.error("Could not grant subscribed role to %s after payment.", discord_id)
        await self.notifier.send_subscription_confirmation(discord_id)

        try:
            grace = await self.backend.get_grace_period_users()
            match = next((u for u in grace if u.discord_id == discord_id), None)
            if match is not None:
                await self.backend.remove_from_grace_period(match.user_id, discord_id)
        except BackendError:
            LOGGER.exception("Grace period check failed for %s after payment.", discord_id)

        return granted

    async def sync_new_member(self, discord_id: int) -> bool:
        """
        Give a newly joined member their role when they already hold an active subscription.
        """
        try:
            active = await self.backend.get_active_subscribers()
        except BackendError:
            LOGGER.exception("Could not check subscription for new member %s.", discord_id)
            return False
        if not any(s.discord_id == discord_id for s in active):
            return False
        granted = await self.roles.add_subscribed_role(discord_id)
        if granted:
            await self.notifier.send_subscription_confirmation(discord_id)
            LOGGER.info("Subscriber %s joined; role added.", discord_id)
        return granted
