from __future__ import annotations

import asyncio
from datetime import datetime, time, timedelta, timezone

import pytest

from services.scheduler import Job, Scheduler
from utils.time_utils import (
    days_remaining,
    parse_daily_schedule,
    parse_iso_datetime,
    resolve_timezone,
    seconds_until,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("59 23 * * *", time(23, 59)),
        ("0 4 * * *", time(4, 0)),
        ("23:59", time(23, 59)),
        ("7:05", time(7, 5)),
    ],
)
def test_parse_daily_schedule(raw: str, expected: time) -> None:
    assert parse_daily_schedule(raw) == expected


@pytest.mark.parametrize("raw", ["", "*/5 * * * *", "0 4 * * 1", "61 1 * * *", "24:00", "soon"])
def test_parse_daily_schedule_rejects_other_shapes(raw: str) -> None:
    with pytest.raises(ValueError):
        parse_daily_schedule(raw)


def test_resolve_timezone() -> None:
    assert resolve_timezone(None) is None
    assert resolve_timezone("Europe/London") is not None
    with pytest.raises(ValueError):
        resolve_timezone("Mars/Olympus_Mons")


def test_seconds_until_later_today_and_tomorrow() -> None:
    now = datetime(2024, 6, 1, 23, 0, tzinfo=timezone.utc)
    assert seconds_until(time(23, 59), now=now, tz=timezone.utc) == 59 * 60
    assert seconds_until(time(22, 0), now=now, tz=timezone.utc) == 23 * 3600
    assert seconds_until(time(23, 0), now=now, tz=timezone.utc) == 24 * 3600


def test_seconds_until_across_dst_changes() -> None:
    new_york = resolve_timezone("America/New_York")
    # 2024-03-10 02:00 EST jumps to 03:00 EDT; midnight EST is 05:00 UTC.
    spring = datetime(2024, 3, 10, 5, 0, tzinfo=timezone.utc)
    assert seconds_until(time(4, 0), now=spring, tz=new_york) == 3 * 3600
    # 2024-11-03 02:00 EDT falls back to 01:00 EST; midnight EDT is 04:00 UTC.
    autumn = datetime(2024, 11, 3, 4, 0, tzinfo=timezone.utc)
    assert seconds_until(time(4, 0), now=autumn, tz=new_york) == 5 * 3600


def test_days_remaining_rounds_up_and_floors_at_zero() -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert days_remaining(now, now=now) == 0
    assert days_remaining(now - timedelta(days=2), now=now) == 0
    assert days_remaining(now + timedelta(seconds=1), now=now) == 1
    assert days_remaining(now + timedelta(days=1), now=now) == 1
    assert days_remaining(now + timedelta(days=6, hours=1), now=now) == 7


def test_parse_iso_datetime() -> None:
    parsed = parse_iso_datetime("2024-06-01T12:00:00.000Z")
    assert parsed == datetime(2024, 6, 1, 12, tzinfo=timezone.utc)
    naive = parse_iso_datetime("2024-06-01T12:00:00")
    assert naive.tzinfo is timezone.utc
    assert parse_iso_datetime("not a date") is None
    assert parse_iso_datetime(None) is None


def test_job_never_fires_twice_for_the_same_trigger(monkeypatch: pytest.MonkeyPatch) -> None:
    async def noop() -> None:
        return None

    job = Job("daily_sync", noop, at=time(23, 59))
    monkeypatch.setattr("services.scheduler.seconds_until", lambda *_a, **_k: 0.2)
    assert job.next_delay() == 0.2 + 24 * 3600
    monkeypatch.setattr("services.scheduler.seconds_until", lambda *_a, **_k: 90.0)
    assert job.next_delay() == 90.0


@pytest.mark.asyncio
async def test_scheduler_runs_daily_job_and_survives_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []

    async def flaky() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first run fails")

    monkeypatch.setattr(Job, "next_delay", lambda self: 0.01)
    scheduler = Scheduler()
    scheduler.add_daily_job("flaky", time(0, 0), flaky)
    await scheduler.start()
    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert len(calls) >= 2
    assert not scheduler.running


def test_scheduler_rejects_duplicate_names() -> None:
    async def noop() -> None:
        return None

    scheduler = Scheduler()
    scheduler.add_daily_job("daily_sync", time(23, 59), noop)
    with pytest.raises(RuntimeError):
        scheduler.add_daily_job("daily_sync", time(1, 0), noop)
