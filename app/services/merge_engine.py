# app/services/merge_engine.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from zoneinfo import ZoneInfo

from app.domain.live_models import RealtimeUpdate
from app.domain.models import (
    DEFAULT_STATUS,
    CombinedDeparture,
    ErrorKind,
    RealtimeInfo,
    ScheduledDeparture,
    ScheduledDepartureSet,
    StageResult,
)

log = logging.getLogger("merge")

DEFAULT_TZ = "Europe/Paris"


def clock_of(now: datetime | str, tz_name: str = DEFAULT_TZ) -> str:
    """Local HH:MM:SS for `now`, comparable with GTFS departure_time strings."""
    if isinstance(now, str):
        return now
    if now.tzinfo is not None:
        now = now.astimezone(ZoneInfo(tz_name))
    return now.strftime("%H:%M:%S")


def adjust_departure_time(departure_time: str, delay_s: int) -> str:
    """
    Shift HH:MM:SS by whole minutes of delay.

    floor(delay/60) is added to the minutes; seconds are dropped and the hour
    is never wrapped, so 23:58 + 5 min gives 24:03:00.
    """
    hours, minutes = (int(p) for p in departure_time.split(":")[:2])
    total_minutes = hours * 60 + minutes + delay_s // 60
    # divmod floors: -5 min renders as -1:55, not -1:-5.
    real_hours, real_minutes = divmod(total_minutes, 60)
    return f"{real_hours:02d}:{real_minutes:02d}:00"


def _combined(dep: ScheduledDeparture, rt: RealtimeUpdate | None) -> CombinedDeparture:
    delay = rt.delay if rt else 0
    return CombinedDeparture(
        scheduled_time=dep.departure_time,
        departure_time=adjust_departure_time(dep.departure_time, delay),
        realtime=RealtimeInfo(
            delay=delay,
            status=(rt.status if rt else None) or DEFAULT_STATUS,
            lastUpdate=rt.last_update_iso() if rt else None,
        ),
    )


def merge_departures(
    schedule: ScheduledDepartureSet | Iterable[ScheduledDeparture],
    realtime: Mapping[str, RealtimeUpdate],
    now: datetime | str,
    tz_name: str = DEFAULT_TZ,
) -> StageResult[list[CombinedDeparture]]:
    try:
        departures = (
            schedule.departures if isinstance(schedule, ScheduledDepartureSet) else schedule
        )
        current = clock_of(now, tz_name)

        # Plain string order: trips past 24:00:00 sort after every same-day clock.
        upcoming = [d for d in departures if d.departure_time >= current]
        upcoming.sort(key=lambda d: d.departure_time)

        combined = [_combined(d, realtime.get(d.trip_id)) for d in upcoming]
    except Exception as e:
        log.exception("combining schedule and realtime failed")
        return StageResult.failure([], ErrorKind.MERGE, repr(e))

    matched = sum(1 for c in combined if c.realtime.lastUpdate or c.realtime.delay)
    log.info("combined %d departures after %s (%d with realtime)", len(combined), current, matched)
    return StageResult.success(combined)


def combine(
    schedule: ScheduledDepartureSet | Iterable[ScheduledDeparture],
    realtime: Mapping[str, RealtimeUpdate],
    now: datetime | str,
    tz_name: str = DEFAULT_TZ,
) -> list[CombinedDeparture]:
    return merge_departures(schedule, realtime, now, tz_name).value
