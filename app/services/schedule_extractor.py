# app/services/schedule_extractor.py
from __future__ import annotations

import logging
from collections.abc import Iterable

from app.domain.models import (
    ErrorKind,
    ScheduledDeparture,
    ScheduledDepartureSet,
    StageResult,
)
from app.services.gtfs_static_manager import route_display_name

log = logging.getLogger("schedule")

REQUIRED_COLUMNS = ("trip_id", "stop_id", "stop_sequence", "departure_time", "arrival_time")


def _missing_columns(columns: Iterable[str]) -> list[str]:
    present = set(columns)
    return [c for c in REQUIRED_COLUMNS if c not in present]


def extract_departures(
    rows: Iterable[dict],
    stop_id: str,
    stop_sequence: str,
    columns: Iterable[str] | None = None,
) -> StageResult[tuple[ScheduledDeparture, ...]]:
    """
    Keep the stop_times rows of one stop at one position in the trip.

    stop_id and stop_sequence are compared as the feed wrote them (text).
    The header (`columns`, or the keys of the first row) must carry every
    REQUIRED_COLUMNS entry. Short rows (csv fills missing fields with None)
    are skipped, not fatal.
    """
    rows = list(rows)
    if columns is None and rows:
        columns = rows[0].keys()
    if columns is not None:
        missing = _missing_columns(columns)
        if missing:
            return StageResult.failure(
                (), ErrorKind.MALFORMED_DATA, f"stop_times is missing columns {missing}"
            )

    out: list[ScheduledDeparture] = []
    short = 0
    for row in rows:
        if row.get("stop_id") != stop_id or row.get("stop_sequence") != stop_sequence:
            continue
        if any(row.get(c) is None for c in REQUIRED_COLUMNS):
            short += 1
            continue
        out.append(
            ScheduledDeparture(
                trip_id=row["trip_id"],
                stop_sequence=row["stop_sequence"],
                departure_time=row["departure_time"],
                arrival_time=row["arrival_time"],
            )
        )

    if short:
        log.warning("skipped %d short stop_times rows for stop=%s", short, stop_id)
    log.info(
        "extracted %d departures for stop=%s seq=%s out of %d rows",
        len(out),
        stop_id,
        stop_sequence,
        len(rows),
    )
    return StageResult.success(tuple(out))


def build_schedule(
    stop_times: Iterable[dict],
    routes: list[dict],
    *,
    stop_id: str,
    stop_sequence: str,
    route_id: str,
    route_name: str = "",
    columns: Iterable[str] | None = None,
) -> StageResult[ScheduledDepartureSet]:
    res = extract_departures(stop_times, stop_id, stop_sequence, columns)
    schedule = ScheduledDepartureSet(
        route_id=route_id,
        route_name=route_display_name(routes, route_id, route_name),
        departures=res.value,
    )
    if res.error:
        return StageResult(value=schedule, error=res.error)
    return StageResult.success(schedule)
