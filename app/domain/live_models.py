# app/domain/live_models.py
from __future__ import annotations

import logging
from datetime import UTC, datetime

from google.transit import gtfs_realtime_pb2
from pydantic import BaseModel, Field

log = logging.getLogger("realtime")

_STATUS_FALLBACK = {0: "INCOMING_AT", 1: "STOPPED_AT", 2: "IN_TRANSIT_TO"}


class RealtimeUpdate(BaseModel):
    trip_id: str
    delay: int = Field(0, description="seconds, signed")
    status: str | None = None
    vehicle_id: str | None = None
    stop_id: str | None = None
    timestamp: int | None = Field(None, description="epoch seconds (vehicle)")

    def last_update_iso(self) -> str | None:
        if not self.timestamp:
            return None
        try:
            dt = datetime.fromtimestamp(self.timestamp, tz=UTC)
        except (ValueError, OverflowError, OSError):
            log.warning(
                "trip %s: timestamp %r out of range, lastUpdate dropped",
                self.trip_id,
                self.timestamp,
            )
            return None
        return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def _int_or_none(x) -> int | None:
    try:
        if x in (None, ""):
            return None
        return int(x)
    except (TypeError, ValueError):
        return None


def _status_name(value) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, str) and not value.strip().isdigit():
        return value.strip().upper()
    code = int(value)
    try:
        return gtfs_realtime_pb2.VehiclePosition.VehicleStopStatus.Name(code)
    except ValueError:
        return _STATUS_FALLBACK.get(code)


# -------- Protobuf (PB) --------


def parse_vehicle_pb(entity: gtfs_realtime_pb2.FeedEntity) -> RealtimeUpdate | None:
    """Vehicle entity -> RealtimeUpdate, or None when it cannot be tied to a trip."""
    if not entity or not entity.HasField("vehicle"):
        return None
    veh = entity.vehicle
    if not veh.HasField("trip"):
        return None
    trip_id = (veh.trip.trip_id or "").strip()
    if not trip_id:
        return None

    # Standard bindings have no vehicle-level delay; some producers extend it.
    delay = _int_or_none(getattr(veh, "delay", None)) or 0
    status = _status_name(veh.current_status) if veh.HasField("current_status") else None
    timestamp = int(veh.timestamp) if veh.HasField("timestamp") else None
    vehicle_id = ((veh.vehicle.id or "").strip() or None) if veh.HasField("vehicle") else None

    return RealtimeUpdate(
        trip_id=trip_id,
        delay=delay,
        status=status,
        vehicle_id=vehicle_id,
        stop_id=(veh.stop_id or "").strip() or None,
        timestamp=timestamp,
    )


# -------- JSON (fallback) --------


def parse_vehicle_json(entity: dict) -> RealtimeUpdate | None:
    if not isinstance(entity, dict):
        return None

    veh = entity.get("vehicle")
    if not isinstance(veh, dict):
        return None
    trip = veh.get("trip")
    if not isinstance(trip, dict):
        return None
    trip_id = str(trip.get("tripId") or trip.get("trip_id") or "").strip()
    if not trip_id:
        return None

    vehicle_info = veh.get("vehicle") or {}
    status = _status_name(veh.get("currentStatus", veh.get("current_status")))

    return RealtimeUpdate(
        trip_id=trip_id,
        delay=_int_or_none(veh.get("delay")) or 0,
        status=status,
        vehicle_id=str(vehicle_info.get("id") or "").strip() or None,
        stop_id=str(veh.get("stopId") or veh.get("stop_id") or "").strip() or None,
        timestamp=_int_or_none(veh.get("timestamp")),
    )
