# app/services/departures_store.py
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime

from app.domain.live_models import RealtimeUpdate
from app.domain.models import ScheduledDepartureSet, SlotState, StageError

log = logging.getLogger("departures_store")

SCHEDULE = "schedule"
REALTIME = "realtime"


@dataclass(frozen=True)
class StoreSnapshot:
    schedule: ScheduledDepartureSet
    realtime: dict[str, RealtimeUpdate]


def _iso(ts: float) -> str | None:
    if not ts:
        return None
    return datetime.fromtimestamp(ts, tz=UTC).isoformat()


class DeparturesStore:
    """Latest schedule and realtime map, each replaced wholesale by its refresher.

    Readers get whatever pair of values is published at read time; the two
    slots are independent.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._schedule: ScheduledDepartureSet | None = None
        self._realtime: dict[str, RealtimeUpdate] | None = None
        self._slots = {SCHEDULE: SlotState(SCHEDULE), REALTIME: SlotState(REALTIME)}

        # --- Debug ---
        self._debug = deque(maxlen=100)

    def _log(self, stage: str, **kv) -> None:
        evt = {"t": int(time.time()), "stage": stage, **kv}
        self._debug.append(evt)
        log.info("store %s %s", stage, kv)

    def _mark_ok(self, slot: str) -> None:
        st = self._slots[slot]
        st.refreshed_at = time.time()
        st.refresh_count += 1
        st.errors_streak = 0
        st.last_error = None

    # -------- Writers (refresh jobs) --------
    def publish_schedule(self, schedule: ScheduledDepartureSet) -> None:
        with self._lock:
            self._schedule = schedule
            self._mark_ok(SCHEDULE)
        self._log("publish_schedule", departures=len(schedule), route_id=schedule.route_id)

    def publish_realtime(self, updates: dict[str, RealtimeUpdate]) -> None:
        frozen = dict(updates)
        with self._lock:
            self._realtime = frozen
            self._mark_ok(REALTIME)
        self._log("publish_realtime", trips=len(frozen))

    def record_failure(self, slot: str, error: StageError) -> None:
        with self._lock:
            st = self._slots[slot]
            st.errors_streak += 1
            st.last_error = error
            streak = st.errors_streak
        self._log("refresh_failed", slot=slot, error=str(error), errors_streak=streak)

    # -------- Readers (queries) --------
    def snapshot(self) -> StoreSnapshot | None:
        with self._lock:
            if self._schedule is None or self._realtime is None:
                return None
            return StoreSnapshot(schedule=self._schedule, realtime=self._realtime)

    def lifecycle(self) -> str:
        with self._lock:
            counts = [s.refresh_count for s in self._slots.values()]
        if 0 in counts:
            return "uninitialized" if not any(counts) else "partial"
        return "populated" if max(counts) == 1 else "refreshed"

    def missing_slots(self) -> list[str]:
        with self._lock:
            out = []
            if self._schedule is None:
                out.append(SCHEDULE)
            if self._realtime is None:
                out.append(REALTIME)
            return out

    # -------- Debug API --------
    def debug_state(self) -> dict:
        with self._lock:
            slots = {
                name: {
                    "refreshed_at": _iso(st.refreshed_at),
                    "refresh_count": st.refresh_count,
                    "errors_streak": st.errors_streak,
                    "last_error": str(st.last_error) if st.last_error else None,
                }
                for name, st in self._slots.items()
            }
            slots[SCHEDULE]["size"] = len(self._schedule) if self._schedule is not None else None
            slots[REALTIME]["size"] = len(self._realtime) if self._realtime is not None else None
        return {"lifecycle": self.lifecycle(), "slots": slots}

    def debug_events(self, limit: int = 50) -> list[dict]:
        if limit <= 0:
            return []
        return list(self._debug)[-limit:]
