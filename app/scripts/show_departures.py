# app/scripts/show_departures.py
from __future__ import annotations

import json
import sys
from datetime import UTC, datetime

from fastapi.encoders import jsonable_encoder

from app.config import settings
from app.services.departures_store import DeparturesStore
from app.services.feed_client import get_client
from app.services.merge_engine import combine
from app.services.refreshers import RealtimeRefresher, ScheduleRefresher


def main() -> int:
    store = DeparturesStore()
    client = get_client()
    ScheduleRefresher(store, client, settings).refresh()
    RealtimeRefresher(store, client).refresh()

    snap = store.snapshot()
    if snap is None:
        print(json.dumps(store.debug_state(), indent=2, ensure_ascii=False), file=sys.stderr)
        return 1

    rows = combine(snap.schedule, snap.realtime, datetime.now(UTC), settings.LOCAL_TZ)
    print(json.dumps(jsonable_encoder(rows), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
