# app/routers/schedule_api.py
from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.services.departures_store import DeparturesStore
from app.services.merge_engine import merge_departures

router = APIRouter(prefix="/api", tags=["schedule"])

log = logging.getLogger("schedule_api")


def _store(request: Request) -> DeparturesStore:
    return request.app.state.store


@router.get("/schedule")
def get_schedule(request: Request):
    store = _store(request)
    snap = store.snapshot()
    if snap is None:
        log.info("schedule requested before data is available: missing=%s", store.missing_slots())
        return JSONResponse({"error": "Données non disponibles"}, status_code=503)

    settings = request.app.state.settings
    res = merge_departures(snap.schedule, snap.realtime, datetime.now(UTC), settings.LOCAL_TZ)
    if res.error:
        # Transient: answer with an empty list rather than an error status.
        log.warning("serving empty schedule: %s", res.error)
    return JSONResponse(jsonable_encoder(res.value))
