# app/routers/live_api.py
from __future__ import annotations

from fastapi import APIRouter, Query, Request

router = APIRouter(tags=["live"])


@router.get("/_health")
def health():
    return {"ok": True}


@router.get("/_debug/state")
def debug_state(request: Request, events: int = Query(20, ge=0, le=100)):
    store = request.app.state.store
    return {**store.debug_state(), "events": store.debug_events(events)}
