# app/services/realtime_normalizer.py
from __future__ import annotations

import logging

from google.transit import gtfs_realtime_pb2

from app.domain.live_models import RealtimeUpdate, parse_vehicle_json, parse_vehicle_pb
from app.domain.models import ErrorKind, StageResult

log = logging.getLogger("realtime")

RealtimeMap = dict[str, RealtimeUpdate]


def _normalize_pb(feed: gtfs_realtime_pb2.FeedMessage) -> tuple[int, RealtimeMap]:
    updates: RealtimeMap = {}
    ents = feed.entity
    for ent in ents:
        upd = parse_vehicle_pb(ent)
        if upd is None:
            continue
        updates[upd.trip_id] = upd
    return len(ents), updates


def _normalize_json(raw: dict) -> tuple[int, RealtimeMap]:
    ents = raw.get("entity") or []
    if not isinstance(ents, list):
        raise TypeError(f"entity is {type(ents).__name__}, expected list")
    updates: RealtimeMap = {}
    for ent in ents:
        upd = parse_vehicle_json(ent)
        if upd is None:
            continue
        updates[upd.trip_id] = upd
    return len(ents), updates


def normalize_feed(feed: gtfs_realtime_pb2.FeedMessage | dict) -> StageResult[RealtimeMap]:
    """Index vehicle positions by trip id; the last entity for a trip wins."""
    try:
        if isinstance(feed, dict):
            n_entities, updates = _normalize_json(feed)
        elif isinstance(feed, gtfs_realtime_pb2.FeedMessage):
            n_entities, updates = _normalize_pb(feed)
        else:
            raise TypeError(f"unsupported feed type {type(feed).__name__}")
    except Exception as e:
        log.warning("realtime feed could not be normalized: %r", e)
        return StageResult.failure({}, ErrorKind.MALFORMED_DATA, repr(e))

    log.info("normalized %d trips from %d entities", len(updates), n_entities)
    return StageResult.success(updates)
