from __future__ import annotations

from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from app.config import Settings
from app.domain.live_models import RealtimeUpdate
from app.domain.models import ScheduledDeparture, ScheduledDepartureSet
from app.main import build_scheduler, create_app
from app.services.departures_store import DeparturesStore


def _client(store: DeparturesStore) -> TestClient:
    return TestClient(create_app(Settings(ENABLE_SCHEDULER=False), store=store))


def _schedule(*pairs: tuple[str, str]) -> ScheduledDepartureSet:
    deps = tuple(
        ScheduledDeparture(trip_id=tid, stop_sequence="1", departure_time=t, arrival_time=t)
        for tid, t in pairs
    )
    return ScheduledDepartureSet(route_id="4-13", route_name="Vert-Bois → Université", departures=deps)


def test_schedule_unavailable_before_refresh() -> None:
    with _client(DeparturesStore()) as client:
        r = client.get("/api/schedule")

    assert r.status_code == 503
    assert r.json() == {"error": "Données non disponibles"}


def test_schedule_unavailable_with_one_slot() -> None:
    store = DeparturesStore()
    store.publish_schedule(_schedule(("T1", "99:00:00")))

    with _client(store) as client:
        assert client.get("/api/schedule").status_code == 503


def test_schedule_returns_combined_departures() -> None:
    store = DeparturesStore()
    # Later than any wall-clock time, so the test does not depend on when it runs.
    store.publish_schedule(_schedule(("T2", "99:05:00"), ("T1", "99:00:00")))
    store.publish_realtime(
        {"T1": RealtimeUpdate(trip_id="T1", delay=120, status="IN_TRANSIT_TO", timestamp=1700000000)}
    )

    with _client(store) as client:
        r = client.get("/api/schedule")

    assert r.status_code == 200
    assert r.json() == [
        {
            "scheduled_time": "99:00:00",
            "departure_time": "99:02:00",
            "realtime": {
                "delay": 120,
                "status": "IN_TRANSIT_TO",
                "lastUpdate": "2023-11-14T22:13:20.000Z",
            },
        },
        {
            "scheduled_time": "99:05:00",
            "departure_time": "99:05:00",
            "realtime": {"delay": 0, "status": "SCHEDULED", "lastUpdate": None},
        },
    ]


def test_schedule_empty_when_nothing_matches() -> None:
    store = DeparturesStore()
    store.publish_schedule(_schedule())
    store.publish_realtime({})

    with _client(store) as client:
        r = client.get("/api/schedule")

    assert r.status_code == 200
    assert r.json() == []


def test_schedule_merge_failure_is_empty_200() -> None:
    store = DeparturesStore()
    store.publish_schedule(_schedule(("bad", "9h00")))
    store.publish_realtime({})

    with _client(store) as client:
        r = client.get("/api/schedule")

    assert r.status_code == 200
    assert r.json() == []


def test_health_and_debug_state() -> None:
    store = DeparturesStore()
    store.publish_realtime({})

    with _client(store) as client:
        assert client.get("/_health").json() == {"ok": True}
        state = client.get("/_debug/state").json()

    assert state["lifecycle"] == "partial"
    assert state["slots"]["realtime"]["size"] == 0
    assert state["slots"]["schedule"]["size"] is None
    assert state["events"][-1]["stage"] == "publish_realtime"


def test_cors_header_present() -> None:
    with _client(DeparturesStore()) as client:
        r = client.get("/_health", headers={"Origin": "http://example.org"})

    assert r.headers["access-control-allow-origin"] == "*"


def test_build_scheduler_loads_then_registers_jobs() -> None:
    static_refresher = MagicMock()
    realtime_refresher = MagicMock()
    realtime_refresher.refresh.side_effect = RuntimeError("boom")

    s = build_scheduler(Settings(), static_refresher, realtime_refresher)

    static_refresher.refresh.assert_called_once()
    realtime_refresher.refresh.assert_called_once()
    assert s.get_job("refresh_static") is not None
    assert s.get_job("refresh_realtime") is not None
