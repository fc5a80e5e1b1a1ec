from __future__ import annotations

from google.transit import gtfs_realtime_pb2

from app.domain.models import ErrorKind
from app.services.realtime_normalizer import normalize_feed

VehicleStopStatus = gtfs_realtime_pb2.VehiclePosition


def _feed() -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    feed.header.timestamp = 1700000000
    return feed


def _add_vehicle(feed, ent_id: str, trip_id: str | None, **kw) -> None:
    ent = feed.entity.add(id=ent_id)
    if trip_id is not None:
        ent.vehicle.trip.trip_id = trip_id
    if "vehicle_id" in kw:
        ent.vehicle.vehicle.id = kw["vehicle_id"]
    if "status" in kw:
        ent.vehicle.current_status = kw["status"]
    if "timestamp" in kw:
        ent.vehicle.timestamp = kw["timestamp"]
    if "stop_id" in kw:
        ent.vehicle.stop_id = kw["stop_id"]
    if trip_id is None:
        ent.vehicle.vehicle.id = kw.get("vehicle_id", "bus-0")


def test_normalize_pb_indexes_by_trip() -> None:
    feed = _feed()
    _add_vehicle(
        feed,
        "1",
        "T1",
        vehicle_id="bus-12",
        status=VehicleStopStatus.STOPPED_AT,
        timestamp=1700000000,
        stop_id="264",
    )
    _add_vehicle(feed, "2", "T2")

    res = normalize_feed(feed)

    assert res.ok
    assert set(res.value) == {"T1", "T2"}
    t1 = res.value["T1"]
    assert t1.status == "STOPPED_AT"
    assert t1.vehicle_id == "bus-12"
    assert t1.stop_id == "264"
    assert t1.timestamp == 1700000000
    assert t1.delay == 0

    t2 = res.value["T2"]
    assert t2.status is None
    assert t2.timestamp is None
    assert t2.vehicle_id is None


def test_normalize_pb_skips_entities_without_trip() -> None:
    feed = _feed()
    _add_vehicle(feed, "1", None, vehicle_id="bus-1")
    feed.entity.add(id="alert-only").alert.header_text.translation.add(text="hi")

    res = normalize_feed(feed)

    assert res.ok
    assert res.value == {}


def test_normalize_pb_last_entity_wins() -> None:
    feed = _feed()
    _add_vehicle(feed, "1", "T1", vehicle_id="first")
    _add_vehicle(feed, "2", "T1", vehicle_id="second")

    res = normalize_feed(feed)

    assert list(res.value) == ["T1"]
    assert res.value["T1"].vehicle_id == "second"


def test_normalize_json_form() -> None:
    raw = {
        "header": {"timestamp": "1700000000"},
        "entity": [
            {
                "id": "1",
                "vehicle": {
                    "trip": {"tripId": "T1"},
                    "vehicle": {"id": "bus-7"},
                    "currentStatus": "IN_TRANSIT_TO",
                    "timestamp": "1700000100",
                    "delay": 120,
                },
            },
            {"id": "2", "vehicle": {"vehicle": {"id": "bus-8"}}},
            {"id": "3", "vehicle": {"trip": {"tripId": "T3"}, "currentStatus": 1}},
        ],
    }

    res = normalize_feed(raw)

    assert res.ok
    assert set(res.value) == {"T1", "T3"}
    assert res.value["T1"].delay == 120
    assert res.value["T1"].timestamp == 1700000100
    assert res.value["T1"].status == "IN_TRANSIT_TO"
    assert res.value["T3"].status == "STOPPED_AT"
    assert res.value["T3"].delay == 0


def test_normalize_malformed_feed_is_empty_with_error() -> None:
    res = normalize_feed({"entity": "not-a-list"})

    assert not res.ok
    assert res.error.kind is ErrorKind.MALFORMED_DATA
    assert res.value == {}


def test_normalize_unsupported_type() -> None:
    res = normalize_feed(b"\x00\x01")

    assert not res.ok
    assert res.value == {}
