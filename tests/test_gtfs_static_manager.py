from __future__ import annotations

import io
import zipfile

import pytest

from app.services.feed_client import FeedClientError
from app.services.gtfs_static_manager import parse_csv_text, read_static_tables, route_display_name

STOP_TIMES = (
    "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
    "T1,08:00:00,08:00:00,264,1\n"
    "T2,24:10:00,24:10:00,0264,01\n"
)
ROUTES = "route_id,route_short_name,route_long_name\n4-13,13,Ligne 13\n"


def _zip(files: dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as z:
        for name, text in files.items():
            z.writestr(name, text)
    return buf.getvalue()


def test_read_static_tables_keeps_text_values() -> None:
    tables = read_static_tables(_zip({"stop_times.txt": STOP_TIMES, "routes.txt": ROUTES}))

    assert len(tables.stop_times) == 2
    assert tables.stop_times[1]["stop_id"] == "0264"
    assert tables.stop_times[1]["stop_sequence"] == "01"
    assert tables.stop_times[1]["departure_time"] == "24:10:00"
    assert tables.routes[0]["route_long_name"] == "Ligne 13"
    assert len(tables.sha256) == 64


def test_read_static_tables_strips_bom() -> None:
    tables = read_static_tables(_zip({"stop_times.txt": "\ufeff" + STOP_TIMES, "routes.txt": ROUTES}))

    assert "trip_id" in tables.stop_times[0]


def test_read_static_tables_missing_member() -> None:
    with pytest.raises(FeedClientError):
        read_static_tables(_zip({"stop_times.txt": STOP_TIMES}))


def test_read_static_tables_not_a_zip() -> None:
    with pytest.raises(FeedClientError):
        read_static_tables(b"<html>maintenance</html>")


def test_parse_csv_text_empty_table() -> None:
    assert parse_csv_text("trip_id,stop_id\n") == []


def test_route_display_name() -> None:
    routes = parse_csv_text(ROUTES)

    assert route_display_name(routes, "4-13") == "Ligne 13"
    assert route_display_name(routes, "4-13", "Vert-Bois → Université") == "Vert-Bois → Université"
    assert route_display_name(routes, "9-99") == "9-99"


def test_read_static_tables_reports_header_columns() -> None:
    tables = read_static_tables(
        _zip({"stop_times.txt": "trip_id,stop_id\n", "routes.txt": ROUTES})
    )

    assert tables.stop_times == []
    assert tables.stop_times_columns == ["trip_id", "stop_id"]
