# app/services/gtfs_static_manager.py
from __future__ import annotations

import csv
import hashlib
import io
import zipfile
from dataclasses import dataclass, field

from app.services.feed_client import FeedClientError

REQUIRED_FILES = (
    "stop_times.txt",
    "routes.txt",
)


@dataclass
class StaticTables:
    stop_times: list[dict] = field(default_factory=list)
    stop_times_columns: list[str] = field(default_factory=list)
    routes: list[dict] = field(default_factory=list)
    sha256: str = ""


def _hash_sha256(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()


def parse_csv_table(text: str) -> tuple[list[str], list[dict]]:
    # Every value stays a string: "0264" and "264" are different stops.
    reader = csv.DictReader(io.StringIO(text, newline=""))
    rows = list(reader)
    return list(reader.fieldnames or []), rows


def parse_csv_text(text: str) -> list[dict]:
    return parse_csv_table(text)[1]


def _read_member(z: zipfile.ZipFile, name: str) -> str:
    with z.open(name) as f:
        return f.read().decode("utf-8-sig", errors="replace")


def read_static_tables(zip_bytes: bytes) -> StaticTables:
    """Unpack the GTFS archive and parse the two tables the schedule needs."""
    try:
        with zipfile.ZipFile(io.BytesIO(zip_bytes)) as z:
            names = {n.filename for n in z.infolist()}
            missing = [f for f in REQUIRED_FILES if f not in names]
            if missing:
                raise FeedClientError(f"GTFS ZIP is missing {missing}")
            columns, stop_times = parse_csv_table(_read_member(z, "stop_times.txt"))
            routes = parse_csv_text(_read_member(z, "routes.txt"))
    except zipfile.BadZipFile as exc:
        raise FeedClientError(f"GTFS payload is not a ZIP archive: {exc}") from exc

    return StaticTables(
        stop_times=stop_times,
        stop_times_columns=columns,
        routes=routes,
        sha256=_hash_sha256(zip_bytes),
    )


def route_display_name(routes: list[dict], route_id: str, override: str = "") -> str:
    if override:
        return override
    for row in routes:
        if (row.get("route_id") or "").strip() != route_id:
            continue
        long_name = (row.get("route_long_name") or "").strip()
        short_name = (row.get("route_short_name") or "").strip()
        return long_name or short_name or route_id
    return route_id
