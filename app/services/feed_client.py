# app/services/feed_client.py
from __future__ import annotations

import gzip

import requests
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from app.config import settings


GZIP_MAGIC = b"\x1f\x8b"


class FeedClientError(RuntimeError):
    """Download or decode failure on one of the TaM feeds."""


class FeedClient:
    def __init__(
        self,
        gtfs_url: str | None = None,
        realtime_url: str | None = None,
        realtime_json_url: str | None = None,
        timeout: float | None = None,
    ):
        # --- Static GTFS (ZIP) ---
        self.gtfs_url = (gtfs_url or settings.GTFS_URL or "").strip()

        # --- Vehicle Positions (GTFS-RT) ---
        self.realtime_url = (realtime_url or settings.REALTIME_URL or "").strip()
        self.realtime_json_url = (realtime_json_url or settings.REALTIME_JSON_URL or "").strip()

        self.timeout = float(timeout or settings.HTTP_TIMEOUT or 20.0)

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept-Encoding": "gzip, deflate, br",
            }
        )

    def _get(self, url: str) -> requests.Response:
        try:
            r = self._session.get(url, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as exc:
            raise FeedClientError(f"GET {url} failed: {exc}") from exc
        return r

    def fetch_gtfs_zip(self) -> bytes:
        if not self.gtfs_url:
            raise FeedClientError("GTFS_URL is not configured")
        return self._get(self.gtfs_url).content

    def fetch_vehicle_positions_pb(self) -> gtfs_realtime_pb2.FeedMessage:
        if not self.realtime_url:
            raise FeedClientError("REALTIME_URL is not configured")
        content = self._get(self.realtime_url).content
        # requests already undoes Content-Encoding; this catches gzipped payloads
        # served as plain octet-stream.
        if content[:2] == GZIP_MAGIC:
            try:
                content = gzip.decompress(content)
            except (OSError, EOFError) as exc:
                raise FeedClientError(f"VehiclePosition feed is not valid gzip: {exc}") from exc
        feed = gtfs_realtime_pb2.FeedMessage()
        try:
            feed.ParseFromString(content)
        except DecodeError as exc:
            raise FeedClientError(f"VehiclePosition feed is not a FeedMessage: {exc}") from exc
        return feed

    def fetch_vehicle_positions_raw(self) -> dict:
        if not self.realtime_json_url:
            raise FeedClientError("REALTIME_JSON_URL is not configured")
        try:
            raw = self._get(self.realtime_json_url).json()
        except ValueError as exc:
            raise FeedClientError("VehiclePosition JSON feed is not valid JSON") from exc
        if not isinstance(raw, dict):
            raise FeedClientError(f"raw_not_dict(type={type(raw).__name__})")
        return raw

    def has_json_fallback(self) -> bool:
        return bool(self.realtime_json_url)


_client_singleton: FeedClient | None = None


def get_client() -> FeedClient:
    global _client_singleton
    if _client_singleton is None:
        _client_singleton = FeedClient()
    return _client_singleton
