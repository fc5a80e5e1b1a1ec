# app/services/refreshers.py
from __future__ import annotations

import logging
import time

from app.config import Settings
from app.domain.models import ErrorKind, StageError
from app.services.common_fetch import fetch_with_retry
from app.services.departures_store import REALTIME, SCHEDULE, DeparturesStore
from app.services.feed_client import FeedClient, FeedClientError
from app.services.gtfs_static_manager import read_static_tables
from app.services.realtime_normalizer import normalize_feed
from app.services.schedule_extractor import build_schedule

# Fast retries to avoid intermittent failures.
FAST_RETRY_ATTEMPTS = 2
FAST_RETRY_DELAY = 0.4


class ScheduleRefresher:
    """Download the GTFS archive and publish the departures of the target stop."""

    def __init__(self, store: DeparturesStore, client: FeedClient, settings: Settings):
        self.store = store
        self.client = client
        self.settings = settings
        self.log = logging.getLogger("schedule")

    def refresh(self) -> bool:
        t0 = time.time()
        try:
            tables = read_static_tables(self.client.fetch_gtfs_zip())
        except FeedClientError as e:
            self.log.warning("GTFS static download failed: %s", e)
            self.store.record_failure(SCHEDULE, StageError(ErrorKind.INGESTION, str(e)))
            return False

        res = build_schedule(
            tables.stop_times,
            tables.routes,
            stop_id=self.settings.TARGET_STOP_ID,
            stop_sequence=self.settings.TARGET_STOP_SEQUENCE,
            route_id=self.settings.ROUTE_ID,
            route_name=self.settings.ROUTE_NAME,
            columns=tables.stop_times_columns,
        )
        if res.error:
            self.log.warning("stop_times unusable (sha256=%s): %s", tables.sha256[:8], res.error)
            self.store.record_failure(SCHEDULE, res.error)
            return False

        self.store.publish_schedule(res.value)
        self.log.info(
            "GTFS static refreshed: %d departures (sha256=%s, took %.2fs)",
            len(res.value),
            tables.sha256[:8],
            time.time() - t0,
        )
        return True


class RealtimeRefresher:
    """Poll VehiclePositions and publish the trip -> delay/status map."""

    def __init__(self, store: DeparturesStore, client: FeedClient):
        self.store = store
        self.client = client
        self.log = logging.getLogger("realtime")

    def _fetch(self):
        feed, err = fetch_with_retry(
            self.client.fetch_vehicle_positions_pb,
            retries=FAST_RETRY_ATTEMPTS,
            delay=FAST_RETRY_DELAY,
            label="pb",
            retry_on=(FeedClientError,),
        )
        if feed is not None or not self.client.has_json_fallback():
            return feed, err

        raw, err_json = fetch_with_retry(
            self.client.fetch_vehicle_positions_raw,
            retries=FAST_RETRY_ATTEMPTS,
            delay=FAST_RETRY_DELAY,
            label="json",
            retry_on=(FeedClientError,),
        )
        return raw, err_json or err

    def refresh(self) -> bool:
        feed, err = self._fetch()
        if feed is None:
            self.log.warning("VehiclePosition fetch failed: %s", err)
            self.store.record_failure(REALTIME, StageError(ErrorKind.INGESTION, err or "no data"))
            return False

        res = normalize_feed(feed)
        if res.error:
            self.store.record_failure(REALTIME, res.error)
            return False

        self.store.publish_realtime(res.value)
        return True
