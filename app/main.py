from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings
from app.config import settings as default_settings
from app.routers.live_api import router as live_api_router
from app.routers.schedule_api import router as schedule_api_router
from app.services.departures_store import DeparturesStore
from app.services.feed_client import FeedClient, get_client
from app.services.refreshers import RealtimeRefresher, ScheduleRefresher

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def build_scheduler(
    settings: Settings,
    schedule_refresher: ScheduleRefresher,
    realtime_refresher: RealtimeRefresher,
) -> BackgroundScheduler:
    s = BackgroundScheduler(timezone=settings.SCHEDULER_TZ)
    log = logging.getLogger("scheduler")

    def job_static():
        log.info("Daily GTFS static refresh")
        try:
            schedule_refresher.refresh()
        except Exception:
            log.exception("GTFS static refresh error")

    def job_realtime():
        try:
            realtime_refresher.refresh()
        except Exception:
            log.exception("VehiclePosition refresh error")

    # Initial load, both slots, before the first request is served.
    job_static()
    job_realtime()

    s.add_job(
        job_static,
        CronTrigger.from_crontab(settings.STATIC_REFRESH_CRON, timezone=settings.SCHEDULER_TZ),
        id="refresh_static",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    s.add_job(
        job_realtime,
        "interval",
        seconds=settings.REALTIME_POLL_SECONDS,
        id="refresh_realtime",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    log.info(
        "Scheduler ready: static cron=%r, realtime every %ss",
        settings.STATIC_REFRESH_CRON,
        settings.REALTIME_POLL_SECONDS,
    )
    return s


def create_app(
    settings: Settings | None = None,
    store: DeparturesStore | None = None,
    client: FeedClient | None = None,
) -> FastAPI:
    settings = settings or default_settings
    store = store or DeparturesStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        scheduler: BackgroundScheduler | None = None
        if settings.ENABLE_SCHEDULER:
            feed_client = client or get_client()
            scheduler = build_scheduler(
                settings,
                ScheduleRefresher(store, feed_client, settings),
                RealtimeRefresher(store, feed_client),
            )
            scheduler.start()
        else:
            logging.getLogger("scheduler").info("Scheduler disabled: no background refresh.")
        try:
            yield
        finally:
            if scheduler:
                scheduler.shutdown(wait=False)

    app = FastAPI(title="prochains-passages", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
    )

    app.include_router(schedule_api_router)
    app.include_router(live_api_router)
    return app


app = create_app()
