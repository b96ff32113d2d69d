"""
scheduler — APScheduler-based periodic ingestion and daily retention.
"""
from __future__ import annotations
import signal
import sys
import structlog
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .anilist import AniListClient
from .config import Config
from .driver import EpisodeCatalogDriver
from .retention import run_retention
from .store import CatalogStore, open_store

log = structlog.get_logger()


def _ingest_job(cfg: Config, store: CatalogStore):
    """Scheduled job: one ingestion cycle."""
    try:
        client = AniListClient(cfg.anilist_url, timeout=cfg.request_timeout)
        summary = EpisodeCatalogDriver(cfg, client, store).run()
        if not summary.ok:
            log.error("ingest_cycle_failed", cause=summary.cause)
    except Exception as e:
        log.error("ingest_cycle_error", error=str(e))


def _retention_job(cfg: Config, store: CatalogStore):
    """Scheduled job: expire stale catalog records."""
    try:
        summary = run_retention(store, cfg)
        if not summary.ok:
            log.error("retention_cycle_failed", error=summary.error)
    except Exception as e:
        log.error("retention_cycle_error", error=str(e))


def build_scheduler(cfg: Config, store: CatalogStore | None = None) -> BlockingScheduler:
    store = store or open_store(cfg)
    # one worker thread: ingest and retention never run concurrently
    scheduler = BlockingScheduler(timezone="UTC", executors={"default": ThreadPoolExecutor(1)})

    # max_instances=1: a slow cycle never overlaps the next one
    scheduler.add_job(
        _ingest_job,
        args=(cfg, store),
        trigger=IntervalTrigger(minutes=cfg.ingest_interval_minutes),
        id="ingest_airing_schedule",
        name="Ingest airing schedule",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        _retention_job,
        args=(cfg, store),
        trigger=CronTrigger(hour=cfg.retention_hour, minute=0, timezone="UTC"),
        id="expire_stale_records",
        name="Expire stale catalog records",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def start_scheduler(cfg: Config):
    """
    Start the blocking scheduler with ingestion and retention jobs.
    This is the container entrypoint for long-running operation.
    """
    store = open_store(cfg)
    scheduler = build_scheduler(cfg, store)

    # Run once immediately on startup
    _ingest_job(cfg, store)

    def _shutdown(signum, frame):
        log.info("scheduler_shutdown", signal=signum)
        scheduler.shutdown(wait=False)
        sys.exit(0)

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    log.info("scheduler_started",
             ingest_interval=f"{cfg.ingest_interval_minutes}m",
             retention_at=f"{cfg.retention_hour:02d}:00 UTC")
    scheduler.start()
