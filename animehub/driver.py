"""
driver — One ingestion cycle: fetch → filter/dedupe → reconcile → commit.

    IDLE → FETCHING → FILTERING → RECONCILING → DONE
                 ↘ FAILED (nothing fetched)    ↘ FAILED (batch commit failed)

Everything else (a failing page, a malformed entry, one unreadable or unwritable
record) is recovered locally and counted in the RunSummary.
"""
from __future__ import annotations

import time
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from .config import Config
from .dedupe import Deduplicator
from .errors import BatchCommitError, RecordConversionError, StoreWriteError, UpstreamDataError
from .fetcher import PaginatedFetcher, ScheduleSource
from .policy import ContentPolicy
from .reconcile import WriteDecision, reconcile_batch
from .schedule import ScheduleEntry, entry_from_node, utcnow
from .store import CatalogStore

log = structlog.get_logger()


class DriverState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FILTERING = "filtering"
    RECONCILING = "reconciling"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunSummary:
    ok: bool = False
    state: DriverState = DriverState.IDLE
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    pages: int = 0
    stop_reason: str = ""
    fetched: int = 0
    conversion_errors: int = 0
    filtered: dict[str, int] = field(default_factory=dict)
    unique: int = 0
    created: int = 0
    advanced: int = 0
    refreshed: int = 0
    newly_seen: int = 0
    errors: dict[str, str] = field(default_factory=dict)
    cause: Optional[str] = None

    @property
    def skipped(self) -> int:
        return self.conversion_errors + sum(self.filtered.values())

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data["skipped"] = self.skipped
        for key in ("started_at", "finished_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


class EpisodeCatalogDriver:
    def __init__(
        self,
        cfg: Config,
        source: ScheduleSource,
        store: CatalogStore,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cfg = cfg
        self.store = store
        self.clock = clock
        self.fetcher = PaginatedFetcher(source, cfg, sleep=sleep)
        self.deduper = Deduplicator(ContentPolicy.from_config(cfg))
        self.state = DriverState.IDLE
        self.transitions: list[DriverState] = [DriverState.IDLE]

    def _enter(self, state: DriverState) -> None:
        log.debug("driver_state", previous=self.state.value, state=state.value)
        self.state = state
        self.transitions.append(state)

    def _fail(self, summary: RunSummary, exc: Exception) -> RunSummary:
        cause = f"{type(exc).__name__}: {exc}"
        self._enter(DriverState.FAILED)
        summary.ok = False
        summary.state = DriverState.FAILED
        summary.cause = cause
        summary.finished_at = self.clock()
        log.error("ingest_failed", cause=cause)
        return summary

    def run(self) -> RunSummary:
        now = self.clock()
        cutoff = now - timedelta(days=self.cfg.recency_days)
        summary = RunSummary(started_at=now)
        log.info("ingest_start", cutoff=cutoff.isoformat(), recency_days=self.cfg.recency_days)

        self._enter(DriverState.FETCHING)
        fetched = self.fetcher.fetch_window(cutoff, now)
        summary.pages = fetched.pages_fetched
        summary.stop_reason = fetched.stop_reason
        summary.fetched = len(fetched.entries)
        if not fetched.entries:
            detail = f" ({fetched.failure.error})" if fetched.failure else ""
            return self._fail(summary, UpstreamDataError(f"upstream returned no entries{detail}"))

        self._enter(DriverState.FILTERING)
        entries: list[ScheduleEntry] = []
        for node in fetched.entries:
            try:
                entries.append(entry_from_node(node))
            except RecordConversionError as e:
                summary.conversion_errors += 1
                log.warning("entry_conversion_failed", error=str(e))
        latest = self.deduper.reduce(entries, cutoff)
        summary.filtered = dict(Counter(self.deduper.dropped))
        summary.unique = len(latest)

        self._enter(DriverState.RECONCILING)
        try:
            outcome = reconcile_batch(self.store, latest.values(), now)
        except BatchCommitError as e:
            return self._fail(summary, e)
        summary.created = outcome.created
        summary.advanced = outcome.advanced
        summary.refreshed = outcome.refreshed
        summary.errors = dict(outcome.errors)

        sightings = [
            (r.record.series_id, r.record.latest_episode, r.record.episode_aired_at)
            for r in outcome.applied
            if r.decision is not WriteDecision.REFRESH
        ]
        try:
            summary.newly_seen = self.store.mark_seen(sightings)
        except StoreWriteError as e:
            log.warning("seen_ledger_failed", error=str(e))

        self._enter(DriverState.DONE)
        summary.ok = True
        summary.state = DriverState.DONE
        summary.finished_at = self.clock()
        log.info("ingest_done", pages=summary.pages, fetched=summary.fetched,
                 unique=summary.unique, created=summary.created, advanced=summary.advanced,
                 refreshed=summary.refreshed, skipped=summary.skipped,
                 errors=len(summary.errors), newly_seen=summary.newly_seen)
        return summary
