"""
retention — Expire catalog records that no recency signal supports any more.

A record is kept if any keep rule matches; the first matching rule is reported as
the reason. Ids on the denylist are deleted before any rule is consulted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Callable, Iterable, Optional

import structlog

from .config import Config
from .errors import BatchCommitError, StoreReadError, StoreWriteError
from .records import CatalogRecord
from .schedule import utcnow
from .store import CatalogStore

log = structlog.get_logger()

# "Currently Airing"/"Airing" are what records written from Jikan data carry
RELEASING_STATUSES = frozenset({"RELEASING", "CURRENTLY_AIRING", "AIRING"})


@dataclass(frozen=True)
class RetentionContext:
    now: datetime
    recent_cutoff: datetime
    new_series_cutoff: datetime
    refresh_cutoff: datetime


def _releasing(rec: CatalogRecord, ctx: RetentionContext) -> bool:
    status = (rec.status or "").strip().upper().replace(" ", "_")
    return status in RELEASING_STATUSES


def _recent_episode(rec: CatalogRecord, ctx: RetentionContext) -> bool:
    return rec.episode_aired_at is not None and rec.episode_aired_at >= ctx.recent_cutoff


def _new_series(rec: CatalogRecord, ctx: RetentionContext) -> bool:
    if rec.started_on is None:
        return False
    return datetime.combine(rec.started_on, time.min) >= ctx.new_series_cutoff


def _recently_added(rec: CatalogRecord, ctx: RetentionContext) -> bool:
    return rec.episode_added_at is not None and rec.episode_added_at >= ctx.recent_cutoff


def _recently_refreshed(rec: CatalogRecord, ctx: RetentionContext) -> bool:
    return rec.last_refreshed_at is not None and rec.last_refreshed_at >= ctx.refresh_cutoff


KeepRule = tuple[str, Callable[[CatalogRecord, RetentionContext], bool]]

KEEP_RULES: list[KeepRule] = [
    ("releasing", _releasing),
    ("recent_episode", _recent_episode),
    ("new_series", _new_series),
    ("recently_added", _recently_added),
    ("recently_refreshed", _recently_refreshed),
]


@dataclass
class SweepResult:
    delete: set[str] = field(default_factory=set)
    kept: dict[str, str] = field(default_factory=dict)  # series_id -> keep reason
    delete_reasons: dict[str, str] = field(default_factory=dict)


class RetentionSweeper:
    def __init__(
        self,
        recency_days: int = 7,
        new_series_days: int = 30,
        refresh_grace_days: int = 2,
        denylist_ids: Iterable[str] = (),
        rules: Optional[list[KeepRule]] = None,
    ):
        self.recency = timedelta(days=recency_days)
        self.new_series = timedelta(days=new_series_days)
        self.refresh_grace = timedelta(days=refresh_grace_days)
        self.denylist = frozenset(str(i) for i in denylist_ids)
        self.rules = rules if rules is not None else KEEP_RULES

    @classmethod
    def from_config(cls, cfg: Config) -> "RetentionSweeper":
        return cls(
            recency_days=cfg.recency_days,
            new_series_days=cfg.new_series_days,
            refresh_grace_days=cfg.refresh_grace_days,
            denylist_ids=cfg.denylist_ids,
        )

    def context(self, now: datetime) -> RetentionContext:
        return RetentionContext(
            now=now,
            recent_cutoff=now - self.recency,
            new_series_cutoff=now - self.new_series,
            refresh_cutoff=now - self.refresh_grace,
        )

    def keep_reason(self, rec: CatalogRecord, ctx: RetentionContext) -> Optional[str]:
        if rec.series_id in self.denylist:
            return None
        for name, keeps in self.rules:
            if keeps(rec, ctx):
                return name
        return None

    def sweep(self, records: Iterable[CatalogRecord], now: datetime) -> SweepResult:
        ctx = self.context(now)
        result = SweepResult()
        for rec in records:
            reason = self.keep_reason(rec, ctx)
            if reason:
                result.kept[rec.series_id] = reason
            else:
                result.delete.add(rec.series_id)
                result.delete_reasons[rec.series_id] = (
                    "denylisted" if rec.series_id in self.denylist else "stale"
                )
        return result


@dataclass
class RetentionSummary:
    ok: bool = True
    dry_run: bool = False
    scanned: int = 0
    kept: int = 0
    deleted: int = 0
    seen_pruned: int = 0
    error: Optional[str] = None
    decisions: list[tuple[str, str, str, str]] = field(default_factory=list)  # (id, title, KEEP|DELETE, reason)


def run_retention(store: CatalogStore, cfg: Config, now: Optional[datetime] = None,
                  dry_run: bool = False) -> RetentionSummary:
    """One retention cycle: scan, sweep, delete, prune the seen ledger."""
    now = now or utcnow()
    sweeper = RetentionSweeper.from_config(cfg)
    summary = RetentionSummary(dry_run=dry_run)

    log.info("retention_start", recency_days=cfg.recency_days,
             denylist=len(sweeper.denylist), dry_run=dry_run)
    try:
        records = list(store.scan())
    except StoreReadError as e:
        log.error("retention_scan_failed", error=str(e))
        return RetentionSummary(ok=False, dry_run=dry_run, error=f"scan failed: {e}")

    result = sweeper.sweep(records, now)
    summary.scanned = len(records)
    summary.kept = len(result.kept)
    for rec in records:
        if rec.series_id in result.kept:
            summary.decisions.append((rec.series_id, rec.title, "KEEP", result.kept[rec.series_id]))
        else:
            summary.decisions.append(
                (rec.series_id, rec.title, "DELETE", result.delete_reasons[rec.series_id])
            )
            log.info("retention_delete", series_id=rec.series_id, title=rec.title,
                     status=rec.status, reason=result.delete_reasons[rec.series_id])

    if dry_run:
        summary.deleted = len(result.delete)
        return summary

    try:
        summary.deleted = store.delete_many(sorted(result.delete))
    except BatchCommitError as e:
        log.error("retention_delete_failed", error=str(e), pending=len(result.delete))
        summary.ok = False
        summary.error = str(e)
        return summary

    try:
        summary.seen_pruned = store.prune_seen(now - sweeper.recency)
    except StoreWriteError as e:
        log.warning("seen_prune_failed", error=str(e))
    log.info("retention_done", scanned=summary.scanned, kept=summary.kept,
             deleted=summary.deleted, seen_pruned=summary.seen_pruned)
    return summary
