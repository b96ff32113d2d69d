"""
reconcile — Diff incoming schedule entries against stored catalog records.

Three outcomes, all of which write:
- CREATE:  no stored record; stamp episode_added_at and last_refreshed_at.
- ADVANCE: incoming episode is strictly greater; stamp both again.
- REFRESH: same or older episode; refresh metadata and last_refreshed_at only.

episode_added_at is what downstream readers use to spot a newly aired episode, so a
REFRESH leaves it out of the write payload and the store's merge keeps the old one.
latest_episode never moves backwards.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

import structlog

from .errors import StoreReadError
from .records import CatalogRecord, record_from_entry
from .schedule import ScheduleEntry
from .store import CatalogStore, CatalogWrite

log = structlog.get_logger()


class WriteDecision(str, Enum):
    CREATE = "create"
    ADVANCE = "advance"
    REFRESH = "refresh"


@dataclass
class Reconciliation:
    decision: WriteDecision
    record: CatalogRecord
    write: CatalogWrite


def reconcile(entry: ScheduleEntry, prior: Optional[CatalogRecord], now: datetime) -> Reconciliation:
    if prior is None or entry.episode_number > prior.latest_episode:
        decision = WriteDecision.CREATE if prior is None else WriteDecision.ADVANCE
        record = record_from_entry(
            entry,
            latest_episode=entry.episode_number,
            episode_aired_at=entry.aired_at,
            episode_added_at=now,
            last_refreshed_at=now,
        )
        payload = record.to_fields()
    else:
        decision = WriteDecision.REFRESH
        if entry.episode_number == prior.latest_episode:
            aired_at = entry.aired_at
        else:
            aired_at = prior.episode_aired_at
        record = record_from_entry(
            entry,
            latest_episode=prior.latest_episode,
            episode_aired_at=aired_at,
            episode_added_at=prior.episode_added_at,
            last_refreshed_at=now,
        )
        payload = record.to_fields(exclude=("episode_added_at",))
    return Reconciliation(decision, record, CatalogWrite(record.series_id, payload))


@dataclass
class BatchOutcome:
    created: int = 0
    advanced: int = 0
    refreshed: int = 0
    errors: dict[str, str] = field(default_factory=dict)
    applied: list[Reconciliation] = field(default_factory=list)

    @property
    def written(self) -> int:
        return self.created + self.advanced + self.refreshed


def reconcile_batch(store: CatalogStore, entries: Iterable[ScheduleEntry], now: datetime) -> BatchOutcome:
    """
    Read each key, decide, then commit one batch over the records that staged cleanly.
    Per-record read/write failures are collected in BatchOutcome.errors; a failure of
    the commit itself propagates as BatchCommitError.
    """
    outcome = BatchOutcome()
    pending: dict[str, Reconciliation] = {}

    for entry in entries:
        sid = entry.series_secondary_id
        try:
            prior = store.get(sid)
        except StoreReadError as e:
            outcome.errors[sid] = f"read: {e}"
            log.warning("reconcile_read_failed", series_id=sid, error=str(e))
            continue
        rec = reconcile(entry, prior, now)
        pending[sid] = rec
        log.debug("reconcile_decision", series_id=sid, decision=rec.decision.value,
                  episode=entry.episode_number,
                  prior_episode=prior.latest_episode if prior else None)

    result = store.commit_batch([r.write for r in pending.values()])

    for sid, error in result.failed.items():
        outcome.errors[sid] = f"write: {error}"
    for sid in result.written:
        rec = pending[sid]
        outcome.applied.append(rec)
        if rec.decision is WriteDecision.CREATE:
            outcome.created += 1
            log.info("catalog_new", series_id=sid, title=rec.record.title,
                     episode=rec.record.latest_episode)
        elif rec.decision is WriteDecision.ADVANCE:
            outcome.advanced += 1
            log.info("catalog_advanced", series_id=sid, title=rec.record.title,
                     episode=rec.record.latest_episode)
        else:
            outcome.refreshed += 1

    log.info("reconcile_batch_done", created=outcome.created, advanced=outcome.advanced,
             refreshed=outcome.refreshed, errors=len(outcome.errors))
    return outcome
