"""
dedupe — Latest-episode-per-series reduction over one fetch cycle.

Entries are dropped when they cannot be stored (no secondary id), fail the content
policy, aired before the window, or belong to a series that is not releasing.
Among the survivors, each series keeps its strictly greatest episode number; ties
keep the first entry seen, i.e. the most recently aired one.
"""
from __future__ import annotations
from collections import Counter
from datetime import datetime
from typing import Iterable

import structlog

from .policy import ContentPolicy
from .schedule import ScheduleEntry, SeriesStatus, to_epoch

log = structlog.get_logger()


class Deduplicator:
    def __init__(self, policy: ContentPolicy):
        self.policy = policy
        self.dropped: Counter[str] = Counter()

    def _drop_reason(self, entry: ScheduleEntry, cutoff_epoch: int) -> str | None:
        if not entry.series_secondary_id:
            return "missing_id"
        verdict = self.policy.admit(entry.metadata)
        if not verdict:
            return f"policy:{verdict.reason}"
        if entry.aired_at_epoch < cutoff_epoch:
            return "outside_window"
        if entry.series_status is not SeriesStatus.RELEASING:
            return "not_releasing"
        return None

    def reduce(self, entries: Iterable[ScheduleEntry], cutoff: datetime) -> dict[str, ScheduleEntry]:
        cutoff_epoch = to_epoch(cutoff)
        self.dropped = Counter()
        latest: dict[str, ScheduleEntry] = {}
        total = 0

        for entry in entries:
            total += 1
            reason = self._drop_reason(entry, cutoff_epoch)
            if reason:
                self.dropped[reason] += 1
                log.debug("dedupe_drop", anilist_id=entry.series_external_id,
                          episode=entry.episode_number, reason=reason)
                continue

            key = entry.series_secondary_id
            current = latest.get(key)
            if current is None or entry.episode_number > current.episode_number:
                if current is not None:
                    self.dropped["superseded"] += 1
                latest[key] = entry
            else:
                self.dropped["superseded"] += 1

        log.info("dedupe_result", total=total, unique=len(latest),
                 dropped=dict(self.dropped))
        return latest
