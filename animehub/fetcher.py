"""
fetcher — Paginated airing-schedule fetch with bounded retry and window cut-off.

Pages arrive newest-first. Once a page's oldest entry predates the fetch window,
later pages can only be older still, so pagination stops there. A page that keeps
failing after `max_retries` attempts ends pagination too; whatever was already
fetched is returned.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Protocol, Union

import structlog

from .anilist import PageResult
from .config import Config
from .errors import TransientFetchError
from .schedule import to_epoch, utcnow

log = structlog.get_logger()


class ScheduleSource(Protocol):
    def fetch_airing_page(self, page: int, per_page: int, before_epoch: int) -> PageResult:
        ...


@dataclass
class FetchFailure:
    page: int
    attempts: int
    error: str


@dataclass
class FetchResult:
    entries: list[dict] = field(default_factory=list)
    pages_fetched: int = 0
    stop_reason: str = ""  # last_page | window | failure | max_pages | empty_page
    failure: Optional[FetchFailure] = None


def _oldest_airing(entries: list[dict]) -> Optional[int]:
    times = [e.get("airingAt") for e in entries if isinstance(e, dict)]
    times = [t for t in times if isinstance(t, int) and not isinstance(t, bool)]
    return min(times) if times else None


class PaginatedFetcher:
    def __init__(
        self,
        source: ScheduleSource,
        cfg: Config,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.max_retries = max(1, cfg.max_retries)
        self.backoff_base = cfg.backoff_base
        self.inter_page_delay = cfg.inter_page_delay
        self.per_page = cfg.per_page
        self.max_pages = cfg.max_pages
        self._sleep = sleep

    def fetch_page(self, page: int, before_epoch: int) -> Union[PageResult, FetchFailure]:
        """One page with linear backoff between attempts (attempt * backoff_base)."""
        last_error = ""
        for attempt in range(1, self.max_retries + 1):
            try:
                return self.source.fetch_airing_page(page, self.per_page, before_epoch)
            except TransientFetchError as e:
                last_error = str(e)
                log.warning("page_fetch_retry", page=page, attempt=attempt,
                            max_retries=self.max_retries, error=last_error)
                if attempt < self.max_retries:
                    self._sleep(attempt * self.backoff_base)
        log.error("page_fetch_failed", page=page, attempts=self.max_retries, error=last_error)
        return FetchFailure(page=page, attempts=self.max_retries, error=last_error)

    def fetch_window(self, cutoff: datetime, now: Optional[datetime] = None) -> FetchResult:
        """Fetch pages until one reaches past `cutoff`, the last page, or a failure."""
        before_epoch = to_epoch(now or utcnow())
        cutoff_epoch = to_epoch(cutoff)
        result = FetchResult()

        page = 1
        while True:
            if page > self.max_pages:
                result.stop_reason = "max_pages"
                break

            outcome = self.fetch_page(page, before_epoch)
            if isinstance(outcome, FetchFailure):
                result.failure = outcome
                result.stop_reason = "failure"
                break

            result.pages_fetched += 1
            result.entries.extend(outcome.entries)

            if not outcome.entries:
                result.stop_reason = "empty_page"
                break
            if not outcome.has_next:
                result.stop_reason = "last_page"
                break
            oldest = _oldest_airing(outcome.entries)
            if oldest is not None and oldest < cutoff_epoch:
                result.stop_reason = "window"
                break

            self._sleep(self.inter_page_delay)
            page += 1

        log.info("fetch_window_done", pages=result.pages_fetched, entries=len(result.entries),
                 stop_reason=result.stop_reason)
        return result
