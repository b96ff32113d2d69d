"""
errors — Failure taxonomy for ingestion and retention cycles.

Only UpstreamDataError and BatchCommitError fail a whole run; the others are
recovered where they occur and counted in the run summary.
"""
from __future__ import annotations


class AnimeHubError(Exception):
    """Base class for all animehub errors."""


class TransientFetchError(AnimeHubError):
    """Network, timeout or malformed-response failure on one upstream page."""

    def __init__(self, message: str, page: int | None = None, status_code: int | None = None):
        super().__init__(message)
        self.page = page
        self.status_code = status_code


class UpstreamDataError(AnimeHubError):
    """Upstream returned nothing usable; there is nothing to reconcile."""


class RecordConversionError(AnimeHubError):
    """A single upstream entry could not be converted; the entry is dropped."""


class StoreError(AnimeHubError):
    def __init__(self, message: str, series_id: str | None = None):
        super().__init__(message)
        self.series_id = series_id


class StoreReadError(StoreError):
    """Reading one record failed; the record is excluded from the batch."""


class StoreWriteError(StoreError):
    """Staging one record for write failed; the record is excluded from the batch."""


class BatchCommitError(StoreError):
    """Committing the whole write batch failed; the run is reported as failed."""
