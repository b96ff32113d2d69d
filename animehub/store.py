"""
store — Persisted catalog interface and its SQLAlchemy implementation.

The engine talks to any store through CatalogStore: keyed reads, a batched upsert
with merge semantics (fields absent from a write keep their stored value), a full
scan for retention, deletes, and the seen-episode ledger.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Iterator, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from .db.models import CatalogRow, SeenEpisode
from .db.session import get_sessionmaker, init_db
from .errors import BatchCommitError, StoreReadError, StoreWriteError
from .records import CatalogRecord

log = structlog.get_logger()

RECORD_FIELDS = tuple(CatalogRecord.__dataclass_fields__)


@dataclass
class CatalogWrite:
    series_id: str
    fields: dict[str, Any]


@dataclass
class BatchResult:
    written: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


class CatalogStore(ABC):
    @abstractmethod
    def get(self, series_id: str) -> Optional[CatalogRecord]:
        """Return the stored record or None. Raises StoreReadError."""

    @abstractmethod
    def commit_batch(self, writes: list[CatalogWrite]) -> BatchResult:
        """
        Stage each write individually, then commit all staged writes at once.
        Writes that fail staging are reported in BatchResult.failed and left out.
        Raises BatchCommitError if the commit itself fails.
        """

    @abstractmethod
    def scan(self) -> Iterator[CatalogRecord]:
        """Yield every stored record. Raises StoreReadError."""

    @abstractmethod
    def delete_many(self, series_ids: Iterable[str]) -> int:
        """Delete records by id in one batch. Raises BatchCommitError."""

    @abstractmethod
    def mark_seen(self, episodes: Iterable[tuple[str, int, datetime]]) -> int:
        """Record (series_id, episode, aired_at) sightings; returns how many were new."""

    @abstractmethod
    def prune_seen(self, cutoff: datetime) -> int:
        """Drop sightings whose airing time precedes cutoff; returns how many."""


def _validate_fields(series_id: str, data: dict[str, Any]) -> None:
    unknown = set(data) - set(RECORD_FIELDS) - {"series_id"}
    if unknown:
        raise StoreWriteError(f"unknown fields {sorted(unknown)}", series_id=series_id)


def _row_to_record(row: CatalogRow) -> CatalogRecord:
    data = {name: getattr(row, name) for name in RECORD_FIELDS if name != "series_id"}
    return CatalogRecord.from_fields(row.series_id, data)


class SqlCatalogStore(CatalogStore):
    """Catalog in a relational DB (SQLite by default) via SQLAlchemy."""

    def __init__(self, db_url: str | None = None, engine=None):
        self.engine = engine or init_db(db_url)
        self._sessions = get_sessionmaker(self.engine)

    def get(self, series_id: str) -> Optional[CatalogRecord]:
        try:
            with self._sessions() as s:
                row = s.get(CatalogRow, series_id)
                return _row_to_record(row) if row else None
        except (SQLAlchemyError, ValueError) as e:
            raise StoreReadError(str(e), series_id=series_id) from e

    def commit_batch(self, writes: list[CatalogWrite]) -> BatchResult:
        result = BatchResult()
        with self._sessions() as s:
            for w in writes:
                try:
                    _validate_fields(w.series_id, w.fields)
                    with s.begin_nested():
                        row = s.get(CatalogRow, w.series_id)
                        if row is None:
                            row = CatalogRow(series_id=w.series_id)
                            s.add(row)
                        for key, value in w.fields.items():
                            setattr(row, key, value)
                        s.flush()
                    result.written.append(w.series_id)
                except (StoreWriteError, SQLAlchemyError, ValueError, TypeError) as e:
                    result.failed[w.series_id] = str(e)
                    log.warning("store_stage_failed", series_id=w.series_id, error=str(e))
            try:
                s.commit()
            except SQLAlchemyError as e:
                s.rollback()
                raise BatchCommitError(f"batch of {len(result.written)} failed: {e}") from e
        return result

    def scan(self) -> Iterator[CatalogRecord]:
        try:
            with self._sessions() as s:
                rows = s.scalars(select(CatalogRow).order_by(CatalogRow.series_id)).all()
        except SQLAlchemyError as e:
            raise StoreReadError(f"scan failed: {e}") from e
        for row in rows:
            try:
                yield _row_to_record(row)
            except ValueError as e:
                log.warning("store_row_unreadable", series_id=row.series_id, error=str(e))

    def delete_many(self, series_ids: Iterable[str]) -> int:
        ids = list(series_ids)
        if not ids:
            return 0
        with self._sessions() as s:
            try:
                res = s.execute(delete(CatalogRow).where(CatalogRow.series_id.in_(ids)))
                s.commit()
            except SQLAlchemyError as e:
                s.rollback()
                raise BatchCommitError(f"delete of {len(ids)} records failed: {e}") from e
        return res.rowcount or 0

    def mark_seen(self, episodes: Iterable[tuple[str, int, datetime]]) -> int:
        new = 0
        unique = {(sid, ep): aired for sid, ep, aired in episodes}
        with self._sessions() as s:
            try:
                for (series_id, episode), aired_at in unique.items():
                    if s.get(SeenEpisode, (series_id, episode)) is None:
                        s.add(SeenEpisode(series_id=series_id, episode=episode, aired_at=aired_at))
                        new += 1
                s.commit()
            except SQLAlchemyError as e:
                s.rollback()
                raise StoreWriteError(f"seen ledger update failed: {e}") from e
        return new

    def prune_seen(self, cutoff: datetime) -> int:
        with self._sessions() as s:
            try:
                res = s.execute(delete(SeenEpisode).where(SeenEpisode.aired_at < cutoff))
                s.commit()
            except SQLAlchemyError as e:
                s.rollback()
                raise StoreWriteError(f"seen ledger prune failed: {e}") from e
        return res.rowcount or 0

    def seen_count(self) -> int:
        with self._sessions() as s:
            return len(s.scalars(select(SeenEpisode.series_id)).all())


def open_store(cfg) -> CatalogStore:
    """Build the store named by cfg.store_backend."""
    if cfg.store_backend == "firestore":
        from .firestore_store import FirestoreCatalogStore
        return FirestoreCatalogStore(
            project_id=cfg.firestore_project_id or None,
            credentials_path=cfg.firestore_credentials or None,
            collection=cfg.firestore_collection,
        )
    if cfg.store_backend != "sql":
        raise ValueError(f"unknown store_backend {cfg.store_backend!r}")
    return SqlCatalogStore(cfg.db_url or None)
