"""
Firestore catalog store: one document per series in `episodes/{series_id}`.

Documents use the camelCase field names the mobile app already reads
(latestEpisode, episodeAddedAt, lastUpdated, ...). Writes go through
`batch.set(ref, data, merge=True)`, so a refresh payload without episodeAddedAt
keeps the stored value. Seen episodes live in `seen_episodes/{series}:{episode}`.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

import structlog

from .errors import BatchCommitError, StoreReadError, StoreWriteError
from .records import CatalogRecord
from .store import BatchResult, CatalogStore, CatalogWrite, RECORD_FIELDS

log = structlog.get_logger()

BATCH_SIZE = 500  # Firestore batch write limit

# record field -> document field
FIELD_NAMES = {
    "latest_episode": "latestEpisode",
    "episode_aired_at": "episodeAiredDate",
    "episode_added_at": "episodeAddedAt",
    "last_refreshed_at": "lastUpdated",
    "status": "status",
    "anilist_id": "anilistId",
    "title": "title",
    "title_english": "titleEnglish",
    "title_native": "titleNative",
    "image_url": "imageUrl",
    "banner_url": "bannerUrl",
    "synopsis": "synopsis",
    "genres": "genres",
    "tags": "tags",
    "studios": "studios",
    "score": "rating",
    "total_episodes": "episodes",
    "season": "season",
    "season_year": "seasonYear",
    "format": "type",
    "country": "country",
    "started_on": "airedDate",
    "site_url": "siteUrl",
}
DOC_NAMES = {v: k for k, v in FIELD_NAMES.items()}


def _to_doc_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value


def to_document(fields: dict[str, Any]) -> dict[str, Any]:
    return {FIELD_NAMES[k]: _to_doc_value(v) for k, v in fields.items() if k in FIELD_NAMES}


def from_document(doc_id: str, data: dict[str, Any]) -> CatalogRecord:
    fields = {DOC_NAMES[k]: v for k, v in data.items() if k in DOC_NAMES}
    return CatalogRecord.from_fields(doc_id, fields)


class FirestoreCatalogStore(CatalogStore):
    def __init__(
        self,
        project_id: Optional[str] = None,
        credentials_path: Optional[Union[Path, str]] = None,
        collection: str = "episodes",
        seen_collection: str = "seen_episodes",
        client: Any = None,
    ):
        if client is None:
            try:
                import firebase_admin
                from firebase_admin import credentials, firestore
            except ImportError:
                raise ImportError(
                    "firebase-admin is required for FirestoreCatalogStore. pip install 'animehub[firestore]'"
                )
            if not firebase_admin._apps:
                opts = {"projectId": project_id} if project_id else None
                if credentials_path:
                    cred = credentials.Certificate(str(Path(credentials_path).resolve()))
                    firebase_admin.initialize_app(cred, opts)
                else:
                    firebase_admin.initialize_app(options=opts)
            client = firestore.client()
        self._db = client
        self._coll = client.collection(collection)
        self._seen = client.collection(seen_collection)

    def get(self, series_id: str) -> Optional[CatalogRecord]:
        try:
            snap = self._coll.document(series_id).get()
            if not snap.exists:
                return None
            return from_document(snap.id, snap.to_dict() or {})
        except Exception as e:
            raise StoreReadError(str(e), series_id=series_id) from e

    def commit_batch(self, writes: list[CatalogWrite]) -> BatchResult:
        """Chunks of BATCH_SIZE; each chunk commits atomically."""
        result = BatchResult()
        for i in range(0, len(writes), BATCH_SIZE):
            batch = self._db.batch()
            staged: list[str] = []
            for w in writes[i : i + BATCH_SIZE]:
                try:
                    unknown = set(w.fields) - set(RECORD_FIELDS)
                    if unknown:
                        raise StoreWriteError(f"unknown fields {sorted(unknown)}", series_id=w.series_id)
                    batch.set(self._coll.document(w.series_id), to_document(w.fields), merge=True)
                    staged.append(w.series_id)
                except Exception as e:
                    result.failed[w.series_id] = str(e)
                    log.warning("store_stage_failed", series_id=w.series_id, error=str(e))
            try:
                batch.commit()
            except Exception as e:
                raise BatchCommitError(
                    f"batch {i // BATCH_SIZE + 1} ({len(staged)} docs) failed: {e}"
                ) from e
            result.written.extend(staged)
        return result

    def scan(self) -> Iterator[CatalogRecord]:
        try:
            docs = list(self._coll.stream())
        except Exception as e:
            raise StoreReadError(f"scan failed: {e}") from e
        for doc in docs:
            try:
                yield from_document(doc.id, doc.to_dict() or {})
            except ValueError as e:
                log.warning("store_row_unreadable", series_id=doc.id, error=str(e))

    def delete_many(self, series_ids: Iterable[str]) -> int:
        ids = list(series_ids)
        for i in range(0, len(ids), BATCH_SIZE):
            batch = self._db.batch()
            for sid in ids[i : i + BATCH_SIZE]:
                batch.delete(self._coll.document(sid))
            try:
                batch.commit()
            except Exception as e:
                raise BatchCommitError(f"delete batch {i // BATCH_SIZE + 1} failed: {e}") from e
        return len(ids)

    def mark_seen(self, episodes: Iterable[tuple[str, int, datetime]]) -> int:
        new = 0
        unique = {(sid, ep): aired for sid, ep, aired in episodes}
        try:
            fresh = []
            for (series_id, episode), aired_at in unique.items():
                ref = self._seen.document(f"{series_id}:{episode}")
                if not ref.get().exists:
                    fresh.append((ref, series_id, episode, aired_at))
            for i in range(0, len(fresh), BATCH_SIZE):
                batch = self._db.batch()
                for ref, series_id, episode, aired_at in fresh[i : i + BATCH_SIZE]:
                    batch.set(ref, {"seriesId": series_id, "episode": episode,
                                    "airingAt": _to_doc_value(aired_at)})
                batch.commit()
                new += len(fresh[i : i + BATCH_SIZE])
        except Exception as e:
            raise StoreWriteError(f"seen ledger update failed: {e}") from e
        return new

    def prune_seen(self, cutoff: datetime) -> int:
        try:
            stale = list(self._seen.where("airingAt", "<", _to_doc_value(cutoff)).stream())
            for i in range(0, len(stale), BATCH_SIZE):
                batch = self._db.batch()
                for doc in stale[i : i + BATCH_SIZE]:
                    batch.delete(doc.reference)
                batch.commit()
        except Exception as e:
            raise StoreWriteError(f"seen ledger prune failed: {e}") from e
        return len(stale)
