"""
records — The persisted catalog record, one per series.

Stores exchange records as flat field dicts (`to_fields` / `from_fields`). A write
payload may omit fields; stores merge it over the existing record, which is how a
refresh leaves `episode_added_at` untouched.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any, Optional

from .schedule import ScheduleEntry

TIMESTAMP_FIELDS = ("episode_aired_at", "episode_added_at", "last_refreshed_at")
LIST_FIELDS = ("genres", "tags", "studios")


def as_naive_utc(value: Any) -> Optional[datetime]:
    """Accept datetime (aware or naive UTC), ISO-8601 string or unix seconds."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, timezone.utc).replace(tzinfo=None)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return as_naive_utc(parsed)
    raise ValueError(f"not a timestamp: {value!r}")


def as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_naive_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return as_naive_utc(value).date()
    raise ValueError(f"not a date: {value!r}")


@dataclass
class CatalogRecord:
    series_id: str
    latest_episode: int = 0
    episode_aired_at: Optional[datetime] = None
    episode_added_at: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None
    status: Optional[str] = None
    anilist_id: Optional[int] = None
    title: str = "Unknown"
    title_english: Optional[str] = None
    title_native: Optional[str] = None
    image_url: Optional[str] = None
    banner_url: Optional[str] = None
    synopsis: Optional[str] = None
    genres: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    studios: list[str] = field(default_factory=list)
    score: Optional[int] = None
    total_episodes: Optional[int] = None
    season: Optional[str] = None
    season_year: Optional[int] = None
    format: Optional[str] = None
    country: Optional[str] = None
    started_on: Optional[date] = None
    site_url: Optional[str] = None

    def to_fields(self, exclude: tuple[str, ...] = ()) -> dict[str, Any]:
        data = asdict(self)
        data.pop("series_id")
        for name in exclude:
            data.pop(name, None)
        return data

    @classmethod
    def from_fields(cls, series_id: str, data: dict[str, Any]) -> "CatalogRecord":
        """Build a record from stored fields; unknown keys are ignored."""
        known = {f.name for f in fields(cls)} - {"series_id"}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key in TIMESTAMP_FIELDS:
                value = as_naive_utc(value)
            elif key == "started_on":
                value = as_date(value)
            elif key in LIST_FIELDS:
                value = list(value)
            elif key == "latest_episode":
                value = int(value)
            kwargs[key] = value
        return cls(series_id=str(series_id), **kwargs)


def record_from_entry(
    entry: ScheduleEntry,
    *,
    latest_episode: int,
    episode_aired_at: Optional[datetime],
    episode_added_at: Optional[datetime],
    last_refreshed_at: datetime,
) -> CatalogRecord:
    meta = entry.metadata
    return CatalogRecord(
        series_id=entry.series_secondary_id,
        latest_episode=latest_episode,
        episode_aired_at=episode_aired_at,
        episode_added_at=episode_added_at,
        last_refreshed_at=last_refreshed_at,
        status=entry.series_status.value,
        anilist_id=entry.series_external_id,
        title=meta.title,
        title_english=meta.title_english,
        title_native=meta.title_native,
        image_url=meta.image_url,
        banner_url=meta.banner_url,
        synopsis=meta.synopsis,
        genres=list(meta.genres),
        tags=list(meta.tags),
        studios=list(meta.studios),
        score=meta.score,
        total_episodes=meta.total_episodes,
        season=meta.season,
        season_year=meta.season_year,
        format=meta.format,
        country=meta.country,
        started_on=meta.started_on,
        site_url=meta.site_url,
    )
