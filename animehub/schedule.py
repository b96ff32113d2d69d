"""
schedule — Upstream airing-schedule entries and their conversion from AniList nodes.

A node is one element of `Page.airingSchedules` as returned by the GraphQL query in
anilist.py. Conversion is strict about the fields the engine keys on (episode,
airing time, media) and lenient about descriptive metadata.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from .errors import RecordConversionError


class SeriesStatus(str, Enum):
    RELEASING = "RELEASING"
    FINISHED = "FINISHED"
    NOT_YET_RELEASED = "NOT_YET_RELEASED"
    CANCELLED = "CANCELLED"
    HIATUS = "HIATUS"


def utcnow() -> datetime:
    """Naive UTC now; every timestamp inside the engine is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_epoch(seconds: int | float) -> datetime:
    return datetime.fromtimestamp(seconds, timezone.utc).replace(tzinfo=None)


def to_epoch(dt: datetime) -> int:
    return int(dt.replace(tzinfo=timezone.utc).timestamp())


def _strip_html(text: str | None) -> str | None:
    """Strip HTML tags from a string, returning plain text."""
    if not text:
        return None
    clean = re.sub(r"<br\s*/?>", " ", text, flags=re.IGNORECASE)
    clean = re.sub(r"<[^>]+>", "", clean)
    clean = re.sub(r"\s+", " ", clean).strip()
    return clean or None


def _fuzzy_date(d: dict | None) -> Optional[date]:
    """AniList FuzzyDate -> date. Missing month/day default to 1; missing year -> None."""
    if not d or not d.get("year"):
        return None
    try:
        return date(int(d["year"]), int(d.get("month") or 1), int(d.get("day") or 1))
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class SeriesMetadata:
    """Descriptive and classification fields of a series."""
    title_romaji: Optional[str] = None
    title_english: Optional[str] = None
    title_native: Optional[str] = None
    image_url: Optional[str] = None
    banner_url: Optional[str] = None
    genres: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    is_adult: bool = False
    media_type: Optional[str] = None  # ANIME / MANGA
    format: Optional[str] = None  # TV, TV_SHORT, MOVIE, ONA, ...
    country: Optional[str] = None  # ISO 3166-1 alpha-2
    total_episodes: Optional[int] = None
    season: Optional[str] = None
    season_year: Optional[int] = None
    score: Optional[int] = None
    studios: tuple[str, ...] = ()
    synopsis: Optional[str] = None
    site_url: Optional[str] = None
    started_on: Optional[date] = None

    @property
    def title(self) -> str:
        return self.title_romaji or self.title_english or self.title_native or "Unknown"


@dataclass(frozen=True)
class ScheduleEntry:
    series_external_id: int
    series_secondary_id: Optional[str]
    episode_number: int
    aired_at_epoch: int
    series_status: SeriesStatus
    metadata: SeriesMetadata = field(default_factory=SeriesMetadata)

    @property
    def aired_at(self) -> datetime:
        return from_epoch(self.aired_at_epoch)


def metadata_from_media(media: dict[str, Any]) -> SeriesMetadata:
    title = media.get("title") or {}
    cover = media.get("coverImage") or {}
    studios = (media.get("studios") or {}).get("nodes") or []
    return SeriesMetadata(
        title_romaji=title.get("romaji"),
        title_english=title.get("english"),
        title_native=title.get("native"),
        image_url=cover.get("extraLarge") or cover.get("large") or cover.get("medium"),
        banner_url=media.get("bannerImage"),
        genres=tuple(g for g in (media.get("genres") or []) if g),
        tags=tuple(t["name"] for t in (media.get("tags") or []) if t and t.get("name")),
        is_adult=bool(media.get("isAdult")),
        media_type=media.get("type"),
        format=media.get("format"),
        country=media.get("countryOfOrigin"),
        total_episodes=media.get("episodes"),
        season=media.get("season"),
        season_year=media.get("seasonYear"),
        score=media.get("averageScore"),
        studios=tuple(s["name"] for s in studios if s and s.get("name")),
        synopsis=_strip_html(media.get("description")),
        site_url=media.get("siteUrl"),
        started_on=_fuzzy_date(media.get("startDate")),
    )


def entry_from_node(node: dict[str, Any]) -> ScheduleEntry:
    """Convert one airing-schedule node. Raises RecordConversionError on malformed input."""
    if not isinstance(node, dict):
        raise RecordConversionError(f"expected object, got {type(node).__name__}")
    media = node.get("media")
    if not isinstance(media, dict) or media.get("id") is None:
        raise RecordConversionError(f"schedule {node.get('id')} has no media")

    episode = node.get("episode")
    if not isinstance(episode, int) or isinstance(episode, bool) or episode < 1:
        raise RecordConversionError(f"schedule {node.get('id')} has invalid episode {episode!r}")

    aired = node.get("airingAt")
    if not isinstance(aired, int) or isinstance(aired, bool):
        raise RecordConversionError(f"schedule {node.get('id')} has invalid airingAt {aired!r}")

    try:
        status = SeriesStatus(media.get("status"))
    except ValueError:
        raise RecordConversionError(
            f"media {media.get('id')} has unknown status {media.get('status')!r}"
        ) from None

    try:
        media_id = int(media["id"])
    except (TypeError, ValueError):
        raise RecordConversionError(f"media id {media['id']!r} is not numeric") from None

    try:
        metadata = metadata_from_media(media)
    except (TypeError, AttributeError, KeyError) as e:
        raise RecordConversionError(f"media {media_id} has malformed metadata: {e}") from e

    mal_id = media.get("idMal")
    return ScheduleEntry(
        series_external_id=media_id,
        series_secondary_id=str(mal_id) if mal_id else None,
        episode_number=episode,
        aired_at_epoch=aired,
        series_status=status,
        metadata=metadata,
    )
