"""
policy — Content policy applied to series metadata before deduplication.

Six independent predicates, evaluated in order. The first one that fails names the
rejection reason; passing all six admits the series. Every predicate is a pure
function of the metadata and the configured lists.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .config import Config
from .schedule import SeriesMetadata


@dataclass(frozen=True)
class Verdict:
    admitted: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.admitted


ALLOWED = Verdict(True)


def rejected(reason: str) -> Verdict:
    return Verdict(False, reason)


def _casefold_set(values) -> frozenset[str]:
    return frozenset(v.casefold() for v in values)


class ContentPolicy:
    """Adult/genre/tag block lists plus type, format and country allow-lists."""

    def __init__(
        self,
        blocked_genres=(),
        blocked_tags=(),
        media_type: str = "ANIME",
        allowed_formats=(),
        allowed_countries=(),
    ):
        self.blocked_genres = _casefold_set(blocked_genres)
        self.blocked_tags = _casefold_set(blocked_tags)
        self.media_type = media_type
        self.allowed_formats = frozenset(allowed_formats)
        self.allowed_countries = frozenset(c.upper() for c in allowed_countries)
        self.predicates: list[tuple[str, Callable[[SeriesMetadata], bool]]] = [
            ("adult", self._not_adult),
            ("blocked_genre", self._no_blocked_genre),
            ("blocked_tag", self._no_blocked_tag),
            ("media_type", self._is_media_type),
            ("format", self._allowed_format),
            ("country", self._allowed_country),
        ]

    @classmethod
    def from_config(cls, cfg: Config) -> "ContentPolicy":
        return cls(
            blocked_genres=cfg.blocked_genres,
            blocked_tags=cfg.blocked_tags,
            media_type=cfg.allowed_media_type,
            allowed_formats=cfg.allowed_formats,
            allowed_countries=cfg.allowed_countries,
        )

    def admit(self, meta: SeriesMetadata) -> Verdict:
        for name, passes in self.predicates:
            if not passes(meta):
                return rejected(name)
        return ALLOWED

    def _not_adult(self, meta: SeriesMetadata) -> bool:
        return not meta.is_adult

    def _no_blocked_genre(self, meta: SeriesMetadata) -> bool:
        return not any(g.casefold() in self.blocked_genres for g in meta.genres)

    def _no_blocked_tag(self, meta: SeriesMetadata) -> bool:
        return not any(t.casefold() in self.blocked_tags for t in meta.tags)

    def _is_media_type(self, meta: SeriesMetadata) -> bool:
        return meta.media_type == self.media_type

    def _allowed_format(self, meta: SeriesMetadata) -> bool:
        return meta.format in self.allowed_formats

    def _allowed_country(self, meta: SeriesMetadata) -> bool:
        # Absent country of origin is not a reason to reject
        if not meta.country:
            return True
        return meta.country.upper() in self.allowed_countries
