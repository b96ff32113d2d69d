"""Shared builders for airing-schedule nodes, entries and records."""
from __future__ import annotations

from datetime import datetime, timedelta

from animehub.anilist import PageResult
from animehub.errors import TransientFetchError
from animehub.records import CatalogRecord
from animehub.schedule import entry_from_node, to_epoch

NOW = datetime(2026, 10, 18, 12, 0, 0)


def ago(**kw) -> datetime:
    return NOW - timedelta(**kw)


def make_node(mal_id=100, episode=1, aired: datetime | None = None, status="RELEASING", **media):
    aired = aired or ago(days=1)
    base = {
        "id": 90000 + int(mal_id or 0),
        "idMal": mal_id,
        "title": {"romaji": f"Show {mal_id}", "english": f"Show {mal_id} (EN)", "native": None},
        "coverImage": {"extraLarge": None, "large": f"https://img/{mal_id}.jpg", "medium": None},
        "bannerImage": None,
        "genres": ["Action", "Drama"],
        "tags": [{"name": "Shounen"}],
        "isAdult": False,
        "type": "ANIME",
        "format": "TV",
        "countryOfOrigin": "JP",
        "status": status,
        "episodes": 12,
        "season": "FALL",
        "seasonYear": 2026,
        "averageScore": 75,
        "studios": {"nodes": [{"name": "Studio A"}]},
        "description": "<b>Plot</b> goes<br>here",
        "siteUrl": f"https://anilist.co/anime/{90000 + int(mal_id or 0)}",
        "startDate": {"year": 2026, "month": 10, "day": 1},
    }
    base.update(media)
    return {
        "id": int(f"{mal_id or 0}{episode:03d}"),
        "episode": episode,
        "airingAt": to_epoch(aired),
        "media": base,
    }


def make_entry(mal_id=100, episode=1, aired: datetime | None = None, status="RELEASING", **media):
    return entry_from_node(make_node(mal_id, episode, aired, status, **media))


def make_record(series_id="100", **kw) -> CatalogRecord:
    return CatalogRecord(series_id=series_id, **kw)


class FakeSource:
    """In-memory stand-in for AniListClient.

    pages: list of node lists, page 1 first. failures: page -> number of
    consecutive TransientFetchErrors before that page succeeds (use a large
    number to fail forever).
    """

    def __init__(self, pages, failures=None):
        self.pages = pages
        self.failures = dict(failures or {})
        self.calls: list[int] = []

    def fetch_airing_page(self, page, per_page, before_epoch):
        self.calls.append(page)
        if self.failures.get(page, 0) > 0:
            self.failures[page] -= 1
            raise TransientFetchError("timeout", page=page)
        idx = page - 1
        if idx >= len(self.pages):
            return PageResult(page=page, entries=[], has_next=False)
        return PageResult(page=page, entries=list(self.pages[idx]), has_next=page < len(self.pages))


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds):
        self.calls.append(seconds)
