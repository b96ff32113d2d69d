"""
anilist — Client for the AniList GraphQL airing schedule (graphql.anilist.co).

One call = one page of `airingSchedules`, newest airing time first, restricted to
episodes that have already aired. Every failure mode surfaces as
TransientFetchError so the fetcher can retry it.
"""
from __future__ import annotations

from dataclasses import dataclass, field

import requests
import structlog

from .errors import TransientFetchError

log = structlog.get_logger()

AIRING_QUERY = """
query ($page: Int, $perPage: Int, $before: Int) {
  Page(page: $page, perPage: $perPage) {
    pageInfo { currentPage hasNextPage }
    airingSchedules(airingAt_lesser: $before, sort: TIME_DESC) {
      id
      episode
      airingAt
      media {
        id
        idMal
        title { romaji english native }
        coverImage { extraLarge large medium }
        bannerImage
        genres
        tags { name }
        isAdult
        type
        format
        countryOfOrigin
        status
        episodes
        season
        seasonYear
        averageScore
        studios(isMain: true) { nodes { name } }
        description(asHtml: false)
        siteUrl
        startDate { year month day }
      }
    }
  }
}
"""

_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": "animehub/0.3",
}


@dataclass
class PageResult:
    page: int
    entries: list[dict] = field(default_factory=list)
    has_next: bool = False


class AniListClient:
    def __init__(self, url: str = "https://graphql.anilist.co", timeout: float = 30.0,
                 session: requests.Session | None = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_airing_page(self, page: int, per_page: int, before_epoch: int) -> PageResult:
        payload = {
            "query": AIRING_QUERY,
            "variables": {"page": page, "perPage": per_page, "before": before_epoch},
        }
        try:
            r = self.session.post(self.url, json=payload, headers=_HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientFetchError(f"request failed: {e}", page=page) from e

        if r.status_code >= 400:
            raise TransientFetchError(
                f"HTTP {r.status_code} from upstream", page=page, status_code=r.status_code
            )

        try:
            data = r.json()
        except ValueError as e:
            raise TransientFetchError("upstream returned non-JSON body", page=page) from e

        if not isinstance(data, dict):
            raise TransientFetchError("unexpected response shape", page=page)

        errors = data.get("errors")
        if errors:
            if not isinstance(errors, list):
                errors = [errors]
            messages = "; ".join(
                str(err.get("message") if isinstance(err, dict) else err) for err in errors
            )
            raise TransientFetchError(f"GraphQL errors: {messages}", page=page)

        page_data = (data.get("data") or {}).get("Page")
        if not isinstance(page_data, dict):
            raise TransientFetchError("response has no Page object", page=page)

        entries = page_data.get("airingSchedules") or []
        has_next = bool((page_data.get("pageInfo") or {}).get("hasNextPage"))
        log.debug("anilist_page_fetched", page=page, count=len(entries), has_next=has_next)
        return PageResult(page=page, entries=entries, has_next=has_next)
