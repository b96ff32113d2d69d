"""
Paginated fetch tests: window cut-off, hasNextPage, bounded retry with linear
backoff, and partial results when a page never succeeds.
"""
from animehub.config import Config
from animehub.fetcher import FetchFailure, PaginatedFetcher

from helpers import NOW, FakeSource, ago, make_node

CUTOFF = ago(days=7)


def _recent_page(start_id, n=3):
    return [make_node(mal_id=start_id + i, episode=1, aired=ago(hours=i + 1)) for i in range(n)]


def test_stops_once_page_reaches_past_cutoff(cfg, sleep):
    pages = [
        _recent_page(100),
        [make_node(mal_id=200, aired=ago(days=6)), make_node(mal_id=201, aired=ago(days=8))],
        _recent_page(300),
    ]
    source = FakeSource(pages)
    result = PaginatedFetcher(source, cfg, sleep=sleep).fetch_window(CUTOFF, NOW)

    assert source.calls == [1, 2]
    assert result.stop_reason == "window"
    assert result.pages_fetched == 2
    assert [n["media"]["idMal"] for n in result.entries] == [100, 101, 102, 200, 201]


def test_never_requests_past_last_page(cfg, sleep):
    source = FakeSource([_recent_page(100), _recent_page(200)])
    result = PaginatedFetcher(source, cfg, sleep=sleep).fetch_window(CUTOFF, NOW)

    assert source.calls == [1, 2]
    assert result.stop_reason == "last_page"
    assert len(result.entries) == 6


def test_inter_page_delay_between_successful_pages(cfg, sleep):
    source = FakeSource([_recent_page(100), _recent_page(200), _recent_page(300)])
    PaginatedFetcher(source, cfg, sleep=sleep).fetch_window(CUTOFF, NOW)
    assert sleep.calls == [cfg.inter_page_delay, cfg.inter_page_delay]


def test_retry_uses_linear_backoff_then_succeeds(cfg, sleep):
    source = FakeSource([_recent_page(100)], failures={1: 2})
    result = PaginatedFetcher(source, cfg, sleep=sleep).fetch_window(CUTOFF, NOW)

    assert source.calls == [1, 1, 1]
    assert sleep.calls == [1 * cfg.backoff_base, 2 * cfg.backoff_base]
    assert result.failure is None
    assert len(result.entries) == 3


def test_exhausted_page_stops_pagination_with_partial_results(cfg, sleep):
    source = FakeSource([_recent_page(100), _recent_page(200), _recent_page(300)],
                        failures={2: 99})
    result = PaginatedFetcher(source, cfg, sleep=sleep).fetch_window(CUTOFF, NOW)

    assert source.calls == [1, 2, 2, 2]
    assert result.stop_reason == "failure"
    assert result.failure.page == 2
    assert result.failure.attempts == cfg.max_retries
    assert len(result.entries) == 3
    # no backoff after the final attempt
    assert sleep.calls == [cfg.inter_page_delay, cfg.backoff_base, 2 * cfg.backoff_base]


def test_fetch_page_returns_failure_object(sleep):
    fetcher = PaginatedFetcher(FakeSource([], failures={1: 99}), Config(max_retries=2), sleep=sleep)
    outcome = fetcher.fetch_page(1, 0)
    assert isinstance(outcome, FetchFailure)
    assert outcome.attempts == 2
    assert "timeout" in outcome.error


def test_max_pages_bounds_pagination(sleep):
    pages = [_recent_page(i * 100) for i in range(1, 6)]
    source = FakeSource(pages)
    result = PaginatedFetcher(source, Config(max_pages=2), sleep=sleep).fetch_window(CUTOFF, NOW)
    assert source.calls == [1, 2]
    assert result.stop_reason == "max_pages"


def test_empty_first_page(cfg, sleep):
    result = PaginatedFetcher(FakeSource([]), cfg, sleep=sleep).fetch_window(CUTOFF, NOW)
    assert result.entries == []
    assert result.stop_reason == "empty_page"
