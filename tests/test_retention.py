"""
Retention tests: keep rules are any-of, the denylist overrides them, and a
sweep run deletes, prunes the seen ledger, or only reports when dry.
"""
from datetime import date, timedelta

import pytest

from animehub.config import Config
from animehub.retention import RetentionSweeper, run_retention
from animehub.store import CatalogWrite

from helpers import NOW, ago, make_record


@pytest.fixture
def sweeper(cfg):
    return RetentionSweeper.from_config(cfg)


def _stale(series_id="100", **kw):
    base = dict(status="FINISHED", episode_aired_at=ago(days=10),
                episode_added_at=ago(days=10), last_refreshed_at=ago(days=10),
                started_on=date(2026, 1, 10))
    base.update(kw)
    return make_record(series_id, **base)


def test_stale_finished_series_is_deleted(sweeper):
    result = sweeper.sweep([_stale()], NOW)
    assert result.delete == {"100"}
    assert result.delete_reasons["100"] == "stale"


def test_releasing_series_is_never_deleted(sweeper):
    rec = _stale(status="RELEASING", episode_aired_at=ago(days=200))
    result = sweeper.sweep([rec], NOW)
    assert result.kept == {"100": "releasing"}


@pytest.mark.parametrize("status", ["Currently Airing", "Airing", "releasing"])
def test_legacy_airing_statuses_count_as_releasing(sweeper, status):
    assert sweeper.sweep([_stale(status=status)], NOW).kept["100"] == "releasing"


def test_denylist_beats_every_keep_rule(sweeper):
    rec = _stale("999", status="RELEASING", episode_aired_at=NOW, last_refreshed_at=NOW)
    result = sweeper.sweep([rec], NOW)
    assert result.delete == {"999"}
    assert result.delete_reasons["999"] == "denylisted"


@pytest.mark.parametrize("override, reason", [
    ({"episode_aired_at": ago(days=6)}, "recent_episode"),
    ({"started_on": (NOW - timedelta(days=20)).date()}, "new_series"),
    ({"episode_added_at": ago(days=6)}, "recently_added"),
    ({"last_refreshed_at": ago(days=1)}, "recently_refreshed"),
])
def test_each_rule_keeps_on_its_own(sweeper, override, reason):
    assert sweeper.sweep([_stale(**override)], NOW).kept["100"] == reason


def test_first_matching_rule_is_reported(sweeper):
    rec = _stale(episode_aired_at=ago(days=1), last_refreshed_at=ago(hours=1))
    assert sweeper.sweep([rec], NOW).kept["100"] == "recent_episode"


def test_refresh_grace_boundary(sweeper):
    assert sweeper.sweep([_stale(last_refreshed_at=ago(days=2))], NOW).kept
    assert sweeper.sweep([_stale(last_refreshed_at=ago(days=2, seconds=1))], NOW).delete


def test_missing_timestamps_are_not_keep_signals(sweeper):
    rec = make_record("5", status=None)
    assert sweeper.sweep([rec], NOW).delete == {"5"}


def _seed(store, *records):
    store.commit_batch([CatalogWrite(r.series_id, r.to_fields()) for r in records])


def test_run_retention_deletes_and_prunes_seen(store, cfg):
    _seed(store, _stale("1"), _stale("2", status="RELEASING"), _stale("999", status="RELEASING"))
    store.mark_seen([("1", 3, ago(days=10)), ("2", 4, ago(days=1))])

    summary = run_retention(store, cfg, now=NOW)

    assert summary.ok
    assert (summary.scanned, summary.kept, summary.deleted) == (3, 1, 2)
    assert summary.seen_pruned == 1
    assert [r.series_id for r in store.scan()] == ["2"]
    actions = {sid: (action, reason) for sid, _title, action, reason in summary.decisions}
    assert actions == {
        "1": ("DELETE", "stale"),
        "2": ("KEEP", "releasing"),
        "999": ("DELETE", "denylisted"),
    }


def test_dry_run_reports_without_deleting(store, cfg):
    _seed(store, _stale("1"), _stale("2", status="RELEASING"))
    store.mark_seen([("1", 3, ago(days=10))])

    summary = run_retention(store, cfg, now=NOW, dry_run=True)

    assert summary.ok and summary.dry_run
    assert summary.deleted == 1
    assert summary.seen_pruned == 0
    assert [r.series_id for r in store.scan()] == ["1", "2"]
    assert store.seen_count() == 1


def test_default_denylist_is_applied():
    sweeper = RetentionSweeper.from_config(Config())
    rec = make_record("32281", status="RELEASING")
    assert sweeper.sweep([rec], NOW).delete_reasons["32281"] == "denylisted"
