"""
Content policy tests: each predicate rejects on its own, the first failing
predicate names the reason, and decisions depend only on the metadata.
"""
import pytest

from animehub.config import Config
from animehub.policy import ContentPolicy
from animehub.schedule import SeriesMetadata

from helpers import make_entry


@pytest.fixture
def policy():
    return ContentPolicy.from_config(Config())


def _meta(**kw):
    return make_entry(**kw).metadata


def test_clean_series_is_admitted(policy):
    verdict = policy.admit(_meta())
    assert verdict.admitted
    assert verdict.reason is None
    assert bool(verdict)


def test_hentai_genre_rejected_regardless_of_other_fields(policy):
    verdict = policy.admit(_meta(genres=["Action", "Hentai"]))
    assert not verdict
    assert verdict.reason == "blocked_genre"


def test_genre_match_ignores_case(policy):
    assert policy.admit(_meta(genres=["hentai"])).reason == "blocked_genre"


@pytest.mark.parametrize("media, reason", [
    ({"isAdult": True}, "adult"),
    ({"tags": [{"name": "Nudity"}]}, "blocked_tag"),
    ({"type": "MANGA"}, "media_type"),
    ({"format": "MOVIE"}, "format"),
    ({"format": "MUSIC"}, "format"),
    ({"countryOfOrigin": "US"}, "country"),
])
def test_single_failing_predicate_rejects(policy, media, reason):
    assert policy.admit(_meta(**media)).reason == reason


def test_missing_country_is_not_a_rejection(policy):
    assert policy.admit(_meta(countryOfOrigin=None)).admitted


def test_first_failing_predicate_names_the_reason(policy):
    meta = _meta(isAdult=True, genres=["Hentai"], format="MOVIE", countryOfOrigin="US")
    assert policy.admit(meta).reason == "adult"


def test_decision_is_a_pure_function_of_metadata(policy):
    meta = _meta(format="OVA")
    first = policy.admit(meta)
    second = policy.admit(SeriesMetadata(**meta.__dict__))
    assert first == second
    assert first.reason == "format"


def test_allow_lists_come_from_config():
    policy = ContentPolicy.from_config(Config(allowed_formats=("MOVIE",), allowed_countries=("US",)))
    assert policy.admit(_meta(format="MOVIE", countryOfOrigin="US")).admitted
    assert policy.admit(_meta(format="TV")).reason == "format"
