"""
FirestoreCatalogStore against an in-memory fake of the firestore client API
(collection / document / batch / stream / where).
"""
from datetime import datetime, timezone

import pytest

from animehub.errors import BatchCommitError
from animehub.firestore_store import FirestoreCatalogStore, to_document
from animehub.store import CatalogWrite

from helpers import NOW, ago, make_record


class FakeSnapshot:
    def __init__(self, ref, data):
        self.reference = ref
        self.id = ref.id
        self.exists = data is not None
        self._data = data

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocRef:
    def __init__(self, coll, doc_id):
        self.coll = coll
        self.id = doc_id

    def get(self):
        return FakeSnapshot(self, self.coll.docs.get(self.id))


class FakeQuery:
    def __init__(self, coll, field, op, value):
        assert op == "<"
        self.coll, self.field, self.value = coll, field, value

    def stream(self):
        return [s for s in self.coll.stream() if s.to_dict()[self.field] < self.value]


class FakeCollection:
    def __init__(self):
        self.docs = {}

    def document(self, doc_id):
        return FakeDocRef(self, doc_id)

    def stream(self):
        return [FakeSnapshot(FakeDocRef(self, k), v) for k, v in sorted(self.docs.items())]

    def where(self, field, op, value):
        return FakeQuery(self, field, op, value)


class FakeBatch:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def set(self, ref, data, merge=False):
        self.ops.append(("set", ref, data, merge))

    def delete(self, ref):
        self.ops.append(("delete", ref, None, False))

    def commit(self):
        if self.client.fail_commit:
            raise RuntimeError("deadline exceeded")
        self.client.commits.append(len(self.ops))
        for op, ref, data, merge in self.ops:
            docs = ref.coll.docs
            if op == "delete":
                docs.pop(ref.id, None)
            elif merge and ref.id in docs:
                docs[ref.id].update(data)
            else:
                docs[ref.id] = dict(data)


class FakeFirestore:
    def __init__(self):
        self.collections = {}
        self.commits = []
        self.fail_commit = False

    def collection(self, name):
        return self.collections.setdefault(name, FakeCollection())

    def batch(self):
        return FakeBatch(self)


@pytest.fixture
def client():
    return FakeFirestore()


@pytest.fixture
def fs(client):
    return FirestoreCatalogStore(client=client)


def _write(fs, rec, exclude=()):
    return fs.commit_batch([CatalogWrite(rec.series_id, rec.to_fields(exclude=exclude))])


def test_documents_use_app_field_names(fs, client):
    _write(fs, make_record("7", latest_episode=3, episode_added_at=NOW, last_refreshed_at=NOW,
                           total_episodes=12, format="TV"))
    doc = client.collection("episodes").docs["7"]
    assert doc["latestEpisode"] == 3
    assert doc["episodes"] == 12
    assert doc["type"] == "TV"
    assert doc["episodeAddedAt"] == NOW.replace(tzinfo=timezone.utc)
    assert "episode_added_at" not in doc


def test_merge_keeps_episode_added_at(fs):
    _write(fs, make_record("7", latest_episode=3, episode_added_at=ago(days=2), title="Old"))
    _write(fs, make_record("7", latest_episode=3, last_refreshed_at=NOW, title="New"),
           exclude=("episode_added_at",))
    stored = fs.get("7")
    assert stored.episode_added_at == ago(days=2)
    assert stored.last_refreshed_at == NOW
    assert stored.title == "New"


def test_legacy_iso_string_documents_are_readable(fs, client):
    client.collection("episodes").docs["42"] = {
        "title": "Legacy",
        "latestEpisode": "4",
        "episodeAddedAt": "2026-10-17T09:30:00.000Z",
        "lastUpdated": "2026-10-17T10:00:00Z",
        "airedDate": "2026-04-05T00:00:00+00:00",
        "status": "Currently Airing",
        "someOldField": True,
    }
    rec = fs.get("42")
    assert rec.latest_episode == 4
    assert rec.episode_added_at == datetime(2026, 10, 17, 9, 30)
    assert rec.started_on.isoformat() == "2026-04-05"
    assert rec.status == "Currently Airing"


def test_missing_document(fs):
    assert fs.get("nope") is None


def test_unknown_field_fails_staging_only(fs):
    result = fs.commit_batch([
        CatalogWrite("1", {"latest_episode": 1}),
        CatalogWrite("2", {"bogus": 1}),
    ])
    assert result.written == ["1"]
    assert list(result.failed) == ["2"]


def test_large_batches_are_chunked(fs, client):
    writes = [CatalogWrite(str(i), {"latest_episode": 1}) for i in range(1001)]
    result = fs.commit_batch(writes)
    assert len(result.written) == 1001
    assert client.commits == [500, 500, 1]


def test_commit_failure_raises(fs, client):
    client.fail_commit = True
    with pytest.raises(BatchCommitError):
        _write(fs, make_record("1"))


def test_scan_and_delete(fs):
    for sid in ("1", "2", "3"):
        _write(fs, make_record(sid))
    assert fs.delete_many(["2"]) == 1
    assert [r.series_id for r in fs.scan()] == ["1", "3"]


def test_seen_ledger(fs, client):
    assert fs.mark_seen([("1", 5, ago(days=1)), ("1", 5, ago(days=1)), ("2", 1, ago(days=9))]) == 2
    assert fs.mark_seen([("1", 5, ago(days=1))]) == 0
    assert set(client.collection("seen_episodes").docs) == {"1:5", "2:1"}
    assert fs.prune_seen(ago(days=7)) == 1
    assert set(client.collection("seen_episodes").docs) == {"1:5"}


def test_to_document_drops_series_id():
    assert "series_id" not in to_document({"series_id": "1", "title": "x"})


def test_seen_ledger_writes_are_chunked(fs, client):
    sightings = [(str(i), 1, ago(days=1)) for i in range(600)]
    assert fs.mark_seen(sightings) == 600
    assert client.commits == [500, 100]
    assert len(client.collection("seen_episodes").docs) == 600
