import pytest

from animehub.config import Config
from animehub.store import SqlCatalogStore

from helpers import RecordingSleep


@pytest.fixture
def cfg():
    return Config(denylist_ids=("999",))


@pytest.fixture
def store():
    return SqlCatalogStore("sqlite://")


@pytest.fixture
def sleep():
    return RecordingSleep()
