import pytest

from muezzin.core.cache import SnapshotCache
from muezzin.core.db import dispose_db, init_db
from muezzin.store.gateway import StoreGateway


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database per test."""
    dispose_db()
    init_db(db_url=f"sqlite:///{tmp_path / 'muezzin.db'}")
    yield
    dispose_db()


@pytest.fixture
def store(db):
    # Small batches so chunking is exercised
    return StoreGateway(batch_size=2)


@pytest.fixture
def clock():
    """Settable monotonic clock for cache expiry."""
    now = [1000.0]

    def _clock():
        return now[0]

    _clock.now = now
    return _clock


@pytest.fixture
def cache(clock):
    return SnapshotCache(timeout_seconds=60, clock=clock)
