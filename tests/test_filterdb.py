import os

import pytest

from neutrino.chain import SIMNET, ChainParams, FilterType
from neutrino.errors import FilterNotFoundError
from neutrino.filterdb import FilterStore
from neutrino.kvdb import Database

GENESIS_FILTER = b"\x01\x02\x03\x04"
PARAMS = ChainParams(
    name="simnet-with-filter",
    net=SIMNET.net,
    genesis_header=SIMNET.genesis_header,
    genesis_filter=GENESIS_FILTER,
)


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def store(db):
    return FilterStore(db, PARAMS)


def test_genesis_filter_creation(store):
    assert store.fetch_filter(PARAMS.genesis_hash, FilterType.REGULAR) == GENESIS_FILTER


def test_genesis_without_filter_is_recorded_as_empty(db):
    store = FilterStore(db, SIMNET)
    assert store.fetch_filter(SIMNET.genesis_hash, FilterType.REGULAR) is None


def test_filter_storage_round_trip(store):
    block_hash = os.urandom(32)
    filter_bytes = os.urandom(100)
    store.put_filter(block_hash, filter_bytes, FilterType.REGULAR)
    assert store.fetch_filter(block_hash, FilterType.REGULAR) == filter_bytes


def test_overwrite_filter(store):
    block_hash = os.urandom(32)
    store.put_filter(block_hash, b"old", FilterType.REGULAR)
    store.put_filter(block_hash, b"new", FilterType.REGULAR)
    assert store.fetch_filter(block_hash, FilterType.REGULAR) == b"new"


def test_missing_filter_raises(store):
    with pytest.raises(FilterNotFoundError):
        store.fetch_filter(os.urandom(32), FilterType.REGULAR)


def test_none_filter_fetches_as_none(store):
    block_hash = os.urandom(32)
    store.put_filter(block_hash, None, FilterType.REGULAR)
    assert store.fetch_filter(block_hash, FilterType.REGULAR) is None


def test_purge_filters(store):
    block_hash = os.urandom(32)
    store.put_filter(block_hash, b"data", FilterType.REGULAR)
    store.purge_filters(FilterType.REGULAR)
    with pytest.raises(FilterNotFoundError):
        store.fetch_filter(block_hash, FilterType.REGULAR)
    with pytest.raises(FilterNotFoundError):
        store.fetch_filter(PARAMS.genesis_hash, FilterType.REGULAR)

    store.put_filter(block_hash, b"again", FilterType.REGULAR)
    assert store.fetch_filter(block_hash, FilterType.REGULAR) == b"again"


def test_unknown_filter_type_raises(store):
    block_hash = os.urandom(32)
    with pytest.raises(ValueError, match="unknown filter type"):
        store.put_filter(block_hash, b"data", 7)
    with pytest.raises(ValueError, match="unknown filter type"):
        store.fetch_filter(block_hash, 7)
    with pytest.raises(ValueError, match="unknown filter type"):
        store.purge_filters(7)


def test_reopen_keeps_filters(db):
    block_hash = os.urandom(32)
    FilterStore(db, PARAMS).put_filter(block_hash, b"kept", FilterType.REGULAR)
    reopened = FilterStore(db, PARAMS)
    assert reopened.fetch_filter(block_hash, FilterType.REGULAR) == b"kept"