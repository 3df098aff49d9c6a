import hashlib
from dataclasses import replace

import pytest

from neutrino.chain import SIMNET, double_sha256
from neutrino.errors import HeaderNotFoundError
from neutrino.filterstore import FilterHeader, FilterHeaderStore
from neutrino.headerindex import INDEX_BUCKET, HeaderEntry, HeaderType, put_header_entry
from neutrino.kvdb import Database


def make_chain(num_headers):
    return [
        FilterHeader(
            header_hash=double_sha256(bytes([i])),
            filter_hash=hashlib.sha256(bytes([i])).digest(),
            height=i,
        )
        for i in range(1, num_headers + 1)
    ]


def preload_block_index(db, headers):
    with db.update() as tx:
        root = tx.bucket(INDEX_BUCKET)
        for header in headers:
            put_header_entry(root, HeaderEntry(header.header_hash, header.height))


@pytest.fixture
def db():
    database = Database()
    yield database
    database.close()


def open_store(directory, db, assertion=None):
    return FilterHeaderStore(
        directory, db, HeaderType.REGULAR_FILTER, SIMNET, assertion
    )


def test_operations(tmp_path, db):
    store = open_store(tmp_path, db)
    headers = make_chain(100)
    preload_block_index(db, headers)
    store.write_headers(*headers)

    last = headers[-1]
    tip, tip_height = store.chain_tip()
    assert tip == last.filter_hash
    assert tip_height == last.height

    for header in headers:
        assert store.fetch_header_by_height(header.height) == header.filter_hash
        assert store.fetch_header(header.header_hash) == header.filter_hash

    second = headers[-2]
    stamp = store.rollback_last_block(second.header_hash)
    assert stamp.height == second.height
    assert stamp.hash == second.filter_hash

    tip, tip_height = store.chain_tip()
    assert tip == second.filter_hash
    assert tip_height == second.height
    store.close()


def test_recovery(tmp_path, db):
    store = open_store(tmp_path, db)
    headers = make_chain(10)
    preload_block_index(db, headers)
    store.write_headers(*headers)

    index = store._index
    for i in range(5):
        index.truncate_index(headers[len(headers) - i - 2].header_hash, True)
    store.close()

    store = open_store(tmp_path, db)
    tip, tip_height = store.chain_tip()
    assert tip_height == 5
    assert tip == headers[4].filter_hash
    assert tip != headers[5].filter_hash
    with pytest.raises(HeaderNotFoundError):
        store.fetch_header_by_height(6)
    store.close()


def test_fetch_header_ancestors(tmp_path, db):
    store = open_store(tmp_path, db)
    headers = make_chain(10)
    preload_block_index(db, headers)
    store.write_headers(*headers)

    fetched, start = store.fetch_header_ancestors(9, headers[-1].header_hash)
    assert start == 1
    assert fetched == [h.filter_hash for h in headers]
    store.close()


def _setup_with_chain(directory, db, chain):
    store = open_store(directory, db)
    preload_block_index(db, chain)
    store.write_headers(*chain)
    store.close()


@pytest.mark.parametrize(
    "assertion_factory, should_remove",
    [
        (lambda chain: chain[3], False),
        (lambda chain: FilterHeader(bytes(32), bytes(32), 5), True),
        (lambda chain: FilterHeader(bytes(32), bytes(32), 500), False),
    ],
    ids=["correct assertion", "incorrect assertion", "assertion not found"],
)
def test_header_state_assertion(tmp_path, db, assertion_factory, should_remove):
    chain = make_chain(10)
    _setup_with_chain(tmp_path, db, chain)

    store = open_store(tmp_path, db, assertion_factory(chain))
    if should_remove:
        with pytest.raises(HeaderNotFoundError):
            store.fetch_header_by_height(10)
    else:
        assert store.fetch_header_by_height(10) == chain[-1].filter_hash
    store.close()


def test_genesis_header_is_deterministic(tmp_path, db):
    first = open_store(tmp_path / "a" if (tmp_path / "a").mkdir() is None else None, db)
    (tmp_path / "b").mkdir()
    second = open_store(tmp_path / "b", Database())
    genesis = first.fetch_header_by_height(0)
    assert len(genesis) == 32
    assert genesis == second.fetch_header_by_height(0)

    (tmp_path / "c").mkdir()
    other_params = replace(SIMNET, genesis_filter=b"\x01\x02\x03")
    third = FilterHeaderStore(
        tmp_path / "c", Database(), HeaderType.REGULAR_FILTER, other_params
    )
    assert third.fetch_header_by_height(0) != genesis
    for store in (first, second, third):
        store.close()


def test_write_no_headers_is_noop(tmp_path, db):
    store = open_store(tmp_path, db)
    store.write_headers()
    assert store._file.size() == 32
    store.close()


def test_unknown_filter_type(tmp_path, db):
    with pytest.raises(ValueError):
        FilterHeaderStore(tmp_path, db, HeaderType.BLOCK, SIMNET)


def test_filter_header_rejects_bad_hash():
    with pytest.raises(ValueError):
        FilterHeader(header_hash=b"\x00" * 31, filter_hash=bytes(32), height=1)


def test_missing_height_raises(tmp_path, db):
    store = open_store(tmp_path, db)
    with pytest.raises(HeaderNotFoundError):
        store.fetch_header_by_height(3)
    store.close()