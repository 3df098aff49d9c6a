"""Persistent storage of compact filters keyed by block hash."""

from __future__ import annotations

from neutrino.chain import ChainParams, FilterType
from neutrino.errors import FilterNotFoundError
from neutrino.kvdb import Database, Transaction

FILTER_BUCKET = b"filter-store"
REGULAR_BUCKET = b"regular"


def _bucket_name(filter_type: int) -> bytes:
    if filter_type == FilterType.REGULAR:
        return REGULAR_BUCKET
    raise ValueError(f"unknown filter type: {filter_type}")


class FilterStore:
    """Stores serialized filters in a database, one bucket per filter type.

    An empty stored value means the block is known to have no filter.
    """

    def __init__(self, db: Database, params: ChainParams) -> None:
        self._db = db
        with db.update() as tx:
            filters = tx.create_top_level_bucket(FILTER_BUCKET)
            regular = filters.create_bucket_if_not_exists(REGULAR_BUCKET)
            regular.put(params.genesis_hash, params.genesis_filter or None)

    @staticmethod
    def _filters(tx: Transaction):
        filters = tx.bucket(FILTER_BUCKET)
        if filters is None:
            raise FilterNotFoundError()
        return filters

    def put_filter(
        self, block_hash: bytes, filter_bytes: bytes | None, filter_type: int
    ) -> None:
        """Store the filter for ``block_hash``; None records an absent filter."""
        name = _bucket_name(filter_type)
        with self._db.update() as tx:
            self._filters(tx).nested_bucket(name).put(block_hash, filter_bytes)

    def fetch_filter(self, block_hash: bytes, filter_type: int) -> bytes | None:
        """Return the stored filter, or None if the block has no filter.

        Raises FilterNotFoundError if nothing is stored for ``block_hash``.
        """
        if filter_type != FilterType.REGULAR:
            raise ValueError("unknown filter type")
        with self._db.view() as tx:
            data = self._filters(tx).nested_bucket(REGULAR_BUCKET).get(block_hash)
        if data is None:
            raise FilterNotFoundError()
        return data or None

    def purge_filters(self, filter_type: int) -> None:
        """Remove every stored filter of ``filter_type``."""
        name = _bucket_name(filter_type)
        with self._db.update() as tx:
            filters = self._filters(tx)
            filters.delete_nested_bucket(name)
            filters.create_bucket(name)