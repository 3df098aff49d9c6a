"""A database index mapping header hashes to heights, with per-type chain tips."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Iterable

from neutrino.chain import HASH_SIZE
from neutrino.errors import HashNotFoundError, HeightNotFoundError, NeutrinoError
from neutrino.kvdb import Bucket, Database, Transaction

INDEX_BUCKET = b"header-index"
BITCOIN_TIP = b"bitcoin"
REG_FILTER_TIP = b"regular"

BLOCK_HEADER_SIZE = 80
REGULAR_FILTER_HEADER_SIZE = 32

# Entries live in sub-buckets named after the first bytes of their hash.
NUM_SUB_BUCKET_BYTES = 2

_HEIGHT = struct.Struct(">I")


class HeaderType(enum.IntEnum):
    """The kinds of header kept in a header store."""

    BLOCK = 0
    REGULAR_FILTER = 1

    @property
    def header_size(self) -> int:
        """The size in bytes of one serialized header of this type."""
        return _HEADER_SIZES[self]

    @property
    def tip_key(self) -> bytes:
        """The index key that records the chain tip for this type."""
        return _TIP_KEYS[self]


_HEADER_SIZES = {
    HeaderType.BLOCK: BLOCK_HEADER_SIZE,
    HeaderType.REGULAR_FILTER: REGULAR_FILTER_HEADER_SIZE,
}

_TIP_KEYS = {
    HeaderType.BLOCK: BITCOIN_TIP,
    HeaderType.REGULAR_FILTER: REG_FILTER_TIP,
}


@dataclass(frozen=True)
class HeaderEntry:
    """A (hash, height) pair as written to the index."""

    hash: bytes
    height: int

    def __post_init__(self) -> None:
        value = bytes(self.hash)
        if len(value) != HASH_SIZE:
            raise ValueError(f"hash must be {HASH_SIZE} bytes, got {len(value)}")
        object.__setattr__(self, "hash", value)
        if not 0 <= self.height <= 0xFFFFFFFF:
            raise ValueError(f"height out of range: {self.height}")


def put_header_entry(root_bucket: Bucket, entry: HeaderEntry) -> None:
    """Store ``entry`` in the sub-bucket named by its hash prefix."""
    sub_bucket = root_bucket.create_bucket_if_not_exists(
        entry.hash[:NUM_SUB_BUCKET_BYTES]
    )
    sub_bucket.put(entry.hash, _HEIGHT.pack(entry.height))


def _get_header_entry_fallback(root_bucket: Bucket, hash_bytes: bytes) -> int:
    height_bytes = root_bucket.get(hash_bytes)
    if height_bytes is None:
        raise HashNotFoundError()
    return _HEIGHT.unpack(height_bytes[:4])[0]


def _get_header_entry(root_bucket: Bucket, hash_bytes: bytes) -> int:
    if len(hash_bytes) < NUM_SUB_BUCKET_BYTES:
        raise HashNotFoundError()
    sub_bucket = root_bucket.nested_bucket(hash_bytes[:NUM_SUB_BUCKET_BYTES])
    if sub_bucket is None:
        return _get_header_entry_fallback(root_bucket, hash_bytes)
    height_bytes = sub_bucket.get(hash_bytes)
    if height_bytes is None:
        return _get_header_entry_fallback(root_bucket, hash_bytes)
    return _HEIGHT.unpack(height_bytes[:4])[0]


def _del_header_entry(root_bucket: Bucket, hash_bytes: bytes) -> None:
    # Entries written by older versions sit directly in the root bucket.
    if len(root_bucket.get(hash_bytes) or b"") == 4:
        root_bucket.delete(hash_bytes)
        return
    sub_bucket = root_bucket.nested_bucket(hash_bytes[:NUM_SUB_BUCKET_BYTES])
    if sub_bucket is None:
        raise HashNotFoundError()
    sub_bucket.delete(hash_bytes)


class HeaderIndex:
    """Random access into a header flat file by hash, plus its chain tip."""

    def __init__(self, db: Database, index_type: HeaderType) -> None:
        try:
            self.index_type = HeaderType(index_type)
        except ValueError:
            raise ValueError(f"unknown index type: {index_type}") from None
        self.db = db
        with db.update() as tx:
            tx.create_top_level_bucket(INDEX_BUCKET)

    @staticmethod
    def _root(tx: Transaction) -> Bucket:
        root = tx.bucket(INDEX_BUCKET)
        if root is None:
            raise NeutrinoError("header index bucket is missing")
        return root

    def add_headers(self, batch: Iterable[HeaderEntry]) -> None:
        """Write all entries and move the tip to the highest one, atomically."""
        entries = sorted(batch, key=lambda entry: entry.hash)
        if not entries:
            return

        with self.db.update() as tx:
            root = self._root(tx)
            tip_hash = bytes(HASH_SIZE)
            tip_height = 0
            for entry in entries:
                put_header_entry(root, entry)
                if entry.height >= tip_height:
                    tip_hash = entry.hash
                    tip_height = entry.height
            root.put(self.index_type.tip_key, tip_hash)

    def height_from_hash(self, block_hash: bytes) -> int:
        """Return the height recorded for ``block_hash``."""
        with self.db.view() as tx:
            return self._height_from_hash_tx(tx, block_hash)

    def _height_from_hash_tx(self, tx: Transaction, block_hash: bytes) -> int:
        return _get_header_entry(self._root(tx), bytes(block_hash))

    def chain_tip(self) -> tuple[bytes, int]:
        """Return the hash and height of the best known tip."""
        with self.db.view() as tx:
            return self._chain_tip_tx(tx)

    def _chain_tip_tx(self, tx: Transaction) -> tuple[bytes, int]:
        root = self._root(tx)
        tip_hash = root.get(self.index_type.tip_key)
        if not tip_hash:
            raise HeightNotFoundError()
        try:
            tip_height = _get_header_entry(root, tip_hash)
        except HashNotFoundError:
            raise HeightNotFoundError() from None
        if len(tip_hash) != HASH_SIZE:
            raise NeutrinoError(
                f"invalid hash length of {len(tip_hash)}, want {HASH_SIZE}"
            )
        return tip_hash, tip_height

    def truncate_index(self, new_tip: bytes, remove: bool) -> None:
        """Point the tip at ``new_tip``, deleting the old tip entry if ``remove``."""
        with self.db.update() as tx:
            root = self._root(tx)
            tip_key = self.index_type.tip_key
            if remove:
                prev_tip = root.get(tip_key)
                if not prev_tip:
                    raise HashNotFoundError()
                _del_header_entry(root, prev_tip)
            root.put(tip_key, bytes(new_tip))