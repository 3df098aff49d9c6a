"""An indexed on-disk store of Bitcoin block headers."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from datetime import datetime

from neutrino.chain import BlockHeader, ChainParams, hash_to_str
from neutrino.errors import HeaderNotFoundError, NeutrinoError
from neutrino.headerfile import HeaderFile
from neutrino.headerindex import HeaderEntry, HeaderIndex, HeaderType
from neutrino.kvdb import Database

# The most block locator hashes a single getheaders message may carry.
MAX_BLOCK_LOCATORS_PER_MSG = 500


@dataclass(frozen=True)
class BlockStamp:
    """A block identified by its height and hash, with its header's timestamp."""

    height: int
    hash: bytes
    timestamp: datetime | None = None


@dataclass(frozen=True)
class IndexedBlockHeader:
    """A block header together with its height in the main chain."""

    header: BlockHeader
    height: int


class BlockHeaderStore:
    """Block headers in a flat file, indexed by hash in a database.

    On first use the network's genesis header is written. On later opens
    the flat file is truncated back to the index's tip if a previous write
    reached the file but not the index.
    """

    def __init__(
        self,
        directory: str | os.PathLike[str],
        db: Database,
        params: ChainParams,
    ) -> None:
        self._lock = threading.RLock()
        self._file = HeaderFile(directory, HeaderType.BLOCK)
        try:
            self._index = HeaderIndex(db, HeaderType.BLOCK)
            self._initialize(params)
        except BaseException:
            self._file.close()
            raise

    def _initialize(self, params: ChainParams) -> None:
        file_size = self._file.size()
        if file_size == 0:
            self.write_headers(IndexedBlockHeader(params.genesis_header, 0))
            return

        tip_hash, tip_height = self._index.chain_tip()
        file_height = file_size // self._file.header_size - 1
        latest = self._read_header(file_height)
        if latest.block_hash() == tip_hash:
            return

        while file_height > tip_height:
            self._file.single_truncate()
            file_height -= 1

    def _read_header(self, height: int) -> BlockHeader:
        return BlockHeader.deserialize(self._file.read_raw(height))

    def fetch_header(self, block_hash: bytes) -> tuple[BlockHeader, int]:
        """Return the header with ``block_hash`` and its height."""
        with self._lock:
            height = self._index.height_from_hash(block_hash)
            return self._read_header(height), height

    def fetch_header_by_height(self, height: int) -> BlockHeader:
        """Return the header at ``height``."""
        with self._lock:
            return self._read_header(height)

    def fetch_header_ancestors(
        self, num_headers: int, stop_hash: bytes
    ) -> tuple[list[BlockHeader], int]:
        """Return ``num_headers + 1`` headers ending at ``stop_hash``.

        The second value is the height of the first header returned.
        """
        with self._lock:
            end_height = self._index.height_from_hash(stop_hash)
            start_height = end_height - num_headers
            if start_height < 0:
                raise HeaderNotFoundError(
                    f"can't fetch {num_headers} ancestors of header at "
                    f"height {end_height}"
                )
            raw = self._file.read_range(start_height, end_height)
            return [BlockHeader.deserialize(data) for data in raw], start_height

    def height_from_hash(self, block_hash: bytes) -> int:
        """Return the height of the header with ``block_hash``."""
        return self._index.height_from_hash(block_hash)

    def rollback_last_block(self) -> BlockStamp:
        """Remove the tip header from file and index; return the new tip."""
        with self._lock:
            _, tip_height = self._index.chain_tip()
            prev_header = self._read_header(tip_height - 1)
            prev_hash = prev_header.block_hash()

            self._file.single_truncate()
            self._index.truncate_index(prev_hash, True)

            return BlockStamp(
                height=tip_height - 1,
                hash=prev_hash,
                timestamp=prev_header.timestamp,
            )

    def write_headers(self, *args: IndexedBlockHeader) -> None:
        """Append headers to the file, then add them to the index in one batch."""
        with self._lock:
            self._file.append_raw(b"".join(h.header.serialize() for h in args))
            self._index.add_headers(
                HeaderEntry(h.header.block_hash(), h.height) for h in args
            )

    def _locator_from_hash(self, block_hash: bytes) -> list[bytes]:
        locator = [bytes(block_hash)]
        try:
            height = self._index.height_from_hash(block_hash)
        except NeutrinoError:
            return locator
        if height == 0:
            return locator

        decrement = 1
        while height > 0 and len(locator) < MAX_BLOCK_LOCATORS_PER_MSG:
            # Single steps for the first ten entries, then doubling jumps.
            if len(locator) > 10:
                decrement *= 2
            height = 0 if decrement > height else height - decrement
            locator.append(self._read_header(height).block_hash())
        return locator

    def latest_block_locator(self) -> list[bytes]:
        """Return a block locator rooted at the current chain tip."""
        with self._lock:
            tip_hash, _ = self._index.chain_tip()
            return self._locator_from_hash(tip_hash)

    def block_locator_from_hash(self, block_hash: bytes) -> list[bytes]:
        """Return a block locator rooted at ``block_hash``."""
        with self._lock:
            return self._locator_from_hash(block_hash)

    def check_connectivity(self) -> None:
        """Walk the chain backwards, checking links and index entries.

        Raises NeutrinoError describing the first inconsistency found.
        """
        with self._lock:
            _, tip_height = self._index.chain_tip()
            header = self._read_header(tip_height)

            for height in range(tip_height - 1, 0, -1):
                try:
                    new_header = self._read_header(height)
                except NeutrinoError as exc:
                    raise NeutrinoError(
                        f"couldn't retrieve header "
                        f"{hash_to_str(header.prev_block)}: {exc}"
                    ) from exc
                new_hash = new_header.block_hash()

                try:
                    index_height = self._index.height_from_hash(new_hash)
                except NeutrinoError as exc:
                    raise NeutrinoError(
                        f"index and on-disk file out of sync at height: {height}"
                    ) from exc

                if index_height != height:
                    raise NeutrinoError(
                        "index height isn't monotonically increasing"
                    )

                if new_hash != header.prev_block:
                    raise NeutrinoError(
                        f"block {hash_to_str(new_hash)} doesn't match block "
                        f"{hash_to_str(header.block_hash())}'s PrevBlock "
                        f"({hash_to_str(header.prev_block)})"
                    )

                header = new_header

    def chain_tip(self) -> tuple[BlockHeader, int]:
        """Return the best known header and its height."""
        with self._lock:
            _, tip_height = self._index.chain_tip()
            return self._read_header(tip_height), tip_height

    def close(self) -> None:
        """Close the flat file; the database stays open for its owner."""
        with self._lock:
            self._file.close()

    def __enter__(self) -> BlockHeaderStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()