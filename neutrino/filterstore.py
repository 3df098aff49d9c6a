"""An indexed on-disk store of compact filter headers."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass

from neutrino.blockstore import BlockStamp
from neutrino.chain import HASH_SIZE, ChainParams, double_sha256
from neutrino.errors import HeaderNotFoundError, NeutrinoError
from neutrino.headerfile import HeaderFile
from neutrino.headerindex import HeaderIndex, HeaderType
from neutrino.kvdb import Database


def _check_hash(name: str, value: bytes) -> bytes:
    value = bytes(value)
    if len(value) != HASH_SIZE:
        raise ValueError(f"{name} must be {HASH_SIZE} bytes, got {len(value)}")
    return value


@dataclass(frozen=True)
class FilterHeader:
    """A filter header with the hash and height of the block it belongs to."""

    header_hash: bytes
    filter_hash: bytes
    height: int

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "header_hash", _check_hash("header_hash", self.header_hash)
        )
        object.__setattr__(
            self, "filter_hash", _check_hash("filter_hash", self.filter_hash)
        )
        if not 0 <= self.height <= 0xFFFFFFFF:
            raise ValueError(f"height out of range: {self.height}")


def _genesis_filter_header(params: ChainParams) -> bytes:
    filter_hash = double_sha256(params.genesis_filter)
    return double_sha256(filter_hash + params.genesis_header.prev_block)


class FilterHeaderStore:
    """Filter headers in a flat file, located through the shared header index.

    Block headers are expected to be indexed before their filter headers
    are written; writing filter headers only moves the filter chain tip.
    """

    def __init__(
        self,
        directory: str | os.PathLike[str],
        db: Database,
        filter_type: HeaderType,
        params: ChainParams,
        header_state_assertion: FilterHeader | None = None,
    ) -> None:
        if filter_type != HeaderType.REGULAR_FILTER:
            raise ValueError(f"unknown filter type: {filter_type}")
        self.filter_type = HeaderType(filter_type)
        self._directory = directory
        self._lock = threading.RLock()
        self._file = HeaderFile(directory, self.filter_type)
        try:
            self._index = HeaderIndex(db, self.filter_type)
            self._initialize(params, header_state_assertion)
        except BaseException:
            self._file.close()
            raise

    def _initialize(
        self, params: ChainParams, assertion: FilterHeader | None
    ) -> None:
        file_size = self._file.size()
        if file_size == 0:
            self.write_headers(
                FilterHeader(
                    header_hash=params.genesis_hash,
                    filter_hash=_genesis_filter_header(params),
                    height=0,
                )
            )
            return

        if assertion is not None and self._maybe_reset_header_state(assertion):
            self._file = HeaderFile(self._directory, self.filter_type)
            self._initialize(params, None)
            return

        tip_hash, tip_height = self._index.chain_tip()
        file_height = file_size // self._file.header_size - 1
        latest = self._file.read_raw(file_height)
        if latest == tip_hash:
            return

        while file_height > tip_height:
            self._file.single_truncate()
            file_height -= 1

    def _maybe_reset_header_state(self, assertion: FilterHeader) -> bool:
        """Delete the flat file if it disagrees with ``assertion``."""
        try:
            stored = self.fetch_header_by_height(assertion.height)
        except HeaderNotFoundError:
            return False
        if stored != assertion.filter_hash:
            self._file.remove()
            return True
        return False

    def fetch_header(self, block_hash: bytes) -> bytes:
        """Return the filter header of the block with ``block_hash``."""
        with self._lock:
            height = self._index.height_from_hash(block_hash)
            return self._file.read_raw(height)

    def fetch_header_by_height(self, height: int) -> bytes:
        """Return the filter header at ``height``."""
        with self._lock:
            return self._file.read_raw(height)

    def fetch_header_ancestors(
        self, num_headers: int, stop_hash: bytes
    ) -> tuple[list[bytes], int]:
        """Return ``num_headers + 1`` filter headers ending at block ``stop_hash``.

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
            return self._file.read_range(start_height, end_height), start_height

    def write_headers(self, *args: FilterHeader) -> None:
        """Append filter headers and move the filter tip to the last one."""
        if not args:
            return
        with self._lock:
            self._file.append_raw(b"".join(h.filter_hash for h in args))
            self._index.truncate_index(args[-1].header_hash, False)

    def chain_tip(self) -> tuple[bytes, int]:
        """Return the latest filter header and its height."""
        with self._lock:
            try:
                _, tip_height = self._index.chain_tip()
            except NeutrinoError as exc:
                raise NeutrinoError(f"unable to fetch chain tip: {exc}") from exc
            try:
                header = self._file.read_raw(tip_height)
            except NeutrinoError as exc:
                raise NeutrinoError(f"unable to read header: {exc}") from exc
            return header, tip_height

    def rollback_last_block(self, new_tip: bytes) -> BlockStamp:
        """Remove the last filter header, pointing the tip at block ``new_tip``.

        Returns the height and filter header of the new tip.
        """
        with self._lock:
            _, tip_height = self._index.chain_tip()
            new_height = tip_height - 1
            new_header = self._file.read_raw(new_height)

            self._file.single_truncate()
            self._index.truncate_index(new_tip, False)

            return BlockStamp(height=new_height, hash=new_header)

    def close(self) -> None:
        """Close the flat file; the database stays open for its owner."""
        with self._lock:
            self._file.close()

    def __enter__(self) -> FilterHeaderStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()