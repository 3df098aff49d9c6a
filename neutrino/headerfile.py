"""Append-only flat files holding fixed-size serialized headers."""

from __future__ import annotations

import os
import threading
from pathlib import Path

from neutrino.errors import HeaderNotFoundError, NeutrinoError
from neutrino.headerindex import HeaderType

_FILE_NAMES = {
    HeaderType.BLOCK: "block_headers.bin",
    HeaderType.REGULAR_FILTER: "reg_filter_headers.bin",
}


class HeaderFile:
    """A flat file of headers where the header at height ``h`` sits at ``h * size``."""

    def __init__(self, directory: str | os.PathLike[str], header_type: HeaderType) -> None:
        try:
            self.header_type = HeaderType(header_type)
        except ValueError:
            raise ValueError(f"unrecognized filter type: {header_type}") from None
        self.header_size = self.header_type.header_size
        self.path = Path(directory) / _FILE_NAMES[self.header_type]
        self._lock = threading.RLock()
        self._file = open(self.path, "a+b")

    def _require_open(self) -> None:
        if self._file is None or self._file.closed:
            raise NeutrinoError(f"header file {self.path} is closed")

    def append_raw(self, data: bytes) -> None:
        """Append raw serialized headers to the end of the file."""
        with self._lock:
            self._require_open()
            self._file.write(bytes(data))
            self._file.flush()

    def _read_at(self, offset: int, length: int) -> bytes:
        self._require_open()
        self._file.flush()
        self._file.seek(offset)
        data = self._file.read(length)
        if len(data) != length:
            raise HeaderNotFoundError(
                f"read {len(data)} of {length} bytes at offset {offset}"
            )
        return data

    def read_raw(self, height: int) -> bytes:
        """Return the raw header stored at ``height``."""
        if height < 0:
            raise HeaderNotFoundError(f"negative height {height}")
        with self._lock:
            return self._read_at(height * self.header_size, self.header_size)

    def read_range(self, start_height: int, end_height: int) -> list[bytes]:
        """Return raw headers from ``start_height`` through ``end_height`` inclusive."""
        if start_height < 0 or end_height < start_height:
            raise ValueError(
                f"invalid header range {start_height}..{end_height}"
            )
        count = end_height - start_height + 1
        with self._lock:
            data = self._read_at(start_height * self.header_size, count * self.header_size)
        size = self.header_size
        return [data[i : i + size] for i in range(0, len(data), size)]

    def single_truncate(self) -> None:
        """Remove the last header from the end of the file."""
        with self._lock:
            current = self.size()
            new_size = current - self.header_size
            if new_size < 0:
                raise NeutrinoError(
                    f"can't truncate header file of {current} bytes"
                )
            self._file.truncate(new_size)
            self._file.flush()

    def size(self) -> int:
        """Return the file's length in bytes."""
        with self._lock:
            self._require_open()
            self._file.flush()
            return os.fstat(self._file.fileno()).st_size

    def remove(self) -> None:
        """Close the file and delete it from disk."""
        with self._lock:
            self.close()
            os.remove(self.path)

    def close(self) -> None:
        """Close the file; closing twice is harmless."""
        with self._lock:
            if self._file is not None and not self._file.closed:
                self._file.close()

    def __enter__(self) -> HeaderFile:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()