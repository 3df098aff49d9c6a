"""A transactional key/value store with nested buckets, backed by SQLite."""

from __future__ import annotations

import os
import sqlite3
import struct
import threading
from contextlib import contextmanager
from typing import Iterator

from neutrino.errors import BucketExistsError, NeutrinoError

_SCHEMA = """
CREATE TABLE IF NOT EXISTS entries (
    bucket BLOB NOT NULL,
    key BLOB NOT NULL,
    value BLOB,
    is_bucket INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (bucket, key)
) WITHOUT ROWID
"""


def _as_key(key: bytes) -> bytes:
    if not isinstance(key, (bytes, bytearray, memoryview)):
        raise TypeError(f"keys must be bytes, not {type(key).__name__}")
    key = bytes(key)
    if not key:
        raise ValueError("key required")
    return key


def _path_component(name: bytes) -> bytes:
    return struct.pack(">I", len(name)) + name


class Database:
    """A key/value database; ``path`` defaults to a private in-memory store."""

    def __init__(self, path: str | os.PathLike[str] = ":memory:") -> None:
        self.path = os.fspath(path)
        self._conn = sqlite3.connect(
            self.path, isolation_level=None, check_same_thread=False
        )
        self._conn.execute(_SCHEMA)
        self._lock = threading.RLock()
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise NeutrinoError("database is closed")

    @contextmanager
    def update(self) -> Iterator[Transaction]:
        """Run a read-write transaction, committed unless the block raises."""
        with self._lock:
            self._ensure_open()
            self._conn.execute("BEGIN IMMEDIATE")
            tx = Transaction(self._conn, writable=True)
            try:
                yield tx
            except BaseException:
                tx._active = False
                self._conn.execute("ROLLBACK")
                raise
            tx._active = False
            self._conn.execute("COMMIT")

    @contextmanager
    def view(self) -> Iterator[Transaction]:
        """Run a read-only transaction."""
        with self._lock:
            self._ensure_open()
            self._conn.execute("BEGIN")
            tx = Transaction(self._conn, writable=False)
            try:
                yield tx
            finally:
                tx._active = False
                self._conn.execute("ROLLBACK")

    def close(self) -> None:
        """Close the database; further use raises NeutrinoError."""
        with self._lock:
            if not self._closed:
                self._conn.close()
                self._closed = True

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Transaction:
    """A transaction giving access to the top-level buckets."""

    def __init__(self, conn: sqlite3.Connection, writable: bool) -> None:
        self._conn = conn
        self.writable = writable
        self._active = True
        self._root = Bucket(self, b"")

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        if not self._active:
            raise NeutrinoError("transaction has already finished")
        return self._conn.execute(sql, params)

    def _require_writable(self) -> None:
        if not self.writable:
            raise PermissionError("transaction is read-only")

    def bucket(self, name: bytes) -> Bucket | None:
        """Return the top-level bucket ``name``, or None if it doesn't exist."""
        return self._root.nested_bucket(name)

    def create_top_level_bucket(self, name: bytes) -> Bucket:
        """Return the top-level bucket ``name``, creating it when missing."""
        return self._root.create_bucket_if_not_exists(name)


class Bucket:
    """A namespace of keys and nested buckets within a transaction."""

    def __init__(self, tx: Transaction, path: bytes) -> None:
        self._tx = tx
        self._path = path

    def _row(self, key: bytes) -> tuple | None:
        return self._tx._execute(
            "SELECT value, is_bucket FROM entries WHERE bucket = ? AND key = ?",
            (self._path, key),
        ).fetchone()

    def get(self, key: bytes) -> bytes | None:
        """Return the value stored at ``key``; None if missing or a bucket."""
        row = self._row(_as_key(key))
        if row is None or row[1]:
            return None
        return b"" if row[0] is None else bytes(row[0])

    def put(self, key: bytes, value: bytes | None) -> None:
        """Store ``value`` at ``key``; None stores an empty value."""
        self._tx._require_writable()
        key = _as_key(key)
        row = self._row(key)
        if row is not None and row[1]:
            raise ValueError("incompatible value: key refers to a bucket")
        data = b"" if value is None else bytes(value)
        self._tx._execute(
            "INSERT OR REPLACE INTO entries (bucket, key, value, is_bucket) "
            "VALUES (?, ?, ?, 0)",
            (self._path, key, data),
        )

    def delete(self, key: bytes) -> None:
        """Remove ``key``; a missing key is ignored."""
        self._tx._require_writable()
        key = _as_key(key)
        row = self._row(key)
        if row is None:
            return
        if row[1]:
            raise ValueError("incompatible value: key refers to a bucket")
        self._tx._execute(
            "DELETE FROM entries WHERE bucket = ? AND key = ?", (self._path, key)
        )

    def nested_bucket(self, name: bytes) -> Bucket | None:
        """Return the nested bucket ``name``, or None if it doesn't exist."""
        name = _as_key(name)
        row = self._row(name)
        if row is None or not row[1]:
            return None
        return Bucket(self._tx, self._path + _path_component(name))

    def create_bucket(self, name: bytes) -> Bucket:
        """Create the nested bucket ``name``; raise BucketExistsError if present."""
        self._tx._require_writable()
        name = _as_key(name)
        row = self._row(name)
        if row is not None:
            if row[1]:
                raise BucketExistsError()
            raise ValueError("incompatible value: key holds a value")
        self._tx._execute(
            "INSERT INTO entries (bucket, key, value, is_bucket) VALUES (?, ?, NULL, 1)",
            (self._path, name),
        )
        return Bucket(self._tx, self._path + _path_component(name))

    def create_bucket_if_not_exists(self, name: bytes) -> Bucket:
        """Return the nested bucket ``name``, creating it when missing."""
        existing = self.nested_bucket(name)
        if existing is not None:
            return existing
        return self.create_bucket(name)

    def delete_nested_bucket(self, name: bytes) -> None:
        """Remove the nested bucket ``name`` and everything inside it."""
        self._tx._require_writable()
        name = _as_key(name)
        row = self._row(name)
        if row is None:
            raise KeyError(f"bucket not found: {name!r}")
        if not row[1]:
            raise ValueError("incompatible value: key holds a value")
        child = self._path + _path_component(name)
        self._tx._execute(
            "DELETE FROM entries WHERE bucket = ? AND key = ?", (self._path, name)
        )
        self._tx._execute(
            "DELETE FROM entries WHERE substr(bucket, 1, ?) = ?", (len(child), child)
        )