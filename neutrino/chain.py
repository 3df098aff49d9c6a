"""Bitcoin chain primitives: hashes, block headers and network parameters."""

from __future__ import annotations

import enum
import hashlib
import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone

HASH_SIZE = 32
BLOCK_HEADER_SIZE = 80
MAX_HASH_STRING_SIZE = HASH_SIZE * 2
ZERO_HASH = bytes(HASH_SIZE)

_EPOCH = datetime.fromtimestamp(0, timezone.utc)
_HEADER_FORMAT = struct.Struct("<i32s32sIII")


class FilterType(enum.IntEnum):
    """Compact filter types as they appear on the wire."""

    REGULAR = 0


def double_sha256(data: bytes) -> bytes:
    """Return SHA-256 applied twice to ``data``."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash_from_str(hex_str: str) -> bytes:
    """Decode a byte-reversed hex hash string into its 32 internal bytes.

    Shorter strings are padded with leading zeros.
    """
    if len(hex_str) > MAX_HASH_STRING_SIZE:
        raise ValueError(
            f"max hash string length is {MAX_HASH_STRING_SIZE} bytes"
        )
    if len(hex_str) % 2:
        hex_str = "0" + hex_str
    decoded = bytes.fromhex(hex_str)
    padded = bytes(HASH_SIZE - len(decoded)) + decoded
    return padded[::-1]


def hash_to_str(block_hash: bytes) -> str:
    """Encode a 32-byte hash as the usual byte-reversed hex string."""
    return bytes(block_hash)[::-1].hex()


def _check_hash(name: str, value: bytes) -> bytes:
    value = bytes(value)
    if len(value) != HASH_SIZE:
        raise ValueError(f"{name} must be {HASH_SIZE} bytes, got {len(value)}")
    return value


@dataclass(frozen=True)
class BlockHeader:
    """An 80-byte Bitcoin block header."""

    version: int = 0
    prev_block: bytes = ZERO_HASH
    merkle_root: bytes = ZERO_HASH
    timestamp: datetime = _EPOCH
    bits: int = 0
    nonce: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "prev_block", _check_hash("prev_block", self.prev_block)
        )
        object.__setattr__(
            self, "merkle_root", _check_hash("merkle_root", self.merkle_root)
        )
        if self.timestamp.tzinfo is None:
            object.__setattr__(
                self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc)
            )

    def serialize(self) -> bytes:
        """Return the header in its 80-byte wire encoding."""
        return _HEADER_FORMAT.pack(
            self.version,
            self.prev_block,
            self.merkle_root,
            int(self.timestamp.timestamp()) & 0xFFFFFFFF,
            self.bits,
            self.nonce,
        )

    @classmethod
    def deserialize(cls, data: bytes) -> BlockHeader:
        """Decode a header from the first 80 bytes of ``data``."""
        if len(data) < BLOCK_HEADER_SIZE:
            raise ValueError(
                f"block header needs {BLOCK_HEADER_SIZE} bytes, got {len(data)}"
            )
        version, prev, merkle, ts, bits, nonce = _HEADER_FORMAT.unpack(
            bytes(data[:BLOCK_HEADER_SIZE])
        )
        return cls(
            version=version,
            prev_block=prev,
            merkle_root=merkle,
            timestamp=datetime.fromtimestamp(ts, timezone.utc),
            bits=bits,
            nonce=nonce,
        )

    def block_hash(self) -> bytes:
        """Return the double SHA-256 hash identifying this header."""
        return double_sha256(self.serialize())


@dataclass(frozen=True)
class ChainParams:
    """The parameters of a Bitcoin network that the stores depend on."""

    name: str
    net: int
    genesis_header: BlockHeader
    genesis_filter: bytes = field(default=b"", repr=False)

    @property
    def genesis_hash(self) -> bytes:
        return self.genesis_header.block_hash()


_GENESIS_MERKLE_ROOT = hash_from_str(
    "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"
)

MAINNET = ChainParams(
    name="mainnet",
    net=0xD9B4BEF9,
    genesis_header=BlockHeader(
        version=1,
        merkle_root=_GENESIS_MERKLE_ROOT,
        timestamp=datetime.fromtimestamp(1231006505, timezone.utc),
        bits=0x1D00FFFF,
        nonce=2083236893,
    ),
)

TESTNET3 = ChainParams(
    name="testnet3",
    net=0x0709110B,
    genesis_header=BlockHeader(
        version=1,
        merkle_root=_GENESIS_MERKLE_ROOT,
        timestamp=datetime.fromtimestamp(1296688602, timezone.utc),
        bits=0x1D00FFFF,
        nonce=414098458,
    ),
)

REGTEST = ChainParams(
    name="regtest",
    net=0xDAB5BFFA,
    genesis_header=BlockHeader(
        version=1,
        merkle_root=_GENESIS_MERKLE_ROOT,
        timestamp=datetime.fromtimestamp(1296688602, timezone.utc),
        bits=0x207FFFFF,
        nonce=2,
    ),
)

SIMNET = ChainParams(
    name="simnet",
    net=0x12141C16,
    genesis_header=BlockHeader(
        version=1,
        merkle_root=_GENESIS_MERKLE_ROOT,
        timestamp=datetime.fromtimestamp(1401292357, timezone.utc),
        bits=0x207FFFFF,
        nonce=2,
    ),
)