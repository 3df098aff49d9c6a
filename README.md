# neutrino

Storage building blocks for a light Bitcoin client. The package provides:

- flat-file stores for block headers and filter headers, indexed by hash in a key/value database
- a database of compact filters keyed by block hash
- an LRU cache bounded by the total size of its values
- an in-memory header chain bounded in length
- a check of filter headers against hard-coded checkpoints
- rate-limited progress logging

It uses only the standard library. The key/value database is built on `sqlite3`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | What it provides |
| --- | --- |
| `neutrino.chain` | `BlockHeader` (80-byte `serialize` / `deserialize`, `block_hash`), `ChainParams`, the networks `MAINNET`, `TESTNET3`, `REGTEST`, `SIMNET`, `FilterType`, `double_sha256`, `hash_from_str`, `hash_to_str` |
| `neutrino.kvdb` | `Database` holding nested `Bucket`s, with `update()` / `view()` transactions |
| `neutrino.headerindex` | `HeaderIndex`, `HeaderEntry`, `HeaderType`, `put_header_entry` |
| `neutrino.headerfile` | `HeaderFile`: an append-only flat file of fixed-size headers |
| `neutrino.blockstore` | `BlockHeaderStore`, `IndexedBlockHeader`, `BlockStamp` |
| `neutrino.filterstore` | `FilterHeaderStore`, `FilterHeader` |
| `neutrino.filterdb` | `FilterStore`: serialized compact filters keyed by block hash |
| `neutrino.cache` | `LRUCache`, `CacheValue`, `CacheableBlock`, `CacheableFilter`, `FilterCacheKey` |
| `neutrino.headerlist` | `BoundedMemoryChain` and `Node` |
| `neutrino.filtercontrol` | `control_cf_header` and `FILTER_HEADER_CHECKPOINTS` |
| `neutrino.progress` | `HeaderProgressLogger` |
| `neutrino.log` | `use_logger`, `disable_log`, `get_logger` |
| `neutrino.errors` | Exceptions, all derived from `NeutrinoError` |

Hashes are 32-byte `bytes` values in internal byte order. Use
`hash_from_str` and `hash_to_str` to convert them to and from the usual
byte-reversed hex form.

## Usage

### Header stores

```python
from neutrino.blockstore import BlockHeaderStore, IndexedBlockHeader
from neutrino.chain import SIMNET, BlockHeader
from neutrino.filterstore import FilterHeader, FilterHeaderStore
from neutrino.headerindex import HeaderType
from neutrino.kvdb import Database

db = Database("headers.db")          # Database() alone is in memory
blocks = BlockHeaderStore("data", db, SIMNET)
filters = FilterHeaderStore("data", db, HeaderType.REGULAR_FILTER, SIMNET)

genesis, _ = blocks.chain_tip()
header = BlockHeader(prev_block=genesis.block_hash(), nonce=1)
blocks.write_headers(IndexedBlockHeader(header, 1))
filters.write_headers(
    FilterHeader(header_hash=header.block_hash(), filter_hash=bytes(32), height=1)
)

tip, height = blocks.chain_tip()
blocks.check_connectivity()          # raises NeutrinoError if the chain is broken
locator = blocks.latest_block_locator()
stamp = blocks.rollback_last_block() # BlockStamp of the new tip
```

The headers are kept in `block_headers.bin` and `reg_filter_headers.bin` inside
the given directory. A new store writes the genesis header of its
`ChainParams`. When a store is reopened, the flat file is truncated back to
the tip held in the index.

`FilterHeaderStore.write_headers` appends filter headers and moves only the
filter tip. The blocks must already be in the shared index, so write
block headers first, through a `BlockHeaderStore` on the same database.

`FilterHeaderStore` takes an optional `header_state_assertion`. If the
filter header it holds at the asserted height differs from the one stored,
the filter header file is deleted and started again from genesis.

Both stores offer `fetch_header`, `fetch_header_by_height`,
`fetch_header_ancestors`, `chain_tip`, `rollback_last_block` and `close`.

### Compact filter database

```python
from neutrino.chain import SIMNET, FilterType
from neutrino.filterdb import FilterStore

store = FilterStore(db, SIMNET)
store.put_filter(block_hash, filter_bytes, FilterType.REGULAR)
data = store.fetch_filter(block_hash, FilterType.REGULAR)
store.purge_filters(FilterType.REGULAR)
```

`fetch_filter` raises `FilterNotFoundError` if nothing is stored for the hash.
It returns `None` if the block was stored with no filter (`put_filter(..., None, ...)`).

### Size-bounded LRU cache

```python
from neutrino.cache import CacheableFilter, FilterCacheKey, LRUCache

cache = LRUCache(capacity=100_000)
key = FilterCacheKey(block_hash=bytes(32))
evicted = cache.put(key, CacheableFilter(b"\x01\x02\x03"))
value = cache.get(key)               # raises ElementNotFoundError if absent
print(len(cache))
```

A value's `size()` counts against the capacity. `put` refuses a value larger
than the capacity with `ValueError`. Otherwise it evicts the least recently
used entries until the new value fits, and returns whether any entry was
evicted. `get` marks the entry as most recently used. The cache is
thread-safe.

### Bounded in-memory header chain

```python
from neutrino.headerlist import BoundedMemoryChain, Node

chain = BoundedMemoryChain(5)
for height in range(20):
    chain.push_back(Node(height=height))

assert len(chain) == 5
node = chain.back()
while node is not None:
    print(node.height)               # 19, 18, 17, 16, 15
    node = node.prev
```

### Checkpoint control

```python
from neutrino.chain import MAINNET, FilterType
from neutrino.filtercontrol import control_cf_header

control_cf_header(MAINNET, FilterType.REGULAR, height, filter_header)
```

The function returns `True` if a checkpoint exists for that height and
matches. It returns `False` if there is no checkpoint for that network or
height. It raises `CheckpointMismatchError` if a checkpoint exists and
differs. Checkpoints are known for mainnet and testnet3.

### Logging

The package logs nothing until you call `neutrino.log.use_logger(logger)` with a
`logging.Logger`. `neutrino.log.disable_log()` turns logging off again.
`HeaderProgressLogger(action, entity, logger)` writes a summary message at
most once every ten seconds.

## What it does not do

The package does not connect to peers, download or validate headers and
blocks, or run a sync loop. It has no command-line tool. It does not build,
decode or match compact filters: `FilterStore` and `CacheableFilter` treat
filters as opaque bytes. The genesis filter stored for a network is whatever
`ChainParams.genesis_filter` holds, and that is empty for the bundled
networks.