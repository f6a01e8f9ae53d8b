"""
Persistent state store with all-or-nothing commits.

Records are written and overwritten, never removed.

Every operation works against a `PendingState`: reads fall through to the
committed database, writes are buffered in memory. `commit()` flushes the
buffer through a single database write batch; `discard()` drops it.
"""
import logging
from typing import Optional

import msgpack

logger = logging.getLogger(__name__)

# Key prefixes
ASSET_PREFIX = b"ASSET:"
LISTING_PREFIX = b"LISTING:"
REWARD_PREFIX = b"REWARD:"
OWNER_PREFIX = b"OWNER:"
ACCOUNT_PREFIX = b"ACCOUNT:"

# Singletons
LAST_ASSET_ID_KEY = b"META:last_asset_id"
HEIGHT_KEY = b"META:height"
PROTOCOL_KEY = b"META:protocol"

def asset_key(asset_id: int) -> bytes:
    return ASSET_PREFIX + asset_id.to_bytes(8, 'big')


def listing_key(asset_id: int) -> bytes:
    return LISTING_PREFIX + asset_id.to_bytes(8, 'big')


def reward_key(asset_id: int) -> bytes:
    return REWARD_PREFIX + asset_id.to_bytes(8, 'big')


def owner_key(asset_id: int) -> bytes:
    return OWNER_PREFIX + asset_id.to_bytes(8, 'big')


def account_key(address: bytes) -> bytes:
    return ACCOUNT_PREFIX + address


class StateView:
    """Typed getters shared by committed and pending views."""

    def get(self, key: bytes) -> Optional[bytes]:
        raise NotImplementedError

    def get_record(self, key: bytes) -> Optional[dict]:
        raw = self.get(key)
        if raw is None:
            return None
        return msgpack.unpackb(raw, raw=False)

    def get_int(self, key: bytes, default: int = 0) -> int:
        raw = self.get(key)
        if raw is None:
            return default
        return msgpack.unpackb(raw)


class StateStore(StateView):
    """The committed state. Mutated only through `PendingState.commit()`."""

    def __init__(self, db):
        self.db = db

    def get(self, key: bytes) -> Optional[bytes]:
        return self.db.get(key)

    def begin(self) -> 'PendingState':
        return PendingState(self)

    def _apply(self, writes: dict):
        with self.db.write_batch() as batch:
            for key, value in writes.items():
                batch.put(key, value)


class PendingState(StateView):
    """Write buffer for one operation."""

    def __init__(self, store: StateStore):
        self._store = store
        self._writes: dict = {}
        self._closed = False

    def _check_open(self):
        if self._closed:
            raise RuntimeError("Pending state already committed or discarded")

    def get(self, key: bytes) -> Optional[bytes]:
        self._check_open()
        if key in self._writes:
            return self._writes[key]
        return self._store.get(key)

    def set(self, key: bytes, value: bytes):
        self._check_open()
        self._writes[key] = value

    def set_record(self, key: bytes, record: dict):
        self.set(key, msgpack.packb(record, use_bin_type=True))

    def set_int(self, key: bytes, value: int):
        self.set(key, msgpack.packb(value))

    @property
    def dirty_keys(self) -> list[bytes]:
        return list(self._writes)

    def commit(self):
        """Apply every buffered write in one batch."""
        self._check_open()
        self._store._apply(self._writes)
        logger.debug(f"Committed {len(self._writes)} state writes")
        self._closed = True

    def discard(self):
        """Drop every buffered write."""
        if not self._closed:
            logger.debug(f"Discarded {len(self._writes)} pending state writes")
            self._writes.clear()
            self._closed = True
