"""
LevelDB backend for the vault state store (via plyvel).
"""
import plyvel
import logging
from typing import Optional, Iterator
from contextlib import contextmanager

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class DB:
    def __init__(self, db_path: str, create_if_missing: bool = True,
                 write_buffer_size: int = 64 * 1024 * 1024,
                 max_open_files: int = 1000,
                 compression: Optional[str] = 'snappy'):
        """
        Open a LevelDB database directory.

        Args:
            db_path: Database directory
            create_if_missing: Create the directory's database on first open
            write_buffer_size: Memtable size in bytes
            max_open_files: LevelDB file handle limit
            compression: 'snappy' or None
        """
        self.path = db_path
        self._closed = True
        with self._logged("open"):
            self._db = plyvel.DB(
                db_path,
                create_if_missing=create_if_missing,
                write_buffer_size=write_buffer_size,
                max_open_files=max_open_files,
                compression=compression,
            )
        self._closed = False
        logger.info(f"Opened vault database at {db_path}")

    @contextmanager
    def _logged(self, action: str, key: bytes = b''):
        # Storage failures are logged with the key they touched, then re-raised
        try:
            yield
        except Exception as e:
            logger.error(f"Database {action} failed for {key.hex()[:16] or self.path}: {e}")
            raise

    def _check_open(self):
        if self._closed:
            raise RuntimeError(f"Database at {self.path} is closed")

    def get(self, key: bytes) -> Optional[bytes]:
        """Value stored under `key`, or None."""
        self._check_open()
        with self._logged("get", key):
            return self._db.get(key)

    def put(self, key: bytes, value: bytes):
        self._check_open()
        with self._logged("put", key):
            self._db.put(key, value)

    def delete(self, key: bytes):
        self._check_open()
        with self._logged("delete", key):
            self._db.delete(key)

    def exists(self, key: bytes) -> bool:
        return self.get(key) is not None

    @contextmanager
    def write_batch(self):
        """
        Group writes so they land together or not at all.

            with db.write_batch() as batch:
                batch.put(b'ASSET:...', record)
                batch.delete(b'LISTING:...')

        The batch is only written if the block finishes without raising.
        """
        self._check_open()
        batch = self._db.write_batch()
        try:
            with self._logged("batch write"):
                yield batch
                batch.write()
        finally:
            batch.clear()

    def iterator(self, prefix: bytes = b'') -> Iterator[tuple[bytes, bytes]]:
        """(key, value) pairs in key order, restricted to `prefix` when given."""
        self._check_open()
        if prefix:
            return self._db.iterator(prefix=prefix)
        return self._db.iterator()

    def close(self):
        if self._closed:
            return
        with self._logged("close"):
            self._db.close()
        self._closed = True
        logger.info(f"Closed vault database at {self.path}")

    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
