"""
JSON-backed durable record store.

A store is one JSON document holding named collections (lists of records).
Both the order intake (orders + outbox) and the notification consumer
(processed marks) persist through this class, each with its own file.

Design decisions:
- All mutations go through a transaction that holds the store lock across
  read, check and commit, so check-then-append sequences cannot interleave
- A transaction commits every staged append with one atomic file replace
  (temp file + fsync + os.replace); an exception inside the block discards
  everything staged
- The document is loaded lazily and cached; the file is the source of truth
  on restart
- File I/O runs in a worker thread so the event loop is never blocked

Locking is per store instance. Two processes writing the same file are not
coordinated; each file has exactly one owning component.
"""

import asyncio
import copy
import json
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable, Optional

from shared.errors import StorageError

logger = logging.getLogger("record_store")


class UnitOfWork:
    """
    Staged view of a store inside a transaction.

    Reads see committed records plus anything appended earlier in the same
    unit of work.
    """

    def __init__(self, committed: dict[str, list[Any]]):
        self._committed = committed
        self._pending: dict[str, list[Any]] = {}

    def _check_collection(self, collection: str) -> None:
        if collection not in self._committed:
            raise KeyError(f"Unknown collection: {collection}")

    def read(self, collection: str) -> list[Any]:
        """Get a copy of every record in a collection, including staged ones."""
        self._check_collection(collection)
        records = self._committed[collection] + self._pending.get(collection, [])
        return copy.deepcopy(records)

    def append(self, collection: str, record: Any) -> None:
        """Stage a record to be appended on commit."""
        self._check_collection(collection)
        self._pending.setdefault(collection, []).append(copy.deepcopy(record))

    @property
    def has_changes(self) -> bool:
        return any(self._pending.values())

    def merged(self) -> dict[str, list[Any]]:
        """The document as it will look once committed."""
        return {
            name: records + self._pending.get(name, [])
            for name, records in self._committed.items()
        }


class JsonRecordStore:
    """
    Append-only JSON document store with atomic multi-collection commits.

    Example usage:
        store = JsonRecordStore(Path("data/orders.json"), ["orders", "outbox"])

        async with store.transaction() as tx:
            if not any(o["orderId"] == "o1" for o in tx.read("orders")):
                tx.append("orders", {"orderId": "o1", ...})
                tx.append("outbox", {"type": "order.created", ...})
        # both records are on disk here, or neither is
    """

    def __init__(self, path: Path, collections: Iterable[str]):
        """
        Initialize the store.

        Args:
            path: JSON file backing this store
            collections: Names of the collections held in the document
        """
        self.path = Path(path)
        self.collections = tuple(collections)
        if not self.collections:
            raise ValueError("A record store needs at least one collection")

        self._data: Optional[dict[str, list[Any]]] = None
        self._lock = asyncio.Lock()

    # =========================================================================
    # File I/O (runs in a worker thread)
    # =========================================================================

    def _empty_document(self) -> dict[str, list[Any]]:
        return {name: [] for name in self.collections}

    def _load(self) -> dict[str, list[Any]]:
        if not self.path.exists():
            return self._empty_document()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

        if not isinstance(raw, dict):
            raise StorageError(f"Malformed store document in {self.path}")

        document = self._empty_document()
        for name in self.collections:
            records = raw.get(name, [])
            if not isinstance(records, list):
                raise StorageError(f"Collection '{name}' in {self.path} is not a list")
            document[name] = records
        return document

    def _write(self, document: dict[str, list[Any]]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    async def _ensure_loaded(self) -> dict[str, list[Any]]:
        if self._data is None:
            self._data = await asyncio.to_thread(self._load)
        return self._data

    # =========================================================================
    # Public API
    # =========================================================================

    async def initialize(self) -> None:
        """Create the backing file with empty collections if it doesn't exist."""
        async with self._lock:
            document = await self._ensure_loaded()
            if not self.path.exists():
                await asyncio.to_thread(self._write, document)
                logger.info(f"Created store {self.path}")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[UnitOfWork]:
        """
        Run a read-check-write sequence atomically.

        The lock is held for the whole block. Staged appends are committed in
        one write when the block exits normally; if the block raises, nothing
        is written and the exception propagates.

        Raises:
            StorageError: If the document can't be read or the commit fails
        """
        async with self._lock:
            committed = await self._ensure_loaded()
            unit = UnitOfWork(committed)
            yield unit
            if unit.has_changes:
                updated = unit.merged()
                await asyncio.to_thread(self._write, updated)
                self._data = updated

    async def read(self, collection: str) -> list[Any]:
        """Get a copy of every committed record in a collection."""
        async with self.transaction() as tx:
            return tx.read(collection)

    async def append(self, collection: str, record: Any) -> None:
        """Append a single record and commit it."""
        async with self.transaction() as tx:
            tx.append(collection, record)

    async def contains(self, collection: str, predicate: Callable[[Any], bool]) -> bool:
        """Check whether any committed record in a collection matches."""
        async with self.transaction() as tx:
            return any(predicate(record) for record in tx.read(collection))

    async def count(self, collection: str) -> int:
        """Number of committed records in a collection."""
        async with self._lock:
            document = await self._ensure_loaded()
            if collection not in document:
                raise KeyError(f"Unknown collection: {collection}")
            return len(document[collection])

    def reload(self) -> None:
        """Drop the cached document; the next access re-reads the file."""
        self._data = None
