# src/storage/document_store.py

"""Document-style key/value store: collection + key → JSON object.

Two interchangeable backends share one interface: :class:`SqliteStore`
for durable state and :class:`MemoryStore` for tests and for the
best-effort mode used when the database cannot be opened.
Each write is atomic on its own; there are no multi-document
transactions beyond :meth:`DocumentStore.set_many`.
"""

import copy
import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from src.config.settings import Settings

logger = logging.getLogger("refurb_tracker.store")

Document = dict[str, Any]

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    key        TEXT NOT NULL,
    data       TEXT NOT NULL,
    PRIMARY KEY (collection, key)
);
"""


class DocumentStore(ABC):
    """Abstract document store."""

    durable: bool = False

    @abstractmethod
    def get(self, collection: str, key: str) -> Document | None:
        ...

    @abstractmethod
    def set(
        self, collection: str, key: str, data: Document, merge: bool = False,
    ) -> None:
        """Write a document; with *merge* existing fields are kept."""
        ...

    @abstractmethod
    def delete(self, collection: str, key: str) -> bool:
        ...

    @abstractmethod
    def list(self, collection: str) -> dict[str, Document]:
        """Return every document of a collection keyed by document key."""
        ...

    @abstractmethod
    def set_many(
        self,
        collection: str,
        items: Iterable[tuple[str, Document]],
        merge: bool = False,
    ) -> int:
        """Write several documents in one batch; returns the count."""
        ...

    def close(self) -> None:
        return None


class MemoryStore(DocumentStore):
    """Dict-backed store; same semantics as SQLite, no durability."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Document]] = {}
        self._lock = threading.Lock()

    def get(self, collection: str, key: str) -> Document | None:
        with self._lock:
            doc = self._data.get(collection, {}).get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def _write(
        self, collection: str, key: str, data: Document, merge: bool,
    ) -> None:
        docs = self._data.setdefault(collection, {})
        if merge and key in docs:
            merged = docs[key]
            merged.update(copy.deepcopy(data))
        else:
            docs[key] = copy.deepcopy(data)

    def set(
        self, collection: str, key: str, data: Document, merge: bool = False,
    ) -> None:
        with self._lock:
            self._write(collection, key, data, merge)

    def delete(self, collection: str, key: str) -> bool:
        with self._lock:
            return self._data.get(collection, {}).pop(key, None) is not None

    def list(self, collection: str) -> dict[str, Document]:
        with self._lock:
            return copy.deepcopy(self._data.get(collection, {}))

    def set_many(
        self,
        collection: str,
        items: Iterable[tuple[str, Document]],
        merge: bool = False,
    ) -> int:
        count = 0
        with self._lock:
            for key, data in items:
                self._write(collection, key, data, merge)
                count += 1
        return count


class SqliteStore(DocumentStore):
    """SQLite-backed store with one JSON document per row."""

    durable = True

    def __init__(self, db_path: Path | None = None) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._lock = threading.Lock()
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("SqliteStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _read(self, collection: str, key: str) -> Document | None:
        row = self._conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND key = ?",
            (collection, key),
        ).fetchone()
        if row is None:
            return None
        doc: Document = json.loads(row[0])
        return doc

    def _write(
        self, collection: str, key: str, data: Document, merge: bool,
    ) -> None:
        doc = data
        if merge:
            existing = self._read(collection, key)
            if existing is not None:
                existing.update(data)
                doc = existing
        self._conn.execute(
            "INSERT INTO documents (collection, key, data) "
            "VALUES (?, ?, ?) "
            "ON CONFLICT(collection, key) DO UPDATE SET data=excluded.data",
            (collection, key, json.dumps(doc, ensure_ascii=False)),
        )

    def get(self, collection: str, key: str) -> Document | None:
        with self._lock:
            return self._read(collection, key)

    def set(
        self, collection: str, key: str, data: Document, merge: bool = False,
    ) -> None:
        with self._lock, self._conn:
            self._write(collection, key, data, merge)

    def delete(self, collection: str, key: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "DELETE FROM documents WHERE collection = ? AND key = ?",
                (collection, key),
            )
            return cur.rowcount > 0

    def list(self, collection: str) -> dict[str, Document]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT key, data FROM documents WHERE collection = ? "
                "ORDER BY key",
                (collection,),
            ).fetchall()
        return {r[0]: json.loads(r[1]) for r in rows}

    def set_many(
        self,
        collection: str,
        items: Iterable[tuple[str, Document]],
        merge: bool = False,
    ) -> int:
        count = 0
        with self._lock, self._conn:
            for key, data in items:
                self._write(collection, key, data, merge)
                count += 1
        return count


def open_store(db_path: Path | None = None) -> DocumentStore:
    """Open the SQLite store, falling back to memory if it is unreachable."""
    try:
        return SqliteStore(db_path)
    except (sqlite3.Error, OSError) as exc:
        logger.warning(
            "Store unavailable (%s); running in best-effort in-memory mode",
            exc,
        )
        return MemoryStore()
