"""
In-process document store.

Documents are plain dicts grouped into named collections and addressed by a
string id. Queries support equality, ``in`` and ``array-contains-any``
filters, a single ``order_by`` and a ``limit``. ``WriteBatch`` applies a group
of writes atomically and refuses more than ``MAX_BATCH_WRITES`` operations.
"""
from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

MAX_BATCH_WRITES = 500

_OPERATORS = ("==", "in", "array-contains-any")


class DocumentNotFound(KeyError):
    """Raised when updating a document that does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"{collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


class BatchTooLarge(ValueError):
    pass


def server_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


@dataclass
class Document:
    id: str
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.data}


def _matches(data: dict[str, Any], field: str, op: str, value: Any) -> bool:
    current = data.get(field)
    if op == "==":
        return current == value
    if op == "in":
        return current in value
    # array-contains-any
    if not isinstance(current, list):
        return False
    return any(v in current for v in value)


class Query:
    def __init__(self, store: DocumentStore, collection: str) -> None:
        self._store = store
        self._collection = collection
        self._filters: list[tuple[str, str, Any]] = []
        self._order: tuple[str, bool] | None = None
        self._limit: int | None = None

    def _clone(self) -> Query:
        q = Query(self._store, self._collection)
        q._filters = list(self._filters)
        q._order = self._order
        q._limit = self._limit
        return q

    def where(self, field: str, op: str, value: Any) -> Query:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported query operator: {op}")
        q = self._clone()
        q._filters.append((field, op, value))
        return q

    def order_by(self, field: str, descending: bool = False) -> Query:
        q = self._clone()
        q._order = (field, descending)
        return q

    def limit(self, count: int) -> Query:
        q = self._clone()
        q._limit = count
        return q

    def stream(self) -> list[Document]:
        with self._store._lock:
            docs = self._store._collections.get(self._collection, {})
            results = [
                Document(doc_id, copy.deepcopy(data))
                for doc_id, data in docs.items()
                if all(_matches(data, f, op, v) for f, op, v in self._filters)
            ]

        if self._order:
            field, descending = self._order
            results.sort(
                key=lambda d: (d.data.get(field) is not None, d.data.get(field)),
                reverse=descending,
            )
        if self._limit is not None:
            results = results[: self._limit]
        return results


class Collection(Query):
    """A named collection; also the unfiltered query over it."""

    def add(self, data: dict[str, Any]) -> str:
        doc_id = _new_id()
        self.set(doc_id, data)
        return doc_id

    def get(self, doc_id: str) -> dict[str, Any] | None:
        with self._store._lock:
            data = self._store._collections.get(self._collection, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def exists(self, doc_id: str) -> bool:
        with self._store._lock:
            return doc_id in self._store._collections.get(self._collection, {})

    def create(self, doc_id: str, data: dict[str, Any]) -> bool:
        """Write ``data`` unless ``doc_id`` exists. Returns whether it was written."""
        with self._store._lock:
            if doc_id in self._store._collections.get(self._collection, {}):
                return False
            self._store._apply_set(self._collection, doc_id, data, False)
            return True

    def set(self, doc_id: str, data: dict[str, Any], merge: bool = False) -> None:
        with self._store._lock:
            self._store._apply_set(self._collection, doc_id, data, merge)

    def update(self, doc_id: str, data: dict[str, Any]) -> None:
        with self._store._lock:
            self._store._apply_update(self._collection, doc_id, data)

    def delete(self, doc_id: str) -> bool:
        with self._store._lock:
            return self._store._apply_delete(self._collection, doc_id)


class WriteBatch:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._ops: list[tuple[str, str, str, dict[str, Any] | None, bool]] = []

    def _push(self, op: tuple[str, str, str, dict[str, Any] | None, bool]) -> None:
        if len(self._ops) >= MAX_BATCH_WRITES:
            raise BatchTooLarge(f"A batch holds at most {MAX_BATCH_WRITES} writes")
        self._ops.append(op)

    def set(self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False) -> None:
        self._push(("set", collection, doc_id, copy.deepcopy(data), merge))

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._push(("update", collection, doc_id, copy.deepcopy(data), False))

    def delete(self, collection: str, doc_id: str) -> None:
        self._push(("delete", collection, doc_id, None, False))

    def commit(self) -> None:
        with self._store._lock:
            # All update targets must exist before anything is written.
            pending = {(c, d) for kind, c, d, _, _ in self._ops if kind == "set"}
            for kind, collection, doc_id, _, _ in self._ops:
                if kind == "update" and (collection, doc_id) not in pending:
                    if doc_id not in self._store._collections.get(collection, {}):
                        raise DocumentNotFound(collection, doc_id)

            for kind, collection, doc_id, data, merge in self._ops:
                if kind == "set":
                    self._store._apply_set(collection, doc_id, data or {}, merge)
                elif kind == "update":
                    self._store._apply_update(collection, doc_id, data or {})
                else:
                    self._store._apply_delete(collection, doc_id)
        self._ops.clear()


class DocumentStore:
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def collection(self, name: str) -> Collection:
        return Collection(self, name)

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()

    # Callers hold self._lock.

    def _apply_set(self, collection: str, doc_id: str, data: dict[str, Any], merge: bool) -> None:
        docs = self._collections.setdefault(collection, {})
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(data))
        else:
            docs[doc_id] = copy.deepcopy(data)

    def _apply_update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        docs = self._collections.get(collection, {})
        if doc_id not in docs:
            raise DocumentNotFound(collection, doc_id)
        docs[doc_id].update(copy.deepcopy(data))

    def _apply_delete(self, collection: str, doc_id: str) -> bool:
        docs = self._collections.get(collection, {})
        return docs.pop(doc_id, None) is not None


_store: DocumentStore | None = None


def get_store() -> DocumentStore:
    """Return the process-wide document store, creating it on first call."""
    global _store
    if _store is None:
        _store = DocumentStore()
    return _store
