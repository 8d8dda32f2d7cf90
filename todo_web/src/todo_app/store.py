from __future__ import annotations

import itertools
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from .exceptions import StoreError


class _ServerTimestamp:
    """Sentinel asking the store to fill a field with its own clock."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

Record = Dict[str, Any]


# PUBLIC_INTERFACE
class DocumentStore(ABC):
    """Abstract contract for document stores holding todo records."""

    @abstractmethod
    async def query_records(
        self,
        collection: str,
        owner_id: str,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> List[Record]:
        """Return records whose ``owner_id`` equals ``owner_id``, ordered by ``order_by``."""

    @abstractmethod
    async def insert_record(self, collection: str, fields: Mapping[str, Any]) -> str:
        """Insert a record and return its store-assigned id."""

    @abstractmethod
    async def merge_fields(
        self, collection: str, record_id: str, fields: Mapping[str, Any], owner_id: str
    ) -> None:
        """
        Merge ``fields`` into an existing record owned by ``owner_id``.
        Raises StoreError if the record does not exist or belongs to someone else.
        """

    @abstractmethod
    async def delete_record(self, collection: str, record_id: str, owner_id: str) -> None:
        """
        Delete a record owned by ``owner_id``. Deleting a missing record is not
        an error; deleting someone else's record raises StoreError.
        """


class InMemoryDocumentStore(DocumentStore):
    """
    Document store kept in process memory, suitable for testing and default
    runtime. Shared by every client context of one application.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Record]] = {}
        # Breaks created_at ties so ordering follows insertion.
        self._seq = itertools.count()
        self._order: Dict[str, int] = {}

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _resolve(self, fields: Mapping[str, Any]) -> Record:
        now = self._now()
        return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in fields.items()}

    @staticmethod
    def _check_owner(collection: str, record_id: str, record: Record, owner_id: str) -> None:
        if record.get("owner_id") != owner_id:
            raise StoreError(f"Permission denied: {collection}/{record_id}")

    async def query_records(
        self,
        collection: str,
        owner_id: str,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> List[Record]:
        items = [
            (record_id, r)
            for record_id, r in self._collections.get(collection, {}).items()
            if r.get("owner_id") == owner_id
        ]
        items.sort(key=lambda t: (t[1].get(order_by), self._order[t[0]]), reverse=descending)
        return [{**r, "id": record_id} for record_id, r in items]

    async def insert_record(self, collection: str, fields: Mapping[str, Any]) -> str:
        record_id = uuid.uuid4().hex[:20]
        self._collections.setdefault(collection, {})[record_id] = self._resolve(fields)
        self._order[record_id] = next(self._seq)
        return record_id

    async def merge_fields(
        self, collection: str, record_id: str, fields: Mapping[str, Any], owner_id: str
    ) -> None:
        existing = self._collections.get(collection, {}).get(record_id)
        if existing is None:
            raise StoreError(f"No document to update: {collection}/{record_id}")
        self._check_owner(collection, record_id, existing, owner_id)
        existing.update(self._resolve(fields))

    async def delete_record(self, collection: str, record_id: str, owner_id: str) -> None:
        records = self._collections.get(collection, {})
        existing = records.get(record_id)
        if existing is None:
            return
        self._check_owner(collection, record_id, existing, owner_id)
        del records[record_id]
        self._order.pop(record_id, None)
