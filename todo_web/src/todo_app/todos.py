from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from .exceptions import (
    ADD_FAILED_MESSAGE,
    CLEAR_ALL_FAILED_MESSAGE,
    DELETE_FAILED_MESSAGE,
    FETCH_FAILED_MESSAGE,
    UPDATE_FAILED_MESSAGE,
    StoreError,
)
from .models import OK, SKIPPED, OperationResult, TodoEntity
from .session import SessionState
from .store import SERVER_TIMESTAMP, DocumentStore

logger = logging.getLogger(__name__)

# Set once at creation; never merged from client updates.
PROTECTED_FIELDS = frozenset({"id", "owner_id", "created_at"})


# PUBLIC_INTERFACE
class TodoCollectionState:
    """
    Local mirror of the signed-in user's todo records.

    Every read and write goes through the document store, always scoped to the
    session's current uid. The mirror is kept ordered by ``created_at``
    descending and is only changed after the store call succeeds. Local
    timestamps after add/update come from the client clock.
    """

    def __init__(self, session: SessionState, store: DocumentStore, collection: str = "todos") -> None:
        self._session = session
        self._store = store
        self._collection = collection
        self.todos: List[TodoEntity] = []
        self.error: Optional[str] = None

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _fail(self, message: str, exc: Exception) -> OperationResult:
        logger.error("%s: %s", message, exc, exc_info=exc)
        self.error = message
        return OperationResult(success=False, error=message)

    def clear_error(self) -> None:
        self.error = None

    async def fetch_all(self) -> OperationResult:
        owner_id = self._session.user_id
        if owner_id is None:
            return SKIPPED
        try:
            records = await self._store.query_records(self._collection, owner_id)
        except StoreError as exc:
            return self._fail(FETCH_FAILED_MESSAGE, exc)
        self.todos = [dict(r) for r in records]  # type: ignore[misc]
        return OK

    async def add(self, fields: Mapping[str, Any]) -> OperationResult:
        owner_id = self._session.user_id
        if owner_id is None:
            return SKIPPED
        try:
            record_id = await self._store.insert_record(
                self._collection,
                {
                    **fields,
                    "owner_id": owner_id,
                    "created_at": SERVER_TIMESTAMP,
                    "updated_at": SERVER_TIMESTAMP,
                },
            )
        except StoreError as exc:
            return self._fail(ADD_FAILED_MESSAGE, exc)
        now = self._now()
        entity: TodoEntity = {  # type: ignore[misc]
            "id": record_id,
            **fields,
            "owner_id": owner_id,
            "created_at": now,
            "updated_at": now,
        }
        self.todos.insert(0, entity)
        return OK

    async def update(self, todo_id: str, fields: Mapping[str, Any]) -> OperationResult:
        owner_id = self._session.user_id
        if owner_id is None:
            return SKIPPED
        changes = {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS}
        try:
            await self._store.merge_fields(
                self._collection, todo_id, {**changes, "updated_at": SERVER_TIMESTAMP}, owner_id
            )
        except StoreError as exc:
            return self._fail(UPDATE_FAILED_MESSAGE, exc)
        for index, todo in enumerate(self.todos):
            if todo["id"] == todo_id:
                self.todos[index] = {**todo, **changes, "updated_at": self._now()}  # type: ignore[misc]
                break
        return OK

    async def remove(self, todo_id: str) -> OperationResult:
        owner_id = self._session.user_id
        if owner_id is None:
            return SKIPPED
        try:
            await self._store.delete_record(self._collection, todo_id, owner_id)
        except StoreError as exc:
            return self._fail(DELETE_FAILED_MESSAGE, exc)
        self.todos = [t for t in self.todos if t["id"] != todo_id]
        return OK

    async def remove_all(self) -> OperationResult:
        """
        Delete every record of the current owner concurrently.

        Any failed delete fails the whole operation and leaves the mirror
        untouched; deletes that did succeed are not rolled back. The result
        lists the ids that could not be deleted.
        """
        owner_id = self._session.user_id
        if owner_id is None:
            return SKIPPED
        try:
            records = await self._store.query_records(self._collection, owner_id)
        except StoreError as exc:
            return self._fail(CLEAR_ALL_FAILED_MESSAGE, exc)

        ids = [r["id"] for r in records]
        outcomes = await asyncio.gather(
            *(self._store.delete_record(self._collection, record_id, owner_id) for record_id in ids),
            return_exceptions=True,
        )
        failed = [record_id for record_id, outcome in zip(ids, outcomes) if isinstance(outcome, BaseException)]
        if not failed:
            self.todos = []
            return OK

        logger.error("Could not delete %d of %d todos: %s", len(failed), len(ids), failed)
        errors = [o for o in outcomes if isinstance(o, BaseException)]
        unexpected = [e for e in errors if not isinstance(e, StoreError)]
        if unexpected:
            # Every delete has settled by now; the store is left partially emptied.
            for extra in unexpected[1:]:
                logger.error("Further unexpected delete failure: %r", extra, exc_info=extra)
            raise unexpected[0]
        result = self._fail(CLEAR_ALL_FAILED_MESSAGE, errors[0])
        return OperationResult(success=False, error=result.error, failed_ids=failed)
