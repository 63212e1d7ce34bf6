"""
In-memory store — dict-backed, for tests and throwaway sessions.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from paycadence.errors import StorageError
from paycadence.stores.base import COLLECTIONS, BaseExpenseStore

logger = logging.getLogger("paycadence.stores.memory")


class InMemoryStore(BaseExpenseStore):
    """Keep every collection in a dict keyed by id.

    Transactions snapshot the tables on entry and restore them if the block
    raises, so a failed unit of work leaves nothing behind.

    Usage::

        store = InMemoryStore()
        account_id = await store.add_account(Account(name="Checking"))
    """

    name = "memory"
    description = "Volatile in-process store"

    def __init__(self, **options: Any) -> None:
        super().__init__(**options)
        self._tables: dict[str, dict[int, dict[str, Any]]] = {c: {} for c in COLLECTIONS}
        self._counters: dict[str, int] = {c: 0 for c in COLLECTIONS}
        self._depth = 0

    def _table(self, collection: str) -> dict[int, dict[str, Any]]:
        try:
            return self._tables[collection]
        except KeyError as e:
            raise StorageError(f"Unknown collection: {collection}") from e

    async def _insert(self, collection: str, record: dict[str, Any], record_id: int | None = None) -> int:
        table = self._table(collection)
        if record_id is None:
            record_id = self._counters[collection] + 1
        elif record_id in table:
            raise StorageError(f"Duplicate id {record_id} in {collection}")
        self._counters[collection] = max(self._counters[collection], record_id)
        table[record_id] = copy.deepcopy(record)
        return record_id

    async def _fetch(self, collection: str, record_id: int) -> dict[str, Any] | None:
        record = self._table(collection).get(record_id)
        if record is None:
            return None
        return {"id": record_id, **copy.deepcopy(record)}

    async def _fetch_all(self, collection: str) -> list[dict[str, Any]]:
        table = self._table(collection)
        return [{"id": rid, **copy.deepcopy(table[rid])} for rid in sorted(table)]

    async def _update(self, collection: str, record_id: int, record: dict[str, Any]) -> None:
        table = self._table(collection)
        if record_id not in table:
            raise StorageError(f"Cannot update missing record {record_id} in {collection}")
        table[record_id] = copy.deepcopy(record)

    async def _delete(self, collection: str, record_id: int) -> bool:
        return self._table(collection).pop(record_id, None) is not None

    async def _clear(self, collection: str) -> None:
        self._table(collection).clear()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        saved_tables = copy.deepcopy(self._tables)
        saved_counters = dict(self._counters)
        self._depth = 1
        try:
            yield
        except BaseException:
            self._tables = saved_tables
            self._counters = saved_counters
            logger.debug("Transaction rolled back")
            raise
        finally:
            self._depth = 0
