"""
SQL store — persist everything in a SQL database via SQLAlchemy.

Works with SQLite (the default), PostgreSQL, MySQL, etc. Each collection is
one table holding the record as JSON plus the columns the engine looks
records up by, which are indexed:

- categories by ``name_lower`` (unique)
- fixed expenses by ``due_date``, ``recurring_template_id`` and ``account_id``
- recurring templates by ``is_active`` and ``next_due_date``

Imported snapshots keep their ids; on PostgreSQL the id sequences are moved
past them afterwards so later inserts do not collide.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.elements import TextClause

from paycadence.errors import ConflictError, StorageError
from paycadence.models.financial import DataSnapshot
from paycadence.stores.base import (
    ACCOUNTS,
    AUDIT_LOGS,
    CATEGORIES,
    COLLECTIONS,
    FIXED_EXPENSES,
    PENDING_TRANSACTIONS,
    RECURRING_TEMPLATES,
    BaseExpenseStore,
)

logger = logging.getLogger("paycadence.stores.sql")

# collection -> columns copied out of the JSON payload
_INDEXED_FIELDS: dict[str, tuple[str, ...]] = {
    ACCOUNTS: ("is_default",),
    CATEGORIES: ("name_lower",),
    FIXED_EXPENSES: ("due_date", "recurring_template_id", "account_id"),
    RECURRING_TEMPLATES: ("is_active", "next_due_date"),
    PENDING_TRANSACTIONS: ("account_id",),
    AUDIT_LOGS: ("timestamp",),
}


def _index_columns(collection: str) -> list[Column]:
    columns = {
        "is_default": lambda: Column("is_default", Boolean, index=True),
        "name_lower": lambda: Column("name_lower", String(64), unique=True, nullable=False),
        "due_date": lambda: Column("due_date", String(10), index=True),
        "recurring_template_id": lambda: Column("recurring_template_id", Integer, index=True),
        "account_id": lambda: Column("account_id", Integer, index=True),
        "is_active": lambda: Column("is_active", Boolean, index=True),
        "next_due_date": lambda: Column("next_due_date", String(10), index=True),
        "timestamp": lambda: Column("timestamp", String(32), index=True),
    }
    return [columns[name]() for name in _INDEXED_FIELDS.get(collection, ())]


def build_metadata(prefix: str = "") -> tuple[MetaData, dict[str, Table]]:
    metadata = MetaData()
    tables: dict[str, Table] = {}
    for collection in COLLECTIONS:
        tables[collection] = Table(
            f"{prefix}{collection}",
            metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("data", JSON, nullable=False),
            *_index_columns(collection),
            sqlite_autoincrement=True,
        )
    return metadata, tables


def sequence_resets(tables: Iterable[Table], dialect: str) -> list[TextClause]:
    """Statements that move each id sequence past the largest stored id.

    Inserting explicit ids does not advance PostgreSQL sequences. SQLite
    tracks AUTOINCREMENT itself, so it needs nothing.
    """
    if dialect != "postgresql":
        return []
    return [
        text(
            f"SELECT setval(pg_get_serial_sequence('{table.name}', 'id'), "
            f"COALESCE((SELECT MAX(id) FROM {table.name}), 0) + 1, false)"
        )
        for table in tables
    ]


class SQLStore(BaseExpenseStore):
    """Store records in a SQL database.

    Usage::

        store = SQLStore(url="sqlite:///paycadence.db")
        await store.add_account(Account(name="Checking"))

    Ids are never reused, so a deleted template's id cannot be picked up by a
    new template and confuse the back-references of old instances.
    """

    name = "sql"
    description = "SQL database store (SQLAlchemy)"

    def __init__(
        self,
        url: str = "sqlite:///paycadence.db",
        echo: bool = False,
        table_prefix: str = "",
        **options: Any,
    ) -> None:
        super().__init__(**options)
        self.url = url
        self._engine: Engine = self._create_engine(url, echo)
        self._metadata, self._tables = build_metadata(table_prefix)
        self._active: Connection | None = None
        try:
            self._metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot initialize database {url}: {e}") from e
        logger.info("SQL store ready: %s", self._engine.url.render_as_string(hide_password=True))

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every checkout sees an empty database
            return create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, echo=echo)

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        if self._active is not None:
            yield self._active
            return
        try:
            with self._engine.begin() as conn:
                yield conn
        except IntegrityError as e:
            raise ConflictError(f"Constraint violated: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Database error: {e}") from e

    def _table(self, collection: str) -> Table:
        try:
            return self._tables[collection]
        except KeyError as e:
            raise StorageError(f"Unknown collection: {collection}") from e

    def _row_values(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {"data": record}
        for name in _INDEXED_FIELDS.get(collection, ()):
            values[name] = record.get(name)
        return values

    @staticmethod
    def _from_row(row: Any) -> dict[str, Any]:
        return {"id": row.id, **row.data}

    async def _insert(self, collection: str, record: dict[str, Any], record_id: int | None = None) -> int:
        values = self._row_values(collection, record)
        if record_id is not None:
            values["id"] = record_id
        with self._connect() as conn:
            result = conn.execute(insert(self._table(collection)).values(**values))
            return record_id if record_id is not None else int(result.inserted_primary_key[0])

    async def _fetch(self, collection: str, record_id: int) -> dict[str, Any] | None:
        table = self._table(collection)
        with self._connect() as conn:
            row = conn.execute(select(table).where(table.c.id == record_id)).first()
        return self._from_row(row) if row is not None else None

    async def _fetch_all(self, collection: str) -> list[dict[str, Any]]:
        table = self._table(collection)
        with self._connect() as conn:
            rows = conn.execute(select(table).order_by(table.c.id)).all()
        return [self._from_row(row) for row in rows]

    async def _update(self, collection: str, record_id: int, record: dict[str, Any]) -> None:
        table = self._table(collection)
        with self._connect() as conn:
            result = conn.execute(
                update(table).where(table.c.id == record_id).values(**self._row_values(collection, record))
            )
            if result.rowcount == 0:
                raise StorageError(f"Cannot update missing record {record_id} in {collection}")

    async def _delete(self, collection: str, record_id: int) -> bool:
        table = self._table(collection)
        with self._connect() as conn:
            result = conn.execute(delete(table).where(table.c.id == record_id))
        return result.rowcount > 0

    async def _clear(self, collection: str) -> None:
        with self._connect() as conn:
            conn.execute(delete(self._table(collection)))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._active is not None:
            yield
            return
        with self._connect() as conn:
            self._active = conn
            try:
                yield
            finally:
                self._active = None

    async def import_snapshot(self, snapshot: DataSnapshot | dict[str, Any]) -> None:
        async with self.transaction():
            await super().import_snapshot(snapshot)
            with self._connect() as conn:
                for statement in sequence_resets(self._tables.values(), self._engine.dialect.name):
                    conn.execute(statement)

    async def close(self) -> None:
        self._engine.dispose()
        logger.debug("SQL store closed")
