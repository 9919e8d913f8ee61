"""In-process dataset with snapshot reads and per-table transactions."""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from ..exceptions import IntegrityError, UnknownTableError
from ..models.schema import TableSchema
from .base import BaseDataset, TableTransaction

logger = logging.getLogger(__name__)

Rows = Dict[tuple, Dict[str, Any]]


class _MemoryTransaction(TableTransaction):
    """Stages rows against one table; constraint checks see committed and staged rows."""

    def __init__(self, schema: TableSchema, committed: Rows):
        self.schema = schema
        self._committed = committed
        self._rows: Rows = {}
        self._unique: Dict[str, Set[Any]] = {
            column: {row.get(column) for row in committed.values()} - {None}
            for column in schema.unique_columns
        }

    def insert(self, record: Dict[str, Any]) -> None:
        identity = self.schema.identity_of(record)
        if identity in self._committed or identity in self._rows:
            raise IntegrityError(
                f"Duplicate {self.schema.name} identity {identity}",
                column=",".join(self.schema.identity),
            )

        for column, seen in self._unique.items():
            value = record.get(column)
            if value is not None and value in seen:
                raise IntegrityError(
                    f"Duplicate {self.schema.name}.{column} value {value!r}",
                    column=column,
                )

        for column, seen in self._unique.items():
            value = record.get(column)
            if value is not None:
                seen.add(value)
        self._rows[identity] = dict(record)

    def staged(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> Rows:
        return self._rows


class MemoryDataset(BaseDataset):
    """
    Dataset held in memory, keyed per table by identity.

    Commits replace a table's row mapping instead of mutating it, so a
    snapshot taken under the lock is never affected by later writes.
    Writers on the same table are serialized by a per-table lock; the
    shared lock is only held for the brief swap and copy.
    """

    def __init__(self, tables: Dict[str, TableSchema]):
        """
        Initialize the dataset.

        Args:
            tables: Table schemas, keyed by table name
        """
        self._schemas = dict(tables)
        self._tables: Dict[str, Rows] = {name: {} for name in self._schemas}
        self._lock = threading.RLock()
        self._write_locks = {name: threading.Lock() for name in self._schemas}

    @classmethod
    def from_registry(cls, registry, version=None) -> "MemoryDataset":
        """Create an empty dataset with every table of a registry version."""
        schema = registry.get_schema(version)
        return cls(schema.tables)

    @property
    def tables(self) -> List[str]:
        return list(self._schemas)

    def snapshot(self, tables: Optional[List[str]] = None) -> Dict[str, List[Dict[str, Any]]]:
        names = list(self._schemas) if tables is None else list(tables)
        for name in names:
            self._schema(name)

        with self._lock:
            frozen = {name: self._tables[name] for name in names}

        # Row mappings are never mutated after commit, so copying outside the lock is safe.
        return {
            name: [copy.deepcopy(row) for row in rows.values()]
            for name, rows in frozen.items()
        }

    @contextmanager
    def transaction(self, table: str) -> Iterator[TableTransaction]:
        schema = self._schema(table)
        with self._write_locks[table]:
            with self._lock:
                committed = self._tables[table]
            tx = _MemoryTransaction(schema, committed)
            yield tx

            if tx.rows:
                with self._lock:
                    merged = dict(self._tables[table])
                    merged.update(tx.rows)
                    self._tables[table] = merged
                logger.debug(f"Committed {len(tx.rows)} {table} rows")

    def exists(self, table: str, values: Dict[str, Any]) -> bool:
        schema = self._schema(table)
        with self._lock:
            rows = self._tables[table]

        if sorted(values) == sorted(schema.identity):
            return schema.identity_of(values) in rows

        return any(
            all(row.get(column) == value for column, value in values.items())
            for row in rows.values()
        )

    def clear(self, table: str) -> int:
        self._schema(table)
        with self._write_locks[table]:
            with self._lock:
                removed = len(self._tables[table])
                self._tables[table] = {}
        if removed:
            logger.info(f"Cleared {removed} {table} rows")
        return removed

    def count(self, table: str) -> int:
        self._schema(table)
        with self._lock:
            return len(self._tables[table])

    def get(self, table: str, identity: Tuple) -> Optional[Dict[str, Any]]:
        """Committed row by identity tuple, or None."""
        self._schema(table)
        with self._lock:
            row = self._tables[table].get(tuple(identity))
        return copy.deepcopy(row) if row is not None else None

    def _schema(self, table: str) -> TableSchema:
        schema = self._schemas.get(table)
        if schema is None:
            raise UnknownTableError(f"Dataset has no table '{table}'")
        return schema
