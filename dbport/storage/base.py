"""Dataset access interface consumed by the exporter and importer."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional


class TableTransaction(ABC):
    """
    Write handle for one table.

    Rows inserted through the handle become visible to readers only when
    the surrounding transaction commits.
    """

    @abstractmethod
    def insert(self, record: Dict[str, Any]) -> None:
        """
        Stage a record for insertion.

        Raises:
            IntegrityError: If the record's identity or a unique value
                collides with a committed or staged row
        """
        pass

    @abstractmethod
    def staged(self) -> int:
        """Number of rows staged so far."""
        pass


class BaseDataset(ABC):
    """
    Base class for live datasets.

    The dataset is the single source of truth; export and import read and
    write through this interface and keep no state of their own.
    """

    @abstractmethod
    def snapshot(self, tables: Optional[List[str]] = None) -> Dict[str, List[Dict[str, Any]]]:
        """
        Point-in-time copy of the given tables (all tables when omitted).

        The copy never reflects writes committed after it was taken.
        """
        pass

    @abstractmethod
    @contextmanager
    def transaction(self, table: str) -> Iterator[TableTransaction]:
        """
        Open a write transaction on one table.

        Staged rows commit together on normal exit and are discarded when
        the block raises.
        """
        pass

    @abstractmethod
    def exists(self, table: str, values: Dict[str, Any]) -> bool:
        """Whether a committed row matches every column in values."""
        pass

    @abstractmethod
    def clear(self, table: str) -> int:
        """Delete every row of a table, returning the number removed."""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Number of committed rows in a table."""
        pass

    def rows(self, table: str) -> List[Dict[str, Any]]:
        """Committed rows of one table."""
        return self.snapshot([table]).get(table, [])

    def clear_all(self, tables: List[str]) -> Dict[str, int]:
        """Clear several tables, returning removed counts per table."""
        return {table: self.clear(table) for table in tables}
