"""Record-level result models for import and backup operations."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime, timezone
import json


class ProblemReason(str, Enum):
    """Why a record could not be imported."""
    DUPLICATE = "duplicate"
    MISSING_REFERENCE = "missing_reference"
    VALIDATION = "validation"


@dataclass
class FieldError:
    """A validation error on one column of a record."""
    column: str
    message: str
    error_type: str = "validation"
    value: Optional[Any] = None

    def __str__(self) -> str:
        return f"{self.column}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "column": self.column,
            "message": self.message,
            "error_type": self.error_type,
            "value": self.value,
        }


@dataclass
class ImportProblem:
    """A non-fatal, per-record import failure."""
    table: str
    identity: Dict[str, Any]
    reason: ProblemReason
    message: str
    help: str = ""
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "message": self.message,
            "help": self.help or self.table,
            "context": json.dumps(self.context, default=str) if self.context else None,
            "table": self.table,
            "identity": self.identity,
            "reason": self.reason.value,
        }


@dataclass
class ImportResult:
    """Outcome of importing one document."""
    version: str = ""
    source_version: str = ""
    imported: int = 0
    tables: Dict[str, int] = field(default_factory=dict)
    problems: List[ImportProblem] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def add_problem(self, problem: ImportProblem) -> None:
        self.problems.append(problem)

    def count_imported(self, table: str, count: int = 1) -> None:
        self.tables[table] = self.tables.get(table, 0) + count
        self.imported += count

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "version": self.version,
            "source_version": self.source_version,
            "imported": self.imported,
            "tables": self.tables,
            "problems": [p.to_dict() for p in self.problems],
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class BackupResult:
    """A backup file written to durable storage."""
    filename: str
    path: str
    tables: Dict[str, int] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_records(self) -> int:
        return sum(self.tables.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "filename": self.filename,
            "path": self.path,
            "tables": self.tables,
            "created_at": self.created_at.isoformat(),
        }
