"""Data models for the export/import engine."""

from .schema import (
    ColumnType,
    ColumnSpec,
    TableSchema,
    VersionSchema,
    parse_major,
)
from .document import (
    DocumentMeta,
    ExportDocument,
)
from .migration import (
    ImportMode,
    OperationType,
    StepOperation,
    MigrationStep,
    compose,
)
from .record import (
    FieldError,
    ProblemReason,
    ImportProblem,
    ImportResult,
    BackupResult,
)
from .config import PortConfig

__all__ = [
    "ColumnType",
    "ColumnSpec",
    "TableSchema",
    "VersionSchema",
    "parse_major",
    "DocumentMeta",
    "ExportDocument",
    "ImportMode",
    "OperationType",
    "StepOperation",
    "MigrationStep",
    "compose",
    "FieldError",
    "ProblemReason",
    "ImportProblem",
    "ImportResult",
    "BackupResult",
    "PortConfig",
]
