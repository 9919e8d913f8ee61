"""Core services for export, migration, import and backup."""

from .schema_registry import SchemaRegistry
from .transformer import TransformEngine
from .validator import RecordValidator, ValidationRules
from .migrator import MigrationResolver
from .cancellation import CancellationToken
from .exporter import Exporter
from .importer import Importer
from .backup import Authorizer, BackupPolicy, BackupWriter, Caller

__all__ = [
    "SchemaRegistry",
    "TransformEngine",
    "RecordValidator",
    "ValidationRules",
    "MigrationResolver",
    "CancellationToken",
    "Exporter",
    "Importer",
    "Authorizer",
    "BackupPolicy",
    "BackupWriter",
    "Caller",
]
