"""Importer: migrates an export document and inserts it into the dataset."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from ..exceptions import IntegrityError, UnsupportedFormatError
from ..models.document import ExportDocument
from ..models.migration import ImportMode
from ..models.record import ImportProblem, ImportResult, ProblemReason
from ..models.schema import TableSchema
from ..storage.base import BaseDataset, TableTransaction
from .cancellation import CancellationToken
from .migrator import MigrationResolver
from .schema_registry import SchemaRegistry
from .validator import RecordValidator

logger = logging.getLogger(__name__)


class Importer:
    """
    Best-effort importer.

    Records that cannot be inserted are reported as problems on the
    result and never stop the rest of the document from loading.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        dataset: BaseDataset,
        resolver: Optional[MigrationResolver] = None,
        validator: Optional[RecordValidator] = None,
        batch_size: int = 100
    ):
        """
        Initialize the importer.

        Args:
            registry: Schema registry holding the current version
            dataset: Dataset to import into
            resolver: Migration resolver (defaults to the built-in history)
            validator: Record validator
            batch_size: Records per table transaction
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.registry = registry
        self.dataset = dataset
        self.resolver = resolver or MigrationResolver(registry)
        self.validator = validator or RecordValidator()
        self.batch_size = batch_size

    def parse(self, raw: Union[ExportDocument, Dict[str, Any]]) -> ExportDocument:
        """
        Turn raw JSON into a document, checking its tables are known.

        Raises:
            UnsupportedFormatError: If it is not an export document
        """
        document = raw if isinstance(raw, ExportDocument) else ExportDocument.from_dict(raw)

        known = set(self.registry.known_tables())
        unknown = sorted(table for table in document.data if table not in known)
        if unknown:
            raise UnsupportedFormatError(
                "Import file contains tables this system does not know",
                context=f"Unknown tables: {', '.join(unknown)}",
            )
        return document

    def import_document(
        self,
        document: Union[ExportDocument, Dict[str, Any]],
        mode: ImportMode = ImportMode.MERGE,
        token: Optional[CancellationToken] = None
    ) -> ImportResult:
        """
        Import a document of any supported version.

        Args:
            document: ExportDocument or its raw JSON value
            mode: MERGE keeps existing rows, REPLACE clears current tables first
            token: Cancellation token checked between batches

        Returns:
            ImportResult with imported counts and every problem found

        Raises:
            UnsupportedFormatError: If the input is not an export document
            UnsupportedVersionError: If its version cannot be migrated
            OperationCancelledError: If the token fires; committed batches stay
        """
        source = self.parse(document)
        migrated = self.resolver.migrate(source)

        result = ImportResult(
            version=self.registry.current_version,
            source_version=source.meta.version,
            started_at=datetime.now(timezone.utc),
        )

        if ImportMode(mode) == ImportMode.REPLACE:
            cleared = self.dataset.clear_all(self.registry.tables_for_version())
            logger.info(f"Replace mode: cleared {sum(cleared.values())} existing rows")

        current = self.registry.tables_for_version()
        for table in migrated.data:
            if table not in current:
                logger.warning(
                    f"Skipping table '{table}': not part of version {self.registry.current_version}"
                )

        present = [table for table in current if table in migrated.data]
        for table in self.registry.dependency_order(tables=present):
            self._import_table(table, migrated.data[table], result, token)

        result.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"Import from {source.meta.version} finished: {result.imported} imported, "
            f"{len(result.problems)} problems"
        )
        return result

    def _import_table(
        self,
        table: str,
        records: List[Dict[str, Any]],
        result: ImportResult,
        token: Optional[CancellationToken]
    ) -> None:
        schema = self.registry.table_schema(table)
        logger.info(f"Importing {len(records)} {table} records...")
        imported = 0

        for i in range(0, len(records), self.batch_size):
            if token:
                token.check(f"import of {table}")
            batch = records[i:i + self.batch_size]
            with self.dataset.transaction(table) as tx:
                for record in batch:
                    problem = self._import_record(tx, schema, record)
                    if problem:
                        result.add_problem(problem)
                    else:
                        imported += 1

        if imported:
            result.count_imported(table, imported)
        logger.info(f"Imported {table}: {imported}/{len(records)} succeeded")

    def _import_record(
        self,
        tx: TableTransaction,
        schema: TableSchema,
        record: Dict[str, Any]
    ) -> Optional[ImportProblem]:
        """Insert one record, returning the problem that stopped it, if any."""
        shaped = schema.project(record)
        identity = {column: shaped.get(column) for column in schema.identity}

        errors = self.validator.validate_record(shaped, schema)
        if errors:
            return ImportProblem(
                table=schema.name,
                identity=identity,
                reason=ProblemReason.VALIDATION,
                message=f"Validation error, cannot save {schema.name}: "
                        + "; ".join(str(e) for e in errors),
                context={"errors": [e.to_dict() for e in errors]},
            )

        for column in schema.references:
            value = shaped.get(column.name)
            if value is None:
                continue
            target_table, target_column = column.reference_target
            if not self.dataset.exists(target_table, {target_column: value}):
                return ImportProblem(
                    table=schema.name,
                    identity=identity,
                    reason=ProblemReason.MISSING_REFERENCE,
                    message=f"Entry references missing {target_table} {value!r}",
                    context={"column": column.name, "references": column.references},
                )

        try:
            tx.insert(shaped)
        except IntegrityError as e:
            return ImportProblem(
                table=schema.name,
                identity=identity,
                reason=ProblemReason.DUPLICATE,
                message="Entry not imported because it already exists",
                context={"column": e.column, "detail": e.message},
            )

        return None
