"""Schema registry for versioned table definitions."""

import logging
from typing import Dict, Iterable, List, Optional, Union
from pathlib import Path

from ..exceptions import UnknownTableError, UnknownVersionError
from ..models.schema import (
    ColumnSpec,
    TableSchema,
    VersionSchema,
    parse_major,
)

logger = logging.getLogger(__name__)

BUILTIN_SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "schemas"

VersionRef = Union[str, int]


class SchemaRegistry:
    """
    Registry of the exportable table shapes of every supported version.

    Supports:
    - Loading version schemas from JSON files
    - Registering schemas programmatically
    - Looking up tables, columns and identities per version
    - Ordering tables so referenced tables come first

    The current version is fixed at construction and the registry is
    treated as read-only once the process has started.
    """

    def __init__(self, current_version: VersionRef = "5.0", schemas_dir: Optional[str] = None):
        """
        Initialize the schema registry.

        Args:
            current_version: Version this process exports and imports into
            schemas_dir: Directory containing version schema JSON files
                (defaults to the schemas shipped with the package)
        """
        self.schemas: Dict[int, VersionSchema] = {}
        self._schemas_dir = schemas_dir or str(BUILTIN_SCHEMAS_DIR)

        self.load_schemas_from_directory(self._schemas_dir)

        self._current_major = self._major(current_version)
        if self._current_major not in self.schemas:
            raise UnknownVersionError(
                f"No schema registered for current version {current_version}",
                context=f"Known versions: {', '.join(self.versions())}",
            )

    def load_schemas_from_directory(self, directory: str) -> int:
        """
        Load all schema files from a directory.

        Args:
            directory: Path to directory containing schema JSON files

        Returns:
            Number of schemas loaded
        """
        loaded = 0
        path = Path(directory)

        if not path.exists():
            logger.warning(f"Schema directory does not exist: {directory}")
            return 0

        for file_path in sorted(path.glob("*.json")):
            try:
                schema = VersionSchema.from_json_file(str(file_path))
                self.register_schema(schema)
                loaded += 1
                logger.debug(f"Loaded schema {schema.version} from {file_path}")
            except Exception as e:
                logger.error(f"Failed to load schema from {file_path}: {e}")

        return loaded

    def register_schema(self, schema: VersionSchema) -> None:
        """Register a version schema."""
        for problem in self.validate_schema(schema):
            logger.warning(f"Schema {schema.version}: {problem}")
        self.schemas[schema.major] = schema

    @property
    def current_version(self) -> str:
        return self.schemas[self._current_major].version

    @property
    def current_major(self) -> int:
        return self._current_major

    def versions(self) -> List[str]:
        """All registered version labels, oldest first."""
        return [self.schemas[major].version for major in sorted(self.schemas)]

    def has_version(self, version: VersionRef) -> bool:
        try:
            return parse_major(version) in self.schemas
        except ValueError:
            return False

    def get_schema(self, version: Optional[VersionRef] = None) -> VersionSchema:
        """
        Get the schema of a version (current when omitted).

        Raises:
            UnknownVersionError: If no shape is registered for the version
        """
        if version is None:
            return self.schemas[self._current_major]
        major = self._major(version)
        schema = self.schemas.get(major)
        if schema is None:
            raise UnknownVersionError(
                f"No schema registered for version {version}",
                context=f"Known versions: {', '.join(self.versions())}",
            )
        return schema

    def tables_for_version(
        self,
        version: Optional[VersionRef] = None,
        include_auxiliary: bool = True
    ) -> List[str]:
        """List the tables of a version in declaration order."""
        schema = self.get_schema(version)
        return [
            name for name, table in schema.tables.items()
            if include_auxiliary or not table.auxiliary
        ]

    def auxiliary_tables(self, version: Optional[VersionRef] = None) -> List[str]:
        """List history tables that are exported only on request."""
        schema = self.get_schema(version)
        return [name for name, table in schema.tables.items() if table.auxiliary]

    def table_schema(self, table: str, version: Optional[VersionRef] = None) -> TableSchema:
        """
        Get a table's schema at a version.

        Raises:
            UnknownVersionError: If the version is not registered
            UnknownTableError: If the table does not exist at that version
        """
        schema = self.get_schema(version)
        table_schema = schema.tables.get(table)
        if table_schema is None:
            raise UnknownTableError(
                f"Unknown table '{table}' for version {schema.version}",
            )
        return table_schema

    def columns_for(self, table: str, version: Optional[VersionRef] = None) -> List[ColumnSpec]:
        """Ordered column specs of a table at a version."""
        return list(self.table_schema(table, version).columns)

    def identity_for(self, table: str, version: Optional[VersionRef] = None) -> List[str]:
        """Identity column(s) of a table at a version."""
        return list(self.table_schema(table, version).identity)

    def known_tables(self) -> List[str]:
        """Every table name registered for any version."""
        names: List[str] = []
        for major in sorted(self.schemas):
            for name in self.schemas[major].tables:
                if name not in names:
                    names.append(name)
        return names

    def dependency_order(
        self,
        version: Optional[VersionRef] = None,
        tables: Optional[Iterable[str]] = None
    ) -> List[str]:
        """
        Order tables so that every referenced table precedes its referrers.

        Args:
            version: Version whose references to follow (current when omitted)
            tables: Restrict to these tables (all tables when omitted)

        Returns:
            Table names; ties keep declaration order
        """
        schema = self.get_schema(version)
        wanted = set(tables) if tables is not None else None
        names = [n for n in schema.tables if wanted is None or n in wanted]

        order: List[str] = []
        visiting = set()
        done = set()

        def visit(name: str) -> None:
            if name in done or name in visiting:
                return
            visiting.add(name)
            for column in schema.tables[name].references:
                target = column.reference_target[0]
                if target != name and target in names:
                    visit(target)
            visiting.discard(name)
            done.add(name)
            order.append(name)

        for name in names:
            visit(name)

        return order

    def validate_schema(self, schema: VersionSchema) -> List[str]:
        """
        Check a version schema for internal consistency.

        Returns:
            List of validation error messages
        """
        errors = []

        for name, table in schema.tables.items():
            for identity_column in table.identity:
                if identity_column not in table.column_names:
                    errors.append(f"{name}: identity column '{identity_column}' is not a column")

            for column in table.references:
                target_table, target_column = column.reference_target
                target = schema.tables.get(target_table)
                if target is None:
                    errors.append(f"{name}.{column.name}: references unknown table '{target_table}'")
                elif target_column not in target.column_names:
                    errors.append(
                        f"{name}.{column.name}: references unknown column '{column.references}'"
                    )

        return errors

    def _major(self, version: VersionRef) -> int:
        try:
            return parse_major(version)
        except ValueError as e:
            raise UnknownVersionError(f"Unknown version {version!r}", context=str(e)) from e
