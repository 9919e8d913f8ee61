"""Schema models for versioned table definitions."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
import json
import re


class ColumnType(str, Enum):
    """Supported column types."""
    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    JSON = "json"


_VERSION_PATTERN = re.compile(r"^\s*v?(\d+)(?:\.\d+)*(?:[-+][\w.]+)?\s*$")


def parse_major(version: Any) -> int:
    """
    Extract the major component of a version marker.

    Accepts "2", "2.31.1", "v4.0.0-beta.1" and the like.

    Raises:
        ValueError: If the marker is not a recognizable version
    """
    if isinstance(version, bool) or not isinstance(version, (str, int)):
        raise ValueError(f"Not a version marker: {version!r}")
    match = _VERSION_PATTERN.match(str(version))
    if not match:
        raise ValueError(f"Not a version marker: {version!r}")
    return int(match.group(1))


@dataclass
class ColumnSpec:
    """Definition of a column in a table."""
    name: str
    type: ColumnType
    nullable: bool = True
    default: Optional[Any] = None
    max_length: Optional[int] = None
    enum_values: Optional[List[Any]] = None
    unique: bool = False
    references: Optional[str] = None  # "table.column"
    format: Optional[str] = None  # email, slug

    @property
    def required(self) -> bool:
        """A value must be supplied when the column is not nullable and has no default."""
        return not self.nullable and self.default is None

    @property
    def reference_target(self) -> Optional[tuple]:
        """(table, column) this column points at, if any."""
        if not self.references:
            return None
        table, _, column = self.references.partition(".")
        return table, column or "id"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result = {
            "type": self.type.value if isinstance(self.type, ColumnType) else self.type,
            "nullable": self.nullable,
        }
        if self.default is not None:
            result["default"] = self.default
        if self.max_length:
            result["max_length"] = self.max_length
        if self.enum_values:
            result["enum"] = self.enum_values
        if self.unique:
            result["unique"] = True
        if self.references:
            result["references"] = self.references
        if self.format:
            result["format"] = self.format
        return result

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ColumnSpec":
        """Create from dictionary representation."""
        column_type = data.get("type", "string")
        if isinstance(column_type, str):
            try:
                column_type = ColumnType(column_type)
            except ValueError:
                column_type = ColumnType.STRING

        return cls(
            name=name,
            type=column_type,
            nullable=data.get("nullable", True),
            default=data.get("default"),
            max_length=data.get("max_length"),
            enum_values=data.get("enum"),
            unique=data.get("unique", False),
            references=data.get("references"),
            format=data.get("format"),
        )


@dataclass
class TableSchema:
    """Schema for one table at one version."""
    name: str
    columns: List[ColumnSpec] = field(default_factory=list)
    identity: List[str] = field(default_factory=lambda: ["id"])
    auxiliary: bool = False
    description: str = ""

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def unique_columns(self) -> List[str]:
        return [c.name for c in self.columns if c.unique]

    @property
    def references(self) -> List[ColumnSpec]:
        return [c for c in self.columns if c.references]

    def get_column(self, name: str) -> Optional[ColumnSpec]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def identity_of(self, record: Dict[str, Any]) -> tuple:
        """Identity tuple of a record under this table's identity scheme."""
        return tuple(record.get(c) for c in self.identity)

    def project(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Shape a record to exactly this table's columns, filling defaults."""
        shaped = {}
        for column in self.columns:
            value = record.get(column.name)
            if value is None:
                value = column.default
            shaped[column.name] = value
        return shaped

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result = {
            "identity": self.identity,
            "columns": {c.name: c.to_dict() for c in self.columns},
        }
        if self.auxiliary:
            result["auxiliary"] = True
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "TableSchema":
        """Create from dictionary representation."""
        columns = [
            ColumnSpec.from_dict(column_name, column_data)
            for column_name, column_data in data.get("columns", {}).items()
            if isinstance(column_data, dict)
        ]
        identity = data.get("identity", ["id"])
        if isinstance(identity, str):
            identity = [identity]

        return cls(
            name=name,
            columns=columns,
            identity=list(identity),
            auxiliary=data.get("auxiliary", False),
            description=data.get("description", ""),
        )


@dataclass
class VersionSchema:
    """All exportable tables of one major product version."""
    version: str
    tables: Dict[str, TableSchema] = field(default_factory=dict)
    description: str = ""

    @property
    def major(self) -> int:
        return parse_major(self.version)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "version": self.version,
            "description": self.description,
            "tables": {k: v.to_dict() for k, v in self.tables.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionSchema":
        """Create from dictionary representation."""
        tables = {}
        for table_name, table_data in data.get("tables", {}).items():
            tables[table_name] = TableSchema.from_dict(table_name, table_data)

        return cls(
            version=str(data.get("version", "")),
            tables=tables,
            description=data.get("description", ""),
        )

    @classmethod
    def from_json_file(cls, file_path: str) -> "VersionSchema":
        """Load schema from JSON file."""
        with open(file_path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)
