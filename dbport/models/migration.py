"""Migration step models: declarative operations between adjacent versions."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum

from .schema import parse_major


class ImportMode(str, Enum):
    """How an import treats rows already in the dataset."""
    MERGE = "merge"  # keep existing rows, collisions become problems
    REPLACE = "replace"  # clear current tables before inserting


class OperationType(str, Enum):
    """Supported document transform operations."""
    RENAME_TABLE = "rename_table"
    DROP_TABLE = "drop_table"
    RENAME_COLUMN = "rename_column"
    DROP_COLUMN = "drop_column"
    ADD_COLUMN = "add_column"
    MAP_VALUES = "map_values"
    NORMALIZE_DATETIME = "normalize_datetime"
    UNIX_TO_ISO = "unix_to_iso"
    SPLIT_TABLE = "split_table"
    MERGE_DUPLICATES = "merge_duplicates"
    COERCE_BOOLEAN = "coerce_boolean"
    CUSTOM = "custom"


@dataclass
class StepOperation:
    """One operation on one table of a document."""
    type: OperationType
    table: str
    config: Dict[str, Any] = field(default_factory=dict)
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "type": self.type.value if isinstance(self.type, OperationType) else self.type,
            "table": self.table,
        }
        if self.config:
            result["config"] = self.config
        if self.notes:
            result["notes"] = self.notes
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepOperation":
        op_type = data.get("type", "custom")
        if isinstance(op_type, str):
            try:
                op_type = OperationType(op_type)
            except ValueError:
                op_type = OperationType.CUSTOM

        return cls(
            type=op_type,
            table=data.get("table", ""),
            config=data.get("config", {}),
            notes=data.get("notes", ""),
        )


@dataclass
class MigrationStep:
    """
    Transform from one version's document shape to the next.

    Steps hold only data; applying them is the transform engine's job,
    which keeps every step a pure document -> document function.
    """
    from_version: str
    to_version: str
    description: str = ""
    operations: List[StepOperation] = field(default_factory=list)

    @property
    def from_major(self) -> int:
        return parse_major(self.from_version)

    @property
    def to_major(self) -> int:
        return parse_major(self.to_version)

    def then(self, other: "MigrationStep") -> "MigrationStep":
        """Compose with the step that follows this one."""
        if other.from_major != self.to_major:
            raise ValueError(
                f"Cannot compose {self.from_version}->{self.to_version} "
                f"with {other.from_version}->{other.to_version}"
            )
        return MigrationStep(
            from_version=self.from_version,
            to_version=other.to_version,
            description="; ".join(d for d in (self.description, other.description) if d),
            operations=list(self.operations) + list(other.operations),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_version,
            "to": self.to_version,
            "description": self.description,
            "operations": [op.to_dict() for op in self.operations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationStep":
        return cls(
            from_version=str(data.get("from", "")),
            to_version=str(data.get("to", "")),
            description=data.get("description", ""),
            operations=[StepOperation.from_dict(op) for op in data.get("operations", [])],
        )


def compose(steps: List[MigrationStep]) -> Optional[MigrationStep]:
    """Fold a chain of adjacent steps into one step."""
    if not steps:
        return None
    result = steps[0]
    for step in steps[1:]:
        result = result.then(step)
    return result
