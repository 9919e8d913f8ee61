"""Transformation engine for moving export documents between schema shapes."""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timezone
from dateutil import parser as date_parser

from ..models.migration import (
    MigrationStep,
    OperationType,
    StepOperation,
)

logger = logging.getLogger(__name__)

TableData = Dict[str, List[Dict[str, Any]]]

TRUE_VALUES = {"1", "true", "t", "yes"}
FALSE_VALUES = {"0", "false", "f", "no"}


def to_iso(value: datetime) -> str:
    """Render a datetime as the UTC ISO 8601 form used by current exports."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class TransformEngine:
    """
    Engine for applying migration steps to table-keyed record data.

    Supports:
    - Built-in table and column operations
    - Custom operations registered by name
    - Pure application: inputs are never mutated
    """

    def __init__(self):
        """Initialize the transform engine."""
        self._custom_operations: Dict[str, Callable] = {}
        self._builtin_operations = self._register_builtin_operations()

    def _register_builtin_operations(self) -> Dict[str, Callable]:
        """Register all built-in operations."""
        return {
            OperationType.RENAME_TABLE.value: self._op_rename_table,
            OperationType.DROP_TABLE.value: self._op_drop_table,
            OperationType.RENAME_COLUMN.value: self._op_rename_column,
            OperationType.DROP_COLUMN.value: self._op_drop_column,
            OperationType.ADD_COLUMN.value: self._op_add_column,
            OperationType.MAP_VALUES.value: self._op_map_values,
            OperationType.NORMALIZE_DATETIME.value: self._op_normalize_datetime,
            OperationType.UNIX_TO_ISO.value: self._op_unix_to_iso,
            OperationType.SPLIT_TABLE.value: self._op_split_table,
            OperationType.MERGE_DUPLICATES.value: self._op_merge_duplicates,
            OperationType.COERCE_BOOLEAN.value: self._op_coerce_boolean,
        }

    def register_operation(self, name: str, func: Callable) -> None:
        """
        Register a custom operation.

        The function receives (data, table, config), may mutate data in
        place, and returns the resulting data.
        """
        self._custom_operations[name] = func

    def apply_steps(self, steps: List[MigrationStep], data: TableData) -> TableData:
        """Apply a chain of steps, returning new data."""
        result = copy.deepcopy(data)
        for step in steps:
            logger.debug(f"Applying migration {step.from_version} -> {step.to_version}")
            for operation in step.operations:
                result = self._run(operation, result)
        return result

    def apply_step(self, step: MigrationStep, data: TableData) -> TableData:
        """Apply one step, returning new data."""
        return self.apply_steps([step], data)

    def apply_operation(self, operation: StepOperation, data: TableData) -> TableData:
        """Apply a single operation, returning new data."""
        return self._run(operation, copy.deepcopy(data))

    def _run(self, operation: StepOperation, data: TableData) -> TableData:
        name = (
            operation.type.value
            if isinstance(operation.type, OperationType)
            else operation.type
        )

        func = self._custom_operations.get(name) or self._builtin_operations.get(name)
        if not func and name == OperationType.CUSTOM.value:
            func = self._custom_operations.get(operation.config.get("function"))

        if not func:
            raise ValueError(f"Unknown migration operation: {name}")

        return func(data, operation.table, operation.config)

    # Built-in operations

    def _op_rename_table(self, data: TableData, table: str, config: Dict) -> TableData:
        """Move a table's records under a new name."""
        if table not in data:
            return data
        target = config["to"]
        data.setdefault(target, []).extend(data.pop(table))
        return data

    def _op_drop_table(self, data: TableData, table: str, config: Dict) -> TableData:
        """Remove a table."""
        data.pop(table, None)
        return data

    def _op_rename_column(self, data: TableData, table: str, config: Dict) -> TableData:
        """Rename a column in every record."""
        old, new = config["from"], config["to"]
        for record in data.get(table, []):
            if old in record:
                record[new] = record.pop(old)
        return data

    def _op_drop_column(self, data: TableData, table: str, config: Dict) -> TableData:
        """Remove one or more columns."""
        columns = config.get("columns") or [config["column"]]
        for record in data.get(table, []):
            for column in columns:
                record.pop(column, None)
        return data

    def _op_add_column(self, data: TableData, table: str, config: Dict) -> TableData:
        """Add a column, filling a default where the value is absent."""
        column = config["column"]
        default = config.get("default")
        for record in data.get(table, []):
            if record.get(column) is None:
                record[column] = default
        return data

    def _op_map_values(self, data: TableData, table: str, config: Dict) -> TableData:
        """Map a column's values through a lookup table, optionally into another column."""
        source = config["column"]
        target = config.get("target", source)
        mapping = config.get("mapping", {})
        default = config.get("default")

        for record in data.get(table, []):
            value = record.get(source)
            if value is None:
                mapped = default
            else:
                mapped = mapping.get(_lookup_key(value), default)
            if target != source:
                record.pop(source, None)
            record[target] = mapped
        return data

    def _op_normalize_datetime(self, data: TableData, table: str, config: Dict) -> TableData:
        """Rewrite datetime strings in any parseable form as UTC ISO 8601."""
        columns = config.get("columns") or [config["column"]]
        for record in data.get(table, []):
            for column in columns:
                value = record.get(column)
                if not isinstance(value, str) or not value:
                    continue
                try:
                    record[column] = to_iso(date_parser.parse(value))
                except (ValueError, OverflowError):
                    # Left as-is; validation reports it against the record.
                    logger.debug(f"Unparseable datetime in {table}.{column}: {value!r}")
        return data

    def _op_unix_to_iso(self, data: TableData, table: str, config: Dict) -> TableData:
        """Convert epoch timestamps to ISO datetimes."""
        source = config["column"]
        target = config.get("target", source)
        divisor = 1000.0 if config.get("unit", "ms") == "ms" else 1.0

        for record in data.get(table, []):
            value = record.get(source)
            converted = value
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                try:
                    converted = to_iso(datetime.fromtimestamp(value / divisor, tz=timezone.utc))
                except (ValueError, OverflowError, OSError):
                    converted = value
            if target != source:
                record.pop(source, None)
            record[target] = converted
        return data

    def _op_split_table(self, data: TableData, table: str, config: Dict) -> TableData:
        """
        Move columns of each record into a new child table.

        Config:
            into: Name of the child table
            columns: Columns moved out of the parent
            rename: Optional {moved column: child column} renames
            key: Child column holding the parent's identity
            parent_key: Parent identity column (default "id")
            extra: Constant values added to every child record
            skip_empty: Do not create a child when every moved value is None
        """
        if table not in data:
            return data

        into = config["into"]
        columns = config.get("columns", [])
        rename = config.get("rename", {})
        key = config["key"]
        parent_key = config.get("parent_key", "id")
        extra = config.get("extra", {})
        skip_empty = config.get("skip_empty", False)

        children = data.setdefault(into, [])

        for record in data[table]:
            moved = {rename.get(c, c): record.pop(c, None) for c in columns}
            if skip_empty and all(v is None for v in moved.values()):
                continue
            parent_id = record.get(parent_key)
            child = {"id": parent_id, key: parent_id}
            child.update(moved)
            child.update(extra)
            children.append(child)

        return data

    def _op_merge_duplicates(self, data: TableData, table: str, config: Dict) -> TableData:
        """
        Collapse records sharing a new identity into one.

        Config:
            key: Columns forming the new identity
            prefer: Column whose lowest value wins (first seen on ties)
            drop: Columns removed from the merged records
        """
        if table not in data:
            return data

        key_columns = config["key"]
        prefer = config.get("prefer")
        drop = config.get("drop", [])

        merged: Dict[tuple, Dict[str, Any]] = {}
        unkeyed: List[Dict[str, Any]] = []

        for record in data[table]:
            key = tuple(record.get(c) for c in key_columns)
            if any(part is None for part in key):
                unkeyed.append(record)
                continue
            current = merged.get(key)
            if current is None or (prefer and _prefer_lower(record, current, prefer)):
                merged[key] = record

        result = list(merged.values()) + unkeyed
        for record in result:
            for column in drop:
                record.pop(column, None)

        removed = len(data[table]) - len(result)
        if removed:
            logger.info(f"Merged {removed} duplicate {table} records")
        data[table] = result
        return data

    def _op_coerce_boolean(self, data: TableData, table: str, config: Dict) -> TableData:
        """Turn 0/1 and "true"/"false" style flags from database dumps into booleans."""
        columns = config.get("columns") or [config["column"]]
        for record in data.get(table, []):
            for column in columns:
                value = record.get(column)
                if isinstance(value, bool) or value is None:
                    continue
                key = str(value).strip().lower()
                if key in TRUE_VALUES:
                    record[column] = True
                elif key in FALSE_VALUES:
                    record[column] = False
        return data


def _lookup_key(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _prefer_lower(candidate: Dict[str, Any], current: Dict[str, Any], column: str) -> bool:
    new_value = candidate.get(column)
    old_value = current.get(column)
    if new_value is None:
        return False
    if old_value is None:
        return True
    try:
        return new_value < old_value
    except TypeError:
        return False
