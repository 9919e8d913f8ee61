"""Validation service for records about to be imported."""

import re
import logging
from typing import Any, Callable, Dict, List, Optional
from dateutil import parser as date_parser

from ..models.schema import (
    ColumnSpec,
    ColumnType,
    TableSchema,
)
from ..models.record import FieldError

logger = logging.getLogger(__name__)


class RecordValidator:
    """
    Validator for records against a table schema.

    Supports:
    - Required column validation
    - Type validation
    - Max length validation
    - Enum validation
    - Format rules (email, slug) and custom rules
    """

    def __init__(self):
        """Initialize the validator."""
        self._format_rules: Dict[str, Callable[[Any], Optional[str]]] = {
            "email": ValidationRules.email,
            "slug": ValidationRules.slug,
        }

    def register_rule(self, name: str, func: Callable[[Any], Optional[str]]) -> None:
        """Register a format rule; it returns an error message or None."""
        self._format_rules[name] = func

    def validate_record(self, record: Dict[str, Any], schema: TableSchema) -> List[FieldError]:
        """
        Validate a record against a table schema.

        Args:
            record: Record already shaped to the schema's columns
            schema: The table schema

        Returns:
            List of field errors (empty when valid)
        """
        errors = []
        for column in schema.columns:
            errors.extend(self._validate_column(column, record.get(column.name)))
        return errors

    def _validate_column(self, column: ColumnSpec, value: Any) -> List[FieldError]:
        """Validate a single column value."""
        errors = []

        if value is None:
            if not column.nullable:
                errors.append(FieldError(
                    column=column.name,
                    message="Value is required",
                    error_type="required",
                ))
            return errors

        type_error = self._validate_type(column, value)
        if type_error:
            errors.append(type_error)
            return errors

        if column.max_length and isinstance(value, str) and len(value) > column.max_length:
            errors.append(FieldError(
                column=column.name,
                message=f"Value exceeds max length of {column.max_length}",
                error_type="max_length",
                value=len(value),
            ))

        if column.enum_values and value not in column.enum_values:
            errors.append(FieldError(
                column=column.name,
                message=f"Invalid value. Must be one of: {column.enum_values}",
                error_type="enum",
                value=value,
            ))

        if column.format:
            rule = self._format_rules.get(column.format)
            if rule is None:
                logger.warning(f"No rule registered for format '{column.format}'")
            else:
                message = rule(value)
                if message:
                    errors.append(FieldError(
                        column=column.name,
                        message=message,
                        error_type="format",
                        value=value,
                    ))

        return errors

    def _validate_type(self, column: ColumnSpec, value: Any) -> Optional[FieldError]:
        """Validate the type of a value."""
        type_checks = {
            ColumnType.STRING: lambda v: isinstance(v, str),
            ColumnType.TEXT: lambda v: isinstance(v, str),
            ColumnType.INTEGER: lambda v: isinstance(v, int) and not isinstance(v, bool),
            ColumnType.BOOLEAN: lambda v: isinstance(v, bool),
            ColumnType.DATETIME: lambda v: isinstance(v, str) and self._is_valid_datetime(v),
            ColumnType.JSON: lambda v: isinstance(v, (dict, list, str, int, float, bool)),
        }

        check_func = type_checks.get(column.type)
        if check_func and not check_func(value):
            return FieldError(
                column=column.name,
                message=f"Invalid type. Expected {column.type.value}, got {type(value).__name__}",
                error_type="type",
                value=value,
            )

        return None

    def _is_valid_datetime(self, value: str) -> bool:
        """Check if string is an ISO 8601 datetime."""
        try:
            date_parser.isoparse(value)
            return True
        except (ValueError, OverflowError):
            return False

    def is_valid(self, record: Dict[str, Any], schema: TableSchema) -> bool:
        """Quick check if a record is valid."""
        return not self.validate_record(record, schema)


class ValidationRules:
    """Common format rules."""

    @staticmethod
    def email(value: Any) -> Optional[str]:
        """Validate email format."""
        if value is None:
            return None

        email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
        if not re.match(email_pattern, str(value)):
            return "Invalid email format"
        return None

    @staticmethod
    def slug(value: Any) -> Optional[str]:
        """Validate URL slug format."""
        if value is None:
            return None

        if not re.match(r"^[a-z0-9]+(?:-[a-z0-9]+)*$", str(value)):
            return "Slug may only contain lowercase letters, digits and hyphens"
        return None
