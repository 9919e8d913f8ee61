"""Export document model and wire (de)serialization."""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser
from pydantic import ValidationError

from .schema import parse_major
from .wire import WireDocument, WireEnvelope
from ..exceptions import UnsupportedFormatError


@dataclass
class DocumentMeta:
    """Version marker and provenance of an export."""
    version: str
    exported_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def major(self) -> int:
        return parse_major(self.version)

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.extra)
        result["version"] = self.version
        result["exported_at"] = self.exported_at.isoformat()
        return result


@dataclass
class ExportDocument:
    """A versioned snapshot of a dataset's tables and records."""
    meta: DocumentMeta
    data: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    @property
    def version(self) -> str:
        return self.meta.version

    def table_counts(self) -> Dict[str, int]:
        return {table: len(records) for table, records in self.data.items()}

    @property
    def total_records(self) -> int:
        return sum(len(records) for records in self.data.values())

    def copy(self) -> "ExportDocument":
        return ExportDocument(
            meta=DocumentMeta(
                version=self.meta.version,
                exported_at=self.meta.exported_at,
                extra=dict(self.meta.extra),
            ),
            data=copy.deepcopy(self.data),
        )

    def to_dict(self) -> Dict[str, Any]:
        """The bare {meta, data} document."""
        return {"meta": self.meta.to_dict(), "data": self.data}

    def to_wire(self) -> Dict[str, Any]:
        """The {"db": [document]} envelope."""
        return {"db": [self.to_dict()]}

    @classmethod
    def from_dict(cls, raw: Any) -> "ExportDocument":
        """
        Parse an export from its JSON value.

        Accepts the {"db": [document]} envelope or a bare document.

        Raises:
            UnsupportedFormatError: If the value has no recognizable version
                marker or is not a table-keyed document of records
        """
        if not isinstance(raw, dict):
            raise UnsupportedFormatError(
                "Import file is not an export document",
                context=f"Expected a JSON object, got {type(raw).__name__}",
            )

        try:
            if "db" in raw:
                wire = WireEnvelope.model_validate(raw).db[0]
            else:
                wire = WireDocument.model_validate(raw)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise UnsupportedFormatError(
                "Import file is not an export document",
                context=f"{location}: {first.get('msg')}",
            ) from e

        try:
            version = str(wire.meta.version)
            parse_major(version)
        except ValueError as e:
            raise UnsupportedFormatError(
                "Import file has no recognizable version marker",
                context=str(e),
            ) from e

        extra = dict(wire.meta.model_extra or {})
        return cls(
            meta=DocumentMeta(
                version=version,
                exported_at=_exported_at(wire.meta.exported_at, wire.meta.exported_on),
                extra=extra,
            ),
            data={table: [dict(r) for r in records] for table, records in wire.data.items()},
        )


def _exported_at(iso_value: Optional[str], epoch_ms: Optional[int]) -> datetime:
    if iso_value:
        try:
            parsed = date_parser.isoparse(iso_value)
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    if epoch_ms is not None:
        try:
            return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError) as e:
            raise UnsupportedFormatError(
                "Import file has an invalid export timestamp",
                context=f"meta.exported_on: {epoch_ms}",
            ) from e
    return datetime.now(timezone.utc)
