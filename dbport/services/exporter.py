"""Exporter: point-in-time dump of the dataset into a versioned document."""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ..exceptions import UnknownTableError
from ..models.document import DocumentMeta, ExportDocument
from ..storage.base import BaseDataset
from .cancellation import CancellationToken
from .schema_registry import SchemaRegistry

logger = logging.getLogger(__name__)


class Exporter:
    """
    Exports the live dataset in the current version's shape.

    The dataset is read through a single snapshot, so concurrent writes
    are either fully visible or not at all.
    """

    def __init__(self, registry: SchemaRegistry, dataset: BaseDataset):
        self.registry = registry
        self.dataset = dataset

    def select_tables(
        self,
        tables: Optional[Iterable[str]] = None,
        include: Optional[Iterable[str]] = None
    ) -> List[str]:
        """
        Resolve a table selector to an ordered list of table names.

        Args:
            tables: Narrow the export to these tables
            include: Auxiliary tables added on top of the selection

        Raises:
            UnknownTableError: If a name is not a current-version table
        """
        known = self.registry.tables_for_version()
        requested = list(tables or []) + list(include or [])
        unknown = [name for name in requested if name not in known]
        if unknown:
            raise UnknownTableError(
                f"Unknown table(s): {', '.join(unknown)}",
                context=f"Exportable tables: {', '.join(known)}",
            )

        if tables is not None:
            selected = set(tables)
        else:
            selected = set(self.registry.tables_for_version(include_auxiliary=False))
        selected.update(include or [])

        return [name for name in known if name in selected]

    def export(
        self,
        tables: Optional[Iterable[str]] = None,
        include: Optional[Iterable[str]] = None,
        token: Optional[CancellationToken] = None
    ) -> ExportDocument:
        """
        Export the dataset.

        Args:
            tables: Narrow to these tables (default: every non-auxiliary table)
            include: Auxiliary tables to add, e.g. ["mobiledoc_revisions"]
            token: Cancellation token checked between tables

        Returns:
            ExportDocument stamped with the current version
        """
        names = self.select_tables(tables, include)
        if token:
            token.check("export")

        snapshot = self.dataset.snapshot(names)
        data = {}

        for name in names:
            if token:
                token.check(f"export of {name}")
            schema = self.registry.table_schema(name)
            data[name] = [schema.project(record) for record in snapshot.get(name, [])]

        document = ExportDocument(
            meta=DocumentMeta(
                version=self.registry.current_version,
                exported_at=datetime.now(timezone.utc),
            ),
            data=data,
        )
        logger.info(
            f"Exported {document.total_records} records from {len(names)} tables"
        )
        return document
