"""Database service - wires registry, dataset, exporter, importer and backups together."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .exceptions import UnprocessableEntityError, UnsupportedMediaTypeError
from .models.config import PortConfig
from .models.document import ExportDocument
from .models.migration import ImportMode
from .models.wire import ImportResponse, WireProblem
from .services.backup import Authorizer, BackupPolicy, BackupWriter, Caller
from .services.cancellation import CancellationToken
from .services.exporter import Exporter
from .services.importer import Importer
from .services.migrator import MigrationResolver
from .services.schema_registry import SchemaRegistry
from .services.transformer import TransformEngine
from .services.validator import RecordValidator
from .storage.base import BaseDataset
from .storage.memory import MemoryDataset

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPES = {"application/json", "text/json", "application/octet-stream"}


@dataclass
class UploadedFile:
    """A single attached file, as handed over by the HTTP layer."""
    filename: str
    content: Union[bytes, str]
    content_type: Optional[str] = None


class DatabaseService:
    """
    Wire-shaped entry points for database export, import and backup.

    Handles:
    - Full and selective export in the {"db": [document]} envelope
    - Upload checks and import with problem reporting
    - Authorized backups and reading them back
    - Wiping the current dataset
    """

    def __init__(
        self,
        config: Optional[PortConfig] = None,
        dataset: Optional[BaseDataset] = None,
        registry: Optional[SchemaRegistry] = None,
        authorizer: Optional[Authorizer] = None
    ):
        """
        Initialize the service.

        Args:
            config: Port configuration (defaults to PortConfig())
            dataset: Live dataset (defaults to an empty MemoryDataset)
            registry: Schema registry (built from config when omitted)
            authorizer: Backup authorization (defaults to BackupPolicy from config)
        """
        self.config = config or PortConfig()
        self.registry = registry or SchemaRegistry(
            current_version=self.config.current_version,
            schemas_dir=self.config.schemas_dir,
        )
        self.dataset = dataset or MemoryDataset.from_registry(self.registry)

        self.transformer = TransformEngine()
        self.validator = RecordValidator()
        self.resolver = MigrationResolver(self.registry, engine=self.transformer)
        self.exporter = Exporter(self.registry, self.dataset)
        self.importer = Importer(
            self.registry,
            self.dataset,
            resolver=self.resolver,
            validator=self.validator,
            batch_size=self.config.batch_size,
        )
        self.backups = BackupWriter(
            self.exporter,
            backup_dir=self.config.backup_dir,
            authorizer=authorizer or BackupPolicy(
                self.config.trusted_integrations,
                self.config.admin_roles,
            ),
            site_slug=self.config.site_slug,
        )

    def export_db(
        self,
        include: Optional[List[str]] = None,
        filename: Optional[str] = None,
        token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        """
        Export the dataset, or return a stored backup when filename is given.

        Raises:
            UnknownTableError: If include names a table that does not exist
            NotFoundError: If the named backup does not exist
        """
        if filename:
            logger.info(f"Serving stored backup {filename}")
            return self.backups.read(filename)
        return self.exporter.export(include=include, token=token).to_wire()

    def import_upload(
        self,
        upload: Optional[UploadedFile],
        mode: Optional[ImportMode] = None,
        token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        """
        Import an uploaded export file.

        Returns:
            {"db": [summary], "problems": [...]}

        Raises:
            UnprocessableEntityError: If no file was attached
            UnsupportedMediaTypeError: If the file is not JSON
            UnsupportedFormatError: If the JSON is not an export document
            UnsupportedVersionError: If the export cannot be migrated
        """
        if upload is None:
            raise UnprocessableEntityError(
                "Please select a database file to import.",
            )

        raw = self.read_upload(upload)
        result = self.importer.import_document(
            raw,
            mode=mode or self.config.import_mode,
            token=token,
        )

        response = ImportResponse(
            db=[{
                "version": result.version,
                "source_version": result.source_version,
                "imported": result.imported,
                "tables": result.tables,
            }],
            problems=[WireProblem(**p.to_dict()) for p in result.problems],
        )
        return response.model_dump()

    def read_upload(self, upload: UploadedFile) -> Any:
        """
        Decode an uploaded file as JSON.

        Raises:
            UnsupportedMediaTypeError: On a non-JSON name, content type or body
        """
        filename = upload.filename or ""
        if not filename.lower().endswith(".json"):
            raise UnsupportedMediaTypeError(
                "Unsupported file. Please try any of the following formats: .json",
                context=f"Received file {filename!r}",
            )

        if upload.content_type:
            media_type = upload.content_type.split(";")[0].strip().lower()
            if media_type not in JSON_CONTENT_TYPES:
                raise UnsupportedMediaTypeError(
                    "Please select a valid JSON file to import.",
                    context=f"Content type {upload.content_type} is not accepted",
                )

        content = upload.content
        try:
            if isinstance(content, bytes):
                content = content.decode("utf-8")
            return json.loads(content)
        except (UnicodeDecodeError, ValueError) as e:
            raise UnsupportedMediaTypeError(
                "Failed to parse the import file as JSON",
                context=str(e),
            ) from e

    def backup_db(
        self,
        caller: Caller,
        filename: Optional[str] = None,
        token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        """
        Write a backup on behalf of a caller.

        Raises:
            ForbiddenError: If the caller may not back up; nothing is written
        """
        result = self.backups.backup(caller, filename=filename, token=token)
        return {
            "db": [{
                "filename": result.filename,
                "path": result.path,
                "tables": result.tables,
            }]
        }

    def delete_all(self) -> Dict[str, int]:
        """Remove every row of every current-version table."""
        cleared = self.dataset.clear_all(self.registry.tables_for_version())
        logger.info(f"Deleted {sum(cleared.values())} rows from {len(cleared)} tables")
        return cleared

    def inspect_document(self, raw: Any) -> Dict[str, Any]:
        """Describe an export without importing it: version, chain and table counts."""
        document = self.importer.parse(raw)
        chain = self.resolver.resolve(document.meta.version)
        return {
            "version": document.meta.version,
            "current_version": self.registry.current_version,
            "exported_at": document.meta.exported_at.isoformat(),
            "chain": [f"{s.from_version}->{s.to_version}" for s in chain],
            "tables": document.table_counts(),
        }

    def migrate_document(self, raw: Any) -> ExportDocument:
        """Upgrade an export to the current version's shape without importing it."""
        return self.resolver.migrate(self.importer.parse(raw))
