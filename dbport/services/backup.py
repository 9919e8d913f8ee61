"""Backup writer: privileged export persisted to the backup directory."""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import (
    ForbiddenError,
    InvalidFilenameError,
    NotFoundError,
    StorageError,
)
from ..models.record import BackupResult
from .cancellation import CancellationToken
from .exporter import Exporter

logger = logging.getLogger(__name__)


@dataclass
class Caller:
    """Who is asking: a staff user or an integration."""
    kind: str  # "user" or "integration"
    slug: str
    role: Optional[str] = None

    @classmethod
    def integration(cls, slug: str) -> "Caller":
        return cls(kind="integration", slug=slug)

    @classmethod
    def user(cls, slug: str, role: Optional[str] = None) -> "Caller":
        return cls(kind="user", slug=slug, role=role)


class Authorizer(ABC):
    """Decides whether a caller may write backups."""

    @abstractmethod
    def may_backup(self, caller: Caller) -> bool:
        pass


class BackupPolicy(Authorizer):
    """Trusted integrations and admin roles may back up; nobody else."""

    def __init__(self, trusted_integrations: List[str], admin_roles: List[str]):
        self.trusted_integrations = set(trusted_integrations)
        self.admin_roles = set(admin_roles)

    def may_backup(self, caller: Caller) -> bool:
        if caller.kind == "integration":
            return caller.slug in self.trusted_integrations
        if caller.kind == "user":
            return caller.role in self.admin_roles
        return False


class BackupWriter:
    """
    Writes full exports to JSON files under one directory.

    Authorization is checked before anything is exported, so a denied
    call has no side effect.
    """

    def __init__(
        self,
        exporter: Exporter,
        backup_dir: str,
        authorizer: Authorizer,
        site_slug: str = "site"
    ):
        self.exporter = exporter
        self.backup_dir = Path(backup_dir)
        self.authorizer = authorizer
        self.site_slug = site_slug

    def default_filename(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        return f"{self.site_slug}.{now.strftime('%Y-%m-%d-%H-%M-%S')}.json"

    def sanitize_filename(self, filename: Optional[str]) -> str:
        """
        Validate a caller-supplied filename and enforce the .json extension.

        Raises:
            InvalidFilenameError: If the name is empty or escapes the backup directory
        """
        if filename is None:
            return self.default_filename()

        name = str(filename).strip()
        if not name:
            raise InvalidFilenameError("Backup filename cannot be empty")
        if "/" in name or "\\" in name or ".." in name or "\x00" in name or name.startswith("."):
            raise InvalidFilenameError(
                "Backup filename is not allowed",
                context=f"Rejected filename: {filename!r}",
            )
        if not name.lower().endswith(".json"):
            name = f"{name}.json"
        return name

    def backup(
        self,
        caller: Caller,
        filename: Optional[str] = None,
        token: Optional[CancellationToken] = None
    ) -> BackupResult:
        """
        Export the full dataset and write it to the backup directory.

        Raises:
            ForbiddenError: If the caller may not back up
            InvalidFilenameError: If the filename is rejected
            StorageError: If writing the file fails
        """
        if not self.authorizer.may_backup(caller):
            logger.warning(f"Backup denied for {caller.kind} '{caller.slug}'")
            raise ForbiddenError(
                "You do not have permission to backup the database",
                context=f"{caller.kind} '{caller.slug}' is not allowed to write backups",
            )

        name = self.sanitize_filename(filename)
        document = self.exporter.export(token=token)
        path = self.backup_dir / name

        self._write_atomic(path, document.to_wire())
        logger.info(f"Backup written to {path} ({document.total_records} records)")

        return BackupResult(
            filename=name,
            path=str(path),
            tables=document.table_counts(),
        )

    def read(self, filename: str) -> Dict[str, Any]:
        """
        Load a stored backup by name.

        Raises:
            NotFoundError: If no backup with that name exists
            StorageError: If the file cannot be read or parsed
        """
        name = self.sanitize_filename(filename)
        path = self.backup_dir / name
        if not path.is_file():
            raise NotFoundError(
                "Backup file not found",
                context=f"No backup named {name}",
            )
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not read backup {name}", context=str(e)) from e

    def list_backups(self) -> List[str]:
        """Backup filenames, newest first."""
        if not self.backup_dir.is_dir():
            return []
        files = sorted(
            self.backup_dir.glob("*.json"),
            key=lambda p: (p.stat().st_mtime, p.name),
            reverse=True,
        )
        return [p.name for p in files]

    def _write_atomic(self, path: Path, payload: Dict[str, Any]) -> None:
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, default=str)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Could not write backup {path.name}", context=str(e)) from e
