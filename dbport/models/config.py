"""Process-wide configuration for dbport."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .migration import ImportMode

ENV_PREFIX = "DBPORT_"


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class PortConfig:
    """
    Configuration for export, import and backup.

    Frozen: the current schema version and everything else here is read-only
    once the process has started.
    """
    current_version: str = "5.0"
    backup_dir: str = "./data/backups"
    site_slug: str = "site"
    batch_size: int = 100
    import_mode: ImportMode = ImportMode.MERGE
    trusted_integrations: List[str] = field(default_factory=lambda: ["db-backup"])
    admin_roles: List[str] = field(default_factory=lambda: ["Owner", "Administrator"])
    schemas_dir: Optional[str] = None
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "current_version": self.current_version,
            "backup_dir": self.backup_dir,
            "site_slug": self.site_slug,
            "batch_size": self.batch_size,
            "import_mode": self.import_mode.value,
            "trusted_integrations": list(self.trusted_integrations),
            "admin_roles": list(self.admin_roles),
            "schemas_dir": self.schemas_dir,
            "log_level": self.log_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PortConfig":
        """Create from dictionary representation."""
        defaults = cls()
        return cls(
            current_version=str(data.get("current_version", defaults.current_version)),
            backup_dir=data.get("backup_dir", defaults.backup_dir),
            site_slug=data.get("site_slug", defaults.site_slug),
            batch_size=int(data.get("batch_size", defaults.batch_size)),
            import_mode=ImportMode(data.get("import_mode", defaults.import_mode.value)),
            trusted_integrations=list(data.get("trusted_integrations", defaults.trusted_integrations)),
            admin_roles=list(data.get("admin_roles", defaults.admin_roles)),
            schemas_dir=data.get("schemas_dir", defaults.schemas_dir),
            log_level=data.get("log_level", defaults.log_level),
        )

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "PortConfig":
        """Build from DBPORT_* environment variables."""
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {}

        for key in ("current_version", "backup_dir", "site_slug", "batch_size",
                    "import_mode", "schemas_dir", "log_level"):
            value = environ.get(f"{ENV_PREFIX}{key.upper()}")
            if value:
                data[key] = value

        for key in ("trusted_integrations", "admin_roles"):
            value = environ.get(f"{ENV_PREFIX}{key.upper()}")
            if value:
                data[key] = _split(value)

        return cls.from_dict(data)
