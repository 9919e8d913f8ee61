"""Migration resolver: chains schema history steps up to the current version."""

import logging
from collections import deque
from typing import Dict, List, Optional

from ..exceptions import UnsupportedFormatError, UnsupportedVersionError
from ..models.document import DocumentMeta, ExportDocument
from ..models.migration import MigrationStep
from ..models.schema import parse_major
from .history import SCHEMA_HISTORY
from .schema_registry import SchemaRegistry, VersionRef
from .transformer import TransformEngine

logger = logging.getLogger(__name__)


class MigrationResolver:
    """
    Resolves and applies the chain of steps that brings an export document
    from its declared version to the registry's current version.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        steps: Optional[List[MigrationStep]] = None,
        engine: Optional[TransformEngine] = None
    ):
        """
        Initialize the resolver.

        Args:
            registry: Schema registry holding the current version
            steps: Migration steps (defaults to the built-in schema history)
            engine: Transform engine used to apply steps
        """
        self.registry = registry
        self.engine = engine or TransformEngine()
        self._steps: Dict[int, List[MigrationStep]] = {}

        for step in (SCHEMA_HISTORY if steps is None else steps):
            self.register_step(step)

    def register_step(self, step: MigrationStep) -> None:
        """Register a step; a later step for the same pair replaces the earlier one."""
        outgoing = self._steps.setdefault(step.from_major, [])
        outgoing[:] = [s for s in outgoing if s.to_major != step.to_major]
        outgoing.append(step)

    @property
    def steps(self) -> List[MigrationStep]:
        return [step for major in sorted(self._steps) for step in self._steps[major]]

    @property
    def oldest_supported(self) -> int:
        """Oldest major version any chain can start from."""
        return min(list(self._steps) + [self.registry.current_major])

    def resolve(self, from_version: VersionRef) -> List[MigrationStep]:
        """
        Build the shortest chain of steps from a version to the current one.

        Raises:
            UnsupportedFormatError: If the version marker is not recognizable
            UnsupportedVersionError: If the version is newer than current or
                no chain leads from it to current
        """
        try:
            start = parse_major(from_version)
        except ValueError as e:
            raise UnsupportedFormatError(
                "Import file has no recognizable version marker",
                context=str(e),
            ) from e

        target = self.registry.current_major

        if start > target:
            raise UnsupportedVersionError(
                f"Export version {from_version} is newer than this system "
                f"({self.registry.current_version})",
                context="Upgrade before importing this file",
            )
        if start == target:
            return []

        # Breadth-first search over step edges gives the shortest chain.
        previous: Dict[int, tuple] = {start: None}
        queue = deque([start])
        while queue:
            major = queue.popleft()
            if major == target:
                break
            for step in self._steps.get(major, []):
                if step.to_major > target or step.to_major in previous:
                    continue
                previous[step.to_major] = (major, step)
                queue.append(step.to_major)

        if target not in previous:
            raise UnsupportedVersionError(
                f"Cannot import exports from version {from_version}",
                context=f"Oldest supported version is {self.oldest_supported}.x",
            )

        chain: List[MigrationStep] = []
        node = target
        while previous[node] is not None:
            node, step = previous[node]
            chain.append(step)
        chain.reverse()
        return chain

    def migrate(self, document: ExportDocument) -> ExportDocument:
        """
        Bring a document to the current shape.

        The input document is left untouched.
        """
        chain = self.resolve(document.meta.version)
        if not chain:
            return document.copy()

        logger.info(
            f"Migrating export from {document.meta.version} via "
            f"{' -> '.join([chain[0].from_version] + [s.to_version for s in chain])}"
        )
        data = self.engine.apply_steps(chain, document.data)
        extra = dict(document.meta.extra)
        extra["source_version"] = document.meta.version
        return ExportDocument(
            meta=DocumentMeta(
                version=self.registry.current_version,
                exported_at=document.meta.exported_at,
                extra=extra,
            ),
            data=data,
        )
