from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from snapshot_export.core.config.export_config import ExportConfig
from snapshot_export.core.domain import layout
from snapshot_export.core.domain.errors import PlanningError
from snapshot_export.core.events.event_bus import EventBus
from snapshot_export.export.io.registry import StorageRegistry, default_registry

if TYPE_CHECKING:
    from snapshot_export.core.ports.storage import Storage

# Default source root when no copy-from URI is configured.
ROOT_DIR_ENV = "SNAPSHOT_EXPORT_ROOT_DIR"


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def resolve_copy_from(config: ExportConfig) -> str:
    """Return the configured source root, falling back to the environment."""
    if config.copy_from:
        return config.copy_from

    root = os.environ.get(ROOT_DIR_ENV)
    if not root:
        raise PlanningError(
            f"No copy-from location given and {ROOT_DIR_ENV} is not set"
        )
    return root


@dataclass(frozen=True, slots=True)
class ExportContext:
    """
    Immutable runtime context for one export invocation.

    One ExportContext == one export run. It is threaded explicitly through
    planner, copier, assembler and verifier; nothing in the engine keeps
    state outside of it.
    """

    # Identity
    export_id: str
    config: ExportConfig

    # Storage
    source: Storage
    source_root: str
    source_uri: str
    target: Storage
    target_root: str
    target_uri: str

    # Collaborators
    event_bus: EventBus
    clock: Callable[[], int] = field(default=now_ms)

    @property
    def snapshot_name(self) -> str:
        return self.config.snapshot

    @property
    def target_name(self) -> str:
        return self.config.target_name

    @property
    def same_scheme(self) -> bool:
        return self.source.scheme == self.target.scheme

    @property
    def source_snapshot_dir(self) -> str:
        return layout.snapshot_dir(self.source_root, self.snapshot_name)

    @property
    def target_snapshot_dir(self) -> str:
        return layout.snapshot_dir(self.target_root, self.target_name)

    @property
    def staging_snapshot_dir(self) -> str:
        return layout.working_snapshot_dir(self.target_root, self.target_name)

    @property
    def working_snapshot_dir(self) -> str:
        """Directory the export writes the snapshot tree into."""
        if self.config.skip_tmp:
            return self.target_snapshot_dir
        return self.staging_snapshot_dir

    def describe(self) -> dict[str, Any]:
        return {
            "export_id": self.export_id,
            "snapshot": self.snapshot_name,
            "target": self.target_name,
            "copy_from": self.source_uri,
            "copy_to": self.target_uri,
        }


def build_export_context(
    config: ExportConfig,
    *,
    registry: StorageRegistry | None = None,
    event_bus: EventBus | None = None,
    clock: Callable[[], int] | None = None,
    export_id: str | None = None,
) -> ExportContext:
    """Resolve storage URIs and assemble the context of one export."""
    registry = registry or default_registry()

    source_uri = resolve_copy_from(config)

    try:
        source = registry.resolve(source_uri)
        target = registry.resolve(config.copy_to)
    except ValueError as exc:
        raise PlanningError(str(exc)) from exc

    return ExportContext(
        export_id=export_id or f"export-{uuid.uuid4().hex[:12]}",
        config=config,
        source=source.storage,
        source_root=source.root,
        source_uri=source_uri,
        target=target.storage,
        target_root=target.root,
        target_uri=config.copy_to,
        event_bus=event_bus or EventBus(),
        clock=clock or now_ms,
    )
