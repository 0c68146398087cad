"""Capability contract for generator plugins."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

from ..collisions import CollisionResolution
from ..errors import SyncCancelledError
from ..logging import get_logger
from ..models import ResourceDescriptor, RestData, Schema, SourceConfig, Tab
from ..stats import StatsCounter

MANDATORY_CAPABILITIES = ("meta", "generate", "get_schema_documentation", "get_endpoint_documentation")
OPTIONAL_HOOKS = ("init", "post_build", "add_source", "remove_source")


@dataclass(frozen=True)
class PluginMeta:
    """Static plugin metadata returned by ``meta()``."""

    name: str
    version: str
    compat: str
    generator: str
    display_name: Optional[str] = None


@dataclass
class GeneratorContext:
    """Mutable context handed to ``generate`` for one source."""

    root_dir: Path
    source: SourceConfig
    stats_counter: StatsCounter
    potentially_conflicting_operation_ids: FrozenSet[str]
    collisions: CollisionResolution = field(default_factory=CollisionResolution)
    options: Mapping[str, Any] = field(default_factory=dict)
    sources: Sequence[SourceConfig] = ()
    written: List[Path] = field(default_factory=list)
    unchanged: List[Path] = field(default_factory=list)
    cancelled: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)
    cancel_reason: str = "Sync cancelled"

    def cancel(self, reason: str) -> None:
        """Stop the plugin at its next write or stats increment."""
        self.cancel_reason = reason
        self.stats_counter.close(reason)
        self.cancelled.set()

    def check_cancelled(self) -> None:
        if self.cancelled.is_set():
            raise SyncCancelledError(self.cancel_reason, source_id=self.source.id)

    def postfix(self, descriptor: ResourceDescriptor[RestData]) -> str:
        """Postfix for ``descriptor``; empty unless its operation id collides."""
        if descriptor.data.operation_id not in self.potentially_conflicting_operation_ids:
            return ""
        return self.collisions.postfix(descriptor)

    def dump(self, relative_path: str | Path, content: str) -> bool:
        """Write ``content`` under ``root_dir`` unless the file already holds it.

        Returns True when the file was (re)written. Raises
        :class:`SyncCancelledError` once the run has been cancelled.
        """
        self.check_cancelled()
        root = self.root_dir.resolve()
        target = (root / relative_path).resolve()
        if root != target and root not in target.parents:
            raise ValueError(f"Refusing to write outside {root}: {relative_path}")
        if not content.endswith("\n"):
            content += "\n"
        if target.exists() and target.read_text(encoding="utf-8") == content:
            self.unchanged.append(target)
            return False
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        self.written.append(target)
        get_logger("plugins").debug("Wrote %s", target)
        return True


@dataclass
class InitContext:
    root_dir: Path
    sources: Sequence[SourceConfig] = ()
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class InitResult:
    """Returned by ``init``; ``post_init`` runs after all onboarding steps."""

    post_init: Optional[Callable[[], None]] = None


@dataclass
class SourceContext:
    """Context for ``add_source``/``remove_source``."""

    root_dir: Path
    source: SourceConfig
    options: Mapping[str, Any] = field(default_factory=dict)
    server_url: Optional[str] = None


@dataclass
class BuildContext:
    root_dir: Path
    sources: Sequence[SourceConfig] = ()
    options: Mapping[str, Any] = field(default_factory=dict)


@runtime_checkable
class GeneratorPlugin(Protocol):
    """Mandatory capabilities of a generator backend.

    Optional lifecycle hooks (``init``, ``post_build``, ``add_source``,
    ``remove_source``) are looked up with :func:`plugin_hook`; a plugin that does
    not define one needs no work for that lifecycle event. Plugins may expose an
    ``options_schema`` mapping of option name to ``{"type": ..., "default": ...}``.
    """

    def meta(self) -> PluginMeta:
        """Return static metadata."""

    def generate(self, descriptors: Sequence[ResourceDescriptor[Any]], context: GeneratorContext) -> Any:
        """Write artifacts for ``descriptors`` below ``context.root_dir``."""

    def get_schema_documentation(self, descriptor: ResourceDescriptor[Schema]) -> List[Tab]:
        """Return documentation tabs for a schema; no filesystem writes."""

    def get_endpoint_documentation(self, descriptor: ResourceDescriptor[RestData]) -> List[Tab]:
        """Return documentation tabs for an endpoint; no filesystem writes."""


def plugin_hook(plugin: object, name: str) -> Optional[Callable[..., Any]]:
    """Return the optional lifecycle hook ``name`` when the plugin provides one."""
    if name not in OPTIONAL_HOOKS:
        raise ValueError(f"Unknown plugin hook '{name}'")
    hook = getattr(plugin, name, None)
    return hook if callable(hook) else None


def is_generator_plugin(obj: object) -> bool:
    return all(callable(getattr(obj, capability, None)) for capability in MANDATORY_CAPABILITIES)


def options_schema(plugin: object) -> Dict[str, Dict[str, Any]]:
    schema = getattr(plugin, "options_schema", None)
    return dict(schema) if isinstance(schema, Mapping) else {}


__all__ = [
    "BuildContext",
    "GeneratorContext",
    "GeneratorPlugin",
    "InitContext",
    "InitResult",
    "MANDATORY_CAPABILITIES",
    "OPTIONAL_HOOKS",
    "PluginMeta",
    "SourceContext",
    "is_generator_plugin",
    "options_schema",
    "plugin_hook",
]
