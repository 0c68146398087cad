"""Generator plugin implementations and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable, List, Sequence

from ..errors import ConfigError
from .base import (
    BuildContext,
    GeneratorContext,
    GeneratorPlugin,
    InitContext,
    InitResult,
    PluginMeta,
    SourceContext,
    is_generator_plugin,
    options_schema,
    plugin_hook,
)
from .nest import NestPlugin
from .next import NextPlugin
from .react import ReactPlugin

_ENTRY_POINT_GROUP = "specbind.plugins"

_BUILTIN_FACTORIES: Dict[str, Callable[[], GeneratorPlugin]] = {
    "react": ReactPlugin,
    "next": NextPlugin,
    "nest": NestPlugin,
}
_REGISTERED: Dict[str, Callable[[], GeneratorPlugin]] = {}


def register_plugin(name: str, factory: Callable[[], GeneratorPlugin]) -> None:
    """Make ``factory`` available under ``name``; overrides built-ins of the same name."""
    if not name:
        raise ValueError("Plugin name must be a non-empty string")
    _REGISTERED[name.lower()] = factory


def unregister_plugin(name: str) -> None:
    _REGISTERED.pop(name.lower(), None)


def available_plugins() -> List[str]:
    names = set(_BUILTIN_FACTORIES) | set(_REGISTERED)
    names.update(entry.name.lower() for entry in _iter_entry_points())
    return sorted(names)


def discover_plugins(enabled: Sequence[str]) -> Dict[str, GeneratorPlugin]:
    """Return instantiated plugins keyed by generator name, in ``enabled`` order."""

    plugins: Dict[str, GeneratorPlugin] = {}
    missing: List[str] = []
    entry_points = {entry.name.lower(): entry for entry in _iter_entry_points()}

    for name in enabled:
        key = name.lower()
        if key in plugins:
            continue
        if key in _REGISTERED:
            plugins[key] = _coerce_plugin(key, _REGISTERED[key])
        elif key in _BUILTIN_FACTORIES:
            plugins[key] = _coerce_plugin(key, _BUILTIN_FACTORIES[key])
        elif key in entry_points:
            try:
                loaded = entry_points[key].load()
            except Exception as exc:
                raise ConfigError(f"Failed to load generator plugin entry point '{name}': {exc}") from exc
            plugins[key] = _coerce_plugin(key, loaded)
        else:
            missing.append(name)

    if missing:
        known = ", ".join(available_plugins())
        raise ConfigError(f"Unknown generator plugins requested: {', '.join(missing)} (available: {known})")
    return plugins


def _coerce_plugin(name: str, obj: object) -> GeneratorPlugin:
    if is_generator_plugin(obj) and not isinstance(obj, type):
        return obj  # type: ignore[return-value]
    if callable(obj):
        instance = obj()
        if is_generator_plugin(instance):
            return instance
    raise ConfigError(f"Generator plugin '{name}' does not implement the plugin capabilities")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    entry_points = metadata.entry_points()
    if hasattr(entry_points, "select"):
        return entry_points.select(group=_ENTRY_POINT_GROUP)  # type: ignore[return-value]
    return entry_points.get(_ENTRY_POINT_GROUP, [])  # type: ignore[return-value]


__all__ = [
    "BuildContext",
    "GeneratorContext",
    "GeneratorPlugin",
    "InitContext",
    "InitResult",
    "NestPlugin",
    "NextPlugin",
    "PluginMeta",
    "ReactPlugin",
    "SourceContext",
    "available_plugins",
    "discover_plugins",
    "options_schema",
    "plugin_hook",
    "register_plugin",
    "unregister_plugin",
]
