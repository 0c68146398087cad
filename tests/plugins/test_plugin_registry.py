"""Tests for generator plugin discovery."""

from __future__ import annotations

from typing import Any, List

import pytest

from specbind.errors import ConfigError
from specbind.models import Tab
from specbind.plugins import (
    NestPlugin,
    NextPlugin,
    PluginMeta,
    ReactPlugin,
    available_plugins,
    discover_plugins,
    plugin_hook,
    register_plugin,
    unregister_plugin,
)
from specbind.plugins.base import is_generator_plugin, options_schema


class _CustomPlugin:
    def meta(self) -> PluginMeta:
        return PluginMeta(name="custom", version="1.0.0", compat="*", generator="custom")

    def generate(self, descriptors: Any, context: Any) -> None:
        return None

    def get_schema_documentation(self, descriptor: Any) -> List[Tab]:
        return []

    def get_endpoint_documentation(self, descriptor: Any) -> List[Tab]:
        return []


def test_builtin_plugins_are_discovered_in_requested_order() -> None:
    plugins = discover_plugins(["nest", "react", "NEXT"])

    assert list(plugins) == ["nest", "react", "next"]
    assert isinstance(plugins["nest"], NestPlugin)
    assert isinstance(plugins["react"], ReactPlugin)
    assert isinstance(plugins["next"], NextPlugin)


def test_unknown_plugin_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="Unknown generator plugins requested: vue"):
        discover_plugins(["react", "vue"])


def test_registered_factories_are_used() -> None:
    register_plugin("custom", _CustomPlugin)
    try:
        plugins = discover_plugins(["custom"])
        assert isinstance(plugins["custom"], _CustomPlugin)
        assert "custom" in available_plugins()
    finally:
        unregister_plugin("custom")

    with pytest.raises(ConfigError):
        discover_plugins(["custom"])


def test_factories_must_produce_plugins() -> None:
    register_plugin("broken", lambda: object())
    try:
        with pytest.raises(ConfigError, match="does not implement"):
            discover_plugins(["broken"])
    finally:
        unregister_plugin("broken")


def test_optional_hooks_and_option_schemas() -> None:
    custom = _CustomPlugin()
    nest = NestPlugin()
    next_plugin = NextPlugin()

    assert is_generator_plugin(custom)
    assert plugin_hook(custom, "init") is None
    assert plugin_hook(nest, "init") is not None
    assert plugin_hook(nest, "add_source") is None
    assert plugin_hook(next_plugin, "remove_source") is not None
    assert options_schema(custom) == {}
    assert options_schema(next_plugin)["apiRoutesDir"]["default"] == "app/api/(generated)"
    with pytest.raises(ValueError):
        plugin_hook(custom, "generate")
