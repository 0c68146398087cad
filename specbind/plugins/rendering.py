"""Jinja2 rendering shared by the bundled plugins."""

from __future__ import annotations

import json
from typing import Any, Mapping

from jinja2 import DictLoader, Environment, StrictUndefined

from ..naming import camel_case, constant_case, kebab_case, pascal_case


class TemplateRenderer:
    """Renders a plugin's in-module template table with naming filters."""

    def __init__(self, templates: Mapping[str, str]) -> None:
        self._env = Environment(
            loader=DictLoader(dict(templates)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self._env.filters.update(
            camel=camel_case,
            pascal=pascal_case,
            kebab=kebab_case,
            constant=constant_case,
            tojson_sorted=_tojson_sorted,
        )

    def render(self, name: str, /, **context: Any) -> str:
        return self._env.get_template(name).render(**context)


def _tojson_sorted(value: Any, indent: int = 2) -> str:
    return json.dumps(value, indent=indent, sort_keys=True)


__all__ = ["TemplateRenderer"]
