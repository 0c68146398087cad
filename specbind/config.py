"""Configuration loading for specbind (.specbind.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError
from .models import SourceConfig

CONFIG_FILE_NAME = ".specbind.yml"
DEFAULT_OUTPUT_DIR = ".specbind/generated"
GENERATOR_ENV_VAR = "SPECBIND_GENERATOR"


@dataclass
class SpecbindConfig:
    """Represents the project settings defined in .specbind.yml."""

    root: Path
    sources: List[SourceConfig] = field(default_factory=list)
    generators: List[str] = field(default_factory=list)
    generator_options: Dict[str, Any] = field(default_factory=dict)
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    concurrency: int = 1
    timeout: Optional[float] = None
    path: Optional[Path] = None

    @property
    def generator(self) -> Optional[str]:
        return self.generators[0] if self.generators else None

    @property
    def output_path(self) -> Path:
        return self.output_dir if self.output_dir.is_absolute() else self.root / self.output_dir

    def source(self, source_id: str) -> SourceConfig:
        for source in self.sources:
            if source.id == source_id:
                return source
        raise ConfigError(f"Unknown source '{source_id}'")

    def has_source(self, source_id: str) -> bool:
        return any(source.id == source_id for source in self.sources)

    def options_for(self, generator: str) -> Dict[str, Any]:
        """Options for ``generator``.

        ``generatorOptions`` may be a flat mapping shared by all generators or
        a mapping keyed by generator name.
        """
        nested = self.generator_options.get(generator)
        if isinstance(nested, dict):
            return dict(nested)
        return {key: value for key, value in self.generator_options.items() if key not in self.generators}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "sources": [source.to_dict() for source in self.sources],
            "generator": self.generators[0] if len(self.generators) == 1 else list(self.generators),
        }
        if self.generator_options:
            data["generatorOptions"] = dict(self.generator_options)
        if self.output_dir != Path(DEFAULT_OUTPUT_DIR):
            data["output_dir"] = self.output_dir.as_posix()
        if self.concurrency != 1:
            data["concurrency"] = self.concurrency
        if self.timeout is not None:
            data["timeout"] = self.timeout
        return data


def load_config(config_path: Path, *, environ: Optional[Dict[str, str]] = None) -> SpecbindConfig:
    """Load configuration from disk.

    ``config_path`` may point at the project directory or the config file.
    """
    config_file = resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        raise ConfigError(f"No {CONFIG_FILE_NAME} found in {root}")

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILE_NAME} must contain a mapping at the root")

    sources = _parse_sources(data.get("sources"))

    env = os.environ if environ is None else environ
    override = env.get(GENERATOR_ENV_VAR)
    generators = _as_str_list(override.split(",")) if override else _as_str_list(data.get("generator"))
    generators = [name.strip() for name in generators if name.strip()]
    if not generators:
        raise ConfigError(f"{CONFIG_FILE_NAME} does not name a generator")

    options_data = data.get("generatorOptions", data.get("generator_options"))
    if options_data is not None and not isinstance(options_data, dict):
        raise ConfigError("generatorOptions must be a mapping")

    concurrency = _as_int(data.get("concurrency"))
    if data.get("concurrency") is not None and (concurrency is None or concurrency < 1):
        raise ConfigError("concurrency must be a positive integer")

    timeout = _as_float(data.get("timeout"))
    if data.get("timeout") is not None and (timeout is None or timeout <= 0):
        raise ConfigError("timeout must be a positive number of seconds")

    output_dir = _as_str(data.get("output_dir", data.get("outputDir")))

    return SpecbindConfig(
        root=root,
        sources=sources,
        generators=generators,
        generator_options=dict(options_data or {}),
        output_dir=Path(output_dir) if output_dir else Path(DEFAULT_OUTPUT_DIR),
        concurrency=concurrency or 1,
        timeout=timeout,
        path=config_file,
    )


def save_config(config: SpecbindConfig) -> Path:
    """Write ``config`` back to its file and return the path."""
    target = config.path or (config.root / CONFIG_FILE_NAME)
    text = yaml.safe_dump(config.to_dict(), sort_keys=False, default_flow_style=False)
    target.write_text(text, encoding="utf-8")
    return target


def resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILE_NAME).resolve()
    if config_path.suffix not in {".yml", ".yaml"}:
        return (config_path.parent / CONFIG_FILE_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _parse_sources(value: Any) -> List[SourceConfig]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError("sources must be a list")
    sources: List[SourceConfig] = []
    seen: set[str] = set()
    for index, entry in enumerate(value):
        entry = _as_dict(entry)
        source_id = _as_str(entry.get("id"))
        spec_url = _as_str(entry.get("specUrl", entry.get("spec_url")))
        if not source_id:
            raise ConfigError(f"sources[{index}] is missing an id")
        if not spec_url:
            raise ConfigError(f"Source '{source_id}' is missing specUrl")
        if source_id in seen:
            raise ConfigError(f"Duplicate source id '{source_id}'")
        seen.add(source_id)
        sources.append(SourceConfig(id=source_id, name=_as_str(entry.get("name")) or source_id, spec_url=spec_url))
    return sources


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigError",
    "DEFAULT_OUTPUT_DIR",
    "GENERATOR_ENV_VAR",
    "SpecbindConfig",
    "load_config",
    "resolve_config_path",
    "save_config",
]
