"""Fetch and decode OpenAPI documents referenced by source configurations."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import unquote, urlparse
from urllib.request import Request, urlopen

import yaml

from ..errors import SpecFetchError, SpecParseError
from ..logging import get_logger


class SpecResolverProtocol(Protocol):
    """Anything that turns a spec URL into a parsed document."""

    def resolve(self, spec_url: str) -> Dict[str, Any]:
        """Return the decoded document or raise SpecFetchError/SpecParseError."""


class SpecResolver:
    """Loads specs over HTTP(S), from ``file://`` URLs or from local paths.

    Relative paths are resolved against ``base_dir`` (the project root).
    No retries are attempted; callers treat failures as terminal for the source.
    """

    def __init__(self, base_dir: Path | None = None, *, timeout: float = 30.0) -> None:
        self.base_dir = base_dir
        self.timeout = timeout
        self.logger = get_logger("openapi.resolver")

    def resolve(self, spec_url: str) -> Dict[str, Any]:
        text = self.fetch(spec_url)
        return decode_document(text, origin=spec_url)

    def fetch(self, spec_url: str) -> str:
        parsed = urlparse(spec_url)
        if parsed.scheme in {"http", "https"}:
            return self._fetch_http(spec_url)
        if parsed.scheme == "file":
            return self._read_file(Path(unquote(parsed.path)))
        if parsed.scheme and len(parsed.scheme) > 1:
            raise SpecFetchError(f"Unsupported spec URL scheme '{parsed.scheme}' in {spec_url}")
        path = Path(spec_url).expanduser()
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return self._read_file(path)

    def _fetch_http(self, url: str) -> str:
        self.logger.debug("Fetching spec from %s", url)
        request = Request(url, headers={"Accept": "application/json, application/yaml;q=0.9, */*;q=0.1"})
        try:
            with urlopen(request, timeout=self.timeout) as response:  # nosec B310 - user configured URL
                charset = response.headers.get_content_charset() or "utf-8"
                return response.read().decode(charset)
        except HTTPError as exc:
            raise SpecFetchError(f"{url} returned HTTP {exc.code}") from exc
        except URLError as exc:
            raise SpecFetchError(f"Unable to reach {url}: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise SpecFetchError(f"Unable to fetch {url}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise SpecParseError(f"{url} did not return text: {exc}") from exc

    def _read_file(self, path: Path) -> str:
        self.logger.debug("Reading spec from %s", path)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise SpecFetchError(f"Spec file not found: {path}") from exc
        except UnicodeDecodeError as exc:
            raise SpecParseError(f"Spec file {path} is not UTF-8 text") from exc
        except OSError as exc:
            raise SpecFetchError(f"Unable to read {path}: {exc}") from exc


def decode_document(text: str, *, origin: Optional[str] = None) -> Dict[str, Any]:
    """Decode JSON (preferred) or YAML text into a mapping."""
    label = origin or "document"
    if not text.strip():
        raise SpecParseError(f"{label} is empty")
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError:
        try:
            loaded = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SpecParseError(f"{label} is neither JSON nor YAML: {exc}") from exc
    if not isinstance(loaded, dict):
        raise SpecParseError(f"{label} must decode to a mapping")
    return loaded


__all__ = ["SpecResolver", "SpecResolverProtocol", "decode_document"]
