"""Tests for specbind.openapi.resolver."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from specbind.errors import SpecFetchError, SpecParseError
from specbind.openapi.resolver import SpecResolver, decode_document


def test_resolves_relative_paths_against_base_dir(tmp_path: Path) -> None:
    (tmp_path / "spec.json").write_text(json.dumps({"openapi": "3.0.0"}), encoding="utf-8")

    resolver = SpecResolver(base_dir=tmp_path)

    assert resolver.resolve("spec.json") == {"openapi": "3.0.0"}


def test_resolves_file_urls_and_yaml(tmp_path: Path) -> None:
    spec = tmp_path / "spec.yaml"
    spec.write_text("openapi: 3.1.0\ninfo:\n  title: Yaml\n", encoding="utf-8")

    document = SpecResolver().resolve(spec.as_uri())

    assert document["info"]["title"] == "Yaml"


def test_missing_file_is_a_fetch_error(tmp_path: Path) -> None:
    with pytest.raises(SpecFetchError, match="not found"):
        SpecResolver(base_dir=tmp_path).resolve("missing.json")


def test_unsupported_scheme_is_a_fetch_error() -> None:
    with pytest.raises(SpecFetchError, match="Unsupported spec URL scheme"):
        SpecResolver().resolve("ftp://example.com/spec.json")


def test_unreachable_host_is_a_fetch_error() -> None:
    resolver = SpecResolver(timeout=0.5)
    with pytest.raises(SpecFetchError):
        resolver.resolve("http://127.0.0.1:9/openapi.json")


@pytest.mark.parametrize("text", ["", "   ", "- a\n- b\n", "just a string", "key: [unclosed"])
def test_decode_rejects_non_mapping_documents(text: str) -> None:
    with pytest.raises(SpecParseError):
        decode_document(text, origin="inline")
