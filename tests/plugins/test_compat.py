"""Tests for specbind.plugins.compat."""

from __future__ import annotations

import pytest

from specbind.plugins.compat import parse_version, satisfies


@pytest.mark.parametrize(
    "version, range_expr, expected",
    [
        ("0.1.0", "^0.1.0", True),
        ("0.1.5", "^0.1.0", True),
        ("0.2.0", "^0.1.0", False),
        ("1.4.2", "^1.2", True),
        ("2.0.0", "^1.2", False),
        ("0.0.3", "^0.0.3", True),
        ("0.0.4", "^0.0.3", False),
        ("1.2.9", "~1.2.0", True),
        ("1.3.0", "~1.2.0", False),
        ("1.0.0", ">=1.0.0 <2.0.0", True),
        ("2.0.0", ">= 1.0.0 < 2.0.0", False),
        ("3.1.0", "^1.0.0 || ^3.0.0", True),
        ("5.0.0", "*", True),
        ("1.2.3", "1.2.3", True),
        ("1.2.4", "=1.2.3", False),
        ("1.2.3", "", True),
        ("1.9.0", "1.x", True),
        ("2.0.0", "1.x", False),
        ("1.2.7", "1.2.x", True),
        ("1.3.0", "1.2.X", False),
        ("1.5.0", "^1.2.x", True),
        ("1.1.0", "^1.2.x", False),
        ("1.4.0", ">=1.x <2.x", True),
        ("1.9.1", "~1.x", True),
    ],
)
def test_satisfies(version: str, range_expr: str, expected: bool) -> None:
    assert satisfies(version, range_expr) is expected


def test_invalid_inputs_raise_value_error() -> None:
    with pytest.raises(ValueError):
        parse_version("not-a-version")
    with pytest.raises(ValueError):
        satisfies("1.0.0", "~>1.0")
