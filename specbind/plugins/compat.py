"""Semver range matching for plugin ``compat`` declarations."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from packaging.version import InvalidVersion, Version

_COMPARATOR = re.compile(r"^(\^|~|>=|<=|>|<|=)?\s*v?([0-9][0-9A-Za-z.\-+]*|\*|x|X)$")
_WILDCARDS = {"*", "x", "X"}


def parse_version(value: str) -> Version:
    try:
        return Version(value.strip().lstrip("v"))
    except InvalidVersion as exc:
        raise ValueError(f"Invalid version '{value}'") from exc


def satisfies(version: str, range_expr: str) -> bool:
    """Return True when ``version`` falls inside ``range_expr``.

    Supported: ``*``, exact versions, ``^``/``~`` ranges, comparison operators,
    space separated conjunctions and ``||`` alternatives. ``x``/``*`` segments
    act as wildcards: ``1.x`` matches any 1.y.z and ``^1.2.x`` reads as ``^1.2.0``.
    """
    current = parse_version(version)
    expr = (range_expr or "").strip()
    if not expr:
        return True
    for alternative in expr.split("||"):
        comparators = _tokens(alternative)
        if all(_check(current, token) for token in comparators):
            return True
    return False


def _tokens(alternative: str) -> List[str]:
    # ">= 1.2.0" is written with a gap; glue operators back onto their version.
    raw = alternative.split()
    tokens: List[str] = []
    for part in raw:
        if tokens and tokens[-1] in {"^", "~", ">=", "<=", ">", "<", "="}:
            tokens[-1] += part
        else:
            tokens.append(part)
    return tokens or ["*"]


def _check(current: Version, token: str) -> bool:
    match = _COMPARATOR.match(token)
    if not match:
        raise ValueError(f"Invalid version range component '{token}'")
    operator, raw = match.groups()
    raw, kept = _strip_wildcards(raw)
    if not raw:
        return True
    lower, parts = _expand(raw)
    if operator == "^":
        return lower <= current < _caret_upper(parts)
    if operator == "~":
        return lower <= current < _bump(parts, 2 if kept is None else min(kept, 2))
    if kept is not None and operator in (None, "="):
        return lower <= current < _bump(parts, kept)
    if operator == ">=":
        return current >= lower
    if operator == "<=":
        return current <= lower
    if operator == ">":
        return current > lower
    if operator == "<":
        return current < lower
    return current == lower


def _strip_wildcards(raw: str) -> Tuple[str, Optional[int]]:
    """Cut ``raw`` at its first wildcard segment.

    Returns the remaining version and how many segments it kept, or None for
    the count when ``raw`` has no wildcard.
    """
    segments = raw.split(".")
    for index, segment in enumerate(segments):
        if segment in _WILDCARDS:
            return ".".join(segments[:index]), index
    return raw, None


def _bump(parts: Tuple[int, int, int], kept: int) -> Version:
    major, minor, _ = parts
    if kept <= 1:
        return Version(f"{major + 1}.0.0")
    return Version(f"{major}.{minor + 1}.0")


def _expand(raw: str) -> Tuple[Version, Tuple[int, int, int]]:
    version = parse_version(raw)
    release = tuple(version.release) + (0, 0, 0)
    parts = (int(release[0]), int(release[1]), int(release[2]))
    if len(version.release) < 3 and not version.pre and not version.dev:
        version = Version(".".join(str(part) for part in parts))
    return version, parts


def _caret_upper(parts: Tuple[int, int, int]) -> Version:
    major, minor, patch = parts
    if major > 0:
        return Version(f"{major + 1}.0.0")
    if minor > 0:
        return Version(f"0.{minor + 1}.0")
    return Version(f"0.0.{patch + 1}")


__all__ = ["parse_version", "satisfies"]
