"""Identifier helpers used when turning OpenAPI names into generated symbols."""

from __future__ import annotations

import re
from typing import List

_WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z0-9])|[A-Z]?[a-z0-9]+|[A-Z]+")


def split_words(value: str) -> List[str]:
    """Split ``value`` on separators and camel-case boundaries."""
    return _WORD_PATTERN.findall(value or "")


def camel_case(value: str) -> str:
    words = split_words(value)
    if not words:
        return ""
    head, *rest = words
    return head.lower() + "".join(word[:1].upper() + word[1:].lower() for word in rest)


def pascal_case(value: str) -> str:
    return "".join(word[:1].upper() + word[1:].lower() for word in split_words(value))


def snake_case(value: str) -> str:
    return "_".join(word.lower() for word in split_words(value))


def kebab_case(value: str) -> str:
    return "-".join(word.lower() for word in split_words(value))


def constant_case(value: str) -> str:
    return "_".join(word.upper() for word in split_words(value))


__all__ = [
    "camel_case",
    "constant_case",
    "kebab_case",
    "pascal_case",
    "snake_case",
    "split_words",
]
