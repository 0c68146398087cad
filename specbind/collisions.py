"""Detect operation id collisions and assign deterministic postfixes.

Operations that share an ``operation_id`` within a source are content
negotiation variants of the same endpoint. Generated symbols for those
variants get a postfix built from the ``(content_type, response_type)`` pair:

    ``$<content code>_<response code>``

Common media types map to short codes (``application/json`` -> ``json``,
``text/csv`` -> ``csv``); other media types use their camel-cased subtype and
absent types use ``none``. When two different pairs of one group would render
the same postfix (``text/csv`` and ``application/csv`` for example) every
clashing member additionally gets a short SHA-1 of its raw pair. The result
depends only on the set of pairs in the group, never on iteration order.
"""

from __future__ import annotations

import hashlib
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import DuplicateDescriptorError
from .models import ResourceDescriptor, RestData
from .naming import camel_case

Pair = Tuple[Optional[str], Optional[str]]

MEDIA_CODES: Mapping[str, str] = {
    "application/json": "json",
    "multipart/form-data": "formData",
    "application/x-www-form-urlencoded": "form",
    "application/octet-stream": "binary",
    "application/xml": "xml",
    "application/pdf": "pdf",
    "text/plain": "txt",
    "text/html": "html",
    "text/css": "css",
    "text/javascript": "js",
    "text/csv": "csv",
    "text/event-stream": "sse",
    "*/*": "any",
}
ABSENT_CODE = "none"
_HASH_LENGTHS = (6, 10, 16, 40)


@dataclass(frozen=True)
class CollisionResolution:
    """Outcome of collision resolution for one source."""

    conflicting_operation_ids: FrozenSet[str] = frozenset()
    postfixes: Mapping[str, str] = field(default_factory=dict)

    def postfix(self, descriptor: ResourceDescriptor[Any]) -> str:
        return self.postfixes.get(descriptor.id, "")

    def is_conflicting(self, operation_id: str) -> bool:
        return operation_id in self.conflicting_operation_ids


def media_code(media_type: Optional[str]) -> str:
    """Return the readable code for one media type."""
    if not media_type:
        return ABSENT_CODE
    essence = media_type.split(";", 1)[0].strip().lower()
    if essence in MEDIA_CODES:
        return MEDIA_CODES[essence]
    subtype = essence.split("/", 1)[-1]
    return camel_case(subtype) or "media"


def generate_postfix(content_type: Optional[str], response_type: Optional[str]) -> str:
    """Readable postfix for a negotiation pair, before in-group disambiguation."""
    return f"${media_code(content_type)}_{media_code(response_type)}"


def rest_descriptors(descriptors: Iterable[ResourceDescriptor[Any]]) -> List[ResourceDescriptor[RestData]]:
    return [descriptor for descriptor in descriptors if isinstance(descriptor.data, RestData)]


def find_conflicts(descriptors: Iterable[ResourceDescriptor[Any]]) -> FrozenSet[str]:
    """Return the ConflictSet: operation ids used by two or more REST descriptors."""
    counts: Dict[str, int] = defaultdict(int)
    for descriptor in rest_descriptors(descriptors):
        counts[descriptor.data.operation_id] += 1
    return frozenset(operation_id for operation_id, count in counts.items() if count >= 2)


def resolve_collisions(
    descriptors: Sequence[ResourceDescriptor[Any]],
    *,
    source_id: Optional[str] = None,
) -> CollisionResolution:
    """Compute the ConflictSet and a postfix for every REST descriptor.

    Raises ``DuplicateDescriptorError`` when two descriptors share operation id,
    content type and response type.
    """
    groups: Dict[str, List[ResourceDescriptor[RestData]]] = defaultdict(list)
    for descriptor in rest_descriptors(descriptors):
        groups[descriptor.data.operation_id].append(descriptor)

    postfixes: Dict[str, str] = {}
    conflicting = set()
    for operation_id in sorted(groups):
        members = groups[operation_id]
        if len(members) < 2:
            postfixes[members[0].id] = ""
            continue
        conflicting.add(operation_id)
        pairs = [member.data.negotiation for member in members]
        _ensure_unique_pairs(operation_id, pairs, source_id)
        encoded = encode_group(pairs)
        for member in members:
            postfixes[member.id] = encoded[member.data.negotiation]

    return CollisionResolution(conflicting_operation_ids=frozenset(conflicting), postfixes=postfixes)


def encode_group(pairs: Iterable[Pair]) -> Dict[Pair, str]:
    """Map each distinct pair of a collision group to a distinct postfix."""
    distinct = sorted(set(pairs), key=_pair_sort_key)
    readable = {pair: generate_postfix(*pair) for pair in distinct}
    clusters: Dict[str, List[Pair]] = defaultdict(list)
    for pair, postfix in readable.items():
        clusters[postfix].append(pair)

    encoded: Dict[Pair, str] = {}
    for postfix, cluster in clusters.items():
        if len(cluster) == 1:
            encoded[cluster[0]] = postfix
            continue
        for length in _HASH_LENGTHS:
            candidates = {pair: f"{postfix}_{_pair_digest(pair)[:length]}" for pair in cluster}
            if len(set(candidates.values())) == len(cluster):
                break
        encoded.update(candidates)
    return encoded


def _ensure_unique_pairs(operation_id: str, pairs: Sequence[Pair], source_id: Optional[str]) -> None:
    seen = set()
    for pair in sorted(pairs, key=_pair_sort_key):
        if pair in seen:
            raise DuplicateDescriptorError(operation_id, pair[0], pair[1], source_id=source_id)
        seen.add(pair)


def _pair_digest(pair: Pair) -> str:
    raw = f"{pair[0] or ''}|{pair[1] or ''}"
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def _pair_sort_key(pair: Pair) -> Tuple[str, str]:
    return (pair[0] or "", pair[1] or "")


__all__ = [
    "CollisionResolution",
    "MEDIA_CODES",
    "encode_group",
    "find_conflicts",
    "generate_postfix",
    "media_code",
    "resolve_collisions",
]
