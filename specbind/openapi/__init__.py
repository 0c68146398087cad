"""OpenAPI ingestion: resolution, normalization and descriptor building."""

from .descriptors import build_descriptors, extract_requests, extract_schemas, is_downloadable_media
from .normalize import normalize, spec_hash
from .resolver import SpecResolver, SpecResolverProtocol, decode_document

__all__ = [
    "SpecResolver",
    "SpecResolverProtocol",
    "build_descriptors",
    "decode_document",
    "extract_requests",
    "extract_schemas",
    "is_downloadable_media",
    "normalize",
    "spec_hash",
]
