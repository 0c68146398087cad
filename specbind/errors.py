"""Error taxonomy shared by the sync pipeline and its collaborators."""

from __future__ import annotations

from typing import Optional


class SpecbindError(RuntimeError):
    """Base class for every error raised by specbind."""


class ConfigError(SpecbindError):
    """Raised when the project configuration is missing or invalid.

    Configuration errors are global: they abort the whole sync run.
    """


class SourceError(SpecbindError):
    """An error scoped to a single configured source."""

    def __init__(self, message: str, *, source_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.source_id = source_id


class SpecFetchError(SourceError):
    """Raised when a spec document cannot be retrieved."""


class SpecParseError(SourceError):
    """Raised when a spec document is not well-formed OpenAPI."""


class UnsupportedFeatureError(SourceError):
    """Raised when a document uses a construct the descriptor model cannot represent."""


class DuplicateDescriptorError(SourceError):
    """Two REST descriptors share operation id, content type and response type."""

    def __init__(
        self,
        operation_id: str,
        content_type: Optional[str],
        response_type: Optional[str],
        *,
        source_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Operation '{operation_id}' is declared more than once with "
            f"content type {content_type or '-'} and response type {response_type or '-'}",
            source_id=source_id,
        )
        self.operation_id = operation_id
        self.content_type = content_type
        self.response_type = response_type


class IncompatiblePluginError(ConfigError):
    """Raised when a plugin's compat range rejects the running core version."""

    def __init__(self, plugin_name: str, compat: str, core_version: str) -> None:
        super().__init__(
            f"Plugin '{plugin_name}' requires specbind {compat} but {core_version} is running"
        )
        self.plugin_name = plugin_name
        self.compat = compat
        self.core_version = core_version


class PluginGenerationError(SourceError):
    """Raised when a plugin's ``generate`` fails for a source."""

    def __init__(self, plugin_name: str, message: str, *, source_id: Optional[str] = None) -> None:
        super().__init__(f"Plugin '{plugin_name}' failed: {message}", source_id=source_id)
        self.plugin_name = plugin_name


class SyncCancelledError(SourceError):
    """Recorded against the active step when a sync is cancelled or times out."""


def describe_error(exc: BaseException) -> str:
    """Render an exception the way it is attached to status events."""
    message = str(exc).strip()
    name = exc.__class__.__name__
    return f"{name}: {message}" if message else name


__all__ = [
    "ConfigError",
    "DuplicateDescriptorError",
    "IncompatiblePluginError",
    "PluginGenerationError",
    "SourceError",
    "SpecFetchError",
    "SpecParseError",
    "SpecbindError",
    "SyncCancelledError",
    "UnsupportedFeatureError",
    "describe_error",
]
