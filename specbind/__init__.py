"""specbind: OpenAPI synchronization and framework binding generation."""

__version__ = "0.1.0"

__all__ = ["__version__"]
