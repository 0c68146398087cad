"""Logging utilities for specbind commands and services."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from .events import DoneEvent, Status, StatusEvent, SyncEvent

_LOGGER_NAME = "specbind"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the specbind hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the specbind logger with console output and an optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Repeated CLI invocations in one process must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[specbind] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


def event_log_sink(logger: logging.Logger | None = None) -> Callable[[SyncEvent], None]:
    """Progress channel sink that mirrors sync events into the log."""
    target = logger or get_logger("events")

    def _sink(event: SyncEvent) -> None:
        if isinstance(event, DoneEvent):
            target.debug("sync done success=%s", event.success)
        elif isinstance(event, StatusEvent):
            label = event.source_id or "-"
            if event.status is Status.ERROR:
                target.error("%s %s failed: %s", label, event.step.value, event.error)
            else:
                target.debug("%s %s %s", label, event.step.value, event.status.value)

    return _sink


__all__ = ["configure_logging", "event_log_sink", "get_logger"]
