"""Logging utilities and progress observers for docpatch runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

_LOGGER_NAME = "docpatch"


@dataclass(frozen=True)
class Event:
    """Structured progress event emitted by pipeline components."""

    name: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        if not self.fields:
            return self.name
        details = " ".join(f"{key}={value}" for key, value in self.fields.items())
        return f"{self.name} {details}"


Observer = Callable[[Event], None]

_EVENT_LEVELS: Dict[str, int] = {
    "finder.file_scanned": logging.INFO,
    "finder.done": logging.INFO,
    "scheduler.truncated": logging.INFO,
    "scheduler.file_started": logging.INFO,
    "scheduler.task_started": logging.INFO,
    "scheduler.task_failed": logging.WARNING,
    "scheduler.cancelled": logging.WARNING,
    "delivery.file_written": logging.INFO,
    "delivery.committed": logging.INFO,
}


class LoggingObserver:
    """Forwards progress events to a logger at a per-event level."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or get_logger()

    def __call__(self, event: Event) -> None:
        level = _EVENT_LEVELS.get(event.name, logging.DEBUG)
        if self._logger.isEnabledFor(level):
            self._logger.log(level, "%s", event.describe())


def null_observer(event: Event) -> None:
    """Drop the event."""


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the docpatch hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the docpatch logger with console output and optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI runs more than once.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[docpatch] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = [
    "Event",
    "LoggingObserver",
    "Observer",
    "configure_logging",
    "get_logger",
    "null_observer",
]
