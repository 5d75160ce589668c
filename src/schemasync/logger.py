"""
Operator-facing run logging for schemasync.

The reconciler reports through the small ``Logger`` capability: one call per
emitted line, at one of three levels. ``RunLogger`` renders those lines with
rich and mirrors them to the stdlib ``schemasync`` logger.
"""

import logging
import logging.handlers
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from rich.console import Console

from .config import LoggingConfig


PREVIEW_PREFIX = "(preview) "

LEVEL_COLORS = {
    "info": "yellow",
    "success": "green",
    "error": "red",
}

_ENTITY = "SchemaSync"


class Logger(ABC):
    """Line-oriented run logger."""

    @abstractmethod
    def info(self, message: str) -> None:
        pass

    @abstractmethod
    def success(self, message: str) -> None:
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        pass


class RunLogger(Logger):
    """Colours each line by level and mirrors it to stdlib logging."""

    def __init__(self, console: Optional[Console] = None, entity: str = _ENTITY):
        self.console = console or Console(stderr=True, highlight=False)
        self.entity = entity
        self._logger = logging.getLogger("schemasync.run")

    def _emit(self, level: str, message: str) -> None:
        color = LEVEL_COLORS[level]
        # Messages are plain text; markup characters in names must not render
        self.console.print(f"[{color}]{self.entity}: [/{color}]", end="")
        self.console.print(message, style=color, markup=False)

    def info(self, message: str) -> None:
        self._emit("info", message)
        self._logger.info(message)

    def success(self, message: str) -> None:
        self._emit("success", message)
        self._logger.info(message)

    def error(self, message: str) -> None:
        self._emit("error", message)
        self._logger.error(message)


class PreviewLogger(Logger):
    """Marks every line of a non-mutating run."""

    def __init__(self, inner: Logger, prefix: str = PREVIEW_PREFIX):
        self.inner = inner
        self.prefix = prefix

    def info(self, message: str) -> None:
        self.inner.info(f"{self.prefix}{message}")

    def success(self, message: str) -> None:
        self.inner.success(f"{self.prefix}{message}")

    def error(self, message: str) -> None:
        self.inner.error(f"{self.prefix}{message}")


class MaskSecretsFilter(logging.Filter):
    """Redact bearer tokens and secrets from log records."""

    _patterns = [
        re.compile(r"(Authorization:\s*Bearer\s+)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(secret\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
    ]

    @staticmethod
    def _mask(text: str) -> str:
        for pattern in MaskSecretsFilter._patterns:
            text = pattern.sub(r"\1***REDACTED***", text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        return True


def configure_logging(config: LoggingConfig) -> logging.Logger:
    """
    Apply the ``logging`` config block to the ``schemasync`` logger tree.

    Installs one stderr handler, plus a size-rotated file handler when
    ``config.file`` is set. Calling it again replaces the handlers.
    """
    base = logging.getLogger("schemasync")
    base.setLevel(config.level)
    base.propagate = False

    for handler in list(base.handlers):
        base.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)
    mask = MaskSecretsFilter()

    console = logging.StreamHandler()
    # Run lines already reach the terminal through rich
    console.setLevel(logging.WARNING)
    console.setFormatter(formatter)
    console.addFilter(mask)
    base.addHandler(console)

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(config.level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(mask)
        base.addHandler(file_handler)

    return base
