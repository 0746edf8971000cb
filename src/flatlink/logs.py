# src/flatlink/logs.py
"""Program logger: a TRACE level, emoji/color tags and stdout/stderr routing."""

import logging
import sys
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, TextIO, cast

from .meta import PROGRAM_PACKAGE
from .runtime import current_runtime
from .utils import safe_log

RESET = "\033[0m"
CYAN = "\033[36m"
RED = "\033[91m"
GREEN = "\033[92m"
GRAY = "\033[90m"

TRACE_LEVEL = logging.DEBUG - 5
SILENT_LEVEL = logging.CRITICAL + 1
logging.addLevelName(TRACE_LEVEL, "TRACE")

# name → (logging level, tag color, tag text); ordered quietest-last
_LEVELS: dict[str, tuple[int, str, str]] = {
    "trace": (TRACE_LEVEL, GRAY, "[TRACE]"),
    "debug": (logging.DEBUG, CYAN, "[DEBUG]"),
    "info": (logging.INFO, "", ""),
    "warning": (logging.WARNING, "", "⚠️ "),
    "error": (logging.ERROR, "", "❌ "),
    "critical": (logging.CRITICAL, "", "💥 "),
    "silent": (SILENT_LEVEL, "", ""),
}

LEVEL_ORDER = list(_LEVELS)
LEVEL_MAP = {name.upper(): number for name, (number, _, _) in _LEVELS.items()}
TAG_STYLES = {
    name.upper(): (color, text) for name, (_, color, text) in _LEVELS.items() if text
}


class AppLogger(logging.Logger):
    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, msg, args, **kwargs)

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.getEffectiveLevel()).lower()

    def error_if_not_debug(self, msg: str, *args: Any) -> None:
        """Log at ERROR, attaching the active traceback only at debug or below."""
        self.log(logging.ERROR, msg, *args, exc_info=self.isEnabledFor(logging.DEBUG))

    def critical_if_not_debug(self, msg: str, *args: Any) -> None:
        self.log(
            logging.CRITICAL, msg, *args, exc_info=self.isEnabledFor(logging.DEBUG)
        )


class TagFormatter(logging.Formatter):
    """Prefix warnings, errors and debug output with a level tag."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color, tag = TAG_STYLES.get(record.levelname, ("", ""))
        if not tag:
            return text
        if color and current_runtime.get("use_color", True):
            tag = colorize(tag, color, use_color=True)
        return f"{tag} {text}"


class DualStreamHandler(logging.StreamHandler[TextIO]):
    """Warnings and above go to stderr; everything else to stdout."""

    def __init__(self) -> None:
        super().__init__(stream=sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        # resolved per record so redirected or captured streams are honored
        self.stream = sys.stderr if record.levelno >= logging.WARNING else sys.stdout
        super().emit(record)


def _build_logger() -> AppLogger:
    previous = logging.getLoggerClass()
    logging.setLoggerClass(AppLogger)
    try:
        logger = cast("AppLogger", logging.getLogger(PROGRAM_PACKAGE))
    finally:
        logging.setLoggerClass(previous)

    if not any(isinstance(h, DualStreamHandler) for h in logger.handlers):
        handler = DualStreamHandler()
        handler.setFormatter(TagFormatter("%(message)s"))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


_logger = _build_logger()


def _sync_level() -> None:
    name = current_runtime.get("log_level")
    if name is None:  # pyright: ignore[reportUnnecessaryComparison]
        safe_log("[LOGGER ERROR] ❌ Runtime does not specify log_level")
        name = "error"
    _logger.setLevel(LEVEL_MAP.get(str(name).upper(), logging.INFO))


def get_logger() -> AppLogger:
    """Return the flatlink logger, leveled from the current runtime."""
    _sync_level()
    return _logger


def get_log_level() -> str:
    """Return the runtime log level name; 'error' when unset or unknown."""
    level = cast("str | None", current_runtime.get("log_level"))  # type: ignore[redundant-cast]
    if level is None:
        safe_log("[LOGGER ERROR] ❌ Runtime does not specify log_level")
        return "error"
    if level not in _LEVELS:
        safe_log(f"[LOGGER ERROR] ❌ Unknown log level: {level!r}")
        return "error"
    return level


def set_log_level(level: str) -> None:
    current_runtime["log_level"] = level
    _sync_level()


@contextmanager
def temporary_log_level(level: str) -> Generator[None, None, None]:
    """Run a block at `level`, restoring the previous level afterwards."""
    previous = current_runtime["log_level"]
    set_log_level(level)
    try:
        yield
    finally:
        set_log_level(previous)


def colorize(text: str, color: str, *, use_color: bool | None = None) -> str:
    if use_color is None:
        use_color = current_runtime["use_color"]
    return f"{color}{text}{RESET}" if use_color else text
