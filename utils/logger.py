"""
utils/logger.py — Project-wide logging configuration
=====================================================
Provides a single `get_logger(name)` factory so every module gets a
consistently-formatted logger with colour-coded console output.

The default level comes from the LOG_LEVEL environment variable (INFO
when unset).  It is read here rather than in config.py because config
itself logs.
"""

import logging
import os
import sys

_COLOURS = {
    logging.DEBUG:    "\033[36m",   # cyan
    logging.INFO:     "\033[32m",   # green
    logging.WARNING:  "\033[33m",   # yellow
    logging.ERROR:    "\033[31m",   # red
    logging.CRITICAL: "\033[35m",   # magenta
}
_RESET = "\033[0m"


class _ColourFormatter(logging.Formatter):
    """Inject ANSI colour around the log-level tag (TTY only)."""

    def __init__(self, fmt: str, datefmt: str, use_colour: bool):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._use_colour = use_colour

    def format(self, record: logging.LogRecord) -> str:
        if not self._use_colour:
            return super().format(record)
        # Work on a copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        colour = _COLOURS.get(record.levelno, _RESET)
        record.levelname = f"{colour}{record.levelname:<8}{_RESET}"
        return super().format(record)


_BASE_FMT = "%(asctime)s  %(levelname)-8s  %(name)-22s  %(message)s"
_DATE_FMT = "%H:%M:%S"

# Module-level registry to avoid adding duplicate handlers
_loggers: dict[str, logging.Logger] = {}


def default_level() -> int:
    """Level named by LOG_LEVEL, falling back to INFO for unknown names."""
    name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return (or create) a named logger.

    Parameters
    ----------
    name  : str   Module / component name shown in log lines.
    level : int   Minimum severity (default from LOG_LEVEL).
    """
    if name in _loggers:
        return _loggers[name]

    if level is None:
        level = default_level()

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        _ColourFormatter(fmt=_BASE_FMT, datefmt=_DATE_FMT, use_colour=sys.stdout.isatty())
    )
    logger.addHandler(handler)

    _loggers[name] = logger
    return logger


def set_level(level: int) -> None:
    """Change the level of every logger created so far (used by the CLIs)."""
    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
