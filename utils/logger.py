"""
utils/logger.py — Project-wide logging configuration
=====================================================
Every module asks `get_logger(name)` for its logger so log lines share one
format.  Level tags are colour-coded when the stream is a terminal and left
plain otherwise (log files, CI output, container logs).
"""

import logging
import sys

from config import LOG_LEVEL

_COLOURS = {
    logging.DEBUG:    "\033[36m",   # cyan
    logging.INFO:     "\033[32m",   # green
    logging.WARNING:  "\033[33m",   # yellow
    logging.ERROR:    "\033[31m",   # red
    logging.CRITICAL: "\033[35m",   # magenta
}
_RESET = "\033[0m"

_BASE_FMT = "%(asctime)s  %(levelname)s  %(name)-22s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"


class _LevelFormatter(logging.Formatter):
    """Pad the level tag and optionally wrap it in ANSI colour."""

    def __init__(self, use_colour: bool):
        super().__init__(fmt=_BASE_FMT, datefmt=_DATE_FMT)
        self._use_colour = use_colour

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so other handlers see the untouched record.
        record = logging.makeLogRecord(record.__dict__)
        tag = f"{record.levelname:<8}"
        if self._use_colour:
            tag = f"{_COLOURS.get(record.levelno, _RESET)}{tag}{_RESET}"
        record.levelname = tag
        return super().format(record)


_loggers: dict[str, logging.Logger] = {}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = LOG_LEVEL
    if isinstance(level, str):
        # getLevelName maps known names to ints and unknown ones to "Level X"
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def get_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """
    Return (or create) a named logger.

    Parameters
    ----------
    name  : str             Component name shown in log lines, e.g. "vitals.epwv".
    level : int | str | None  Minimum severity; defaults to `config.LOG_LEVEL`.
    """
    if name in _loggers:
        return _loggers[name]

    resolved = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved)
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(_LevelFormatter(use_colour=sys.stderr.isatty()))
    logger.addHandler(handler)

    _loggers[name] = logger
    return logger
