"""
Logging configuration — one-time setup for the scaffolder CLI.

``main.cli`` calls ``setup_logging(resolve_level(...))`` before any
other work.  Console level precedence:

    --debug  >  --verbose  >  --quiet  >  ENFYRA_LOG_LEVEL  >  WARNING

ENFYRA_LOG_FILE adds a file handler; ENFYRA_LOG_FILE_LEVEL sets its
level independently of the console.
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LOG_LEVEL = "ENFYRA_LOG_LEVEL"
ENV_LOG_FILE = "ENFYRA_LOG_FILE"
ENV_LOG_FILE_LEVEL = "ENFYRA_LOG_FILE_LEVEL"

_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"

# (max level, format, datefmt), checked in order; the last entry catches all
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)
_FILE_FORMAT = (_DETAILED, "%Y-%m-%d %H:%M:%S")

# Database and HTTP drivers log every handshake below WARNING
_NOISY_LOGGERS = ("pymongo", "urllib3", "sqlalchemy.engine")


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> str:
    """Console level name from the CLI flags, else the env var."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LOG_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with the scaffolder's.

    ``log_file`` and ``log_file_level`` fall back to their env vars; the
    file level defaults to ``level``.  The root logger is set to the lower
    of the two handler levels so neither handler starves.
    """
    console_level = _parse_level(level)
    log_file = log_file or os.environ.get(ENV_LOG_FILE)
    log_file_level = log_file_level or os.environ.get(ENV_LOG_FILE_LEVEL)

    handlers = [_console_handler(console_level)]
    root_level = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))
        root_level = min(root_level, file_level)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = next((f, d) for limit, f, d in _CONSOLE_FORMATS if level <= limit)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    fmt, datefmt = _FILE_FORMAT
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name to its numeric value; unknown or empty names mean WARNING."""
    numeric = getattr(logging, level.upper(), None) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
