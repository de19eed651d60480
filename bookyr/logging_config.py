"""
Logging configuration for Book Yr Life.

Single 'bookyr' logger used across all modules.

  Log file : logs/bookyr.log
  Rotation : 5 MB, 3 backups
  Level    : LOG_LEVEL env var (DEBUG / INFO / WARNING / ERROR / CRITICAL)
             defaults to INFO when unset

Usage
-----
    from bookyr.logging_config import configure_logging, log_call

    # Once at startup (idempotent):
    configure_logging()

    # On any function you want traced:
    @log_call
    def accept_opportunity(opportunity_id, reason=None):
        ...

Log format per line
-------------------
    2026-10-19 14:32:01 | DEBUG    | CALL approve_hold | args=('hold-1', Identity(user-venue))
    2026-10-19 14:32:01 | INFO     | OK   accept_opportunity | 42ms
    2026-10-19 14:32:01 | ERROR    | FAIL accept_opportunity | InvalidTransitionError: ... | 3ms
"""

import dataclasses
import functools
import logging
import logging.handlers
import os
import time
from pathlib import Path

_LOG_DIR = Path(__file__).parent.parent / "logs"
_LOG_FILE = _LOG_DIR / "bookyr.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3

# Dataclass fields worth showing in a CALL line, in order
_SUMMARY_FIELDS = ('id', 'document_id', 'status')
_MAX_LIST_ITEMS = 5


def configure_logging() -> logging.Logger:
    """
    Set up the bookyr logger. Safe to call on every CLI entry.
    Returns the configured logger.
    """
    _LOG_DIR.mkdir(exist_ok=True)

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("bookyr")

    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)

    return logger


def _format_arg(value) -> str:
    """
    Short form of one argument for a CALL line.

    Identity(user-venue), HoldRequest(id=hold-1, document_id=req-1, status=PENDING),
    [12 items] for long lists; everything else is repr().
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        name = type(value).__name__
        if hasattr(value, 'user_id') and not hasattr(value, 'id'):
            return f"{name}({value.user_id})"
        shown = [f"{key}={getattr(value, key)}" for key in _SUMMARY_FIELDS if getattr(value, key, None)]
        return f"{name}({', '.join(shown)})"
    if isinstance(value, (list, tuple, set, frozenset)) and len(value) > _MAX_LIST_ITEMS:
        return f"[{len(value)} items]"
    return repr(value)


def log_call(func):
    """
    Decorator: logs entry, clean exit, and exceptions for any function.

    - DEBUG on entry   : CALL <name> | args=(...)
    - INFO  on success : OK   <name> | <N>ms
    - ERROR on failure : FAIL <name> | ExcType: message | <N>ms   (then re-raises)
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger("bookyr")
        name = func.__name__
        start = time.perf_counter()

        parts = [_format_arg(a) for a in args] + [f"{k}={_format_arg(v)}" for k, v in kwargs.items()]
        arg_str = ", ".join(parts)
        logger.debug(f"CALL {name} | args=({arg_str})")

        try:
            result = func(*args, **kwargs)
            ms = int((time.perf_counter() - start) * 1000)
            logger.info(f"OK   {name} | {ms}ms")
            return result
        except Exception as exc:
            ms = int((time.perf_counter() - start) * 1000)
            logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {ms}ms")
            raise

    return wrapper
