"""Logging helpers.

The library never installs handlers; applications decide where records go.
This module only provides :func:`log_once` for warnings that would otherwise
repeat once per grid cell.
"""

from __future__ import annotations

import logging
import threading

_LOG_ONCE_KEYS: set[str] = set()
_LOG_ONCE_LOCK = threading.Lock()


def log_once(logger: logging.Logger, key: str, level: int, msg: str, *args) -> bool:
    """
    Logs at most once per process for the given key.

    Returns True when the record was emitted.
    """
    k = str(key)
    with _LOG_ONCE_LOCK:
        if k in _LOG_ONCE_KEYS:
            return False
        _LOG_ONCE_KEYS.add(k)

    logger.log(level, msg, *args)
    return True


def reset_log_once() -> None:
    """Forget every key seen by :func:`log_once`."""
    with _LOG_ONCE_LOCK:
        _LOG_ONCE_KEYS.clear()
