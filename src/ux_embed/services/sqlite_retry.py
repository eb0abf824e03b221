"""SQLite lock-retry helper for transient writer contention."""

from __future__ import annotations

import logging
import random
import sqlite3
import time
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

_LOCKED_TOKENS = ("database is locked", "database is busy")


def is_lock_error(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return any(token in message for token in _LOCKED_TOKENS)


def run_with_sqlite_lock_retry(
    operation: Callable[[], T],
    *,
    op_name: str,
    max_attempts: int = 4,
    base_delay_s: float = 0.02,
    max_delay_s: float = 0.25,
) -> T:
    """Run ``operation``, retrying with jittered backoff while the DB is locked."""
    attempts = max(1, int(max_attempts))
    delay = max(0.0, float(base_delay_s))
    attempt = 1
    while True:
        try:
            return operation()
        except sqlite3.OperationalError as exc:
            if not is_lock_error(exc) or attempt >= attempts:
                raise
            logger.debug(
                "SQLite busy during %s (attempt %d/%d); retrying.",
                op_name,
                attempt,
                attempts,
            )
        jitter = random.random() * delay * 0.5 if delay > 0 else 0.0
        time.sleep(min(max_delay_s, delay + jitter))
        delay = min(max_delay_s, max(0.005, delay * 2.0))
        attempt += 1
