# Overview: Service-layer retry helpers for optimistic-lock and lock-timeout conflicts.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError

from ..errors import ConcurrencyError, UniqueConstraintError


logger = logging.getLogger(__name__)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on ConcurrencyError (stale version_id, the read-check-write race
    on a bill balance) and OperationalError (deadlocks, lock timeouts). The
    store's transaction() has already rolled back by the time we see them,
    so each attempt re-reads fresh state.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (ConcurrencyError, OperationalError) as exc:
            last_exc = exc
            if attempt >= attempts - 1:
                break
            logger.warning("Concurrent update detected, retrying (attempt %d/%d): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))

    if isinstance(last_exc, ConcurrencyError):
        raise last_exc
    raise ConcurrencyError("Database is busy, please retry") from last_exc


def run_with_unique_retry(func, *, attempts: int = 3):
    """
    Retry when an auto-generated number collides with a concurrent insert.

    func must regenerate its number on every call; a collision on a
    caller-supplied number is not retried (attempts=1).
    """
    for attempt in range(attempts):
        try:
            return func()
        except UniqueConstraintError:
            if attempt >= attempts - 1:
                raise
            logger.info("Generated number collided, regenerating (attempt %d/%d)", attempt + 1, attempts)
