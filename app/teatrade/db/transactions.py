"""Retry-wrapped transaction runner.

Every mutating ledger operation runs through :func:`run_in_transaction`. The
unit of work is re-executed from scratch only when the store reports a
transient condition (serialization failure, deadlock, busy/locked database, a
dropped connection). Business errors raised as :class:`AppError` and every
other exception roll back and propagate on the first attempt.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from app.teatrade.core.config import settings
from app.teatrade.core.db_timing import add_transaction_retry
from app.teatrade.core.error_catalog import AppError
from app.teatrade.core.logging import log_json
from app.teatrade.core.metrics import metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
# SQLITE_BUSY, SQLITE_LOCKED (primary result codes)
RETRYABLE_SQLITE_CODES = frozenset({5, 6})


def _sqlstate(orig: object) -> str | None:
    for attr in ("sqlstate", "pgcode"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    diag = getattr(orig, "diag", None)
    value = getattr(diag, "sqlstate", None)
    return str(value) if value else None


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, AppError):
        return False
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True
    orig = exc.orig
    if orig is None:
        return False
    if _sqlstate(orig) in RETRYABLE_SQLSTATES:
        return True
    sqlite_code = getattr(orig, "sqlite_errorcode", None)
    if isinstance(sqlite_code, int) and (sqlite_code & 0xFF) in RETRYABLE_SQLITE_CODES:
        return True
    return False


def run_in_transaction(
    db: Session,
    work: Callable[[Session], T],
    *,
    max_attempts: int | None = None,
    backoff_ms: int | None = None,
    operation: str = "transaction",
) -> T:
    attempts = max(1, max_attempts or settings.TRANSACTION_MAX_ATTEMPTS)
    delay_ms = settings.TRANSACTION_BACKOFF_MS if backoff_ms is None else backoff_ms
    for attempt in range(1, attempts + 1):
        try:
            result = work(db)
            db.commit()
            return result
        except Exception as exc:
            db.rollback()
            if not is_transient_error(exc):
                raise
            payload = {
                "event": "transaction_retry",
                "operation": operation,
                "attempt": attempt,
                "max_attempts": attempts,
                "error_class": exc.__class__.__name__,
            }
            if attempt >= attempts:
                metrics.increment_transaction_exhausted()
                payload["event"] = "transaction_exhausted"
                log_json(logger, payload, level=logging.WARNING)
                raise
            metrics.increment_transaction_retry()
            add_transaction_retry()
            log_json(logger, payload, level=logging.WARNING)
            time.sleep((delay_ms * attempt) / 1000)
    raise RuntimeError("unreachable")
