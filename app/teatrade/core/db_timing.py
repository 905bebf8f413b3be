from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass


@dataclass
class DbRequestStats:
    total_ms: float = 0.0
    statements: int = 0
    transaction_retries: int = 0


# Holds a mutable record so statements run in worker threads (sync endpoints
# execute in a copied context) are visible to the middleware that started it.
_db_stats: ContextVar[DbRequestStats | None] = ContextVar("db_request_stats", default=None)


def start_db_timer() -> object:
    return _db_stats.set(DbRequestStats())


def stop_db_timer(token: object) -> None:
    _db_stats.reset(token)


def current_db_stats() -> DbRequestStats | None:
    return _db_stats.get()


def add_db_time(delta_ms: float) -> None:
    stats = _db_stats.get()
    if stats is None:
        return
    stats.total_ms += delta_ms
    stats.statements += 1


def add_transaction_retry() -> None:
    stats = _db_stats.get()
    if stats is not None:
        stats.transaction_retries += 1
