from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, make_url

_TERMINATE_SESSIONS = text(
    "SELECT pg_terminate_backend(pid) FROM pg_stat_activity WHERE datname = :db_name AND pid <> pg_backend_pid()"
)


def _run_admin(url: URL, statement, params: dict | None = None) -> None:
    engine = create_engine(url, isolation_level="AUTOCOMMIT", future=True)
    try:
        with engine.connect() as conn:
            conn.execute(statement, params or {})
    finally:
        engine.dispose()


@contextmanager
def postgres_test_database(base_url: str) -> Iterator[str]:
    """Create a throwaway ledger database next to ``base_url`` and drop it afterwards."""
    url = make_url(base_url)
    db_name = f"teatrade_test_{uuid.uuid4().hex[:12]}"
    admin_url = url.set(database="postgres")
    _run_admin(admin_url, text(f'CREATE DATABASE "{db_name}"'))
    try:
        yield url.set(database=db_name).render_as_string(hide_password=False)
    finally:
        _run_admin(admin_url, _TERMINATE_SESSIONS, {"db_name": db_name})
        _run_admin(admin_url, text(f'DROP DATABASE IF EXISTS "{db_name}"'))
