import time

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.teatrade.core.config import settings
from app.teatrade.core.db_timing import add_db_time, current_db_stats

# Execution option naming the SQLite BEGIN mode; None leaves the connection in
# autocommit, which is only meant for read-only inspection sessions.
SQLITE_BEGIN_OPTION = "sqlite_begin"

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False, "timeout": 15}

engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    pool_pre_ping=True,
    connect_args=connect_args,
)


if settings.DATABASE_URL.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _configure_sqlite_connection(dbapi_connection, connection_record):
        # pysqlite defers BEGIN until the first DML statement, so reads would
        # run outside the transaction. Take over transaction control instead.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_sqlite_transaction(conn):
        # IMMEDIATE takes the write lock before the first read, serializing
        # read-check-write units on the same lots.
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "IMMEDIATE")
        if mode:
            conn.exec_driver_sql(f"BEGIN {mode}")


@event.listens_for(engine, "before_cursor_execute")
def _start_statement_timer(conn, cursor, statement, parameters, context, executemany):
    if current_db_stats() is not None:
        conn.info["statement_started_at"] = time.perf_counter()


@event.listens_for(engine, "after_cursor_execute")
def _stop_statement_timer(conn, cursor, statement, parameters, context, executemany):
    started_at = conn.info.pop("statement_started_at", None)
    if started_at is None or current_db_stats() is None:
        return
    add_db_time((time.perf_counter() - started_at) * 1000)


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
