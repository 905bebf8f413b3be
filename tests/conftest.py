import importlib
import os
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from alembic import command
from alembic.config import Config

from tests.db_utils import postgres_test_database
from tests.ledger_helpers import auth_headers

ROOT = Path(__file__).resolve().parents[1]
TEST_SECRET = "test-secret"
BASE_DATABASE_URL = os.getenv("DATABASE_URL", "")
os.environ.setdefault("AUTH_SECRET_KEY", TEST_SECRET)
os.environ.setdefault("TRANSACTION_BACKOFF_MS", "0")


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    os.environ["AUTH_SECRET_KEY"] = TEST_SECRET
    os.environ["TRANSACTION_BACKOFF_MS"] = "0"

    import app.teatrade.core.config as config
    import app.teatrade.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config(str(ROOT / "alembic.ini"))
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


@pytest.fixture()
def database_url(tmp_path: Path):
    if BASE_DATABASE_URL.startswith("postgres"):
        with postgres_test_database(BASE_DATABASE_URL) as url:
            yield url
    else:
        yield f"sqlite+pysqlite:///{tmp_path / 'test.db'}"


@pytest.fixture()
def client(database_url: str):
    _run_migrations(database_url)
    app, session = _setup_app(database_url)

    with TestClient(app) as client:
        yield client

    session.engine.dispose()


@pytest.fixture()
def db_session(client):
    from app.teatrade.db.session import SQLITE_BEGIN_OPTION, SessionLocal, engine

    # Test-side reads must not hold the SQLite write lock between requests.
    db = SessionLocal(bind=engine.execution_options(**{SQLITE_BEGIN_OPTION: None}))
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def admin_headers(client):
    return auth_headers("admin-1", "admin")


@pytest.fixture()
def make_user(db_session):
    from app.teatrade.db.models import User

    def _make_user(user_cognito_id: str, *, name: str | None = None, email: str | None = None) -> User:
        user = User(
            user_cognito_id=user_cognito_id,
            name=name or user_cognito_id.title(),
            email=email or f"{user_cognito_id}@example.com",
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def make_stock(db_session):
    from app.teatrade.db.models import Stock

    counter = {"value": 0}

    def _make_stock(*, weight="100.00", bags=10, lot_no: str | None = None, **overrides) -> Stock:
        counter["value"] += 1
        weight = Decimal(str(weight))
        purchase_value = Decimal(str(overrides.pop("purchase_value", "2.50")))
        stock = Stock(
            sale_code=overrides.pop("sale_code", "S-01"),
            broker=overrides.pop("broker", "AMBR"),
            lot_no=lot_no or f"LOT-{counter['value']:04d}",
            mark=overrides.pop("mark", "KIBWEZI"),
            grade=overrides.pop("grade", "PD"),
            bags=bags,
            weight=weight,
            purchase_value=purchase_value,
            total_purchase_value=purchase_value * weight,
            net_price=purchase_value,
            total=purchase_value * weight,
            **overrides,
        )
        db_session.add(stock)
        db_session.commit()
        return stock

    return _make_stock
