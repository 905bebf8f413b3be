from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.teatrade.core.errors import setup_exception_handlers
from app.teatrade.core.metrics import metrics


class _DriverError(Exception):
    pass


def _locked_error() -> OperationalError:
    orig = _DriverError("database is locked")
    orig.sqlite_errorcode = 5
    return OperationalError("UPDATE stocks", {}, orig)


def _app() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/locked")
    def locked():
        raise _locked_error()

    @app.get("/down")
    def down():
        raise OperationalError("SELECT 1", {}, _DriverError("connection refused"))

    @app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    return app


def test_transient_conflict_increments_metric():
    metrics.reset()

    with TestClient(_app(), raise_server_exceptions=False) as client:
        response = client.get("/locked")

    assert response.status_code == 503
    assert response.json()["code"] == "TRANSACTION_CONFLICT"

    snapshot = metrics.render()
    content = snapshot.content.decode("utf-8")
    if metrics.enabled:
        assert "lock_wait_timeout_total 1.0" in content
    else:
        assert "metrics_disabled" in content


def test_other_operational_errors_map_to_db_unavailable():
    with TestClient(_app(), raise_server_exceptions=False) as client:
        response = client.get("/down")

    assert response.status_code == 503
    assert response.json()["code"] == "DB_UNAVAILABLE"


def test_unexpected_errors_map_to_internal_error():
    with TestClient(_app(), raise_server_exceptions=False) as client:
        response = client.get("/boom")

    assert response.status_code == 500
    payload = response.json()
    assert payload["code"] == "INTERNAL_ERROR"
    assert payload["details"] == {"type": "RuntimeError"}
