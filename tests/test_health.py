def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["trace_id"]


def test_ready(client):
    response = client.get("/ready")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ready"
    assert payload["schema_revision"] == "0001_initial_ledger_schema"
    assert payload["trace_id"]


def test_trace_id_header_is_echoed(client):
    response = client.get("/health", headers={"X-Trace-ID": "trace-abc.1"})
    assert response.headers["X-Trace-ID"] == "trace-abc.1"
    assert response.json()["trace_id"] == "trace-abc.1"


def test_invalid_trace_id_is_replaced(client):
    response = client.get("/health", headers={"X-Trace-ID": "bad trace id!"})
    trace_id = response.headers["X-Trace-ID"]
    assert trace_id != "bad trace id!"
    assert response.json()["trace_id"] == trace_id


def test_missing_token_is_rejected(client):
    response = client.get("/stocks")
    assert response.status_code == 401
    payload = response.json()
    assert payload["code"] == "INVALID_TOKEN"
    assert payload["trace_id"]


def test_ready_reports_unmigrated_schema(client, db_session):
    from sqlalchemy import text

    db_session.execute(text("DELETE FROM alembic_version"))
    db_session.commit()

    response = client.get("/ready")
    assert response.status_code == 503
    payload = response.json()
    assert payload["code"] == "DB_UNAVAILABLE"
    assert payload["details"] == {"error": "schema not migrated"}
