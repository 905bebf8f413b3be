import csv
import io

import pytest
from openpyxl import load_workbook

from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError, ErrorCatalog
from app.teatrade.db.models import Stock, StockHistory
from app.teatrade.services import stock_import
from app.teatrade.services.stock_export import STOCK_COLUMNS
from app.teatrade.services.stock_import import StockImportService, normalize_header, parse_stock_csv
from tests.ledger_helpers import auth_headers, reload_stock, weight

HEADER = "Sale Code,Broker,Lot No,Mark,Grade,Invoice No,Bags,Weight,Purchase Value\n"


def _csv(*rows: str, header: str = HEADER) -> bytes:
    return (header + "\n".join(rows) + "\n").encode("utf-8")


def _upload(client, headers, content: bytes, duplicate_action: str | None = None):
    data = {"duplicateAction": duplicate_action} if duplicate_action else {}
    return client.post(
        "/stocks/upload",
        headers=headers,
        files={"file": ("stocks.csv", content, "text/csv")},
        data=data,
    )


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("\ufeffLot No", "lotno"),
        ("lot_no", "lotno"),
        ("  TOTAL PURCHASE VALUE ", "totalpurchasevalue"),
        ("bgtCommission", "bgtcommission"),
    ],
)
def test_normalize_header(header, expected):
    assert normalize_header(header) == expected


def test_parse_collects_row_errors():
    content = _csv(
        "S-01,AMBR,LOT-1,KIBWEZI,PD,INV-1,10,100.00,2.50",
        "S-01,AMBR,LOT-2,KIBWEZI,NOPE,INV-2,10,100.00,2.50",
        "S-01,AMBR,LOT-1,KIBWEZI,PD,INV-3,5,50.00,2.50",
        ",,,,,,,,",
        "S-01,ANJL,LOT-3,MARINYN,BP1,,4,40.50,3.10",
    )

    rows, errors = parse_stock_csv(content)

    assert [(item.row, item.data.lot_no) for item in rows] == [(1, "LOT-1"), (5, "LOT-3")]
    assert rows[1].data.invoice_no is None
    assert rows[1].data.weight == weight("40.50")
    assert [(error.row, error.lot_no) for error in errors] == [(2, "LOT-2"), (3, "LOT-1")]
    assert "grade" in errors[0].message
    assert errors[1].message == "duplicate lotNo in file"


def test_parse_accepts_bom_and_snake_case_headers():
    content = "\ufeffsale_code,broker,lot_no,mark,grade,bags,weight\nS-02,AMBR,LOT-9,KIBWEZI,PD,2,20\n".encode("utf-8")

    rows, errors = parse_stock_csv(content)

    assert errors == []
    assert rows[0].data.lot_no == "LOT-9"
    assert rows[0].data.purchase_value == 0


def test_parse_rejects_empty_and_headerless_files():
    with pytest.raises(AppError) as empty:
        parse_stock_csv(b"")
    assert empty.value.error == ErrorCatalog.VALIDATION_ERROR

    with pytest.raises(AppError) as headerless:
        parse_stock_csv(b"Mark,Grade\nKIBWEZI,PD\n")
    assert headerless.value.details == {"message": "CSV header must include lotNo"}


def test_upload_creates_stock(client, db_session, admin_headers):
    content = _csv(
        "S-01,AMBR,LOT-1,KIBWEZI,PD,INV-1,10,100.00,2.50",
        "S-01,ANJL,LOT-2,MARINYN,BP1,INV-2,4,40.00,3.00",
    )

    response = _upload(client, admin_headers, content)

    assert response.status_code == 201
    assert response.json() == {"created": 2, "replaced": 0, "skipped": 0, "errors": []}
    stock = db_session.query(Stock).filter_by(lot_no="LOT-1").one()
    assert stock.total_purchase_value == weight("250.00")
    assert stock.admin_cognito_id == "admin-1"
    assert db_session.query(StockHistory).filter_by(action="CREATED").count() == 2


def test_upload_skips_existing_lots_by_default(client, db_session, make_stock, admin_headers):
    existing = make_stock(lot_no="LOT-1", weight="100.00", bags=10)
    content = _csv(
        "S-01,AMBR,LOT-1,KIBWEZI,PD,INV-1,8,80.00,2.50",
        "S-01,AMBR,LOT-NEW,KIBWEZI,PD,INV-2,3,30.00,2.50",
    )

    response = _upload(client, admin_headers, content)

    assert response.status_code == 201
    assert response.json() == {"created": 1, "replaced": 0, "skipped": 1, "errors": []}
    assert reload_stock(db_session, existing.id).weight == weight("100.00")


def test_upload_replace_goes_through_ledger(client, db_session, make_stock, admin_headers):
    existing = make_stock(lot_no="LOT-1", weight="100.00", bags=10, mark="OLD MARK")
    content = _csv("S-05,AMBR,LOT-1,NEW MARK,PD,INV-1,8,80.00,2.50")

    response = _upload(client, admin_headers, content, "replace")

    assert response.status_code == 201
    assert response.json()["replaced"] == 1
    refreshed = reload_stock(db_session, existing.id)
    assert refreshed.weight == weight("80.00")
    assert refreshed.bags == 8
    assert refreshed.mark == "NEW MARK"
    assert refreshed.sale_code == "S-05"
    assert refreshed.total_purchase_value == weight("200.00")

    entries = db_session.query(StockHistory).filter_by(stocks_id=existing.id).order_by(StockHistory.id).all()
    assert [entry.action for entry in entries] == ["REDUCED", "UPDATED"]
    assert entries[0].details["reason"] == "Replaced via CSV import"
    assert entries[1].details["changes"]["mark"] == "NEW MARK"


def test_upload_reports_invalid_rows(client, admin_headers):
    content = _csv(
        "S-01,AMBR,LOT-1,KIBWEZI,PD,INV-1,10,100.00,2.50",
        "S-01,AMBR,LOT-2,KIBWEZI,PD,INV-2,-1,100.00,2.50",
    )

    response = _upload(client, admin_headers, content)

    assert response.status_code == 201
    payload = response.json()
    assert payload["created"] == 1
    assert payload["errors"][0]["row"] == 2
    assert payload["errors"][0]["lotNo"] == "LOT-2"


def test_upload_without_valid_rows_fails(client, admin_headers):
    content = _csv("S-01,AMBR,LOT-1,KIBWEZI,NOPE,INV-1,10,100.00,2.50")

    response = _upload(client, admin_headers, content)

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "VALIDATION_ERROR"
    assert payload["details"]["errors"][0]["row"] == 1


def test_upload_requires_admin(client):
    response = _upload(client, auth_headers("user-1"), _csv("S-01,AMBR,LOT-1,KIBWEZI,PD,INV-1,10,100.00,2.50"))

    assert response.status_code == 403


def test_upload_in_small_batches(client, db_session, admin_headers, monkeypatch):
    monkeypatch.setattr(stock_import.settings, "IMPORT_BATCH_SIZE", 1)
    content = _csv(*[f"S-01,AMBR,LOT-{index},KIBWEZI,PD,INV-{index},1,10.00,2.00" for index in range(5)])

    response = _upload(client, admin_headers, content)

    assert response.status_code == 201
    assert response.json()["created"] == 5
    assert db_session.query(Stock).count() == 5


def test_failed_batch_reports_its_rows(client, db_session, monkeypatch):
    from app.teatrade.db.session import SessionLocal

    actor = RequestContext(user_id="admin-1", role="admin", email=None, trace_id="trace-import")
    service = StockImportService(actor, session_factory=SessionLocal)

    def _explode(db, data):
        raise AppError(ErrorCatalog.CONFLICT, details={"lotNo": data.lot_no})

    monkeypatch.setattr(service, "_create_stock", _explode)

    report = service.import_csv(_csv("S-01,AMBR,LOT-1,KIBWEZI,PD,INV-1,10,100.00,2.50"), "skip")

    assert report.created == 0
    assert [(error.row, error.message) for error in report.errors] == [(1, "batch failed: CONFLICT")]
    assert db_session.query(Stock).count() == 0


def _assign(client, headers, stock_id: int, user_cognito_id: str):
    response = client.post(
        "/stocks/assign",
        headers=headers,
        json={"stocksId": stock_id, "userCognitoId": user_cognito_id},
    )
    assert response.status_code == 201


def test_export_csv(client, make_user, make_stock, admin_headers):
    make_user("user-1")
    second = make_stock(lot_no="LOT-B", weight="20.00", bags=2)
    make_stock(lot_no="LOT-A", weight="100.00", bags=10)
    _assign(client, admin_headers, second.id, "user-1")

    response = client.get("/stocks/export", headers=admin_headers, params={"format": "csv"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="stocks.csv"' in response.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == STOCK_COLUMNS
    assert [row[0] for row in rows[1:]] == ["LOT-A", "LOT-B"]
    lot_b = dict(zip(rows[0], rows[2]))
    assert lot_b["Weight"] == "20.00"
    assert lot_b["Assigned To"] == "user-1"
    assert lot_b["Assigned Weight"] == "20.00"


def test_export_xlsx_scoped_to_user(client, make_user, make_stock, admin_headers):
    make_user("user-1")
    mine = make_stock(lot_no="LOT-MINE")
    make_stock(lot_no="LOT-OTHER")
    _assign(client, admin_headers, mine.id, "user-1")

    response = client.get("/stocks/export", headers=auth_headers("user-1"))

    assert response.status_code == 200
    workbook = load_workbook(io.BytesIO(response.content))
    worksheet = workbook["stocks"]
    values = list(worksheet.iter_rows(values_only=True))
    assert list(values[0]) == STOCK_COLUMNS
    assert [row[0] for row in values[1:]] == ["LOT-MINE"]
