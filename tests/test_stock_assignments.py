from app.teatrade.db.models import StockAssignment, StockHistory
from tests.ledger_helpers import auth_headers, reload_stock, weight


def _assign(client, headers, stock_id: int, user_cognito_id: str):
    return client.post(
        "/stocks/assign",
        headers=headers,
        json={"stocksId": stock_id, "userCognitoId": user_cognito_id},
    )


def test_assign_reserves_whole_lot(client, db_session, make_user, make_stock, admin_headers):
    make_user("user-1")
    stock = make_stock(weight="80.00", bags=8)

    response = _assign(client, admin_headers, stock.id, "user-1")

    assert response.status_code == 201
    payload = response.json()
    assert payload["assignment"]["userCognitoId"] == "user-1"
    assert payload["assignment"]["assignedWeight"] == "80.00"
    assert payload["stock"]["lotNo"] == stock.lot_no
    refreshed = reload_stock(db_session, stock.id)
    assert refreshed.weight == weight("80.00")

    entry = db_session.query(StockHistory).filter_by(stocks_id=stock.id, action="Stock Assigned").one()
    assert entry.user_cognito_id == "user-1"
    assert entry.admin_cognito_id == "admin-1"
    assert entry.details["assignedTo"] == "user-1"
    assert entry.details["stock"]["lotNo"] == stock.lot_no


def test_assign_twice_conflicts(client, make_user, make_stock, admin_headers):
    make_user("user-1")
    make_user("user-2")
    stock = make_stock()
    assert _assign(client, admin_headers, stock.id, "user-1").status_code == 201

    response = _assign(client, admin_headers, stock.id, "user-2")

    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "ALREADY_ASSIGNED"
    assert payload["details"]["conflicts"] == [
        {"stocksId": stock.id, "lotNo": stock.lot_no, "assignedTo": ["user-1"]}
    ]


def test_assign_unknown_user(client, make_stock, admin_headers):
    stock = make_stock()

    response = _assign(client, admin_headers, stock.id, "ghost")

    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


def test_assign_requires_admin(client, make_user, make_stock):
    make_user("user-1")
    stock = make_stock()

    response = _assign(client, auth_headers("user-1"), stock.id, "user-1")

    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


def test_bulk_assign_is_all_or_nothing(client, db_session, make_user, make_stock, admin_headers):
    make_user("user-1")
    make_user("user-2")
    free_stock = make_stock()
    taken_stock = make_stock()
    assert _assign(client, admin_headers, taken_stock.id, "user-2").status_code == 201

    response = client.post(
        "/stocks/bulk-assign",
        headers=admin_headers,
        json={
            "userCognitoId": "user-1",
            "assignments": [{"stocksId": free_stock.id}, {"stocksId": taken_stock.id}],
        },
    )

    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_ASSIGNED"
    db_session.expire_all()
    assert db_session.query(StockAssignment).filter_by(stocks_id=free_stock.id).count() == 0
    assert (
        db_session.query(StockHistory).filter_by(stocks_id=free_stock.id, action="Stock Assigned").count() == 0
    )


def test_bulk_assign_with_partial_weight(client, make_user, make_stock, admin_headers):
    make_user("user-1")
    first = make_stock(weight="50.00", bags=5)
    second = make_stock(weight="20.00", bags=2)

    response = client.post(
        "/stocks/bulk-assign",
        headers=admin_headers,
        json={
            "userCognitoId": "user-1",
            "assignments": [
                {"stocksId": first.id, "assignedWeight": "30.00"},
                {"stocksId": second.id},
            ],
        },
    )

    assert response.status_code == 201
    rows = response.json()["assignments"]
    assert [(row["stocksId"], row["assignedWeight"]) for row in rows] == [
        (first.id, "30.00"),
        (second.id, "20.00"),
    ]


def test_bulk_assign_weight_above_lot_is_rejected(client, make_user, make_stock, admin_headers):
    make_user("user-1")
    stock = make_stock(weight="10.00", bags=1)

    response = client.post(
        "/stocks/bulk-assign",
        headers=admin_headers,
        json={"userCognitoId": "user-1", "assignments": [{"stocksId": stock.id, "assignedWeight": "11.00"}]},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_bulk_assign_missing_stock(client, make_user, make_stock, admin_headers):
    make_user("user-1")
    stock = make_stock()

    response = client.post(
        "/stocks/bulk-assign",
        headers=admin_headers,
        json={"userCognitoId": "user-1", "assignments": [{"stocksId": stock.id}, {"stocksId": 4242}]},
    )

    assert response.status_code == 404
    assert response.json()["details"]["missingStockIds"] == [4242]


def test_unassign_removes_reservation(client, db_session, make_user, make_stock, admin_headers):
    make_user("user-1")
    stock = make_stock()
    assert _assign(client, admin_headers, stock.id, "user-1").status_code == 201

    response = client.post(
        "/stocks/unassign",
        headers=admin_headers,
        json={"stocksId": stock.id, "userCognitoId": "user-1"},
    )

    assert response.status_code == 200
    assert response.json() == {"stocksId": stock.id, "userCognitoId": "user-1"}
    db_session.expire_all()
    assert db_session.query(StockAssignment).filter_by(stocks_id=stock.id).count() == 0
    entry = db_session.query(StockHistory).filter_by(stocks_id=stock.id, action="Stock Unassigned").one()
    assert entry.details["unassignedFrom"] == "user-1"

    again = client.post(
        "/stocks/unassign",
        headers=admin_headers,
        json={"stocksId": stock.id, "userCognitoId": "user-1"},
    )
    assert again.status_code == 404
    assert again.json()["code"] == "ASSIGNMENT_NOT_FOUND"


def test_user_lists_own_assignments(client, make_user, make_stock, admin_headers):
    make_user("user-1")
    make_user("user-2")
    mine = make_stock(lot_no="LOT-MINE")
    theirs = make_stock(lot_no="LOT-THEIRS")
    assert _assign(client, admin_headers, mine.id, "user-1").status_code == 201
    assert _assign(client, admin_headers, theirs.id, "user-2").status_code == 201

    response = client.get("/users/user-1/stock-assignments", headers=auth_headers("user-1"))

    assert response.status_code == 200
    payload = response.json()
    assert payload["meta"]["total"] == 1
    assert payload["rows"][0]["stock"]["lotNo"] == "LOT-MINE"

    denied = client.get("/users/user-2/stock-assignments", headers=auth_headers("user-1"))
    assert denied.status_code == 403
