from app.teatrade.db.models import Admin, Shipment, ShipmentHistory, StockHistory
from tests.ledger_helpers import auth_headers, reload_stock, shipment_payload, weight


def _create(client, user_cognito_id: str, items, headers=None, **overrides):
    return client.post(
        f"/users/{user_cognito_id}/shipments",
        headers=headers or auth_headers(user_cognito_id),
        json=shipment_payload(items, **overrides),
    )


def test_create_shipment_deducts_stock(client, db_session, make_user, make_stock):
    make_user("user-1")
    stock = make_stock(weight="100.00", bags=10)

    response = _create(client, "user-1", [(stock.id, "35.00")])

    assert response.status_code == 201
    payload = response.json()
    assert payload["status"] == "Pending"
    assert payload["userCognitoId"] == "user-1"
    assert payload["items"][0]["stocksId"] == stock.id
    assert payload["items"][0]["assignedWeight"] == "35.00"

    refreshed = reload_stock(db_session, stock.id)
    assert refreshed.weight == weight("65.00")
    assert refreshed.bags == 6

    entry = db_session.query(StockHistory).filter_by(stocks_id=stock.id, action="REDUCED").one()
    assert entry.shipment_id == payload["id"]
    assert entry.user_cognito_id == "user-1"
    assert entry.admin_cognito_id is None

    created = db_session.query(ShipmentHistory).filter_by(shipment_id=payload["id"]).one()
    assert created.action == "CREATED"
    assert created.user_cognito_id == "user-1"
    assert created.details["items"] == [{"stocksId": stock.id, "totalWeight": "35.00", "lotNo": stock.lot_no}]


def test_insufficient_stock_rolls_back_whole_shipment(client, db_session, make_user, make_stock):
    make_user("user-1")
    first = make_stock(weight="100.00", bags=10)
    second = make_stock(weight="100.00", bags=10)

    response = _create(client, "user-1", [(first.id, "10.00"), (second.id, "500.00")])

    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == "INSUFFICIENT_STOCK"
    assert payload["details"]["stocksId"] == second.id
    assert payload["details"]["available"] == "100.00"

    assert reload_stock(db_session, first.id).weight == weight("100.00")
    assert reload_stock(db_session, second.id).weight == weight("100.00")
    assert db_session.query(Shipment).count() == 0
    assert db_session.query(StockHistory).count() == 0


def test_create_with_unknown_stock(client, make_user):
    make_user("user-1")

    response = _create(client, "user-1", [(999, "1.00")])

    assert response.status_code == 404
    assert response.json()["code"] == "STOCK_NOT_FOUND"


def test_duplicate_items_are_rejected(client, make_user, make_stock):
    make_user("user-1")
    stock = make_stock()

    response = _create(client, "user-1", [(stock.id, "1.00"), (stock.id, "2.00")])

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_user_cannot_create_for_someone_else(client, make_user, make_stock):
    make_user("user-1")
    make_user("user-2")
    stock = make_stock()

    response = _create(client, "user-1", [(stock.id, "5.00")], headers=auth_headers("user-2"))

    assert response.status_code == 403
    assert response.json()["code"] == "SHIPMENT_OWNER_MISMATCH"


def test_user_cannot_create_approved_shipment(client, db_session, make_user, make_stock):
    make_user("user-1")
    stock = make_stock()

    response = _create(client, "user-1", [(stock.id, "5.00")], status="Approved")

    assert response.status_code == 403
    assert response.json()["code"] == "STATUS_NOT_ALLOWED"
    assert reload_stock(db_session, stock.id).weight == weight("100.00")


def test_update_items_restores_then_redraws(client, db_session, make_user, make_stock):
    make_user("user-1")
    stock = make_stock(weight="100.00", bags=10)
    shipment_id = _create(client, "user-1", [(stock.id, "35.00")]).json()["id"]

    response = client.patch(
        f"/users/user-1/shipments/{shipment_id}",
        headers=auth_headers("user-1"),
        json={"items": [{"stocksId": stock.id, "totalWeight": "20.00"}], "consignee": "Nairobi Packers"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["consignee"] == "Nairobi Packers"
    assert [item["assignedWeight"] for item in payload["items"]] == ["20.00"]

    refreshed = reload_stock(db_session, stock.id)
    assert refreshed.weight == weight("80.00")
    assert refreshed.bags == 8

    actions = [
        entry.action
        for entry in db_session.query(StockHistory).filter_by(stocks_id=stock.id).order_by(StockHistory.id)
    ]
    assert actions == ["REDUCED", "RESTORED", "REDUCED"]

    updated = db_session.query(ShipmentHistory).filter_by(shipment_id=shipment_id, action="UPDATED").one()
    assert updated.details["previousItems"][0]["totalWeight"] == "35.00"
    assert updated.details["items"][0]["totalWeight"] == "20.00"


def test_update_without_items_leaves_ledger_alone(client, db_session, make_user, make_stock):
    make_user("user-1")
    stock = make_stock(weight="100.00", bags=10)
    shipment_id = _create(client, "user-1", [(stock.id, "30.00")]).json()["id"]

    response = client.patch(
        f"/users/user-1/shipments/{shipment_id}",
        headers=auth_headers("user-1"),
        json={"shipmark": "MBL/002", "additionalInstructions": "Stack carefully"},
    )

    assert response.status_code == 200
    assert response.json()["shipmark"] == "MBL/002"
    refreshed = reload_stock(db_session, stock.id)
    assert refreshed.weight == weight("70.00")
    assert refreshed.bags == 7


def test_update_redraw_over_capacity_keeps_previous_items(client, db_session, make_user, make_stock):
    make_user("user-1")
    stock = make_stock(weight="100.00", bags=10)
    shipment_id = _create(client, "user-1", [(stock.id, "30.00")]).json()["id"]

    response = client.patch(
        f"/users/user-1/shipments/{shipment_id}",
        headers=auth_headers("user-1"),
        json={"items": [{"stocksId": stock.id, "totalWeight": "150.00"}]},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INSUFFICIENT_STOCK"
    refreshed = reload_stock(db_session, stock.id)
    assert refreshed.weight == weight("70.00")
    shipment = db_session.get(Shipment, shipment_id)
    assert [item.assigned_weight for item in shipment.items] == [weight("30.00")]


def test_delete_shipment_restores_stock(client, db_session, make_user, make_stock):
    make_user("user-1")
    stock = make_stock(weight="100.00", bags=10)
    shipment_id = _create(client, "user-1", [(stock.id, "35.00")]).json()["id"]

    response = client.delete(f"/users/user-1/shipments/{shipment_id}", headers=auth_headers("user-1"))

    assert response.status_code == 200
    payload = response.json()
    assert payload["id"] == shipment_id
    assert payload["restored"][0]["assignedWeight"] == "35.00"

    refreshed = reload_stock(db_session, stock.id)
    assert refreshed.weight == weight("100.00")
    assert refreshed.bags == 10
    assert db_session.get(Shipment, shipment_id) is None
    deleted = db_session.query(ShipmentHistory).filter_by(shipment_id=shipment_id, action="DELETED").one()
    assert deleted.details["items"][0]["stocksId"] == stock.id


def test_delete_unknown_shipment(client, make_user):
    make_user("user-1")

    response = client.delete("/users/user-1/shipments/404", headers=auth_headers("user-1"))

    assert response.status_code == 404
    assert response.json()["code"] == "SHIPMENT_NOT_FOUND"


def test_user_can_cancel_but_not_approve(client, db_session, make_user, make_stock):
    make_user("user-1")
    stock = make_stock(weight="100.00", bags=10)
    shipment_id = _create(client, "user-1", [(stock.id, "35.00")]).json()["id"]

    approve = client.patch(
        f"/users/user-1/shipments/{shipment_id}",
        headers=auth_headers("user-1"),
        json={"status": "Approved"},
    )
    assert approve.status_code == 403
    assert approve.json()["code"] == "STATUS_NOT_ALLOWED"

    cancel = client.patch(
        f"/users/user-1/shipments/{shipment_id}",
        headers=auth_headers("user-1"),
        json={"status": "Cancelled"},
    )
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "Cancelled"
    assert reload_stock(db_session, stock.id).weight == weight("65.00")

    after_cancel = client.patch(
        f"/users/user-1/shipments/{shipment_id}",
        headers=auth_headers("user-1"),
        json={"consignee": "Too late"},
    )
    assert after_cancel.status_code == 400
    assert after_cancel.json()["code"] == "SHIPMENT_CANCELLED"


def test_admin_status_update_has_no_ledger_effect(client, db_session, make_user, make_stock, admin_headers):
    make_user("user-1")
    stock = make_stock(weight="100.00", bags=10)
    shipment_id = _create(client, "user-1", [(stock.id, "35.00")]).json()["id"]

    response = client.put(
        f"/admin/shipments/{shipment_id}/status",
        headers=admin_headers,
        json={"status": "Approved"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "Approved"
    assert reload_stock(db_session, stock.id).weight == weight("65.00")

    admin = db_session.query(Admin).filter_by(admin_cognito_id="admin-1").one()
    assert admin.email == "admin-1@example.com"

    entry = db_session.query(ShipmentHistory).filter_by(shipment_id=shipment_id, action="STATUS_UPDATED").one()
    assert entry.user_cognito_id == "user-1"
    assert entry.admin_cognito_id == "admin-1"
    assert entry.details["fromStatus"] == "Pending"
    assert entry.details["toStatus"] == "Approved"


def test_admin_cannot_leave_terminal_status(client, make_user, make_stock, admin_headers):
    make_user("user-1")
    stock = make_stock()
    shipment_id = _create(client, "user-1", [(stock.id, "5.00")]).json()["id"]

    delivered = client.put(
        f"/admin/shipments/{shipment_id}/status", headers=admin_headers, json={"status": "Delivered"}
    )
    assert delivered.status_code == 200

    response = client.put(
        f"/admin/shipments/{shipment_id}/status", headers=admin_headers, json={"status": "Approved"}
    )

    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == "INVALID_STATUS_TRANSITION"
    assert payload["details"] == {"from": "Delivered", "to": "Approved"}


def test_admin_same_status_is_a_no_op(client, db_session, make_user, make_stock, admin_headers):
    make_user("user-1")
    stock = make_stock()
    shipment_id = _create(client, "user-1", [(stock.id, "5.00")]).json()["id"]

    response = client.put(
        f"/admin/shipments/{shipment_id}/status", headers=admin_headers, json={"status": "Pending"}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "Pending"
    actions = [entry.action for entry in db_session.query(ShipmentHistory).filter_by(shipment_id=shipment_id)]
    assert actions == ["CREATED"]


def test_user_cannot_use_admin_status_endpoint(client, make_user, make_stock):
    make_user("user-1")
    stock = make_stock()
    shipment_id = _create(client, "user-1", [(stock.id, "5.00")]).json()["id"]

    response = client.put(
        f"/admin/shipments/{shipment_id}/status",
        headers=auth_headers("user-1"),
        json={"status": "Shipped"},
    )

    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


def test_enforce_role_can_update_status(client, make_user, make_stock):
    make_user("user-1")
    stock = make_stock()
    shipment_id = _create(client, "user-1", [(stock.id, "5.00")]).json()["id"]

    response = client.put(
        f"/admin/shipments/{shipment_id}/status",
        headers=auth_headers("enforcer-1", "enforce"),
        json={"status": "Shipped"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "Shipped"


def test_list_shipments_scoping(client, make_user, make_stock, admin_headers):
    make_user("user-1")
    make_user("user-2")
    stock = make_stock()
    assert _create(client, "user-1", [(stock.id, "5.00")]).status_code == 201
    assert _create(client, "user-2", [(stock.id, "5.00")], shipmark="U2/001").status_code == 201

    own = client.get("/users/user-1/shipments", headers=auth_headers("user-1"))
    assert own.status_code == 200
    assert own.json()["meta"]["total"] == 1
    assert own.json()["rows"][0]["user"]["userCognitoId"] == "user-1"

    other = client.get("/users/user-2/shipments", headers=auth_headers("user-1"))
    assert other.status_code == 403

    everything = client.get("/admin/shipments", headers=admin_headers)
    assert everything.status_code == 200
    assert everything.json()["meta"]["total"] == 2

    by_stock = client.get("/admin/shipments", headers=admin_headers, params={"stocksId": stock.id, "search": "U2"})
    assert by_stock.json()["meta"]["total"] == 1

    denied = client.get("/admin/shipments", headers=auth_headers("user-1"))
    assert denied.status_code == 403
