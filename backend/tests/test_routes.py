"""
HTTP layer tests: status codes, error payloads and the actor headers.
"""

from decimal import Decimal

from shopledger.models import Item


def _headers(user):
    return {"X-User-Id": str(user.id), "X-User-Role": user.role}


def test_health(client, db_session, cashboxes):
    response = client.get("/api/system/health")

    assert response.status_code == 200
    assert response.json["status"] == "healthy"
    assert response.json["checks"]["database"]["details"]["cashboxes"] == 3


def test_health_degraded_without_cashboxes(client, db_session):
    response = client.get("/api/system/health")

    assert response.status_code == 200
    assert response.json["status"] == "degraded"


def test_create_sale_and_read_receipt(client, db_session, cashier, cashboxes, make_item, add_roll):
    cable = make_item("Cable-5", stock_unit="m", price_retail="1.50")
    add_roll(cable, 100)

    response = client.post("/api/sales/", json={
        "items": [{"itemId": cable.id, "mode": "METER", "lengthMeters": 30}],
        "paid": 20,
        "cashboxCode": "A",
    }, headers=_headers(cashier))

    assert response.status_code == 201
    body = response.json
    assert body["total"] == 45.0
    assert body["paid"] == 20.0
    assert body["status_code"] == "PARTIAL"
    assert body["user_id"] == cashier.id

    receipt = client.get(f"/api/sales/{body['id']}")
    assert receipt.status_code == 200
    assert receipt.json["lines"][0]["length_m"] == 30.0
    assert len(receipt.json["payments"]) == 1

    assert db_session.get(Item, cable.id).stock == Decimal("70")


def test_sale_errors_map_to_status_codes(client, db_session, cashier, make_item):
    desk = make_item("Desk", stock=1, price_retail="100.00")
    line = {"itemId": desk.id, "quantity": 1}

    missing_actor = client.post("/api/sales/", json={"items": [line]})
    assert missing_actor.status_code == 400
    assert missing_actor.json["code"] == "invalid_request"

    bad_header = client.post("/api/sales/", json={"items": [line]}, headers={"X-User-Id": "abc"})
    assert bad_header.status_code == 400

    short = client.post("/api/sales/", json={"items": [dict(line, quantity=2)]}, headers=_headers(cashier))
    assert short.status_code == 409
    assert short.json["code"] == "insufficient_inventory"

    bad_money = client.post("/api/sales/", json={"items": [line], "paid": "1.001"}, headers=_headers(cashier))
    assert bad_money.status_code == 400
    assert bad_money.json["details"]["field"] == "paid"

    assert client.get("/api/sales/999999").status_code == 404


def test_edit_sale_route(client, db_session, cashier, make_item):
    desk = make_item("Desk", stock=2, price_retail="100.00")
    created = client.post("/api/sales/", json={"items": [{"itemId": desk.id, "quantity": 1}]},
                          headers=_headers(cashier)).json

    no_note = client.put(f"/api/sales/{created['id']}", json={"items": [{"itemId": desk.id, "quantity": 2}]},
                         headers=_headers(cashier))
    assert no_note.status_code == 400

    edited = client.put(f"/api/sales/{created['id']}", json={
        "items": [{"itemId": desk.id, "quantity": 2}],
        "editNote": "second desk",
    }, headers=_headers(cashier))
    assert edited.status_code == 200
    assert edited.json["total"] == 200.0
    assert edited.json["last_edit_note"] == "second desk"


def test_status_override_and_payment_routes(client, db_session, cashier, cashboxes, make_item):
    desk = make_item("Desk", stock=1, price_retail="100.00")
    sale = client.post("/api/sales/", json={"items": [{"itemId": desk.id, "quantity": 1}]},
                       headers=_headers(cashier)).json

    pinned = client.post(f"/api/sales/{sale['id']}/status-override", json={"status": "paid"},
                         headers=_headers(cashier))
    assert pinned.status_code == 200
    assert pinned.json["status_code"] == "PAID"

    cleared = client.post(f"/api/sales/{sale['id']}/status-override", json={"status": None},
                          headers=_headers(cashier))
    assert cleared.json["status_code"] == "UNPAID"

    paid = client.post(f"/api/payments/sales/{sale['id']}", json={"amount": 100, "cashboxCode": "C"},
                       headers=_headers(cashier))
    assert paid.status_code == 201
    assert paid.json["status_code"] == "PAID"

    missing = client.post("/api/payments/sales/999999", json={"amount": 1, "cashboxCode": "C"},
                          headers=_headers(cashier))
    assert missing.status_code == 404


def test_restock_and_supplier_routes(client, db_session, cashier, cashboxes, make_item):
    bolts = make_item("Bolts")
    created = client.post("/api/restocks/", json={
        "supplier": "Acme",
        "items": [{"itemId": bolts.id, "quantity": 2, "unitCost": "25.00", "autoSerial": True}],
    }, headers=_headers(cashier))
    assert created.status_code == 201
    restock = created.json
    assert restock["total"] == 50.0

    assert client.get(f"/api/restocks/{restock['id']}").status_code == 200

    partial = client.post(f"/api/payments/restocks/{restock['id']}", json={"amount": 10, "cashboxCode": "B"},
                          headers=_headers(cashier))
    assert partial.status_code == 201
    assert partial.json["status_code"] == "PARTIAL"

    supplier_id = restock["supplier_id"]
    too_much = client.post(f"/api/suppliers/{supplier_id}/payments", json={"amount": 100, "cashboxCode": "B"},
                           headers=_headers(cashier))
    assert too_much.status_code == 400

    settled = client.post(f"/api/suppliers/{supplier_id}/payments", json={"amount": 40, "cashboxCode": "B"},
                          headers=_headers(cashier))
    assert settled.status_code == 201
    assert settled.json["detail"]["summary"]["outstanding"] == 0.0

    debt = client.get(f"/api/suppliers/{supplier_id}/debt")
    assert debt.status_code == 200
    assert debt.json["restocks"][0]["status_code"] == "PAID"

    assert client.get("/api/suppliers/999999/debt").status_code == 404


def test_return_routes(client, db_session, cashier, make_item, add_units):
    phone = make_item("Phone", price_retail="200.00")
    units = add_units(phone, 2)
    client.post("/api/sales/", json={
        "items": [{"itemId": phone.id, "quantity": 1, "inventoryUnitIds": [units[0].id]}],
    }, headers=_headers(cashier))

    available = client.post(f"/api/returns/units/{units[1].id}", json={}, headers=_headers(cashier))
    assert available.status_code == 400

    opened = client.post(f"/api/returns/units/{units[0].id}", json={"note": "wrong color"},
                         headers=_headers(cashier))
    assert opened.status_code == 201
    return_id = opened.json["id"]

    listed = client.get("/api/returns/?status=pending")
    assert [row["id"] for row in listed.json["returns"]] == [return_id]

    resolved = client.post(f"/api/returns/{return_id}/resolve", json={"action": "restock"},
                           headers=_headers(cashier))
    assert resolved.status_code == 200
    assert resolved.json["status"] == "restocked"

    bad_action = client.post(f"/api/returns/{return_id}/resolve", json={"action": "burn"},
                             headers=_headers(cashier))
    assert bad_action.status_code == 400


def test_cashbox_routes(client, db_session, cashier, cashboxes):
    created = client.post("/api/cashboxes/entries", json={
        "kind": "expense",
        "amount": "12.50",
        "cashboxCode": "A",
        "note": "tape",
    }, headers=_headers(cashier))
    assert created.status_code == 201
    assert created.json["direction"] == "out"
    assert created.json["cashbox_code"] == "A"

    listed = client.get("/api/cashboxes/")
    balances = {row["code"]: row["balance"] for row in listed.json["cashboxes"]}
    assert balances == {"A": -12.5, "B": 0.0, "C": 0.0}

    entries = client.get("/api/cashboxes/a/entries?kind=expense")
    assert entries.status_code == 200
    assert [entry["note"] for entry in entries.json["entries"]] == ["tape"]

    assert client.get("/api/cashboxes/ZZ/entries").status_code == 404

    bad_kind = client.post("/api/cashboxes/entries", json={"kind": "transfer", "amount": 1, "cashboxCode": "A"},
                           headers=_headers(cashier))
    assert bad_kind.status_code == 400
