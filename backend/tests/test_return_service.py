from decimal import Decimal

import pytest

from shopledger import schemas
from shopledger.errors import InvalidRequest, NotFound
from shopledger.models import InventoryReturn, InventoryUnit, Item
from shopledger.services import return_service, sales_service


@pytest.fixture
def sold_phone(db_session, cashier_actor, make_item, add_units):
    """Phone with three units; the first two sold on one sale."""
    phone = make_item("Phone", price_retail="200.00")
    units = add_units(phone, 3)
    sale = sales_service.create_sale(schemas.parse_create_sale({
        "items": [{"itemId": phone.id, "quantity": 2, "inventoryUnitIds": [units[0].id, units[1].id]}],
    }), cashier_actor)
    return phone, units, sale


def _request(unit_id, payload=None):
    return return_service.request_return(unit_id, schemas.parse_return_request(payload or {}))


def _resolve(return_id, payload):
    return return_service.resolve_return(return_id, schemas.parse_return_resolution(payload))


def test_request_return_on_sold_unit(db_session, sold_phone):
    phone, units, sale = sold_phone

    record = _request(units[0].id, {"requestedOutcome": "defective", "note": "cracked screen"})

    assert record["status"] == "pending"
    assert record["requested_outcome"] == "defective"
    assert record["inventory_unit"]["status"] == "returned"
    assert record["inventory_unit"]["item"]["name"] == "Phone"
    assert record["transaction"]["id"] == sale["id"]
    assert record["transaction"]["unit_price"] == 200.0
    assert db_session.get(InventoryUnit, units[0].id).status == "returned"
    # Stock moves only when the return is resolved
    assert db_session.get(Item, phone.id).stock == Decimal("1")


def test_return_on_available_unit_rejected(db_session, sold_phone):
    _phone, units, _sale = sold_phone

    with pytest.raises(InvalidRequest):
        _request(units[2].id)
    assert db_session.query(InventoryReturn).count() == 0


def test_return_on_unknown_unit(db_session):
    with pytest.raises(NotFound):
        _request(999999)


def test_second_request_rejected(db_session, sold_phone):
    _phone, units, _sale = sold_phone
    _request(units[0].id)

    with pytest.raises(InvalidRequest):
        _request(units[0].id)
    assert db_session.query(InventoryReturn).count() == 1


def test_resolve_restock_puts_unit_back(db_session, sold_phone):
    phone, units, _sale = sold_phone
    record = _request(units[0].id)

    resolved = _resolve(record["id"], {"action": "restock", "note": "looks fine"})

    assert resolved["status"] == "restocked"
    assert resolved["resolved_at"] is not None
    assert resolved["note"] == "looks fine"
    assert db_session.get(InventoryUnit, units[0].id).status == "available"
    assert db_session.get(Item, phone.id).stock == Decimal("2")


def test_resolve_trash(db_session, sold_phone):
    phone, units, _sale = sold_phone
    record = _request(units[0].id)

    resolved = _resolve(record["id"], {"action": "trash"})

    assert resolved["status"] == "trashed"
    assert db_session.get(InventoryUnit, units[0].id).status == "defective"
    assert db_session.get(Item, phone.id).stock == Decimal("1")


def test_resolve_return_to_supplier(db_session, sold_phone, make_supplier):
    _phone, units, _sale = sold_phone
    acme = make_supplier("Acme")
    record = _request(units[0].id)

    with pytest.raises(NotFound):
        _resolve(record["id"], {"action": "return_to_supplier", "supplierId": acme.id + 1000})

    resolved = _resolve(record["id"], {
        "action": "return_to_supplier",
        "supplierId": acme.id,
        "supplierNote": "RMA 77",
    })

    assert resolved["status"] == "returned_to_supplier"
    assert resolved["supplier"] == {"id": acme.id, "name": "Acme"}
    assert resolved["supplier_note"] == "RMA 77"
    assert db_session.get(InventoryUnit, units[0].id).status == "defective"


def test_resolve_twice_rejected(db_session, sold_phone):
    _phone, units, _sale = sold_phone
    record = _request(units[0].id)
    _resolve(record["id"], {"action": "trash"})

    with pytest.raises(InvalidRequest):
        _resolve(record["id"], {"action": "restock"})
    with pytest.raises(NotFound):
        _resolve(record["id"] + 1000, {"action": "restock"})


def test_receipt_shows_latest_return(db_session, sold_phone):
    _phone, units, sale = sold_phone
    record = _request(units[1].id)

    receipt = sales_service.get_sale_receipt(sale["id"])

    by_id = {unit["id"]: unit for unit in receipt["lines"][0]["units"]}
    assert by_id[units[0].id]["latest_return"] is None
    assert by_id[units[1].id]["latest_return"]["id"] == record["id"]
    assert by_id[units[1].id]["status"] == "returned"


def test_edit_keeps_returned_units_out_of_stock(db_session, cashier_actor, sold_phone):
    phone, units, sale = sold_phone
    _request(units[0].id)

    sales_service.update_sale(sale["id"], schemas.parse_edit_sale({
        "items": [{"itemId": phone.id, "quantity": 1, "inventoryUnitIds": [units[1].id]}],
        "editNote": "first phone came back",
    }), cashier_actor)

    assert db_session.get(InventoryUnit, units[0].id).status == "returned"
    assert db_session.get(InventoryUnit, units[1].id).status == "sold"
    assert db_session.get(InventoryUnit, units[2].id).status == "available"
    assert db_session.get(Item, phone.id).stock == Decimal("1")


def test_list_returns_pending_first(db_session, sold_phone):
    _phone, units, _sale = sold_phone
    first = _request(units[0].id)
    _resolve(first["id"], {"action": "trash"})
    second = _request(units[1].id)

    listed = return_service.list_returns()
    assert [row["id"] for row in listed] == [second["id"], first["id"]]

    pending = return_service.list_returns("pending")
    assert [row["id"] for row in pending] == [second["id"]]
