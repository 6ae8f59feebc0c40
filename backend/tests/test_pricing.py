from decimal import Decimal

from shopledger.models import Item
from shopledger.services.pricing import resolve_unit_price


def _item(price="0", retail=None, wholesale=None):
    return Item(
        name="Cable",
        price=Decimal(price),
        price_retail=Decimal(retail) if retail is not None else None,
        price_wholesale=Decimal(wholesale) if wholesale is not None else None,
    )


def test_explicit_price_wins():
    item = _item(retail="2.00", wholesale="1.50")
    assert resolve_unit_price(item, "wholesale", Decimal("1.25")) == Decimal("1.25")


def test_explicit_zero_is_a_price():
    item = _item(retail="2.00")
    assert resolve_unit_price(item, None, Decimal("0")) == Decimal("0.00")


def test_retail_is_default_tier():
    item = _item(price="9.99", retail="2.00", wholesale="1.50")
    assert resolve_unit_price(item) == Decimal("2.00")


def test_wholesale_tier():
    item = _item(retail="2.00", wholesale="1.50")
    assert resolve_unit_price(item, "wholesale") == Decimal("1.50")


def test_falls_back_to_other_tier():
    item = _item(retail="2.00")
    assert resolve_unit_price(item, "wholesale") == Decimal("2.00")
    item = _item(wholesale="1.50")
    assert resolve_unit_price(item, "retail") == Decimal("1.50")


def test_falls_back_to_legacy_price_then_zero():
    assert resolve_unit_price(_item(price="3.40")) == Decimal("3.40")
    assert resolve_unit_price(Item(name="Loose", price=None)) == Decimal("0.00")


def test_result_rounded_half_up():
    assert resolve_unit_price(_item(retail="1.005")) == Decimal("1.01")
