# Overview: Unit price resolution for sale lines; pure, no database access.

from __future__ import annotations

from ..money import q2, to_decimal, ZERO


TIER_RETAIL = "retail"
TIER_WHOLESALE = "wholesale"
PRICE_TIERS = (TIER_RETAIL, TIER_WHOLESALE)


def resolve_unit_price(item, tier: str | None = None, unit_price=None):
    """
    Price per piece (EACH) or per meter (METER).

    Order of precedence:
    1. explicit unit_price (>= 0), as entered by the cashier
    2. the requested tier's price (retail when no tier), then the other tier
    3. the legacy single price
    4. 0

    A missing (None) price falls through; a price of 0 is a real price.
    """
    explicit = to_decimal(unit_price, default=None)
    if explicit is not None and explicit >= ZERO:
        return q2(explicit)

    if tier == TIER_WHOLESALE:
        ordered = (item.price_wholesale, item.price_retail)
    else:
        ordered = (item.price_retail, item.price_wholesale)

    for candidate in ordered + (item.price,):
        if candidate is not None:
            return q2(candidate)
    return q2(ZERO)
