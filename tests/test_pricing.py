"""
Portion pricing tests.
"""
from decimal import Decimal

import pytest

from restopos.models import MenuItem, PricingMode, QuantityType
from restopos.services.pricing import to_money, unit_price


def mutton(**kwargs):
    defaults = {"name": "Mutton Biryani", "price": Decimal("400.00"), "pricing_mode": PricingMode.FIXED}
    defaults.update(kwargs)
    return MenuItem(**defaults)


@pytest.mark.parametrize("portion", [None, QuantityType.HALF, QuantityType.CUSTOM])
def test_fixed_price_ignores_portion(portion):
    assert unit_price(mutton(), portion) == Decimal("400.00")


@pytest.mark.parametrize(
    "portion, expected",
    [
        (QuantityType.QUARTER, Decimal("150.00")),
        (QuantityType.HALF, Decimal("300.00")),
        (QuantityType.THREE_QUARTER, Decimal("450.00")),
        (QuantityType.FULL, Decimal("600.00")),
    ],
)
def test_auto_price_scales_base_price(portion, expected):
    item = mutton(pricing_mode=PricingMode.QUANTITY_AUTO, base_price=Decimal("600.00"))
    assert unit_price(item, portion) == expected


def test_manual_price_per_portion():
    item = mutton(
        pricing_mode=PricingMode.QUANTITY_MANUAL,
        half_price=Decimal("220.00"),
        quarter_price=Decimal("120.00"),
    )

    assert unit_price(item, QuantityType.HALF) == Decimal("220.00")
    assert unit_price(item, QuantityType.QUARTER) == Decimal("120.00")
    assert unit_price(item, QuantityType.FULL) == Decimal("400.00"), "full falls back to the menu price"


def test_to_money_rounds_half_up():
    assert to_money(2.675) == Decimal("2.68")
    assert to_money(None) == Decimal("0.00")


@pytest.mark.parametrize(
    "portion, expected",
    [
        (QuantityType.QUARTER, Decimal("100.00")),
        (QuantityType.HALF, Decimal("200.00")),
        (QuantityType.THREE_QUARTER, Decimal("300.00")),
    ],
)
def test_manual_price_without_portion_price_scales_menu_price(portion, expected):
    item = mutton(pricing_mode=PricingMode.QUANTITY_MANUAL, full_price=Decimal("400.00"))
    assert unit_price(item, portion) == expected
