"""
Price and tax arithmetic.

All money is Decimal, rounded half-up to the paisa/cent. Totals always
satisfy ``total == subtotal + tax`` exactly at two decimals.
"""

import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.config import get_settings
from restopos.models import MenuItem, OutletSettings, PricingMode, QuantityType

CENT = Decimal("0.01")

QUANTITY_MULTIPLIERS = {
    QuantityType.QUARTER: Decimal("0.25"),
    QuantityType.HALF: Decimal("0.5"),
    QuantityType.THREE_QUARTER: Decimal("0.75"),
    QuantityType.FULL: Decimal("1"),
}


def to_money(value: Union[Decimal, float, int, str, None]) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def quantity_multiplier(quantity_type: Optional[QuantityType]) -> Decimal:
    return QUANTITY_MULTIPLIERS.get(quantity_type, Decimal("1"))


def unit_price(item: MenuItem, quantity_type: Optional[QuantityType] = None) -> Decimal:
    """
    Resolve the price of one unit of ``item`` for the requested portion.

    fixed           -> item.price whatever the portion
    quantity_auto   -> base_price (or price) scaled by the portion multiplier
    quantity_manual -> the explicit per-portion price; a portion without one
                       is item.price scaled by the portion multiplier
    CUSTOM or no portion falls back to item.price.
    """
    price = to_money(item.price)
    if quantity_type is None or quantity_type == QuantityType.CUSTOM:
        return price

    if item.pricing_mode == PricingMode.QUANTITY_AUTO:
        base = item.base_price if item.base_price is not None else item.price
        return to_money(Decimal(str(base)) * quantity_multiplier(quantity_type))

    if item.pricing_mode == PricingMode.QUANTITY_MANUAL:
        manual = {
            QuantityType.QUARTER: item.quarter_price,
            QuantityType.HALF: item.half_price,
            QuantityType.THREE_QUARTER: item.three_quarter_price,
            QuantityType.FULL: item.full_price,
        }.get(quantity_type)
        if manual is None:
            return to_money(price * quantity_multiplier(quantity_type))
        return to_money(manual)

    return price


def compute_totals(subtotal: Union[Decimal, float], tax_rate: Union[Decimal, float]) -> tuple[Decimal, Decimal, Decimal]:
    """Return (subtotal, tax, total) for a subtotal taxed at ``tax_rate``."""
    subtotal = to_money(subtotal)
    rate = tax_rate if isinstance(tax_rate, Decimal) else Decimal(str(tax_rate))
    tax = to_money(subtotal * rate)
    return subtotal, tax, subtotal + tax


async def outlet_tax_rate(db: AsyncSession, outlet_id: uuid.UUID) -> Decimal:
    """
    Tax rate applied when an order is created or edited.

    GST disabled -> 0; GST percentage set -> percentage / 100; otherwise the
    configured default rate.
    """
    result = await db.execute(
        select(OutletSettings).where(OutletSettings.outlet_id == outlet_id)
    )
    outlet_settings = result.scalar_one_or_none()

    if outlet_settings is not None:
        if not outlet_settings.gst_enabled:
            return Decimal("0")
        if outlet_settings.gst_percentage:
            return Decimal(str(outlet_settings.gst_percentage)) / Decimal("100")

    return Decimal(str(get_settings().default_tax_rate))
