"""
Delivery Fee Pricing.

Fee resolution order for a new shipment:
  1. Active merchant-specific price for the zone (delivery_pricing)
  2. Zone default fee
  3. settings.default_delivery_fee

A priority multiplier is applied on top (EXPRESS 1.5x, ECONOMY 0.8x).
"""

import uuid
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import InvalidArgumentError
from db.models import DeliveryPricing, Zone

CENT = Decimal("0.01")

PRIORITY_MULTIPLIERS = {
    "EXPRESS": Decimal("1.5"),
    "STANDARD": Decimal("1.0"),
    "ECONOMY": Decimal("0.8"),
}


def to_money(value) -> Decimal:
    """Quantize to cents with half-up rounding."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def apply_priority(fee: Decimal, priority: str = "STANDARD") -> Decimal:
    multiplier = PRIORITY_MULTIPLIERS.get((priority or "STANDARD").upper())
    if multiplier is None:
        raise InvalidArgumentError(f"Unknown delivery priority '{priority}'", priority=priority)
    return to_money(Decimal(fee) * multiplier)


async def resolve_delivery_fee(db: AsyncSession, merchant_id: uuid.UUID, zone_id: uuid.UUID) -> Decimal:
    result = await db.execute(
        select(DeliveryPricing.delivery_fee)
        .where(
            DeliveryPricing.merchant_id == merchant_id,
            DeliveryPricing.zone_id == zone_id,
            DeliveryPricing.is_active.is_(True),
        )
        .order_by(DeliveryPricing.updated_at.desc())
        .limit(1)
    )
    merchant_fee = result.scalar_one_or_none()
    if merchant_fee is not None:
        return to_money(merchant_fee)

    zone = await db.get(Zone, zone_id)
    if zone is not None and zone.default_fee is not None:
        return to_money(zone.default_fee)

    return to_money(get_settings().default_delivery_fee)
