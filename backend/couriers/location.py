"""Courier GPS location tracking."""

import uuid
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvalidArgumentError
from db.models import CourierLocation
from shipments.dispatch import require_courier

logger = structlog.get_logger()


async def update_courier_location(
    db: AsyncSession,
    courier_id: uuid.UUID,
    latitude: Decimal,
    longitude: Decimal,
) -> CourierLocation:
    """Record a location ping. Only couriers may report locations."""
    await require_courier(db, courier_id)

    latitude, longitude = Decimal(str(latitude)), Decimal(str(longitude))
    if not (Decimal("-90") <= latitude <= Decimal("90")) or not (Decimal("-180") <= longitude <= Decimal("180")):
        raise InvalidArgumentError(
            f"Coordinates out of range: ({latitude}, {longitude})",
            latitude=str(latitude),
            longitude=str(longitude),
        )

    ping = CourierLocation(courier_id=courier_id, latitude=latitude, longitude=longitude)
    db.add(ping)
    await db.flush()
    logger.debug("courier.location_updated", courier_id=str(courier_id))
    return ping


async def get_location_history(db: AsyncSession, courier_id: uuid.UUID, limit: int = 100) -> list[CourierLocation]:
    result = await db.execute(
        select(CourierLocation)
        .where(CourierLocation.courier_id == courier_id)
        .order_by(CourierLocation.recorded_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_last_location(db: AsyncSession, courier_id: uuid.UUID) -> CourierLocation | None:
    history = await get_location_history(db, courier_id, limit=1)
    return history[0] if history else None
