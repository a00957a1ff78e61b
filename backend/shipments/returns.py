"""
Return Workflow — reverse-logistics shipments.

A return is a brand-new shipment (own tracking number, own lifecycle)
linked to its original through return_shipments. The original is forced
to RETURNED_TO_ORIGIN. All three writes (new shipment, original status,
link row) share the caller's unit of work and commit together.
"""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ReturnShipment, Shipment
from shipments.catalog import ShipmentStatusCode, require_status
from shipments.lifecycle import create_shipment, load_shipment, update_status

logger = structlog.get_logger()

NOT_RETURNABLE = frozenset(
    {
        ShipmentStatusCode.DELIVERED.value,
        ShipmentStatusCode.CANCELLED.value,
        ShipmentStatusCode.RETURNED_TO_ORIGIN.value,
    }
)


def is_eligible_for_return(shipment: Shipment) -> bool:
    """Advisory check for UIs. create_return_shipment does not enforce it."""
    return shipment.status_name not in NOT_RETURNABLE


async def create_return_shipment(
    db: AsyncSession,
    original: Shipment | str,
    reason: str,
    created_by: str | None = None,
) -> Shipment:
    original = await load_shipment(db, original)
    returned_status = await require_status(db, ShipmentStatusCode.RETURNED_TO_ORIGIN)

    return_shipment = await create_shipment(
        db,
        merchant_id=original.merchant_id,
        zone_id=original.zone_id,
        recipient_name=original.recipient_name,
        recipient_phone=original.recipient_phone,
        recipient_address=original.recipient_address,
        item_value=original.item_value,
        cod_amount=original.cod_amount,
        delivery_fee=original.delivery_fee,
        history_reason=f"Return shipment created for: {original.tracking_number}",
        require_merchant_role=False,
    )

    await update_status(db, original, returned_status, f"Return requested: {reason}")

    link = ReturnShipment(
        original_shipment_id=original.shipment_id,
        return_shipment_id=return_shipment.shipment_id,
        reason=reason,
        created_by=created_by,
    )
    db.add(link)
    await db.flush()

    logger.info(
        "return.created",
        original_tracking=original.tracking_number,
        return_tracking=return_shipment.tracking_number,
        reason=reason,
    )
    return return_shipment


async def get_return_by_original(db: AsyncSession, original_shipment_id: uuid.UUID) -> ReturnShipment | None:
    result = await db.execute(
        select(ReturnShipment)
        .where(ReturnShipment.original_shipment_id == original_shipment_id)
        .order_by(ReturnShipment.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_return_by_return_shipment(db: AsyncSession, return_shipment_id: uuid.UUID) -> ReturnShipment | None:
    result = await db.execute(select(ReturnShipment).where(ReturnShipment.return_shipment_id == return_shipment_id))
    return result.scalar_one_or_none()
