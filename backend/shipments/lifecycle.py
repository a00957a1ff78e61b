"""
Shipment Lifecycle Manager — creation, status transitions, audit history.

Every status change writes exactly one shipment_status_history row in the
same unit of work as the status update; the caller's commit makes both
visible together.

Transitions are permissive by default (any status -> any status). Setting
ENFORCE_STATUS_TRANSITIONS=true turns on the ALLOWED_TRANSITIONS table
below; statuses added to the catalog at runtime stay unconstrained.
"""

import uuid
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import DomainViolationError, InvalidArgumentError, NotFoundError
from db.models import ReturnShipment, Shipment, ShipmentStatus, ShipmentStatusHistory, User, Zone
from shipments.catalog import ShipmentStatusCode as S
from shipments.catalog import UserRole, get_status_by_name, resolve_initial_status
from shipments.pricing import apply_priority, resolve_delivery_fee, to_money

logger = structlog.get_logger()

MAX_TRACKING_ATTEMPTS = 10
CREATED_REASON = "Shipment created"
DEFAULT_REASON = "Status updated"

ALLOWED_TRANSITIONS: dict[S, frozenset[S]] = {
    S.PENDING: frozenset({S.PENDING_APPROVAL, S.APPROVED, S.CANCELLED, S.ON_HOLD, S.PENDING_UPDATE}),
    S.PENDING_APPROVAL: frozenset({S.APPROVED, S.CANCELLED, S.ON_HOLD, S.PENDING_UPDATE}),
    S.PENDING_UPDATE: frozenset({S.PENDING_APPROVAL, S.APPROVED, S.CANCELLED}),
    S.APPROVED: frozenset({S.PICKED_UP, S.RECEIVED_AT_HUB, S.CANCELLED, S.ON_HOLD}),
    S.PICKED_UP: frozenset({S.RECEIVED_AT_HUB, S.IN_TRANSIT}),
    S.RECEIVED_AT_HUB: frozenset({S.READY_FOR_DISPATCH, S.ASSIGNED_TO_COURIER, S.ON_HOLD, S.RETURNED_TO_ORIGIN}),
    S.READY_FOR_DISPATCH: frozenset({S.ASSIGNED_TO_COURIER, S.ON_HOLD}),
    S.ASSIGNED_TO_COURIER: frozenset({S.OUT_FOR_DELIVERY, S.IN_TRANSIT, S.RECEIVED_AT_HUB}),
    S.IN_TRANSIT: frozenset({S.OUT_FOR_DELIVERY, S.RECEIVED_AT_HUB}),
    S.OUT_FOR_DELIVERY: frozenset(
        {S.DELIVERED, S.PARTIALLY_DELIVERED, S.FAILED_ATTEMPT, S.FAILED_DELIVERY, S.POSTPONED, S.RESCHEDULED}
    ),
    S.FAILED_ATTEMPT: frozenset({S.OUT_FOR_DELIVERY, S.RESCHEDULED, S.POSTPONED, S.PENDING_RETURN}),
    S.FAILED_DELIVERY: frozenset({S.PENDING_RETURN, S.RETURNED_TO_HUB}),
    S.POSTPONED: frozenset({S.OUT_FOR_DELIVERY, S.ASSIGNED_TO_COURIER}),
    S.RESCHEDULED: frozenset({S.OUT_FOR_DELIVERY, S.ASSIGNED_TO_COURIER}),
    S.ON_HOLD: frozenset({S.APPROVED, S.RECEIVED_AT_HUB, S.CANCELLED}),
    S.PENDING_RETURN: frozenset({S.RETURNED_TO_HUB, S.RETURNED_TO_ORIGIN}),
    S.RETURNED_TO_HUB: frozenset({S.ASSIGNED_TO_COURIER, S.RETURNED_TO_ORIGIN}),
    S.PARTIALLY_DELIVERED: frozenset({S.DELIVERED, S.PENDING_RETURN, S.RETURNED_TO_ORIGIN}),
    S.DELIVERED: frozenset({S.RETURNED_TO_ORIGIN}),
    S.RETURNED_TO_ORIGIN: frozenset(),
    S.CANCELLED: frozenset(),
}


def is_transition_allowed(current: str | None, target: str) -> bool:
    """Adjacency check against ALLOWED_TRANSITIONS. Unknown names pass."""
    if current is None or current == target:
        return True
    try:
        current_code, target_code = S(current), S(target)
    except ValueError:
        return True
    return target_code in ALLOWED_TRANSITIONS.get(current_code, frozenset())


# ─── Lookups ────────────────────────────────────────────────────────────────


async def get_shipment_by_id(db: AsyncSession, shipment_id: uuid.UUID) -> Shipment | None:
    return await db.get(Shipment, shipment_id)


async def get_shipment_by_tracking_number(db: AsyncSession, tracking_number: str) -> Shipment | None:
    result = await db.execute(select(Shipment).where(Shipment.tracking_number == tracking_number))
    return result.scalar_one_or_none()


async def list_shipments(
    db: AsyncSession,
    merchant_id: uuid.UUID | None = None,
    courier_id: uuid.UUID | None = None,
    status_name: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Shipment]:
    query = select(Shipment)
    if merchant_id:
        query = query.where(Shipment.merchant_id == merchant_id)
    if courier_id:
        query = query.where(Shipment.courier_id == courier_id)
    if status_name:
        query = query.join(ShipmentStatus, Shipment.status_id == ShipmentStatus.status_id).where(
            ShipmentStatus.name == status_name
        )
    query = query.order_by(Shipment.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().unique().all())


async def get_status_history(db: AsyncSession, shipment_id: uuid.UUID) -> list[ShipmentStatusHistory]:
    result = await db.execute(
        select(ShipmentStatusHistory)
        .where(ShipmentStatusHistory.shipment_id == shipment_id)
        .order_by(ShipmentStatusHistory.changed_at)
    )
    return list(result.scalars().unique().all())


async def load_shipment(db: AsyncSession, shipment: Shipment | str) -> Shipment:
    if isinstance(shipment, Shipment):
        return shipment
    found = await get_shipment_by_tracking_number(db, shipment)
    if found is None:
        raise NotFoundError(f"Shipment {shipment} not found", entity="shipment", identifier=shipment)
    return found


# ─── Create ─────────────────────────────────────────────────────────────────


async def generate_tracking_number(db: AsyncSession, prefix: str | None = None) -> str:
    prefix = prefix if prefix is not None else get_settings().tracking_number_prefix
    for _ in range(MAX_TRACKING_ATTEMPTS):
        candidate = f"{prefix}{uuid.uuid4().hex[:8].upper()}"
        if await get_shipment_by_tracking_number(db, candidate) is None:
            return candidate
    raise DomainViolationError("Could not allocate a unique tracking number", prefix=prefix)


def append_history(
    db: AsyncSession,
    shipment: Shipment,
    status: ShipmentStatus,
    reason: str | None,
    at: datetime | None = None,
) -> ShipmentStatusHistory:
    entry = ShipmentStatusHistory(
        shipment_id=shipment.shipment_id,
        status=status,
        reason=reason,
        changed_at=at or datetime.utcnow(),
    )
    db.add(entry)
    return entry


async def create_shipment(
    db: AsyncSession,
    *,
    merchant_id: uuid.UUID,
    zone_id: uuid.UUID,
    recipient_name: str,
    recipient_phone: str,
    recipient_address: str,
    item_value: Decimal,
    cod_amount: Decimal = Decimal("0"),
    delivery_fee: Decimal | None = None,
    priority: str = "STANDARD",
    history_reason: str = CREATED_REASON,
    require_merchant_role: bool = True,
) -> Shipment:
    """
    Create a shipment in its initial status with one history row.

    Delivery fee defaults to the merchant/zone price list when not given.
    Return shipments skip the merchant role check (require_merchant_role=False).
    """
    merchant = await db.get(User, merchant_id)
    if merchant is None:
        raise NotFoundError(f"Merchant {merchant_id} not found", entity="user", identifier=str(merchant_id))
    if require_merchant_role and merchant.role != UserRole.MERCHANT.value:
        raise DomainViolationError(f"User {merchant_id} is not a merchant", role=merchant.role)
    if await db.get(Zone, zone_id) is None:
        raise NotFoundError(f"Zone {zone_id} not found", entity="zone", identifier=str(zone_id))

    if delivery_fee is None:
        delivery_fee = apply_priority(await resolve_delivery_fee(db, merchant_id, zone_id), priority)

    status = await resolve_initial_status(db)
    now = datetime.utcnow()
    shipment = Shipment(
        shipment_id=uuid.uuid4(),
        tracking_number=await generate_tracking_number(db),
        merchant_id=merchant_id,
        zone_id=zone_id,
        status=status,
        recipient_name=recipient_name,
        recipient_phone=recipient_phone,
        recipient_address=recipient_address,
        item_value=to_money(item_value),
        cod_amount=to_money(cod_amount),
        delivery_fee=to_money(delivery_fee),
        cash_reconciled=False,
        created_at=now,
        updated_at=now,
    )
    db.add(shipment)
    await db.flush()

    append_history(db, shipment, status, history_reason, at=now)
    await db.flush()

    logger.info(
        "shipment.created",
        shipment_id=str(shipment.shipment_id),
        tracking_number=shipment.tracking_number,
        status=status.name,
        delivery_fee=str(shipment.delivery_fee),
    )
    return shipment


# ─── Transitions ────────────────────────────────────────────────────────────


async def update_status(
    db: AsyncSession,
    shipment: Shipment | str,
    status: ShipmentStatus,
    reason: str | None = None,
) -> Shipment:
    """
    Move a shipment to `status` and append the matching history row.

    DELIVERED stamps delivered_at; a repeat delivery overwrites it.
    """
    shipment = await load_shipment(db, shipment)
    previous = shipment.status_name

    if get_settings().enforce_status_transitions and not is_transition_allowed(previous, status.name):
        raise DomainViolationError(
            f"Illegal shipment transition: {previous} -> {status.name}",
            tracking_number=shipment.tracking_number,
        )

    now = datetime.utcnow()
    shipment.status = status
    shipment.updated_at = now
    if status.name == S.DELIVERED.value:
        shipment.delivered_at = now

    append_history(db, shipment, status, reason or DEFAULT_REASON, at=now)
    await db.flush()

    logger.info(
        "shipment.status_updated",
        tracking_number=shipment.tracking_number,
        from_status=previous,
        to_status=status.name,
    )
    return shipment


async def update_status_with_reason(
    db: AsyncSession,
    tracking_number: str,
    status_name: str,
    reason: str | None = None,
) -> Shipment:
    """Resolve `status_name` first; unknown names never touch the shipment."""
    status = await get_status_by_name(db, status_name)
    if status is None:
        raise InvalidArgumentError(f"Invalid status: {status_name}", name=status_name)
    return await update_status(db, tracking_number, status, reason)


# ─── Delete ─────────────────────────────────────────────────────────────────


async def delete_shipment(db: AsyncSession, shipment_id: uuid.UUID) -> None:
    """Hard delete: history rows, return links, then the shipment itself."""
    shipment = await db.get(Shipment, shipment_id)
    if shipment is None:
        raise NotFoundError(f"Shipment {shipment_id} not found", entity="shipment", identifier=str(shipment_id))

    await db.execute(delete(ShipmentStatusHistory).where(ShipmentStatusHistory.shipment_id == shipment_id))
    await db.execute(
        delete(ReturnShipment).where(
            or_(
                ReturnShipment.original_shipment_id == shipment_id,
                ReturnShipment.return_shipment_id == shipment_id,
            )
        )
    )
    await db.delete(shipment)
    await db.flush()
    logger.warning("shipment.deleted", shipment_id=str(shipment_id), tracking_number=shipment.tracking_number)
