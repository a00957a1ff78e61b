"""
Status Catalog — named shipment and payout statuses.

Statuses are rows referenced by shipments, history and payouts. Internally
the known names are closed enumerations; lookups by free-text name happen
only here, at the persistence boundary.

The initial-status policy lives here too: new shipments start in
PENDING_APPROVAL, falling back to PENDING on catalogs that predate the
approval step.
"""

from enum import Enum

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConfigurationError, DomainViolationError, InvalidArgumentError, NotFoundError
from db.models import PayoutStatus, Shipment, ShipmentStatus, ShipmentStatusHistory

logger = structlog.get_logger()


class ShipmentStatusCode(str, Enum):
    PENDING = "PENDING"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    PICKED_UP = "PICKED_UP"
    RECEIVED_AT_HUB = "RECEIVED_AT_HUB"
    READY_FOR_DISPATCH = "READY_FOR_DISPATCH"
    ASSIGNED_TO_COURIER = "ASSIGNED_TO_COURIER"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    PARTIALLY_DELIVERED = "PARTIALLY_DELIVERED"
    FAILED_DELIVERY = "FAILED_DELIVERY"
    FAILED_ATTEMPT = "FAILED_ATTEMPT"
    POSTPONED = "POSTPONED"
    PENDING_UPDATE = "PENDING_UPDATE"
    PENDING_RETURN = "PENDING_RETURN"
    RETURNED_TO_HUB = "RETURNED_TO_HUB"
    RETURNED_TO_ORIGIN = "RETURNED_TO_ORIGIN"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"
    RESCHEDULED = "RESCHEDULED"


class PayoutStatusCode(str, Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PayoutType(str, Enum):
    COURIER_SETTLEMENT = "COURIER_SETTLEMENT"
    MERCHANT_PAYOUT = "MERCHANT_PAYOUT"


class UserRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MERCHANT = "MERCHANT"
    COURIER = "COURIER"
    WAREHOUSE_MANAGER = "WAREHOUSE_MANAGER"


SHIPMENT_STATUS_LABELS: dict[ShipmentStatusCode, str] = {
    ShipmentStatusCode.PENDING: "Pending",
    ShipmentStatusCode.PENDING_APPROVAL: "Pending approval",
    ShipmentStatusCode.APPROVED: "Approved",
    ShipmentStatusCode.PICKED_UP: "Picked up from merchant",
    ShipmentStatusCode.RECEIVED_AT_HUB: "Received at hub",
    ShipmentStatusCode.READY_FOR_DISPATCH: "Ready for dispatch",
    ShipmentStatusCode.ASSIGNED_TO_COURIER: "Assigned to courier",
    ShipmentStatusCode.IN_TRANSIT: "In transit",
    ShipmentStatusCode.OUT_FOR_DELIVERY: "Out for delivery",
    ShipmentStatusCode.DELIVERED: "Delivered",
    ShipmentStatusCode.PARTIALLY_DELIVERED: "Partially delivered",
    ShipmentStatusCode.FAILED_DELIVERY: "Delivery failed",
    ShipmentStatusCode.FAILED_ATTEMPT: "Delivery attempt failed",
    ShipmentStatusCode.POSTPONED: "Postponed",
    ShipmentStatusCode.PENDING_UPDATE: "Pending update",
    ShipmentStatusCode.PENDING_RETURN: "Pending return",
    ShipmentStatusCode.RETURNED_TO_HUB: "Returned to hub",
    ShipmentStatusCode.RETURNED_TO_ORIGIN: "Returned to origin",
    ShipmentStatusCode.CANCELLED: "Cancelled",
    ShipmentStatusCode.ON_HOLD: "On hold",
    ShipmentStatusCode.RESCHEDULED: "Rescheduled",
}

PAYOUT_STATUS_LABELS: dict[PayoutStatusCode, str] = {
    PayoutStatusCode.PENDING: "Awaiting disbursement",
    PayoutStatusCode.PROCESSED: "Processed",
    PayoutStatusCode.COMPLETED: "Paid",
    PayoutStatusCode.FAILED: "Failed",
    PayoutStatusCode.CANCELLED: "Cancelled",
}

DELIVERED_LIKE = frozenset({ShipmentStatusCode.DELIVERED, ShipmentStatusCode.PARTIALLY_DELIVERED})


def _name(value) -> str:
    return value.value if isinstance(value, Enum) else str(value).strip()


# ─── Shipment statuses ──────────────────────────────────────────────────────


async def get_status_by_name(db: AsyncSession, name: str | ShipmentStatusCode) -> ShipmentStatus | None:
    result = await db.execute(select(ShipmentStatus).where(ShipmentStatus.name == _name(name)))
    return result.scalar_one_or_none()


async def status_exists(db: AsyncSession, name: str | ShipmentStatusCode) -> bool:
    result = await db.execute(select(func.count(ShipmentStatus.status_id)).where(ShipmentStatus.name == _name(name)))
    return result.scalar_one() > 0


async def list_statuses(db: AsyncSession) -> list[ShipmentStatus]:
    result = await db.execute(select(ShipmentStatus).order_by(ShipmentStatus.name))
    return list(result.scalars().all())


async def create_status(db: AsyncSession, name: str, label: str | None = None) -> ShipmentStatus:
    """Add a status to the catalog. Names are unique and never reused."""
    name = _name(name)
    if not name:
        raise InvalidArgumentError("Status name must not be blank")
    if await status_exists(db, name):
        raise InvalidArgumentError(f"Status with name '{name}' already exists", name=name)

    status = ShipmentStatus(name=name, label=label)
    db.add(status)
    await db.flush()
    logger.info("catalog.status_created", name=name)
    return status


async def delete_status(db: AsyncSession, name: str) -> None:
    """Remove an unreferenced status. Statuses in use are immutable."""
    status = await get_status_by_name(db, name)
    if status is None:
        raise NotFoundError(f"Status '{name}' not found", entity="shipment_status", name=name)

    in_use = await db.execute(select(func.count(Shipment.shipment_id)).where(Shipment.status_id == status.status_id))
    in_history = await db.execute(
        select(func.count(ShipmentStatusHistory.history_id)).where(ShipmentStatusHistory.status_id == status.status_id)
    )
    if in_use.scalar_one() or in_history.scalar_one():
        raise DomainViolationError(f"Status '{status.name}' is referenced by shipments", name=status.name)

    await db.delete(status)
    await db.flush()
    logger.info("catalog.status_deleted", name=status.name)


async def require_status(db: AsyncSession, name: str | ShipmentStatusCode) -> ShipmentStatus:
    """Resolve a baseline status the workflow cannot run without."""
    status = await get_status_by_name(db, name)
    if status is None:
        logger.error("config.missing_status", name=_name(name))
        raise ConfigurationError(f"Required shipment status '{_name(name)}' is not configured", name=_name(name))
    return status


async def resolve_initial_status(db: AsyncSession) -> ShipmentStatus:
    status = await get_status_by_name(db, ShipmentStatusCode.PENDING_APPROVAL)
    if status is None:
        status = await get_status_by_name(db, ShipmentStatusCode.PENDING)
    if status is None:
        logger.error("config.missing_status", name="PENDING_APPROVAL|PENDING")
        raise ConfigurationError("Neither PENDING_APPROVAL nor PENDING status is configured")
    return status


# ─── Payout statuses ────────────────────────────────────────────────────────


async def get_payout_status_by_name(db: AsyncSession, name: str | PayoutStatusCode) -> PayoutStatus | None:
    result = await db.execute(select(PayoutStatus).where(PayoutStatus.name == _name(name)))
    return result.scalar_one_or_none()


async def list_payout_statuses(db: AsyncSession) -> list[PayoutStatus]:
    result = await db.execute(select(PayoutStatus).order_by(PayoutStatus.name))
    return list(result.scalars().all())


# ─── Seeding ────────────────────────────────────────────────────────────────


async def seed_baseline_statuses(db: AsyncSession) -> dict:
    """Insert any missing baseline shipment and payout statuses. Safe to re-run."""
    existing = {row for row in (await db.execute(select(ShipmentStatus.name))).scalars().all()}
    created_shipment = 0
    for code, label in SHIPMENT_STATUS_LABELS.items():
        if code.value not in existing:
            db.add(ShipmentStatus(name=code.value, label=label))
            created_shipment += 1

    existing_payout = {row for row in (await db.execute(select(PayoutStatus.name))).scalars().all()}
    created_payout = 0
    for code, label in PAYOUT_STATUS_LABELS.items():
        if code.value not in existing_payout:
            db.add(PayoutStatus(name=code.value, label=label))
            created_payout += 1

    await db.flush()
    summary = {"shipment_statuses_created": created_shipment, "payout_statuses_created": created_payout}
    logger.info("catalog.seeded", **summary)
    return summary
