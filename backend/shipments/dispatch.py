"""
Warehouse Dispatch — hub intake, courier manifests, courier assignment.

Flow:
  1. receive_at_warehouse   -> RECEIVED_AT_HUB
  2. create_manifest        -> run sheet for one courier ("MAN-XXXXXXXX")
  3. assign_to_manifest     -> shipment.courier_id set, ASSIGNED_TO_COURIER
  dispatch_to_courier bundles 2+3 for shipments sitting in the hub.

Bulk operations report per-shipment errors instead of failing the batch.
Courier assignment happens only here; settlement reads courier_id later.
"""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import DomainViolationError, NotFoundError
from db.models import ShipmentManifest, User
from shipments.catalog import ShipmentStatusCode, UserRole, require_status
from shipments.lifecycle import get_shipment_by_tracking_number, update_status

logger = structlog.get_logger()

DISPATCHABLE = frozenset({ShipmentStatusCode.RECEIVED_AT_HUB.value, ShipmentStatusCode.RETURNED_TO_HUB.value})


async def require_courier(db: AsyncSession, courier_id: uuid.UUID) -> User:
    courier = await db.get(User, courier_id)
    if courier is None:
        raise NotFoundError(f"Courier {courier_id} not found", entity="user", identifier=str(courier_id))
    if courier.role != UserRole.COURIER.value:
        raise DomainViolationError(f"User {courier_id} is not a courier", role=courier.role)
    return courier


async def receive_at_warehouse(db: AsyncSession, tracking_numbers: list[str]) -> dict:
    received_status = await require_status(db, ShipmentStatusCode.RECEIVED_AT_HUB)
    received: list[str] = []
    errors: list[str] = []

    for tracking_number in tracking_numbers:
        shipment = await get_shipment_by_tracking_number(db, tracking_number)
        if shipment is None:
            errors.append(f"Shipment not found: {tracking_number}")
            continue
        await update_status(db, shipment, received_status, "Received at warehouse")
        received.append(tracking_number)

    result = {"received_count": len(received), "received": received, "errors": errors}
    logger.info("warehouse.received", received_count=len(received), error_count=len(errors))
    return result


async def create_manifest(db: AsyncSession, courier_id: uuid.UUID) -> ShipmentManifest:
    await require_courier(db, courier_id)
    prefix = get_settings().manifest_number_prefix
    manifest = ShipmentManifest(
        courier_id=courier_id,
        manifest_number=f"{prefix}{uuid.uuid4().hex[:8].upper()}",
        status="CREATED",
    )
    db.add(manifest)
    await db.flush()
    logger.info("manifest.created", manifest_number=manifest.manifest_number, courier_id=str(courier_id))
    return manifest


async def assign_to_manifest(
    db: AsyncSession,
    manifest_id: uuid.UUID,
    tracking_numbers: list[str],
    allowed_statuses: frozenset[str] | None = None,
) -> dict:
    """
    Attach shipments to a manifest and hand them to its courier.

    With `allowed_statuses`, shipments in any other status are reported
    as errors and left untouched.
    """
    manifest = await db.get(ShipmentManifest, manifest_id)
    if manifest is None:
        raise NotFoundError(f"Manifest {manifest_id} not found", entity="manifest", identifier=str(manifest_id))
    assigned_status = await require_status(db, ShipmentStatusCode.ASSIGNED_TO_COURIER)

    assigned: list[str] = []
    errors: list[str] = []
    for tracking_number in tracking_numbers:
        shipment = await get_shipment_by_tracking_number(db, tracking_number)
        if shipment is None:
            errors.append(f"Shipment not found: {tracking_number}")
            continue
        if allowed_statuses is not None and shipment.status_name not in allowed_statuses:
            errors.append(f"Shipment {tracking_number} cannot be dispatched from status {shipment.status_name}")
            continue
        shipment.manifest_id = manifest.manifest_id
        shipment.courier_id = manifest.courier_id
        await update_status(db, shipment, assigned_status, f"Assigned to manifest {manifest.manifest_number}")
        assigned.append(tracking_number)

    if assigned and manifest.status == "CREATED":
        manifest.status = "IN_PROGRESS"
        manifest.assigned_at = datetime.utcnow()
    await db.flush()

    logger.info(
        "manifest.assigned",
        manifest_number=manifest.manifest_number,
        assigned_count=len(assigned),
        error_count=len(errors),
    )
    return {
        "manifest_id": str(manifest.manifest_id),
        "manifest_number": manifest.manifest_number,
        "courier_id": str(manifest.courier_id),
        "assigned_count": len(assigned),
        "assigned": assigned,
        "errors": errors,
    }


async def dispatch_to_courier(db: AsyncSession, courier_id: uuid.UUID, tracking_numbers: list[str]) -> dict:
    """Dispatch hub shipments (RECEIVED_AT_HUB / RETURNED_TO_HUB) on a fresh manifest."""
    manifest = await create_manifest(db, courier_id)
    return await assign_to_manifest(db, manifest.manifest_id, tracking_numbers, allowed_statuses=DISPATCHABLE)


async def list_manifests(db: AsyncSession, courier_id: uuid.UUID) -> list[ShipmentManifest]:
    result = await db.execute(
        select(ShipmentManifest)
        .where(ShipmentManifest.courier_id == courier_id)
        .order_by(ShipmentManifest.created_at.desc())
    )
    return list(result.scalars().all())
