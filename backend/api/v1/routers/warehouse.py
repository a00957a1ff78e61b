"""
Warehouse Router — hub intake, courier dispatch, cash reconciliation.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from finance.reconciliation import reconcile_with_courier
from shipments import dispatch

router = APIRouter(prefix="/api/v1/warehouse", tags=["warehouse"])


# ─── Schemas ────────────────────────────────────────────────────────────────

class TrackingNumbersRequest(BaseModel):
    tracking_numbers: list[str] = Field(..., min_length=1)


class DispatchRequest(TrackingNumbersRequest):
    courier_id: UUID


class ManifestCreate(BaseModel):
    courier_id: UUID


class ManifestResponse(BaseModel):
    manifest_id: UUID
    manifest_number: str
    courier_id: UUID
    status: str
    created_at: datetime
    assigned_at: datetime | None

    model_config = {"from_attributes": True}


class ReceiveResult(BaseModel):
    received_count: int
    received: list[str]
    errors: list[str]


class AssignResult(BaseModel):
    manifest_id: UUID
    manifest_number: str
    courier_id: UUID
    assigned_count: int
    assigned: list[str]
    errors: list[str]


class ReconcileRequest(BaseModel):
    cash_confirmed_shipment_ids: list[UUID] = Field(default_factory=list)
    returned_shipment_ids: list[UUID] = Field(default_factory=list)


class ReconcileResult(BaseModel):
    courier_id: UUID
    reconciled_count: int
    returned_count: int
    total_cash: Decimal
    reconciled: list[str]
    returned: list[str]
    errors: list[str]


# ─── Endpoints ──────────────────────────────────────────────────────────────

@router.post("/receive", response_model=ReceiveResult)
async def receive_shipments(
    body: TrackingNumbersRequest,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    result = await dispatch.receive_at_warehouse(db, body.tracking_numbers)
    await db.commit()
    return result


@router.post("/dispatch", response_model=AssignResult)
async def dispatch_shipments(
    body: DispatchRequest,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Put hub shipments on a new manifest for the courier."""
    result = await dispatch.dispatch_to_courier(db, body.courier_id, body.tracking_numbers)
    await db.commit()
    return result


@router.post("/manifests", response_model=ManifestResponse, status_code=201)
async def create_manifest(
    body: ManifestCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    manifest = await dispatch.create_manifest(db, body.courier_id)
    await db.commit()
    return manifest


@router.post("/manifests/{manifest_id}/assign", response_model=AssignResult)
async def assign_manifest(
    manifest_id: UUID,
    body: TrackingNumbersRequest,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    result = await dispatch.assign_to_manifest(db, manifest_id, body.tracking_numbers)
    await db.commit()
    return result


@router.get("/couriers/{courier_id}/manifests", response_model=list[ManifestResponse])
async def list_courier_manifests(
    courier_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return await dispatch.list_manifests(db, courier_id)


@router.post("/reconcile/courier/{courier_id}", response_model=ReconcileResult)
async def reconcile_courier(
    courier_id: UUID,
    body: ReconcileRequest,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Confirm cash hand-over and returned parcels for one courier."""
    result = await reconcile_with_courier(
        db,
        courier_id,
        body.cash_confirmed_shipment_ids,
        body.returned_shipment_ids,
        confirmed_by=user.get("sub"),
    )
    await db.commit()
    return result
