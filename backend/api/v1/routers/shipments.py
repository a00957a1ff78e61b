"""
Shipments Router — shipment creation, status transitions, returns.

Lifecycle:
  1. Merchant creates shipment → PENDING_APPROVAL (or PENDING)
  2. Operations move it through the hub and out to a courier
  3. Courier marks DELIVERED / FAILED_ATTEMPT / ...
  4. Undeliverable parcels fork a return shipment

Every transition is recorded in shipment_status_history.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from shipments import lifecycle
from shipments.returns import create_return_shipment, get_return_by_original, is_eligible_for_return

router = APIRouter(prefix="/api/v1/shipments", tags=["shipments"])


# ─── Schemas ────────────────────────────────────────────────────────────────

class ShipmentResponse(BaseModel):
    shipment_id: UUID
    tracking_number: str
    merchant_id: UUID
    courier_id: UUID | None
    zone_id: UUID
    status_name: str | None
    recipient_name: str
    recipient_phone: str
    recipient_address: str
    item_value: Decimal
    cod_amount: Decimal
    delivery_fee: Decimal
    cash_reconciled: bool
    delivered_at: datetime | None
    payout_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ShipmentCreate(BaseModel):
    merchant_id: UUID
    zone_id: UUID
    recipient_name: str = Field(..., min_length=1)
    recipient_phone: str = Field(..., min_length=3)
    recipient_address: str = Field(..., min_length=1)
    item_value: Decimal = Field(..., ge=0)
    cod_amount: Decimal = Field(Decimal("0"), ge=0)
    delivery_fee: Decimal | None = Field(None, ge=0)  # None -> price list
    priority: str = Field("STANDARD", examples=["STANDARD", "EXPRESS", "ECONOMY"])


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., examples=["DELIVERED", "FAILED_ATTEMPT"])
    reason: str | None = None


class ReturnRequest(BaseModel):
    reason: str = Field(..., min_length=1, examples=["damaged", "recipient_refused"])


class HistoryResponse(BaseModel):
    history_id: UUID
    status_name: str | None
    reason: str | None
    changed_at: datetime

    model_config = {"from_attributes": True}


class ReturnResponse(BaseModel):
    original_tracking_number: str
    original_status: str | None
    return_shipment: ShipmentResponse


class ReturnLinkResponse(BaseModel):
    return_id: UUID
    original_shipment_id: UUID
    return_shipment_id: UUID
    reason: str
    created_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────

@router.post("/", response_model=ShipmentResponse, status_code=201)
async def create_shipment(
    body: ShipmentCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    shipment = await lifecycle.create_shipment(db, **body.model_dump())
    await db.commit()
    return shipment


@router.get("/", response_model=list[ShipmentResponse])
async def list_shipments(
    merchant_id: UUID | None = None,
    courier_id: UUID | None = None,
    status: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """List shipments with filters, newest first."""
    return await lifecycle.list_shipments(
        db, merchant_id=merchant_id, courier_id=courier_id, status_name=status, skip=skip, limit=limit
    )


@router.get("/tracking/{tracking_number}", response_model=ShipmentResponse)
async def get_by_tracking_number(
    tracking_number: str,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    shipment = await lifecycle.get_shipment_by_tracking_number(db, tracking_number)
    if not shipment:
        raise HTTPException(status_code=404, detail="Shipment not found")
    return shipment


@router.post("/tracking/{tracking_number}/status", response_model=ShipmentResponse)
async def update_shipment_status(
    tracking_number: str,
    body: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Transition by status name. Unknown names → 400, unknown shipment → 404."""
    shipment = await lifecycle.update_status_with_reason(db, tracking_number, body.status, body.reason)
    await db.commit()
    return shipment


@router.post("/tracking/{tracking_number}/return", response_model=ReturnResponse, status_code=201)
async def request_return(
    tracking_number: str,
    body: ReturnRequest,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Create the reverse shipment and mark the original RETURNED_TO_ORIGIN."""
    return_shipment = await create_return_shipment(db, tracking_number, body.reason, created_by=user.get("sub"))
    original = await lifecycle.get_shipment_by_tracking_number(db, tracking_number)
    await db.commit()
    return ReturnResponse(
        original_tracking_number=tracking_number,
        original_status=original.status_name,
        return_shipment=ShipmentResponse.model_validate(return_shipment),
    )


@router.get("/tracking/{tracking_number}/returnable")
async def check_returnable(
    tracking_number: str,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    shipment = await lifecycle.get_shipment_by_tracking_number(db, tracking_number)
    if not shipment:
        raise HTTPException(status_code=404, detail="Shipment not found")
    return {"tracking_number": tracking_number, "eligible": is_eligible_for_return(shipment)}


@router.get("/{shipment_id}", response_model=ShipmentResponse)
async def get_shipment(
    shipment_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    shipment = await lifecycle.get_shipment_by_id(db, shipment_id)
    if not shipment:
        raise HTTPException(status_code=404, detail="Shipment not found")
    return shipment


@router.get("/{shipment_id}/history", response_model=list[HistoryResponse])
async def get_history(
    shipment_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    if not await lifecycle.get_shipment_by_id(db, shipment_id):
        raise HTTPException(status_code=404, detail="Shipment not found")
    return await lifecycle.get_status_history(db, shipment_id)


@router.get("/{shipment_id}/return", response_model=ReturnLinkResponse)
async def get_return_link(
    shipment_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    link = await get_return_by_original(db, shipment_id)
    if not link:
        raise HTTPException(status_code=404, detail="No return for this shipment")
    return link


@router.delete("/{shipment_id}", status_code=204)
async def delete_shipment(
    shipment_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Hard delete with history. Irreversible; for error correction only."""
    await lifecycle.delete_shipment(db, shipment_id)
    await db.commit()
