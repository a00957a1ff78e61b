"""
Payouts Router — settlement runs and payout lifecycle.

Payout lifecycle:
  1. Settlement run → status='PENDING', net_amount fixed
  2. Finance disburses → status='COMPLETED', paid_at stamped
  FAILED / CANCELLED / PROCESSED are available for manual handling.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from finance import settlement

router = APIRouter(prefix="/api/v1/payouts", tags=["payouts"])


# ─── Schemas ────────────────────────────────────────────────────────────────

class PayoutResponse(BaseModel):
    payout_id: UUID
    user_id: UUID
    payout_type: str
    status_name: str | None
    period_start: date
    period_end: date
    net_amount: Decimal
    description: str | None
    paid_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PayoutItemResponse(BaseModel):
    item_id: UUID
    payout_id: UUID
    source_type: str
    source_id: UUID
    amount: Decimal
    description: str | None

    model_config = {"from_attributes": True}


class SettlementRequest(BaseModel):
    user_id: UUID
    period_start: date
    period_end: date


class PayoutStatusUpdate(BaseModel):
    status: str = Field(..., examples=["COMPLETED", "FAILED"])


class AmountReport(BaseModel):
    start: date
    end: date
    amount: Decimal


# ─── Endpoints ──────────────────────────────────────────────────────────────

@router.post("/courier", response_model=PayoutResponse, status_code=201)
async def create_courier_payout(
    body: SettlementRequest,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    payout = await settlement.create_courier_payout(db, body.user_id, body.period_start, body.period_end)
    await db.commit()
    return payout


@router.post("/merchant", response_model=PayoutResponse, status_code=201)
async def create_merchant_payout(
    body: SettlementRequest,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    payout = await settlement.create_merchant_payout(db, body.user_id, body.period_start, body.period_end)
    await db.commit()
    return payout


@router.get("/pending", response_model=list[PayoutResponse])
async def list_pending_payouts(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return await settlement.get_pending_payouts(db)


@router.get("/user/{user_id}", response_model=list[PayoutResponse])
async def list_user_payouts(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Payouts for one user, latest period first."""
    return await settlement.get_payouts_for_user(db, user_id)


@router.get("/reports/revenue", response_model=AmountReport)
async def revenue_report(
    start: date = Query(...),
    end: date = Query(...),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    amount = await settlement.calculate_total_revenue(db, start, end)
    return AmountReport(start=start, end=end, amount=amount)


@router.get("/reports/courier-earnings/{courier_id}", response_model=AmountReport)
async def courier_earnings_report(
    courier_id: UUID,
    start: date = Query(...),
    end: date = Query(...),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    amount = await settlement.calculate_courier_earnings(db, courier_id, start, end)
    return AmountReport(start=start, end=end, amount=amount)


@router.get("/{payout_id}", response_model=PayoutResponse)
async def get_payout(
    payout_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return await settlement.get_payout_by_id(db, payout_id)


@router.get("/{payout_id}/items", response_model=list[PayoutItemResponse])
async def get_payout_items(
    payout_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    await settlement.get_payout_by_id(db, payout_id)
    return await settlement.get_payout_items(db, payout_id)


@router.patch("/{payout_id}/status", response_model=PayoutResponse)
async def update_payout_status(
    payout_id: UUID,
    body: PayoutStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    payout = await settlement.update_payout_status(db, payout_id, body.status)
    await db.commit()
    return payout
