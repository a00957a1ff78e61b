"""
Cash Ledger Router — read-only audit queries over cash movements.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from finance.ledger import MovementStatus, TransactionType, list_movements, sum_movements

router = APIRouter(prefix="/api/v1/ledger", tags=["ledger"])


class MovementResponse(BaseModel):
    movement_id: UUID
    user_id: UUID
    shipment_id: UUID | None
    transaction_type: str
    amount: Decimal
    status: str
    description: str | None
    created_at: datetime
    reconciled_at: datetime | None

    model_config = {"from_attributes": True}


class MovementSum(BaseModel):
    user_id: UUID
    transaction_type: TransactionType
    status: MovementStatus
    total: Decimal


@router.get("/", response_model=list[MovementResponse])
async def get_movements(
    user_id: UUID | None = None,
    transaction_type: TransactionType | None = None,
    status: MovementStatus | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return await list_movements(db, user_id, transaction_type, status, start, end)


@router.get("/sum", response_model=MovementSum)
async def get_movement_sum(
    user_id: UUID = Query(...),
    transaction_type: TransactionType = Query(...),
    status: MovementStatus = Query(...),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    total = await sum_movements(db, user_id, transaction_type, status)
    return MovementSum(user_id=user_id, transaction_type=transaction_type, status=status, total=total)
