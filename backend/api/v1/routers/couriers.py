"""
Couriers Router — location pings and history.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from couriers.location import get_location_history, update_courier_location

router = APIRouter(prefix="/api/v1/couriers", tags=["couriers"])


class LocationUpdate(BaseModel):
    latitude: Decimal = Field(..., ge=-90, le=90)
    longitude: Decimal = Field(..., ge=-180, le=180)


class LocationResponse(BaseModel):
    location_id: UUID
    courier_id: UUID
    latitude: Decimal
    longitude: Decimal
    recorded_at: datetime

    model_config = {"from_attributes": True}


@router.post("/{courier_id}/location", response_model=LocationResponse, status_code=201)
async def post_location(
    courier_id: UUID,
    body: LocationUpdate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Record a GPS ping. Non-courier users → 409."""
    ping = await update_courier_location(db, courier_id, body.latitude, body.longitude)
    await db.commit()
    return ping


@router.get("/{courier_id}/location", response_model=list[LocationResponse])
async def list_locations(
    courier_id: UUID,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return await get_location_history(db, courier_id, limit=limit)
