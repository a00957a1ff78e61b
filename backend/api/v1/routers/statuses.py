"""
Status Catalog Router — shipment and payout status administration.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from shipments import catalog

router = APIRouter(prefix="/api/v1/statuses", tags=["statuses"])


# ─── Schemas ────────────────────────────────────────────────────────────────

class StatusResponse(BaseModel):
    name: str
    label: str | None

    model_config = {"from_attributes": True}


class StatusCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    label: str | None = None


class SeedSummary(BaseModel):
    shipment_statuses_created: int
    payout_statuses_created: int


# ─── Endpoints ──────────────────────────────────────────────────────────────

@router.get("/", response_model=list[StatusResponse])
async def list_statuses(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """All shipment statuses, by name."""
    return await catalog.list_statuses(db)


@router.post("/", response_model=StatusResponse, status_code=201)
async def create_status(
    body: StatusCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Add a status. Duplicate names are rejected with 400."""
    status = await catalog.create_status(db, body.name.strip().upper(), body.label)
    await db.commit()
    return status


@router.delete("/{name}", status_code=204)
async def delete_status(
    name: str,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Delete an unreferenced status."""
    await catalog.delete_status(db, name)
    await db.commit()


@router.get("/payout", response_model=list[StatusResponse])
async def list_payout_statuses(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return await catalog.list_payout_statuses(db)


@router.post("/seed", response_model=SeedSummary)
async def seed_statuses(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Insert any missing baseline statuses."""
    summary = await catalog.seed_baseline_statuses(db)
    await db.commit()
    return summary
