"""
Advert routes.
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import success
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import get_current_business
from mpbusinesshub.models import Advert, Business
from mpbusinesshub.models.base import utc_now
from mpbusinesshub.models.business import STATUS_APPROVED
from mpbusinesshub.services import adverts as advert_quota

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/adverts", tags=["adverts"])

NO_ADVERTS_REMAINING = "No adverts remaining. Please upgrade your package."


class AdvertCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date <= self.start_date:
            raise ValueError("The end date must be a date after start date.")
        return self


def serialize_advert(advert: Advert, business_name: Optional[str] = None) -> dict:
    data = {
        "id": str(advert.id),
        "business_id": str(advert.business_id),
        "title": advert.title,
        "description": advert.description,
        "start_date": advert.start_date.isoformat(),
        "end_date": advert.end_date.isoformat(),
        "status": advert.current_status(utc_now().date()),
        "created_at": advert.created_at.isoformat(),
    }
    if business_name is not None:
        data["business_name"] = business_name
    return data


@router.get("")
async def list_adverts(
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Advert).where(Advert.business_id == business.id).order_by(Advert.created_at.desc())
    )
    return success(
        [serialize_advert(a) for a in result.scalars().all()],
        adverts_remaining=business.adverts_remaining,
    )


@router.get("/active")
async def active_adverts(db: AsyncSession = Depends(get_db)):
    """Running adverts of approved businesses."""
    today = utc_now().date()
    result = await db.execute(
        select(Advert, Business.name)
        .join(Business, Business.id == Advert.business_id)
        .where(
            Business.status == STATUS_APPROVED,
            Advert.start_date <= today,
            Advert.end_date >= today,
        )
        .order_by(Advert.start_date.desc())
    )
    return success([serialize_advert(advert, name) for advert, name in result.all()])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_advert(
    payload: AdvertCreate,
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an advert, consuming one of this month's advert slots.

    Raises:
        HTTPException: 403 when no slots remain
    """
    now = utc_now()
    advert_quota.reset_monthly_quota(business, now)

    if business.adverts_remaining <= 0 or not await advert_quota.consume_advert_slot(db, business):
        await db.commit()  # keep a monthly reset even when refused
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NO_ADVERTS_REMAINING)

    advert = Advert(
        business_id=business.id,
        title=payload.title,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    advert.status = advert.current_status(now.date())
    db.add(advert)
    await db.commit()
    await db.refresh(advert)

    logger.info(
        "Advert created",
        extra={
            "advert_id": str(advert.id),
            "business_id": str(business.id),
            "adverts_remaining": business.adverts_remaining,
        },
    )
    return success(
        serialize_advert(advert),
        "Advert created successfully",
        status.HTTP_201_CREATED,
        adverts_remaining=business.adverts_remaining,
    )


@router.delete("/{advert_id}")
async def delete_advert(
    advert_id: UUID,
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    """Delete an advert. Adverts that have not started give their slot back."""
    result = await db.execute(
        select(Advert).where(Advert.id == advert_id, Advert.business_id == business.id)
    )
    advert = result.scalar_one_or_none()
    if advert is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Advert not found")

    not_started = advert.start_date > utc_now().date()
    await db.delete(advert)
    if not_started:
        await advert_quota.restore_advert_slot(db, business)
    await db.commit()

    return success(
        message="Advert deleted successfully",
        adverts_remaining=business.adverts_remaining,
    )
