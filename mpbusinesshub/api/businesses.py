"""
Business directory and owner profile routes.

Public endpoints only ever expose approved businesses.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import pagination, success
from mpbusinesshub.api.schemas import UpdateBusinessRequest, parse_hours
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import get_current_business, get_current_user
from mpbusinesshub.models import Business, OperatingHour, Product, User
from mpbusinesshub.models.business import STATUS_APPROVED
from mpbusinesshub.services import accounts, directory
from mpbusinesshub.services.tiers import GOLD

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["businesses"])


async def get_approved_business(db: AsyncSession, business_id: UUID) -> Business:
    result = await db.execute(
        select(Business).where(Business.id == business_id, Business.status == STATUS_APPROVED)
    )
    business = result.scalar_one_or_none()
    if business is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return business


@router.get("/businesses")
async def list_businesses(
    category: Optional[str] = None,
    district: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Paginated directory of approved businesses, featured listings first."""
    filters = [Business.status == STATUS_APPROVED]
    if category:
        filters.append(Business.category == category)
    if district:
        filters.append(Business.district == district)
    if search:
        filters.append(Business.name.ilike(directory.contains_pattern(search.strip()), escape="\\"))

    total = (await db.execute(select(func.count(Business.id)).where(*filters))).scalar_one()

    result = await db.execute(
        select(Business)
        .where(*filters)
        .order_by(case((Business.package_type == GOLD, 0), else_=1), Business.name)
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    businesses = list(result.scalars().all())
    ratings = await directory.average_ratings(db, [b.id for b in businesses])

    return success(
        [directory.serialize_listing(b, ratings.get(b.id)) for b in businesses],
        pagination=pagination(total, page, per_page),
    )


@router.get("/businesses/{business_id}")
async def show_business(business_id: UUID, db: AsyncSession = Depends(get_db)):
    business = await get_approved_business(db, business_id)
    return success(await directory.business_profile(db, business))


@router.get("/businesses/{business_id}/reviews")
async def business_reviews(business_id: UUID, db: AsyncSession = Depends(get_db)):
    business = await db.get(Business, business_id)
    if business is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    reviews = await directory.approved_reviews(db, business.id)
    return success([directory.serialize_review(r) for r in reviews])


async def _increment(db: AsyncSession, business_id: UUID, column: str) -> int:
    counter = getattr(Business, column)
    result = await db.execute(
        update(Business)
        .where(Business.id == business_id)
        .values({column: counter + 1})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    await db.commit()
    value = (await db.execute(select(counter).where(Business.id == business_id))).scalar_one()
    return value


@router.post("/businesses/{business_id}/view")
async def record_view(business_id: UUID, db: AsyncSession = Depends(get_db)):
    return success({"view_count": await _increment(db, business_id, "view_count")})


@router.post("/businesses/{business_id}/contact")
async def record_contact(business_id: UUID, db: AsyncSession = Depends(get_db)):
    return success({"contact_count": await _increment(db, business_id, "contact_count")})


@router.get("/categories")
async def categories(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Business.category)
        .where(Business.status == STATUS_APPROVED)
        .distinct()
        .order_by(Business.category)
    )
    return success(list(result.scalars().all()))


@router.get("/districts")
async def districts(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Business.district)
        .where(Business.status == STATUS_APPROVED)
        .distinct()
        .order_by(Business.district)
    )
    return success(list(result.scalars().all()))


@router.get("/business/details")
async def business_details(
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    """Full record of the current user's business."""
    return success(await directory.owner_details(db, business))


@router.put("/business/update")
async def update_business(
    payload: UpdateBusinessRequest,
    current_user: User = Depends(get_current_user),
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    """
    Update the current user's listing and, optionally, its operating hours.

    Raises:
        HTTPException: 422 if the email belongs to another account
    """
    if await accounts.email_taken(db, payload.email, exclude_user_id=current_user.id):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Validation failed",
                "errors": {"email": ["The email has already been taken."]},
            },
        )

    email = payload.email.strip().lower()
    business.name = payload.business_name
    business.category = payload.category
    business.district = payload.district
    business.description = payload.description
    business.phone = payload.phone
    business.email = email
    business.website = payload.website_str()
    business.address = payload.address
    if current_user.email != email:
        current_user.email = email

    if payload.operating_hours:
        result = await db.execute(select(OperatingHour).where(OperatingHour.business_id == business.id))
        existing = {row.day: row for row in result.scalars().all()}
        for day, hours in payload.operating_hours.items():
            parsed = parse_hours(hours)
            row = existing.get(day)
            if row is None:
                row = OperatingHour(business_id=business.id, day=day)
                db.add(row)
            row.open_time, row.close_time = parsed if parsed else (None, None)

    await db.commit()
    await db.refresh(business)
    logger.info("Business profile updated", extra={"business_id": str(business.id)})
    return success(await directory.owner_details(db, business), "Business updated successfully")


@router.get("/business/statistics")
async def business_statistics(
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    # Counters are bumped with bulk UPDATEs, so read them from the table
    counters = (
        await db.execute(
            select(Business.view_count, Business.contact_count, Business.review_count)
            .where(Business.id == business.id)
        )
    ).one()
    product_count = (
        await db.execute(select(func.count(Product.id)).where(Product.business_id == business.id))
    ).scalar_one()
    ratings = await directory.average_ratings(db, [business.id])
    return success(
        {
            "view_count": counters.view_count,
            "contact_count": counters.contact_count,
            "product_count": product_count,
            "review_count": counters.review_count,
            "average_rating": ratings.get(business.id),
        }
    )
