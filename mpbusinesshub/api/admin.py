"""
Admin moderation routes.

Every route requires an authenticated user with the admin role.
"""

import logging
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import success
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import get_current_user, require_admin
from mpbusinesshub.models import Business, Review, User
from mpbusinesshub.models.business import (
    BUSINESS_STATUSES,
    STATUS_APPROVED,
    STATUS_REJECTED,
)
from mpbusinesshub.models.review import REVIEW_PENDING
from mpbusinesshub.services import accounts, moderation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["admin"])


class RoleUpdate(BaseModel):
    role: Literal["user", "admin"]


class StatusUpdate(BaseModel):
    status: Literal["pending", "approved", "rejected"]
    reason: Optional[str] = Field(None, max_length=1000)


class ApproveRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class ReviewRejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


def serialize_admin_business(business: Business, owner_email: Optional[str]) -> dict:
    return {
        "id": str(business.id),
        "name": business.name,
        "category": business.category,
        "district": business.district,
        "package_type": business.package_type,
        "status": business.status,
        "status_reason": business.status_reason,
        "status_changed_at": (
            business.status_changed_at.isoformat() if business.status_changed_at else None
        ),
        "owner_email": owner_email,
        "created_at": business.created_at.isoformat(),
    }


@router.get("/admin/users")
async def list_users(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(User, Business)
        .outerjoin(Business, Business.user_id == User.id)
        .order_by(User.created_at.desc())
    )
    data = []
    for user, business in result.all():
        item = accounts.serialize_user(user)
        item["business"] = accounts.business_summary(business)
        data.append(item)
    return success(data)


@router.put("/admin/users/{user_id}/role")
async def update_user_role(
    user_id: UUID,
    payload: RoleUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    try:
        await moderation.set_user_role(db, user, payload.role)
    except moderation.LastAdminError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    await db.commit()
    return success(accounts.serialize_user(user), "User role updated successfully")


@router.get("/admin/businesses")
async def list_all_businesses(
    business_status: Optional[str] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Business, User.email).join(User, User.id == Business.user_id)
    if business_status:
        stmt = stmt.where(Business.status == business_status)
    result = await db.execute(stmt.order_by(Business.created_at.desc()))
    return success([serialize_admin_business(b, email) for b, email in result.all()])


@router.get("/business-statuses")
async def business_statuses(current_user: User = Depends(get_current_user)):
    return success(list(BUSINESS_STATUSES))


async def _change_status(
    db: AsyncSession, business_id: UUID, new_status: str, reason: Optional[str], admin: User
) -> dict:
    business = await db.get(Business, business_id)
    if business is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")

    changed = moderation.set_business_status(business, new_status, reason, admin)
    if changed:
        await db.commit()
        await db.refresh(business)
    owner = await db.get(User, business.user_id)
    return serialize_admin_business(business, owner.email if owner else None)


@router.put("/businesses/{business_id}/status")
async def update_business_status(
    business_id: UUID,
    payload: StatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    data = await _change_status(db, business_id, payload.status, payload.reason, admin)
    return success(data, "Business status updated successfully")


@router.put("/businesses/{business_id}/approve")
async def approve_business(
    business_id: UUID,
    payload: Optional[ApproveRequest] = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    reason = payload.reason if payload else None
    data = await _change_status(db, business_id, STATUS_APPROVED, reason, admin)
    return success(data, "Business approved successfully")


@router.put("/businesses/{business_id}/reject")
async def reject_business(
    business_id: UUID,
    payload: RejectRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    data = await _change_status(db, business_id, STATUS_REJECTED, payload.reason, admin)
    return success(data, "Business rejected successfully")


@router.get("/admin/reviews/pending")
async def pending_reviews(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Review, Business.name)
        .join(Business, Business.id == Review.business_id)
        .where(Review.status == REVIEW_PENDING)
        .order_by(Review.created_at.asc())
    )
    data = []
    for review, business_name in result.all():
        data.append(
            {
                "id": str(review.id),
                "business_id": str(review.business_id),
                "business_name": business_name,
                "rating": review.rating,
                "comment": review.comment,
                "reviewer_name": review.reviewer_name,
                "reviewer_email": review.reviewer_email,
                "created_at": review.created_at.isoformat(),
            }
        )
    return success(data)


async def _get_review(db: AsyncSession, review_id: UUID) -> Review:
    review = await db.get(Review, review_id)
    if review is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review


@router.put("/admin/reviews/{review_id}/approve")
async def approve_review(
    review_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    review = await _get_review(db, review_id)
    await moderation.moderate_review(db, review, approve=True)
    await db.commit()
    return success({"id": str(review.id), "status": review.status}, "Review approved successfully")


@router.put("/admin/reviews/{review_id}/reject")
async def reject_review(
    review_id: UUID,
    payload: Optional[ReviewRejectRequest] = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    review = await _get_review(db, review_id)
    await moderation.moderate_review(db, review, approve=False, reason=payload.reason if payload else None)
    await db.commit()
    return success({"id": str(review.id), "status": review.status}, "Review rejected successfully")


@router.get("/admin/statistics")
async def admin_statistics(
    range_name: Literal["day", "week", "month", "year"] = Query("week", alias="range"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return success(await moderation.statistics(db, range_name))
