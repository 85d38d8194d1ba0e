"""
Review submission routes.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import success
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import get_current_user
from mpbusinesshub.models import Business, Review, User
from mpbusinesshub.models.review import REVIEW_APPROVED, REVIEW_PENDING
from mpbusinesshub.services.directory import recompute_review_count, serialize_review

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


class ReviewCreate(BaseModel):
    business_id: UUID
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class AnonymousReviewCreate(ReviewCreate):
    reviewer_name: str = Field(..., min_length=1, max_length=255)
    reviewer_email: EmailStr


async def _existing_business(db: AsyncSession, business_id: UUID) -> Business:
    business = await db.get(Business, business_id)
    if business is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Validation failed",
                "errors": {"business_id": ["The selected business is invalid."]},
            },
        )
    return business


@router.post("")
async def submit_review(
    payload: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit or update the current user's review of a business.

    Reviews from signed-in users are published immediately. A second
    submission for the same business replaces the first.
    """
    business = await _existing_business(db, payload.business_id)

    result = await db.execute(
        select(Review).where(Review.business_id == business.id, Review.user_id == current_user.id)
    )
    review = result.scalar_one_or_none()
    created = review is None

    if created:
        review = Review(
            business_id=business.id,
            user_id=current_user.id,
            reviewer_name=current_user.name,
            reviewer_email=current_user.email,
        )
        db.add(review)

    review.rating = payload.rating
    review.comment = payload.comment
    review.status = REVIEW_APPROVED
    review.rejection_reason = None
    await db.flush()
    await recompute_review_count(db, business.id)
    await db.commit()
    await db.refresh(review)

    logger.info(
        "Review saved",
        extra={"review_id": str(review.id), "business_id": str(business.id), "created": created},
    )
    if created:
        return success(serialize_review(review), "Review submitted successfully", status.HTTP_201_CREATED)
    return success(serialize_review(review), "Review updated successfully")


@router.post("/anonymous", status_code=status.HTTP_201_CREATED)
async def submit_anonymous_review(payload: AnonymousReviewCreate, db: AsyncSession = Depends(get_db)):
    """Reviews without an account wait for moderation."""
    business = await _existing_business(db, payload.business_id)

    review = Review(
        business_id=business.id,
        rating=payload.rating,
        comment=payload.comment,
        reviewer_name=payload.reviewer_name,
        reviewer_email=payload.reviewer_email,
        status=REVIEW_PENDING,
    )
    db.add(review)
    await db.commit()
    await db.refresh(review)

    logger.info("Anonymous review submitted", extra={"review_id": str(review.id)})
    return success(
        serialize_review(review),
        "Thank you for your review. It has been submitted for approval.",
        status.HTTP_201_CREATED,
    )
