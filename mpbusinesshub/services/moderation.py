"""
Admin moderation: business status changes, review moderation, user roles
and dashboard statistics.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.models import Business, Payment, Review, User
from mpbusinesshub.models.base import utc_now
from mpbusinesshub.models.billing import PAYMENT_COMPLETED
from mpbusinesshub.models.business import BUSINESS_STATUSES
from mpbusinesshub.models.review import REVIEW_APPROVED, REVIEW_REJECTED
from mpbusinesshub.models.user import ROLE_ADMIN, ROLES
from mpbusinesshub.services.directory import recompute_review_count

logger = logging.getLogger(__name__)

RANGE_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}


class ModerationError(Exception):
    """Raised when a moderation action is invalid."""


class LastAdminError(ModerationError):
    pass


def set_business_status(
    business: Business,
    status: str,
    reason: Optional[str],
    admin: User,
    now: Optional[datetime] = None,
) -> bool:
    """
    Move a business to ``status``.

    Returns:
        False if the business already had that status (nothing written)
    """
    if status not in BUSINESS_STATUSES:
        raise ModerationError(f"Invalid status {status!r}")
    if business.status == status:
        return False

    previous = business.status
    business.status = status
    business.status_reason = reason
    business.status_changed_at = now or utc_now()
    logger.info(
        "Business status changed",
        extra={
            "business_id": str(business.id),
            "from_status": previous,
            "to_status": status,
            "admin_id": str(admin.id),
            "reason": reason,
        },
    )
    return True


async def moderate_review(db: AsyncSession, review: Review, approve: bool, reason: Optional[str] = None) -> Review:
    review.status = REVIEW_APPROVED if approve else REVIEW_REJECTED
    review.rejection_reason = None if approve else reason
    await db.flush()
    await recompute_review_count(db, review.business_id)
    logger.info(
        "Review moderated",
        extra={"review_id": str(review.id), "review_status": review.status},
    )
    return review


async def set_user_role(db: AsyncSession, user: User, role: str) -> User:
    """
    Change a user's role. Demoting the last admin is refused so the panel
    always stays reachable.
    """
    if role not in ROLES:
        raise ModerationError(f"Invalid role {role!r}")

    if user.role == ROLE_ADMIN and role != ROLE_ADMIN:
        result = await db.execute(select(func.count(User.id)).where(User.role == ROLE_ADMIN))
        if result.scalar_one() <= 1:
            raise LastAdminError("Cannot remove the last administrator")

    previous = user.role
    user.role = role
    logger.info(
        "User role changed",
        extra={"user_id": str(user.id), "from_role": previous, "to_role": role},
    )
    return user


async def _count(db: AsyncSession, stmt) -> int:
    result = await db.execute(stmt)
    return result.scalar_one()


async def _grouped(db: AsyncSession, column) -> dict:
    result = await db.execute(select(column, func.count()).group_by(column))
    return {key: count for key, count in result.all()}


async def statistics(db: AsyncSession, range_name: str = "week", now: Optional[datetime] = None) -> dict:
    """Totals plus new signups in the current and previous period."""
    if range_name not in RANGE_DAYS:
        raise ModerationError(f"Invalid range {range_name!r}")

    now = now or utc_now()
    period = timedelta(days=RANGE_DAYS[range_name])
    start = now - period
    previous_start = start - period

    async def created_between(model, lower, upper):
        return await _count(
            db,
            select(func.count(model.id)).where(model.created_at >= lower, model.created_at < upper),
        )

    revenue = await _count(
        db,
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.status == PAYMENT_COMPLETED, Payment.completed_at >= start
        ),
    )

    return {
        "range": range_name,
        "users": {
            "total": await _count(db, select(func.count(User.id))),
            "by_role": await _grouped(db, User.role),
            "new": await created_between(User, start, now),
            "previous": await created_between(User, previous_start, start),
        },
        "businesses": {
            "total": await _count(db, select(func.count(Business.id))),
            "by_status": await _grouped(db, Business.status),
            "by_package": await _grouped(db, Business.package_type),
            "new": await created_between(Business, start, now),
            "previous": await created_between(Business, previous_start, start),
        },
        "reviews": {
            "total": await _count(db, select(func.count(Review.id))),
            "by_status": await _grouped(db, Review.status),
            "new": await created_between(Review, start, now),
        },
        "revenue": float(revenue or 0),
    }
