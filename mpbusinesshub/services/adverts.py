"""
Advert quota management.

``adverts_remaining`` is refilled to the tier's monthly limit at the start
of each calendar month and decremented with a conditional UPDATE so it can
never go below zero.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.models import Business
from mpbusinesshub.models.base import utc_now
from mpbusinesshub.services.tiers import get_tier

logger = logging.getLogger(__name__)


def needs_monthly_reset(business: Business, now: Optional[datetime] = None) -> bool:
    now = now or utc_now()
    last = business.last_adverts_reset
    return last is None or (last.year, last.month) < (now.year, now.month)


def reset_monthly_quota(business: Business, now: Optional[datetime] = None) -> bool:
    """Refill advert and social feature quotas if a new month has started.

    Returns:
        True if the quotas were reset
    """
    now = now or utc_now()
    if not needs_monthly_reset(business, now):
        return False

    tier = get_tier(business.package_type)
    business.adverts_remaining = tier.advert_limit
    business.social_features_remaining = tier.social_feature_limit
    business.last_adverts_reset = now
    logger.info(
        "Monthly quota reset",
        extra={"business_id": str(business.id), "adverts_remaining": tier.advert_limit},
    )
    return True


async def consume_slot(db: AsyncSession, business: Business, column: str) -> bool:
    """
    Atomically decrement ``column`` on ``business`` if it is positive.

    Returns:
        True if a slot was consumed, False if none remained
    """
    await db.flush()
    counter = getattr(Business, column)
    result = await db.execute(
        update(Business)
        .where(Business.id == business.id, counter > 0)
        .values({column: counter - 1})
        .execution_options(synchronize_session=False)
    )
    await db.refresh(business, attribute_names=[column])
    return result.rowcount == 1


async def consume_advert_slot(db: AsyncSession, business: Business) -> bool:
    return await consume_slot(db, business, "adverts_remaining")


async def restore_advert_slot(db: AsyncSession, business: Business) -> bool:
    """Give back one advert slot without exceeding the tier's monthly limit."""
    limit = get_tier(business.package_type).advert_limit
    await db.flush()
    result = await db.execute(
        update(Business)
        .where(Business.id == business.id, Business.adverts_remaining < limit)
        .values(adverts_remaining=Business.adverts_remaining + 1)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(business, attribute_names=["adverts_remaining"])
    return result.rowcount == 1


async def reset_all(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Run the monthly reset for every business that is due.

    Returns:
        Number of businesses reset
    """
    now = now or utc_now()
    result = await db.execute(select(Business))
    count = 0
    for business in result.scalars().all():
        if reset_monthly_quota(business, now):
            count += 1
    await db.commit()
    return count
