"""
Directory listings.

Public serializers hide contact details, hours and social links for
businesses whose package does not include them.
"""

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.models import Business, OperatingHour, Product, Review
from mpbusinesshub.models.business import DAYS_OF_WEEK
from mpbusinesshub.models.catalog import PRODUCT_ACTIVE
from mpbusinesshub.models.review import REVIEW_APPROVED
from mpbusinesshub.services.tiers import (
    BUSINESS_HOURS,
    CONTACT_INFO,
    FEATURED,
    PRODUCTS,
    SOCIAL_LINKS,
    WEBSITE,
    get_tier,
)


def contains_pattern(term: str) -> str:
    """LIKE pattern matching ``term`` anywhere, with its wildcards taken literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def average_ratings(db: AsyncSession, business_ids: List[UUID]) -> Dict[UUID, float]:
    """Average approved rating per business, rounded to one decimal."""
    if not business_ids:
        return {}
    result = await db.execute(
        select(Review.business_id, func.avg(Review.rating))
        .where(Review.business_id.in_(business_ids), Review.status == REVIEW_APPROVED)
        .group_by(Review.business_id)
    )
    return {business_id: round(float(avg), 1) for business_id, avg in result.all() if avg is not None}


async def recompute_review_count(db: AsyncSession, business_id: UUID) -> int:
    """Store the number of approved reviews on the business."""
    result = await db.execute(
        select(func.count(Review.id)).where(
            Review.business_id == business_id, Review.status == REVIEW_APPROVED
        )
    )
    count = result.scalar_one()
    business = await db.get(Business, business_id)
    if business is not None:
        business.review_count = count
    return count


async def operating_hours_map(db: AsyncSession, business_id: UUID) -> Dict[str, str]:
    """Seven-day map of ``"HH:MM - HH:MM"`` strings. Missing days are closed."""
    result = await db.execute(select(OperatingHour).where(OperatingHour.business_id == business_id))
    stored = {row.day: row.display for row in result.scalars().all()}
    return {day: stored.get(day, "Closed") for day in DAYS_OF_WEEK}


def serialize_contact(business: Business) -> Optional[dict]:
    tier = get_tier(business.package_type)
    if not tier.has(CONTACT_INFO):
        return None
    return {
        "phone": business.phone,
        "email": business.email,
        "website": business.website if tier.has(WEBSITE) else None,
        "address": business.address,
    }


def serialize_listing(business: Business, rating: Optional[float] = None) -> dict:
    """Public directory card."""
    tier = get_tier(business.package_type)
    return {
        "id": str(business.id),
        "name": business.name,
        "category": business.category,
        "district": business.district,
        "description": business.description,
        "package_type": tier.name,
        "rating": rating,
        "review_count": business.review_count,
        "contact": serialize_contact(business),
        "featured": tier.has(FEATURED),
        "image_url": business.image_url,
    }


def serialize_review(review: Review) -> dict:
    return {
        "id": str(review.id),
        "business_id": str(review.business_id),
        "rating": review.rating,
        "comment": review.comment,
        "reviewer_name": review.reviewer_name,
        "status": review.status,
        "created_at": review.created_at.isoformat(),
    }


def serialize_product(product: Product) -> dict:
    return {
        "id": str(product.id),
        "business_id": str(product.business_id),
        "name": product.name,
        "description": product.description,
        "price": float(product.price),
        "image_url": product.image_url,
        "is_featured": product.is_featured,
        "status": product.status,
        "created_at": product.created_at.isoformat(),
    }


async def approved_reviews(db: AsyncSession, business_id: UUID) -> List[Review]:
    result = await db.execute(
        select(Review)
        .where(Review.business_id == business_id, Review.status == REVIEW_APPROVED)
        .order_by(Review.created_at.desc())
    )
    return list(result.scalars().all())


async def business_profile(db: AsyncSession, business: Business) -> dict:
    """Public detail view with tier-gated sections."""
    tier = get_tier(business.package_type)
    ratings = await average_ratings(db, [business.id])
    data = serialize_listing(business, ratings.get(business.id))

    data["hours"] = await operating_hours_map(db, business.id) if tier.has(BUSINESS_HOURS) else None
    data["social_media"] = business.social_links() if tier.has(SOCIAL_LINKS) else None

    products = []
    if tier.has(PRODUCTS):
        result = await db.execute(
            select(Product)
            .where(Product.business_id == business.id, Product.status == PRODUCT_ACTIVE)
            .order_by(Product.is_featured.desc(), Product.created_at.desc())
        )
        products = [serialize_product(p) for p in result.scalars().all()]
    data["products"] = products

    data["reviews"] = [serialize_review(r) for r in await approved_reviews(db, business.id)]
    return data


async def owner_details(db: AsyncSession, business: Business) -> dict:
    """Full record for the owning user's dashboard."""
    tier = get_tier(business.package_type)
    ratings = await average_ratings(db, [business.id])
    result = await db.execute(select(func.count(Product.id)).where(Product.business_id == business.id))
    product_count = result.scalar_one()

    return {
        "id": str(business.id),
        "name": business.name,
        "category": business.category,
        "district": business.district,
        "description": business.description,
        "phone": business.phone,
        "email": business.email,
        "website": business.website,
        "address": business.address,
        "image_url": business.image_url,
        "status": business.status,
        "status_reason": business.status_reason,
        "package_type": tier.name,
        "package_id": str(business.package_id) if business.package_id else None,
        "billing_cycle": business.billing_cycle,
        "subscription_ends_at": (
            business.subscription_ends_at.isoformat() if business.subscription_ends_at else None
        ),
        "adverts_remaining": business.adverts_remaining,
        "social_features_remaining": business.social_features_remaining,
        "rating": ratings.get(business.id),
        "review_count": business.review_count,
        "statistics": {
            "view_count": business.view_count,
            "contact_count": business.contact_count,
            "product_count": product_count,
        },
        "operating_hours": await operating_hours_map(db, business.id),
        "social_media": business.social_links(),
        "limits": {
            "advert_limit": tier.advert_limit,
            "product_limit": tier.product_limit,
            "social_feature_limit": tier.social_feature_limit,
        },
        "features": sorted(tier.features),
    }
