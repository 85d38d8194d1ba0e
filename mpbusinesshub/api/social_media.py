"""
Social media links and featured social posts.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, HttpUrl, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import success
from mpbusinesshub.api.schemas import blank_to_none
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import get_current_business
from mpbusinesshub.models import Business, SocialFeature
from mpbusinesshub.services import adverts as quotas
from mpbusinesshub.services.tiers import (
    SOCIAL_FEATURES,
    SOCIAL_LINKS,
    TierRestrictionError,
    require_feature,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/business/social-media", tags=["social media"])


class SocialLinksUpdate(BaseModel):
    facebook: Optional[HttpUrl] = None
    instagram: Optional[HttpUrl] = None
    twitter: Optional[HttpUrl] = None
    linkedin: Optional[HttpUrl] = None
    youtube: Optional[HttpUrl] = None
    tiktok: Optional[HttpUrl] = None

    @field_validator("*", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        return blank_to_none(value)


class FeatureRequest(BaseModel):
    platform: Literal["facebook", "instagram", "twitter", "linkedin"]
    content: str = Field(..., min_length=1, max_length=500)


@router.put("")
async def update_social_links(
    payload: SocialLinksUpdate,
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    """Replace the business's social media links (Bronze and above)."""
    try:
        require_feature(
            business.package_type,
            SOCIAL_LINKS,
            "Your package does not support social media links. Please upgrade to Bronze or higher.",
        )
    except TierRestrictionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    for platform, url in payload.model_dump().items():
        setattr(business, platform, str(url) if url else None)
    await db.commit()
    await db.refresh(business)

    return success(business.social_links(), "Social media links updated successfully")


@router.post("/feature", status_code=status.HTTP_201_CREATED)
async def request_feature(
    payload: FeatureRequest,
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    """
    Ask for a post to be featured on the directory's social accounts.

    Silver and Gold only, limited per month.
    """
    try:
        require_feature(
            business.package_type,
            SOCIAL_FEATURES,
            "Social media features are only available on Silver and Gold packages.",
        )
    except TierRestrictionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    quotas.reset_monthly_quota(business)
    if business.social_features_remaining <= 0 or not await quotas.consume_slot(
        db, business, "social_features_remaining"
    ):
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You have no social media features remaining this month."
        )

    feature = SocialFeature(business_id=business.id, platform=payload.platform, content=payload.content)
    db.add(feature)
    await db.commit()

    logger.info(
        "Social feature requested",
        extra={"business_id": str(business.id), "platform": payload.platform},
    )
    return success(
        {"id": str(feature.id), "platform": feature.platform, "status": feature.status},
        "Your post has been submitted for featuring",
        status.HTTP_201_CREATED,
        remaining_features=business.social_features_remaining,
    )
