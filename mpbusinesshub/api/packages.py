"""
Package catalogue and subscription change routes.
"""

import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import success
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import get_current_business, get_current_user
from mpbusinesshub.models import Business, Package, User
from mpbusinesshub.services import directory, payments
from mpbusinesshub.services.packages import (
    PackageChangeError,
    quote_change,
    serialize_package,
)
from mpbusinesshub.services.tiers import tier_rank, upgrade_benefits

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/packages", tags=["packages"])


class PackageChangeRequest(BaseModel):
    package_id: UUID
    billing_cycle: Literal["monthly", "annual"] = "monthly"


async def _all_packages(db: AsyncSession) -> list:
    result = await db.execute(select(Package).where(Package.is_active.is_(True)))
    packages = list(result.scalars().all())
    if not packages:
        result = await db.execute(select(Package))
        packages = list(result.scalars().all())
    return sorted(packages, key=lambda p: tier_rank(p.name))


async def _target_package(db: AsyncSession, package_id: UUID) -> Package:
    package = await payments.get_package(db, package_id)
    if package is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Validation failed",
                "errors": {"package_id": ["The selected package is invalid."]},
            },
        )
    return package


@router.get("")
async def list_packages(db: AsyncSession = Depends(get_db)):
    """Public package catalogue ordered by tier."""
    return success([serialize_package(p) for p in await _all_packages(db)])


@router.get("/available")
async def available_packages(
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    """Catalogue with the current package flagged and the benefits of each upgrade."""
    data = []
    for package in await _all_packages(db):
        item = serialize_package(package, business.package_id, include_current=True)
        item["upgrade_benefits"] = upgrade_benefits(business.package_type, package.name)
        data.append(item)
    return success(data)


@router.post("/quote")
async def quote_package_change(
    payload: PackageChangeRequest,
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    package = await _target_package(db, payload.package_id)
    current_package = await payments.get_package(db, business.package_id)
    quote = quote_change(business, current_package, package, payload.billing_cycle)
    return success(quote.to_dict())


@router.post("/upgrade")
async def upgrade_package(
    payload: PackageChangeRequest,
    current_user: User = Depends(get_current_user),
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    """
    Change the current business's package.

    Paid changes return a PayFast checkout; the package switches once the
    payment is confirmed. Free changes apply immediately.
    """
    package = await _target_package(db, payload.package_id)
    try:
        outcome = await payments.request_package_change(
            db, current_user, business, package, payload.billing_cycle
        )
    except PackageChangeError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    if outcome["requires_payment"]:
        return success(outcome, "Redirecting to payment", redirect_url=outcome["redirect_url"])

    outcome["business"] = await directory.owner_details(db, business)
    return success(outcome, f"Package changed to {package.name}")
