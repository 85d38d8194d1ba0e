"""
Package pricing, proration and subscription changes.

The amount due for a change credits the unused part of the current
subscription against the price of the new one. Cycle lengths are 30 days
(monthly) and 365 days (annual).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from mpbusinesshub.models import Business, Package
from mpbusinesshub.models.base import utc_now
from mpbusinesshub.models.package import BILLING_ANNUAL, BILLING_CYCLES
from mpbusinesshub.services.tiers import (
    CHANGE_SAME,
    compare_tiers,
    get_tier,
)

logger = logging.getLogger(__name__)

CYCLE_DAYS = {"monthly": 30, "annual": 365}

_CENTS = Decimal("0.01")


class PackageChangeError(Exception):
    """Raised when a requested package change is not allowed."""


@dataclass
class PackageQuote:
    """Result of pricing a package change."""

    change_type: str
    full_price: Decimal
    remaining_value: Decimal
    amount_due: Decimal
    days_remaining: int

    def to_dict(self) -> dict:
        return {
            "change_type": self.change_type,
            "full_price": float(self.full_price),
            "remaining_value": float(self.remaining_value),
            "amount_due": float(self.amount_due),
            "days_remaining": self.days_remaining,
        }


def money(value) -> Decimal:
    """Round to cents."""
    return Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)


def cycle_days(billing_cycle: Optional[str]) -> int:
    return CYCLE_DAYS.get(billing_cycle or "monthly", 30)


def validate_billing_cycle(billing_cycle: str) -> str:
    if billing_cycle not in BILLING_CYCLES:
        raise PackageChangeError("Billing cycle must be monthly or annual")
    return billing_cycle


def days_remaining(business: Business, now: Optional[datetime] = None) -> int:
    """Whole days left on the current subscription (0 when expired or unset)."""
    now = now or utc_now()
    if business.subscription_ends_at is None or business.subscription_ends_at <= now:
        return 0
    return max(0, (business.subscription_ends_at - now).days)


def quote_change(
    business: Business,
    current_package: Optional[Package],
    new_package: Package,
    billing_cycle: str,
    now: Optional[datetime] = None,
) -> PackageQuote:
    """
    Price a move from the business's current package to ``new_package``.

    Args:
        business: Business whose subscription changes
        current_package: Package currently subscribed to, if any
        new_package: Target package
        billing_cycle: Target billing cycle
        now: Reference time

    Returns:
        PackageQuote with the prorated amount due
    """
    validate_billing_cycle(billing_cycle)
    now = now or utc_now()

    change_type = compare_tiers(business.package_type, new_package.name)
    full_price = money(new_package.price_for(billing_cycle))
    remaining = days_remaining(business, now)

    if current_package is None or remaining == 0:
        return PackageQuote(change_type, full_price, money(0), full_price, remaining)

    if change_type == CHANGE_SAME:
        # Renewal or cycle switch within the same tier
        return PackageQuote(change_type, full_price, money(0), full_price, remaining)

    current_cycle = business.billing_cycle or "monthly"
    current_price = current_package.price_for(current_cycle)
    remaining_value = money(Decimal(remaining) / Decimal(cycle_days(current_cycle)) * current_price)
    amount_due = max(money(0), money(full_price - remaining_value))

    return PackageQuote(change_type, full_price, remaining_value, amount_due, remaining)


def ensure_change_allowed(
    business: Business,
    new_package: Package,
    billing_cycle: str,
    now: Optional[datetime] = None,
) -> None:
    """Reject re-purchasing the active package on the same cycle."""
    now = now or utc_now()
    same_plan = business.package_id == new_package.id and business.billing_cycle == billing_cycle
    if same_plan and days_remaining(business, now) > 0:
        raise PackageChangeError("You are already subscribed to this package")


def apply_subscription(
    business: Business,
    package: Package,
    billing_cycle: str,
    now: Optional[datetime] = None,
) -> Business:
    """
    Switch ``business`` to ``package`` and restart its billing period.

    Quotas are refilled to the new tier's monthly limits.
    """
    validate_billing_cycle(billing_cycle)
    now = now or utc_now()
    tier = get_tier(package.name)
    previous = business.package_type

    business.package_id = package.id
    business.package_type = tier.name
    business.billing_cycle = billing_cycle
    business.subscription_ends_at = now + timedelta(days=365 if billing_cycle == BILLING_ANNUAL else 30)
    business.adverts_remaining = package.advert_limit
    business.social_features_remaining = package.social_feature_limit
    business.last_adverts_reset = now

    logger.info(
        "Subscription applied",
        extra={
            "business_id": str(business.id),
            "from_package": previous,
            "to_package": tier.name,
            "billing_cycle": billing_cycle,
        },
    )
    return business


def serialize_package(package: Package, current_package_id=None, include_current: bool = False) -> dict:
    tier = get_tier(package.name)
    data = {
        "id": str(package.id),
        "name": package.name,
        "description": package.description,
        "price_monthly": float(package.price_monthly),
        "price_annual": float(package.price_annual),
        "advert_limit": package.advert_limit,
        "product_limit": package.product_limit,
        "social_feature_limit": package.social_feature_limit,
        "features": package.features or [],
        "tier_rank": tier.rank,
        "is_active": package.is_active,
    }
    if include_current:
        data["is_current"] = package.id == current_package_id
    return data
