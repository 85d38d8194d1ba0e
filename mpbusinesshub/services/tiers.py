"""
Package tier table.

Feature gating is a lookup on the business's ``package_type``. Unknown or
missing tier names are treated as Basic.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

BASIC = "Basic"
BRONZE = "Bronze"
SILVER = "Silver"
GOLD = "Gold"

TIER_ORDER = (BASIC, BRONZE, SILVER, GOLD)

# Feature keys
CONTACT_INFO = "contact_info"
WEBSITE = "website"
WHATSAPP = "whatsapp"
SOCIAL_LINKS = "social_links"
BUSINESS_HOURS = "business_hours"
BASIC_ANALYTICS = "basic_analytics"
PRODUCTS = "products"
SOCIAL_FEATURES = "social_features"
FEATURED = "featured"

FEATURE_LABELS = {
    CONTACT_INFO: "Contact details on your listing",
    WEBSITE: "Website link",
    WHATSAPP: "WhatsApp contact button",
    SOCIAL_LINKS: "Social media links",
    BUSINESS_HOURS: "Business hours",
    BASIC_ANALYTICS: "Listing analytics",
    PRODUCTS: "Product catalog",
    SOCIAL_FEATURES: "Featured posts on our social media",
    FEATURED: "Featured placement in the directory",
}

CHANGE_UPGRADE = "upgrade"
CHANGE_DOWNGRADE = "downgrade"
CHANGE_SAME = "same"


class TierRestrictionError(Exception):
    """Raised when a business's package does not include a feature."""


@dataclass(frozen=True)
class Tier:
    name: str
    rank: int
    advert_limit: int
    product_limit: int
    social_feature_limit: int
    features: FrozenSet[str] = field(default_factory=frozenset)

    def has(self, feature: str) -> bool:
        return feature in self.features


_BRONZE_FEATURES = frozenset(
    {CONTACT_INFO, WEBSITE, WHATSAPP, SOCIAL_LINKS, BUSINESS_HOURS, BASIC_ANALYTICS}
)

TIERS = {
    BASIC: Tier(BASIC, 0, advert_limit=0, product_limit=0, social_feature_limit=0),
    BRONZE: Tier(
        BRONZE, 1, advert_limit=1, product_limit=0, social_feature_limit=0,
        features=_BRONZE_FEATURES,
    ),
    SILVER: Tier(
        SILVER, 2, advert_limit=2, product_limit=10, social_feature_limit=1,
        features=_BRONZE_FEATURES | {PRODUCTS, SOCIAL_FEATURES},
    ),
    GOLD: Tier(
        GOLD, 3, advert_limit=4, product_limit=50, social_feature_limit=2,
        features=_BRONZE_FEATURES | {PRODUCTS, SOCIAL_FEATURES, FEATURED},
    ),
}

# Older records call the entry tier "Free"
_ALIASES = {"free": "basic"}


def get_tier(name: Optional[str]) -> Tier:
    """Look up a tier by name (case-insensitive), defaulting to Basic."""
    if not name:
        return TIERS[BASIC]
    key = name.strip().lower()
    key = _ALIASES.get(key, key)
    for tier in TIERS.values():
        if tier.name.lower() == key:
            return tier
    return TIERS[BASIC]


def tier_rank(name: Optional[str]) -> int:
    return get_tier(name).rank


def has_feature(tier_name: Optional[str], feature: str) -> bool:
    return get_tier(tier_name).has(feature)


def require_feature(tier_name: Optional[str], feature: str, message: str) -> Tier:
    """Return the tier or raise TierRestrictionError with ``message``."""
    tier = get_tier(tier_name)
    if not tier.has(feature):
        raise TierRestrictionError(message)
    return tier


def compare_tiers(current: Optional[str], new: Optional[str]) -> str:
    """Classify a package change as upgrade, downgrade or same."""
    current_rank = tier_rank(current)
    new_rank = tier_rank(new)
    if new_rank > current_rank:
        return CHANGE_UPGRADE
    if new_rank < current_rank:
        return CHANGE_DOWNGRADE
    return CHANGE_SAME


def upgrade_benefits(current: Optional[str], new: Optional[str]) -> List[str]:
    """Human readable features gained by moving from ``current`` to ``new``."""
    if compare_tiers(current, new) != CHANGE_UPGRADE:
        return []
    old_tier = get_tier(current)
    new_tier = get_tier(new)
    gained = [FEATURE_LABELS[f] for f in FEATURE_LABELS if f in new_tier.features - old_tier.features]
    if new_tier.advert_limit > old_tier.advert_limit:
        gained.append(f"{new_tier.advert_limit} adverts per month")
    if new_tier.product_limit > old_tier.product_limit:
        gained.append(f"Up to {new_tier.product_limit} products")
    return gained
