"""
Unit tests for the package tier table.
"""

import pytest

from mpbusinesshub.services.tiers import (
    BASIC,
    BUSINESS_HOURS,
    CONTACT_INFO,
    FEATURED,
    GOLD,
    PRODUCTS,
    SILVER,
    SOCIAL_FEATURES,
    SOCIAL_LINKS,
    TierRestrictionError,
    compare_tiers,
    get_tier,
    has_feature,
    require_feature,
    tier_rank,
    upgrade_benefits,
)

pytestmark = pytest.mark.unit


class TestTierLookup:
    def test_unknown_and_missing_fall_back_to_basic(self):
        assert get_tier(None).name == BASIC
        assert get_tier("").name == BASIC
        assert get_tier("Platinum").name == BASIC

    def test_lookup_is_case_insensitive(self):
        assert get_tier("gold").name == GOLD
        assert get_tier(" Silver ").name == SILVER

    def test_free_is_an_alias_for_basic(self):
        assert get_tier("Free").name == BASIC

    def test_ranks_are_ordered(self):
        assert tier_rank("Basic") < tier_rank("Bronze") < tier_rank("Silver") < tier_rank("Gold")

    @pytest.mark.parametrize(
        "tier,adverts,products,social",
        [("Basic", 0, 0, 0), ("Bronze", 1, 0, 0), ("Silver", 2, 10, 1), ("Gold", 4, 50, 2)],
    )
    def test_limits(self, tier, adverts, products, social):
        config = get_tier(tier)

        assert config.advert_limit == adverts
        assert config.product_limit == products
        assert config.social_feature_limit == social


class TestFeatureGating:
    @pytest.mark.parametrize("feature", [CONTACT_INFO, BUSINESS_HOURS, SOCIAL_LINKS])
    def test_bronze_features(self, feature):
        assert has_feature("Basic", feature) is False
        assert has_feature("Bronze", feature) is True
        assert has_feature("Gold", feature) is True

    def test_products_require_silver_or_gold(self):
        assert has_feature("Bronze", PRODUCTS) is False
        assert has_feature("Silver", PRODUCTS) is True
        assert has_feature("Gold", PRODUCTS) is True

    def test_social_features_require_silver_or_gold(self):
        assert has_feature("Bronze", SOCIAL_FEATURES) is False
        assert has_feature("Silver", SOCIAL_FEATURES) is True

    def test_only_gold_is_featured(self):
        assert has_feature("Silver", FEATURED) is False
        assert has_feature("Gold", FEATURED) is True

    def test_require_feature_raises_with_message(self):
        with pytest.raises(TierRestrictionError, match="upgrade"):
            require_feature("Bronze", PRODUCTS, "Please upgrade")

        assert require_feature("Silver", PRODUCTS, "Please upgrade").name == SILVER


class TestTierComparison:
    def test_compare(self):
        assert compare_tiers("Basic", "Gold") == "upgrade"
        assert compare_tiers("Gold", "Bronze") == "downgrade"
        assert compare_tiers("Silver", "silver") == "same"

    def test_upgrade_benefits_lists_new_features(self):
        benefits = upgrade_benefits("Bronze", "Silver")

        assert "Product catalog" in benefits
        assert "2 adverts per month" in benefits
        assert "Contact details on your listing" not in benefits

    def test_no_benefits_for_downgrade_or_same(self):
        assert upgrade_benefits("Gold", "Silver") == []
        assert upgrade_benefits("Gold", "Gold") == []
