"""Plan-name based exchange eligibility."""

from enum import StrEnum


class EligibilityTier(StrEnum):
    """Whether a plan may trade entitlements."""

    NONE = "none"  # free tier, nothing to trade
    TRADABLE = "tradable"
    UNLIMITED = "unlimited"  # every dimension unbounded, exchange is a no-op


PLAN_ELIGIBILITY: dict[str, EligibilityTier] = {
    "free": EligibilityTier.NONE,
    "starter": EligibilityTier.TRADABLE,
    "professional": EligibilityTier.TRADABLE,
    "enterprise": EligibilityTier.UNLIMITED,
}


def tier_for_plan(plan_name: str | None) -> EligibilityTier:
    """Map a plan name to its eligibility tier.

    Matching is case-insensitive. Unknown or missing plan names are treated
    like the free plan.
    """
    if not plan_name:
        return EligibilityTier.NONE
    return PLAN_ELIGIBILITY.get(plan_name.strip().lower(), EligibilityTier.NONE)
