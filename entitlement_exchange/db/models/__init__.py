"""Re-export all models so Base.metadata sees them."""

from entitlement_exchange.db.models.plan_tier import PlanTier
from entitlement_exchange.db.models.resource_override import ResourceOverrideRow
from entitlement_exchange.db.models.tenant_subscription import TenantSubscription

__all__ = [
    "PlanTier",
    "ResourceOverrideRow",
    "TenantSubscription",
]
