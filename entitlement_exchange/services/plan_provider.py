"""Plan limits and subscription period lookup for a tenant."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from entitlement_exchange.core.exceptions import StorageUnavailableError
from entitlement_exchange.db.base import get_session_factory
from entitlement_exchange.db.models.plan_tier import PlanTier
from entitlement_exchange.db.models.tenant_subscription import TenantSubscription
from entitlement_exchange.domain.limits import PlanLimits

logger = structlog.get_logger(__name__)

DEFAULT_PLAN_SLUG = "free"


@dataclass(frozen=True)
class PlanContext:
    limits: PlanLimits
    period_end: datetime | None = None


class PlanProvider(Protocol):
    async def get_plan_context(self, tenant_id: str) -> PlanContext:
        ...


def _limits_from_tier(tier: PlanTier) -> PlanLimits:
    return PlanLimits.from_storage_mb(
        plan_name=tier.name,
        seats_base=tier.max_seats,
        projects_base=tier.max_projects,
        storage_base_mb=tier.max_storage_mb,
    )


class SqlPlanProvider:
    """Resolve a tenant's plan from tenant_subscriptions + plan_tiers.

    Tenants without a subscription row are on the free plan.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    async def get_plan_context(self, tenant_id: str) -> PlanContext:
        factory = self._session_factory or get_session_factory()
        try:
            async with factory() as session:
                result = await session.execute(
                    select(TenantSubscription).where(TenantSubscription.tenant_id == tenant_id)
                )
                subscription = result.scalar_one_or_none()

                if subscription is None:
                    tier_result = await session.execute(
                        select(PlanTier).where(PlanTier.slug == DEFAULT_PLAN_SLUG)
                    )
                    return PlanContext(limits=_limits_from_tier(tier_result.scalar_one()))

                await session.refresh(subscription, ["plan_tier"])
                period_end = subscription.current_period_end
                if period_end is not None and period_end.tzinfo is None:
                    period_end = period_end.replace(tzinfo=timezone.utc)

                return PlanContext(
                    limits=_limits_from_tier(subscription.plan_tier),
                    period_end=period_end,
                )
        except (SQLAlchemyError, OSError) as exc:
            logger.error(
                "plan_store_unavailable",
                tenant_id=tenant_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise StorageUnavailableError("Plan lookup failed") from exc
