"""Idempotent seed data for plan tiers."""

from sqlalchemy import select

from entitlement_exchange.db.base import get_session_factory
from entitlement_exchange.db.models.plan_tier import PlanTier

PLAN_TIERS = [
    {
        "slug": "free",
        "name": "Free",
        "max_seats": 2,
        "max_projects": 10,
        "max_storage_mb": 500,
    },
    {
        "slug": "starter",
        "name": "Starter",
        "max_seats": 10,
        "max_projects": 100,
        "max_storage_mb": 5120,
    },
    {
        "slug": "professional",
        "name": "Professional",
        "max_seats": 25,
        "max_projects": None,
        "max_storage_mb": 10240,
    },
    {
        "slug": "enterprise",
        "name": "Enterprise",
        "max_seats": None,
        "max_projects": None,
        "max_storage_mb": None,
    },
]


async def seed_plan_tiers() -> None:
    """Insert default plan tiers if they don't already exist."""
    factory = get_session_factory()

    async with factory() as session:
        for tier_data in PLAN_TIERS:
            result = await session.execute(
                select(PlanTier).where(PlanTier.slug == tier_data["slug"])
            )
            existing = result.scalar_one_or_none()

            if existing is None:
                session.add(PlanTier(**tier_data))

        await session.commit()
