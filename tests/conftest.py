"""Shared test fixtures for all test groups."""

from datetime import UTC, datetime

import pytest
from fakeredis import FakeAsyncRedis

from entitlement_exchange.domain.catalog import EntitlementCatalog
from entitlement_exchange.domain.eligibility import EligibilityTier
from entitlement_exchange.domain.limits import PlanLimits, UsageSnapshot
from entitlement_exchange.services.exchange_service import ExchangeService
from entitlement_exchange.services.override_store import InMemoryOverrideStore
from entitlement_exchange.services.plan_provider import PlanContext
from entitlement_exchange.services.usage_reader import RedisUsageReader

NOW = datetime(2030, 6, 15, 10, 30, 0, tzinfo=UTC)


class StaticPlanProvider:
    """PlanProvider returning fixed contexts per tenant."""

    def __init__(self, contexts: dict[str, PlanContext] | None = None):
        self.contexts = contexts or {}

    async def get_plan_context(self, tenant_id: str) -> PlanContext:
        return self.contexts[tenant_id]


@pytest.fixture
def catalog() -> EntitlementCatalog:
    """Default rates: sell 3.0/0.8/0.3, buy 7.0/2.5/1.0, steps 1/5/1."""
    return EntitlementCatalog()


@pytest.fixture
def starter_plan() -> PlanLimits:
    """Base {seats: 5, projects: 20, storage: 10 GB} on a tradable plan."""
    return PlanLimits(
        seats_base=5,
        projects_base=20,
        storage_base_gb=10,
        plan_tier=EligibilityTier.TRADABLE,
        plan_name="Starter",
    )


@pytest.fixture
def typical_usage() -> UsageSnapshot:
    """Usage {seats: 5, projects: 10, storage: 3 GB}."""
    return UsageSnapshot(seats_used=5, projects_used=10, storage_used_mb=3 * 1024)


@pytest.fixture
async def redis():
    fake_redis = FakeAsyncRedis(decode_responses=True)
    yield fake_redis
    await fake_redis.flushall()
    await fake_redis.aclose()


@pytest.fixture
def usage_reader(redis) -> RedisUsageReader:
    return RedisUsageReader(redis)


@pytest.fixture
def plan_provider(starter_plan) -> StaticPlanProvider:
    return StaticPlanProvider({
        "tenant-starter": PlanContext(limits=starter_plan, period_end=datetime(2030, 7, 1, tzinfo=UTC)),
        "tenant-no-period": PlanContext(limits=starter_plan, period_end=None),
        "tenant-free": PlanContext(
            limits=PlanLimits.from_storage_mb("Free", seats_base=2, projects_base=10, storage_base_mb=500),
        ),
        "tenant-enterprise": PlanContext(
            limits=PlanLimits.from_storage_mb("Enterprise", seats_base=None, projects_base=None, storage_base_mb=None),
        ),
    })


@pytest.fixture
def override_store() -> InMemoryOverrideStore:
    return InMemoryOverrideStore()


@pytest.fixture
async def exchange_service(catalog, override_store, plan_provider, usage_reader, typical_usage) -> ExchangeService:
    """Service wired with in-memory overrides and fake Redis usage for every known tenant."""
    for tenant_id in plan_provider.contexts:
        await usage_reader.set_usage(tenant_id, typical_usage)
    return ExchangeService(
        catalog=catalog,
        store=override_store,
        plans=plan_provider,
        usage=usage_reader,
    )
