"""API-specific test fixtures."""

import pytest
from fakeredis import FakeAsyncRedis
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from entitlement_exchange.api.routes import api_router
from entitlement_exchange.api.routes.exchange import get_exchange_service
from entitlement_exchange.core.exceptions import StorageUnavailableError
from entitlement_exchange.main import register_exception_handlers
from entitlement_exchange.middleware.correlation import setup_correlation_middleware
from entitlement_exchange.services.exchange_service import ExchangeService
from entitlement_exchange.services.usage_reader import RedisUsageReader


def build_app(service) -> FastAPI:
    """Bare app with production routes and handlers, minus lifespan side effects."""
    app = FastAPI(title="Entitlement Exchange - Test Client")
    setup_correlation_middleware(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    app.dependency_overrides[get_exchange_service] = lambda: service
    return app


@pytest.fixture
async def api_client(exchange_service):
    """In-process client sharing the test event loop with fakeredis and the in-memory store."""
    transport = ASGITransport(app=build_app(exchange_service))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class UnavailableOverrideStore:
    """Override store whose backend is down."""

    async def get(self, tenant_id):
        raise StorageUnavailableError("Override store unavailable during get")

    async def upsert(self, override, expected_version):
        raise StorageUnavailableError("Override store unavailable during upsert")

    async def delete(self, tenant_id):
        raise StorageUnavailableError("Override store unavailable during delete")

    async def purge_expired(self, now):
        raise StorageUnavailableError("Override store unavailable during purge_expired")


@pytest.fixture
async def unavailable_client(exchange_service):
    """Client whose override storage raises on every call."""
    service = ExchangeService(
        catalog=exchange_service.catalog,
        store=UnavailableOverrideStore(),
        plans=exchange_service.plans,
        usage=exchange_service.usage,
    )
    transport = ASGITransport(app=build_app(service))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def usage_down_client(exchange_service, override_store):
    """Client whose usage counters live on a Redis that refuses connections."""
    service = ExchangeService(
        catalog=exchange_service.catalog,
        store=override_store,
        plans=exchange_service.plans,
        usage=RedisUsageReader(FakeAsyncRedis(connected=False)),
    )
    transport = ASGITransport(app=build_app(service))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
