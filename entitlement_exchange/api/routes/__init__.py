from fastapi import APIRouter

from entitlement_exchange.api.routes import exchange, health

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(exchange.router, tags=["exchange"])
