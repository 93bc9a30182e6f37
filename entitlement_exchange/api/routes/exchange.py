"""Exchange routes: preview, apply, clear and effective limits per tenant."""

from functools import lru_cache

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response

from entitlement_exchange.api.schemas.exchange import (
    ApplyRequest,
    ApplyResponse,
    BoundsResponse,
    EvaluationResponse,
    ExchangeStateResponse,
    LimitsResponse,
    OverrideResponse,
    ProposalRequest,
)
from entitlement_exchange.core.config import get_settings
from entitlement_exchange.core.exceptions import ConcurrentModificationError, ExchangeRejectedError
from entitlement_exchange.db.redis import get_redis
from entitlement_exchange.domain.catalog import EntitlementCatalog, catalog_from_settings
from entitlement_exchange.domain.exchange import RejectionReason
from entitlement_exchange.services.exchange_service import ExchangeService
from entitlement_exchange.services.override_store import SqlOverrideStore
from entitlement_exchange.services.plan_provider import SqlPlanProvider
from entitlement_exchange.services.usage_reader import RedisUsageReader

logger = structlog.get_logger(__name__)

router = APIRouter()


@lru_cache
def get_catalog() -> EntitlementCatalog:
    return catalog_from_settings(get_settings())


def get_exchange_service() -> ExchangeService:
    """Wire the service against the shared database and Redis pool."""
    settings = get_settings()
    return ExchangeService(
        catalog=get_catalog(),
        store=SqlOverrideStore(),
        plans=SqlPlanProvider(),
        usage=RedisUsageReader(get_redis()),
        default_validity_months=settings.exchange_default_validity_months,
    )


@router.get("/tenants/{tenant_id}/exchange", response_model=ExchangeStateResponse)
async def get_exchange_state(
    tenant_id: str,
    service: ExchangeService = Depends(get_exchange_service),
):
    """Current bounds, active override and effective limits for the exchange form."""
    state = await service.exchange_state(tenant_id)
    return ExchangeStateResponse(
        tenant_id=state.tenant_id,
        plan_name=state.plan.plan_name,
        tier=state.tier.value,
        bounds={name: BoundsResponse.from_bounds(b) for name, b in state.bounds.items()},
        active_override=OverrideResponse.from_override(state.active_override) if state.active_override else None,
        effective_limits=LimitsResponse.from_limits(state.effective),
        period_end=state.period_end,
    )


@router.post("/tenants/{tenant_id}/exchange/evaluate", response_model=EvaluationResponse)
async def evaluate_exchange(
    tenant_id: str,
    body: ProposalRequest,
    service: ExchangeService = Depends(get_exchange_service),
):
    """Side-effect-free preview. Always 200; admissibility is in the body."""
    evaluation = await service.evaluate(tenant_id, body.to_proposal())
    return EvaluationResponse.from_evaluation(evaluation)


@router.post("/tenants/{tenant_id}/exchange", response_model=ApplyResponse)
async def apply_exchange(
    tenant_id: str,
    body: ApplyRequest,
    service: ExchangeService = Depends(get_exchange_service),
):
    """Commit a proposal as the tenant's override, replacing any previous one."""
    try:
        result = await service.apply(
            tenant_id,
            body.to_proposal(),
            expected_version=body.expected_version,
        )
    except ExchangeRejectedError as exc:
        evaluation = EvaluationResponse.from_evaluation(exc.evaluation)
        if exc.evaluation.rejection_reason == RejectionReason.NOT_ELIGIBLE:
            raise HTTPException(status_code=403, detail=evaluation.model_dump(mode="json"))
        raise HTTPException(status_code=422, detail=evaluation.model_dump(mode="json"))
    except ConcurrentModificationError as exc:
        committed = OverrideResponse.from_override(exc.committed).model_dump(mode="json") if exc.committed else None
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Override was modified concurrently. Reload and retry.",
                "committed": committed,
            },
        )

    return ApplyResponse(
        status=result.status.value,
        override=OverrideResponse.from_override(result.override) if result.override else None,
        evaluation=EvaluationResponse.from_evaluation(result.evaluation),
    )


@router.delete("/tenants/{tenant_id}/exchange", status_code=204)
async def clear_exchange(
    tenant_id: str,
    service: ExchangeService = Depends(get_exchange_service),
):
    """Revert to plan limits. Succeeds whether or not an override exists."""
    await service.clear(tenant_id)
    return Response(status_code=204)


@router.get("/tenants/{tenant_id}/limits", response_model=LimitsResponse)
async def get_effective_limits(
    tenant_id: str,
    service: ExchangeService = Depends(get_exchange_service),
):
    """Limits quota checks should enforce right now."""
    limits = await service.effective_limits(tenant_id)
    return LimitsResponse.from_limits(limits)
