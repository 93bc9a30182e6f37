"""Exchange API Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from entitlement_exchange.domain.exchange import DimensionBounds, ExchangeEvaluation, ExchangeProposal
from entitlement_exchange.domain.limits import EffectiveLimits, ResourceOverride

# ---------- Requests ----------


class ProposalRequest(BaseModel):
    seats_delta: int = 0
    projects_delta: int = 0
    storage_delta_gb: int = 0

    def to_proposal(self) -> ExchangeProposal:
        return ExchangeProposal(
            seats_delta=self.seats_delta,
            projects_delta=self.projects_delta,
            storage_delta=self.storage_delta_gb,
        )


class ApplyRequest(ProposalRequest):
    # Version of the override the client last loaded (0 = none); omit to skip the check
    expected_version: int | None = Field(default=None, ge=0)


# ---------- Responses ----------


class ViolationResponse(BaseModel):
    reason: str
    dimension: str | None
    value: float | None
    limit: float | None


class EvaluationResponse(BaseModel):
    status: str
    admissible: bool
    points_earned: float
    points_spent: float
    points_balance: float
    rejection_reason: str | None
    violations: list[ViolationResponse]

    @classmethod
    def from_evaluation(cls, evaluation: ExchangeEvaluation) -> "EvaluationResponse":
        reason = evaluation.rejection_reason
        return cls(
            status=evaluation.status.value,
            admissible=evaluation.admissible,
            points_earned=evaluation.points.earned,
            points_spent=evaluation.points.spent,
            points_balance=evaluation.points.balance,
            rejection_reason=reason.value if reason else None,
            violations=[
                ViolationResponse(
                    reason=v.reason.value,
                    dimension=v.dimension.value if v.dimension else None,
                    value=v.value,
                    limit=v.limit,
                )
                for v in evaluation.violations
            ],
        )


class OverrideResponse(BaseModel):
    tenant_id: str
    seats_delta: int
    projects_delta: int
    storage_delta_gb: int
    points_earned: float
    points_spent: float
    valid_until: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_override(cls, override: ResourceOverride) -> "OverrideResponse":
        return cls(
            tenant_id=override.tenant_id,
            seats_delta=override.seats_delta,
            projects_delta=override.projects_delta,
            storage_delta_gb=override.storage_delta_gb,
            points_earned=override.points_earned,
            points_spent=override.points_spent,
            valid_until=override.valid_until,
            updated_at=override.updated_at,
            version=override.version,
        )


class ApplyResponse(BaseModel):
    status: str
    override: OverrideResponse | None = None
    evaluation: EvaluationResponse


class LimitsResponse(BaseModel):
    seats: int | None  # None = unlimited
    projects: int | None
    storage_gb: int | None
    override_active: bool
    valid_until: datetime | None

    @classmethod
    def from_limits(cls, limits: EffectiveLimits) -> "LimitsResponse":
        return cls(
            seats=limits.seats,
            projects=limits.projects,
            storage_gb=limits.storage_gb,
            override_active=limits.override_active,
            valid_until=limits.valid_until,
        )


class BoundsResponse(BaseModel):
    base: int | None
    usage: int
    floor: int | None
    ceiling: int | None
    sellable: int
    tradable: bool
    can_swap: bool

    @classmethod
    def from_bounds(cls, bounds: DimensionBounds) -> "BoundsResponse":
        return cls(
            base=bounds.base,
            usage=bounds.usage,
            floor=bounds.floor,
            ceiling=bounds.ceiling,
            sellable=bounds.sellable,
            tradable=bounds.tradable,
            can_swap=bounds.can_swap,
        )


class ExchangeStateResponse(BaseModel):
    tenant_id: str
    plan_name: str
    tier: str
    bounds: dict[str, BoundsResponse]
    active_override: OverrideResponse | None
    effective_limits: LimitsResponse
    period_end: datetime | None
