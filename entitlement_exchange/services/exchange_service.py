"""ExchangeService: override lifecycle around the pure exchange calculator.

Responsibilities:
  - evaluate: side-effect-free preview of a proposal for live UI feedback
  - apply: validate, then atomically upsert the tenant's single override;
    an all-zero proposal writes nothing
  - clear: drop the override, reverting to plan limits (idempotent)
  - effective_limits: plan base + active override deltas, for quota checks
  - exchange_state: bounds + active override, for rendering the exchange form
  - purge_expired: lazy cleanup of overrides past valid_until

Expiry is evaluated at read time; an override whose valid_until has passed
is treated as absent even while its row still exists.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

import structlog

from entitlement_exchange.core.exceptions import ExchangeRejectedError
from entitlement_exchange.domain.catalog import EntitlementCatalog
from entitlement_exchange.domain.eligibility import EligibilityTier
from entitlement_exchange.domain.exchange import (
    DimensionBounds,
    ExchangeEvaluation,
    ExchangeProposal,
    ExchangeStatus,
    compute_bounds,
    evaluate_proposal,
)
from entitlement_exchange.domain.limits import (
    EffectiveLimits,
    PlanLimits,
    ResourceOverride,
    effective_limits,
)
from entitlement_exchange.services.override_store import OverrideStore
from entitlement_exchange.services.plan_provider import PlanProvider
from entitlement_exchange.services.usage_reader import UsageReader

logger = structlog.get_logger(__name__)


class ApplyStatus(StrEnum):
    APPLIED = "applied"
    NO_OP_UNLIMITED = "no_op_unlimited"
    NO_CHANGES = "no_changes"


@dataclass(frozen=True)
class ApplyResult:
    status: ApplyStatus
    evaluation: ExchangeEvaluation
    override: ResourceOverride | None = None


@dataclass(frozen=True)
class ExchangeState:
    """Everything a client needs to draw the exchange form for a tenant."""

    tenant_id: str
    plan: PlanLimits
    bounds: dict[str, DimensionBounds]
    active_override: ResourceOverride | None
    effective: EffectiveLimits
    period_end: datetime | None

    @property
    def tier(self) -> EligibilityTier:
        return self.plan.plan_tier


def add_months(moment: datetime, months: int) -> datetime:
    """Shift a datetime by whole calendar months, clamping to the month's last day."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class ExchangeService:
    """Injectable service; collaborators are passed in so tests can swap them."""

    def __init__(
        self,
        catalog: EntitlementCatalog,
        store: OverrideStore,
        plans: PlanProvider,
        usage: UsageReader,
        default_validity_months: int = 1,
    ):
        self.catalog = catalog
        self.store = store
        self.plans = plans
        self.usage = usage
        self.default_validity_months = default_validity_months

    def _valid_until(self, period_end: datetime | None, now: datetime) -> datetime:
        if period_end is not None and period_end > now:
            return period_end
        return add_months(now, self.default_validity_months)

    async def load_active(self, tenant_id: str, now: datetime | None = None) -> ResourceOverride | None:
        """Return the tenant's override if still valid at ``now``, else None."""
        now = now or datetime.now(UTC)
        override = await self.store.get(tenant_id)
        if override is None or not override.is_active(now):
            return None
        return override

    async def evaluate(self, tenant_id: str, proposal: ExchangeProposal) -> ExchangeEvaluation:
        """Preview a proposal against the tenant's current plan and usage. Never writes."""
        context = await self.plans.get_plan_context(tenant_id)
        usage = await self.usage.get_usage(tenant_id)
        return evaluate_proposal(context.limits, usage, proposal, self.catalog)

    async def apply(
        self,
        tenant_id: str,
        proposal: ExchangeProposal,
        now: datetime | None = None,
        expected_version: int | None = None,
    ) -> ApplyResult:
        """Validate and commit a proposal as the tenant's only override.

        Args:
            tenant_id: Tenant identifier
            proposal: Deltas to apply on top of plan base limits
            now: Current time (for deterministic testing)
            expected_version: Version of the override the caller last saw
                (0 = none). When omitted the currently stored version is used.

        Returns:
            ApplyResult with the committed override. Nothing is stored for
            unlimited plans (NO_OP_UNLIMITED) or an all-zero proposal
            (NO_CHANGES, carrying the active override if any); use clear()
            to revert to plan limits.

        Raises:
            ExchangeRejectedError: proposal not admissible; nothing written
            ConcurrentModificationError: another writer committed first
            StorageUnavailableError: override or plan storage unreachable
        """
        now = now or datetime.now(UTC)
        bound = logger.bind(tenant_id=tenant_id)

        context = await self.plans.get_plan_context(tenant_id)
        usage = await self.usage.get_usage(tenant_id)
        evaluation = evaluate_proposal(context.limits, usage, proposal, self.catalog)

        if evaluation.status == ExchangeStatus.NO_OP_UNLIMITED:
            bound.info("exchange_noop_unlimited", plan=context.limits.plan_name)
            return ApplyResult(status=ApplyStatus.NO_OP_UNLIMITED, evaluation=evaluation)

        if not evaluation.admissible:
            bound.info(
                "exchange_rejected",
                reason=evaluation.rejection_reason.value,
                violations=[
                    {"reason": v.reason.value, "dimension": v.dimension.value if v.dimension else None}
                    for v in evaluation.violations
                ],
                points_balance=evaluation.points.balance,
            )
            raise ExchangeRejectedError(evaluation)

        if proposal.is_empty:
            current = await self.load_active(tenant_id, now)
            bound.info("exchange_no_changes", has_override=current is not None)
            return ApplyResult(status=ApplyStatus.NO_CHANGES, evaluation=evaluation, override=current)

        if expected_version is None:
            current = await self.store.get(tenant_id)
            expected_version = current.version if current else 0

        override = ResourceOverride(
            tenant_id=tenant_id,
            seats_delta=proposal.seats_delta,
            projects_delta=proposal.projects_delta,
            storage_delta_gb=proposal.storage_delta,
            points_earned=evaluation.points.earned,
            points_spent=evaluation.points.spent,
            valid_until=self._valid_until(context.period_end, now),
            updated_at=now,
        )
        committed = await self.store.upsert(override, expected_version)

        bound.info(
            "exchange_applied",
            seats_delta=committed.seats_delta,
            projects_delta=committed.projects_delta,
            storage_delta_gb=committed.storage_delta_gb,
            points_earned=committed.points_earned,
            points_spent=committed.points_spent,
            valid_until=committed.valid_until.isoformat(),
            version=committed.version,
        )
        return ApplyResult(status=ApplyStatus.APPLIED, evaluation=evaluation, override=committed)

    async def clear(self, tenant_id: str) -> bool:
        """Remove the tenant's override. Clearing when none exists is a no-op.

        Returns:
            True if an override was removed
        """
        removed = await self.store.delete(tenant_id)
        logger.info("override_cleared", tenant_id=tenant_id, removed=removed)
        return removed

    async def effective_limits(self, tenant_id: str, now: datetime | None = None) -> EffectiveLimits:
        now = now or datetime.now(UTC)
        context = await self.plans.get_plan_context(tenant_id)
        override = await self.store.get(tenant_id)
        return effective_limits(context.limits, override, now)

    async def exchange_state(self, tenant_id: str, now: datetime | None = None) -> ExchangeState:
        now = now or datetime.now(UTC)
        context = await self.plans.get_plan_context(tenant_id)
        override = await self.load_active(tenant_id, now)

        bounds: dict[str, DimensionBounds] = {}
        if context.limits.plan_tier == EligibilityTier.TRADABLE:
            usage = await self.usage.get_usage(tenant_id)
            bounds = {d.value: b for d, b in compute_bounds(context.limits, usage, self.catalog).items()}

        return ExchangeState(
            tenant_id=tenant_id,
            plan=context.limits,
            bounds=bounds,
            active_override=override,
            effective=effective_limits(context.limits, override, now),
            period_end=context.period_end,
        )

    async def purge_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        purged = await self.store.purge_expired(now)
        if purged:
            logger.info("overrides_purged", count=purged)
        return purged
