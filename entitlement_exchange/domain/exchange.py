"""Entitlement exchange calculator.

Pure domain functions for trading unused plan entitlements between
dimensions under a points budget. No DB access, fully deterministic.

Rules:
    - floor[d]    = max(minimum[d], usage[d]); a tenant never sells below
                    what it consumes
    - sellable[d] = max(0, base[d] - floor[d])
    - budget[X]   = sum of sellable[Y] * sell_rate[Y] over the funding set
                    (every Y != X for CROSS, every Y for POOLED)
    - ceiling[X]  = base[X] + floor(budget[X] / buy_rate[X]), rounded down
                    to the step of X and never below floor[X]
    - earned      = sum |delta| * sell_rate over negative deltas
    - spent       = sum delta * buy_rate over positive deltas
    - admissible iff every delta is on its step, every changed dimension
      lands inside [floor, ceiling], and earned - spent >= -epsilon
"""

import math
from dataclasses import dataclass, field
from enum import StrEnum

from entitlement_exchange.domain.catalog import Dimension, DimensionRule, EntitlementCatalog, FundingStrategy
from entitlement_exchange.domain.eligibility import EligibilityTier
from entitlement_exchange.domain.limits import PlanLimits, UsageSnapshot


class RejectionReason(StrEnum):
    """Why a proposal is not admissible."""

    NOT_ELIGIBLE = "not_eligible"
    UNBOUNDED_DIMENSION = "unbounded_dimension"
    INVALID_STEP = "invalid_step"
    INSUFFICIENT_POINTS = "insufficient_points"
    BELOW_FLOOR = "below_floor"
    ABOVE_CEILING = "above_ceiling"


# Declaration order above is the order a primary reason is picked in
_REASON_PRIORITY = list(RejectionReason)


class ExchangeStatus(StrEnum):
    ADMISSIBLE = "admissible"
    REJECTED = "rejected"
    NO_OP_UNLIMITED = "no_op_unlimited"


@dataclass(frozen=True)
class ExchangeProposal:
    """Candidate deltas, one per dimension. Never persisted unless admissible."""

    seats_delta: int = 0
    projects_delta: int = 0
    storage_delta: int = 0

    def delta(self, dimension: Dimension) -> int:
        if dimension == Dimension.SEATS:
            return self.seats_delta
        if dimension == Dimension.PROJECTS:
            return self.projects_delta
        return self.storage_delta

    @property
    def is_empty(self) -> bool:
        return self.seats_delta == 0 and self.projects_delta == 0 and self.storage_delta == 0


@dataclass(frozen=True)
class DimensionBounds:
    """Admissible range for one dimension. Unbounded dimensions are not tradable."""

    dimension: Dimension
    base: int | None
    usage: int
    floor: int | None
    ceiling: int | None
    sellable: int
    tradable: bool

    @property
    def can_swap(self) -> bool:
        return self.tradable and self.ceiling is not None and self.ceiling > self.floor


@dataclass(frozen=True)
class PointsSummary:
    earned: float = 0.0
    spent: float = 0.0

    @property
    def balance(self) -> float:
        return self.earned - self.spent


@dataclass(frozen=True)
class DimensionViolation:
    """A single failed check. dimension is None for budget-wide failures."""

    reason: RejectionReason
    dimension: Dimension | None = None
    value: float | None = None
    limit: float | None = None


@dataclass(frozen=True)
class ExchangeEvaluation:
    """Outcome of evaluating one proposal."""

    status: ExchangeStatus
    points: PointsSummary = field(default_factory=PointsSummary)
    bounds: dict[Dimension, DimensionBounds] = field(default_factory=dict)
    violations: list[DimensionViolation] = field(default_factory=list)

    @property
    def admissible(self) -> bool:
        return self.status != ExchangeStatus.REJECTED

    @property
    def rejection_reason(self) -> RejectionReason | None:
        if not self.violations:
            return None
        return min(
            (v.reason for v in self.violations),
            key=_REASON_PRIORITY.index,
        )


def compute_floor(rule: DimensionRule, usage: int) -> int:
    """Lowest value a dimension may be sold down to."""
    return max(rule.minimum, usage)


def _round_down_to_step(value: int, step: int) -> int:
    return (value // step) * step


def compute_bounds(
    plan: PlanLimits,
    usage: UsageSnapshot,
    catalog: EntitlementCatalog,
) -> dict[Dimension, DimensionBounds]:
    """Compute floor and ceiling for every dimension.

    Pure function -- no side effects.

    Args:
        plan: Base limits (storage already in GB)
        usage: Live consumption (storage in MB, rounded up to GB here)
        catalog: Rates, steps, minimums and funding strategy

    Returns:
        Mapping of dimension to its DimensionBounds
    """
    floors: dict[Dimension, int] = {}
    sellable: dict[Dimension, int] = {}

    for dimension in Dimension:
        base = plan.base(dimension)
        if base is None:
            continue
        floors[dimension] = compute_floor(catalog.rule(dimension), usage.used(dimension))
        sellable[dimension] = max(0, base - floors[dimension])

    bounds: dict[Dimension, DimensionBounds] = {}
    for dimension in Dimension:
        base = plan.base(dimension)
        used = usage.used(dimension)

        if base is None:
            bounds[dimension] = DimensionBounds(
                dimension=dimension,
                base=None,
                usage=used,
                floor=None,
                ceiling=None,
                sellable=0,
                tradable=False,
            )
            continue

        rule = catalog.rule(dimension)
        budget = sum(
            units * catalog.rule(source).sell_rate
            for source, units in sellable.items()
            if catalog.funding_strategy == FundingStrategy.POOLED or source != dimension
        )
        # epsilon absorbs float error such as 6.9999999 points buying one 7-point unit
        affordable = math.floor((budget + catalog.epsilon) / rule.buy_rate)
        ceiling = max(floors[dimension], base + _round_down_to_step(affordable, rule.step))

        bounds[dimension] = DimensionBounds(
            dimension=dimension,
            base=base,
            usage=used,
            floor=floors[dimension],
            ceiling=ceiling,
            sellable=sellable[dimension],
            tradable=True,
        )

    return bounds


def compute_points(proposal: ExchangeProposal, catalog: EntitlementCatalog) -> PointsSummary:
    """Price a proposal: sold units earn sell_rate, bought units cost buy_rate."""
    earned = 0.0
    spent = 0.0
    for dimension in Dimension:
        delta = proposal.delta(dimension)
        rule = catalog.rule(dimension)
        if delta < 0:
            earned += abs(delta) * rule.sell_rate
        elif delta > 0:
            spent += delta * rule.buy_rate
    return PointsSummary(earned=earned, spent=spent)


def evaluate_proposal(
    plan: PlanLimits,
    usage: UsageSnapshot,
    proposal: ExchangeProposal,
    catalog: EntitlementCatalog,
) -> ExchangeEvaluation:
    """Decide whether a proposal is admissible and price it.

    Pure function -- safe to call on every keystroke for live previews.

    Returns:
        ExchangeEvaluation. Free plans are rejected before bounds are
        computed; unlimited plans short-circuit to NO_OP_UNLIMITED.
        Otherwise every violated check is reported, not just the first.
    """
    if plan.plan_tier == EligibilityTier.NONE:
        return ExchangeEvaluation(
            status=ExchangeStatus.REJECTED,
            violations=[DimensionViolation(reason=RejectionReason.NOT_ELIGIBLE)],
        )

    if plan.plan_tier == EligibilityTier.UNLIMITED:
        return ExchangeEvaluation(status=ExchangeStatus.NO_OP_UNLIMITED)

    bounds = compute_bounds(plan, usage, catalog)
    points = compute_points(proposal, catalog)
    violations: list[DimensionViolation] = []

    for dimension in Dimension:
        delta = proposal.delta(dimension)
        dim_bounds = bounds[dimension]

        if not dim_bounds.tradable:
            if delta != 0:
                violations.append(
                    DimensionViolation(
                        reason=RejectionReason.UNBOUNDED_DIMENSION,
                        dimension=dimension,
                        value=delta,
                    )
                )
            continue

        step = catalog.rule(dimension).step
        if delta % step != 0:
            violations.append(
                DimensionViolation(
                    reason=RejectionReason.INVALID_STEP,
                    dimension=dimension,
                    value=delta,
                    limit=step,
                )
            )
            continue

        target = dim_bounds.base + delta
        # Untouched dimensions already over quota through usage stay legal
        if delta != 0 and target < dim_bounds.floor:
            violations.append(
                DimensionViolation(
                    reason=RejectionReason.BELOW_FLOOR,
                    dimension=dimension,
                    value=target,
                    limit=dim_bounds.floor,
                )
            )
        if target > dim_bounds.ceiling:
            violations.append(
                DimensionViolation(
                    reason=RejectionReason.ABOVE_CEILING,
                    dimension=dimension,
                    value=target,
                    limit=dim_bounds.ceiling,
                )
            )

    if points.balance < -catalog.epsilon:
        violations.append(
            DimensionViolation(
                reason=RejectionReason.INSUFFICIENT_POINTS,
                value=points.balance,
                limit=-catalog.epsilon,
            )
        )

    return ExchangeEvaluation(
        status=ExchangeStatus.REJECTED if violations else ExchangeStatus.ADMISSIBLE,
        points=points,
        bounds=bounds,
        violations=violations,
    )
