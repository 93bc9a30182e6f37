"""Tests for the pure exchange calculator.

Reference tenant (fixtures): base {seats 5, projects 20, storage 10 GB},
usage {seats 5, projects 10, storage 3 GB}, default rates.

    floors:   seats 5, projects 10, storage 3
    sellable: seats 0, projects 10, storage 7
    cross ceilings:  seats 6, projects 20, storage 18
    pooled ceilings: seats 6, projects 20, storage 20
"""

import pytest

from entitlement_exchange.domain.catalog import (
    DEFAULT_RULES,
    Dimension,
    DimensionRule,
    EntitlementCatalog,
    FundingStrategy,
)
from entitlement_exchange.domain.eligibility import EligibilityTier
from entitlement_exchange.domain.exchange import (
    ExchangeProposal,
    ExchangeStatus,
    RejectionReason,
    compute_bounds,
    compute_floor,
    compute_points,
    evaluate_proposal,
)
from entitlement_exchange.domain.limits import PlanLimits, UsageSnapshot

pytestmark = pytest.mark.unit


def _reasons(evaluation) -> set[RejectionReason]:
    return {v.reason for v in evaluation.violations}


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------


def test_bounds_for_reference_tenant(starter_plan, typical_usage, catalog):
    bounds = compute_bounds(starter_plan, typical_usage, catalog)

    assert {d: b.floor for d, b in bounds.items()} == {
        Dimension.SEATS: 5,
        Dimension.PROJECTS: 10,
        Dimension.STORAGE: 3,
    }
    assert {d: b.sellable for d, b in bounds.items()} == {
        Dimension.SEATS: 0,
        Dimension.PROJECTS: 10,
        Dimension.STORAGE: 7,
    }
    assert {d: b.ceiling for d, b in bounds.items()} == {
        Dimension.SEATS: 6,
        Dimension.PROJECTS: 20,
        Dimension.STORAGE: 18,
    }


def test_pooled_funding_counts_own_surplus(starter_plan, typical_usage):
    catalog = EntitlementCatalog(funding_strategy=FundingStrategy.POOLED)
    bounds = compute_bounds(starter_plan, typical_usage, catalog)

    # storage gains its own 2.1 points on top of the 8 from projects
    assert bounds[Dimension.STORAGE].ceiling == 20
    # 10.1 points buy 4 projects, which rounds down to 0 on a step of 5
    assert bounds[Dimension.PROJECTS].ceiling == 20
    assert bounds[Dimension.SEATS].ceiling == 6


def test_projects_ceiling_is_step_aligned(typical_usage, catalog):
    plan = PlanLimits(
        seats_base=10,
        projects_base=20,
        storage_base_gb=10,
        plan_tier=EligibilityTier.TRADABLE,
    )
    bounds = compute_bounds(plan, typical_usage, catalog)

    # 5 spare seats = 15 points, plus 2.1 from storage = 17.1 / 2.5 = 6 projects -> 5
    assert bounds[Dimension.PROJECTS].ceiling == 25
    assert (bounds[Dimension.PROJECTS].ceiling - plan.projects_base) % DEFAULT_RULES[Dimension.PROJECTS].step == 0


@pytest.mark.parametrize("seats_used", range(0, 9))
def test_floor_never_below_minimum_or_usage(seats_used):
    rule = DEFAULT_RULES[Dimension.SEATS]
    floor = compute_floor(rule, seats_used)

    assert floor >= rule.minimum
    assert floor >= seats_used


def test_floor_is_monotonic_in_usage(starter_plan, catalog):
    floors = [
        compute_bounds(starter_plan, UsageSnapshot(seats_used=used), catalog)[Dimension.SEATS].floor
        for used in range(0, 10)
    ]
    assert floors == sorted(floors)


def test_over_quota_dimension_has_no_sellable_units(starter_plan, catalog):
    usage = UsageSnapshot(seats_used=7, projects_used=10, storage_used_mb=3 * 1024)
    seats = compute_bounds(starter_plan, usage, catalog)[Dimension.SEATS]

    assert seats.floor == 7
    assert seats.sellable == 0
    assert seats.ceiling >= seats.floor
    assert seats.can_swap is False


def test_storage_usage_rounds_up_into_floor(starter_plan, catalog):
    usage = UsageSnapshot(seats_used=5, projects_used=10, storage_used_mb=3 * 1024 + 1)
    storage = compute_bounds(starter_plan, usage, catalog)[Dimension.STORAGE]

    assert storage.usage == 4
    assert storage.floor == 4


def test_can_swap_when_room_above_floor(starter_plan, typical_usage, catalog):
    bounds = compute_bounds(starter_plan, typical_usage, catalog)
    assert bounds[Dimension.PROJECTS].can_swap is True
    assert bounds[Dimension.STORAGE].can_swap is True


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def test_points_priced_at_sell_and_buy_rates(catalog):
    points = compute_points(ExchangeProposal(seats_delta=-1, projects_delta=5, storage_delta=-2), catalog)

    assert points.earned == pytest.approx(3.0 + 0.6)
    assert points.spent == pytest.approx(12.5)
    assert points.balance == pytest.approx(3.6 - 12.5)


def test_empty_proposal_costs_nothing(catalog):
    points = compute_points(ExchangeProposal(), catalog)
    assert (points.earned, points.spent) == (0.0, 0.0)


# ---------------------------------------------------------------------------
# Admissibility
# ---------------------------------------------------------------------------


def test_sell_projects_buy_storage_is_admissible(starter_plan, typical_usage, catalog):
    evaluation = evaluate_proposal(
        starter_plan,
        typical_usage,
        ExchangeProposal(projects_delta=-10, storage_delta=2),
        catalog,
    )

    assert evaluation.status == ExchangeStatus.ADMISSIBLE
    assert evaluation.admissible is True
    assert evaluation.rejection_reason is None
    assert evaluation.points.earned == pytest.approx(8.0)
    assert evaluation.points.spent == pytest.approx(2.0)
    assert evaluation.points.balance == pytest.approx(6.0)


def test_unfunded_seats_purchase_reports_insufficient_points(starter_plan, typical_usage, catalog):
    evaluation = evaluate_proposal(
        starter_plan,
        typical_usage,
        ExchangeProposal(seats_delta=3),
        catalog,
    )

    assert evaluation.status == ExchangeStatus.REJECTED
    assert evaluation.rejection_reason == RejectionReason.INSUFFICIENT_POINTS
    # Every failed check is reported, not only the primary one
    assert _reasons(evaluation) == {RejectionReason.INSUFFICIENT_POINTS, RejectionReason.ABOVE_CEILING}


def test_empty_proposal_is_admissible(starter_plan, typical_usage, catalog):
    evaluation = evaluate_proposal(starter_plan, typical_usage, ExchangeProposal(), catalog)
    assert evaluation.status == ExchangeStatus.ADMISSIBLE


def test_untouched_over_quota_dimension_stays_admissible(starter_plan, catalog):
    usage = UsageSnapshot(seats_used=7, projects_used=10, storage_used_mb=3 * 1024)
    evaluation = evaluate_proposal(
        starter_plan,
        usage,
        ExchangeProposal(projects_delta=-5, storage_delta=1),
        catalog,
    )
    assert evaluation.admissible is True


def test_partial_buy_still_under_usage_is_below_floor(starter_plan, catalog):
    # Eight seats in use on a five-seat plan: buying one leaves the limit under usage
    usage = UsageSnapshot(seats_used=8, projects_used=10, storage_used_mb=3 * 1024)
    evaluation = evaluate_proposal(
        starter_plan,
        usage,
        ExchangeProposal(seats_delta=1, projects_delta=-10),
        catalog,
    )

    assert evaluation.admissible is False
    assert evaluation.rejection_reason == RejectionReason.BELOW_FLOOR
    violation = evaluation.violations[0]
    assert violation.dimension == Dimension.SEATS
    assert (violation.value, violation.limit) == (6, 8)


def test_buying_up_to_usage_clears_the_floor(starter_plan, catalog):
    usage = UsageSnapshot(seats_used=6, projects_used=10, storage_used_mb=3 * 1024)
    evaluation = evaluate_proposal(
        starter_plan,
        usage,
        ExchangeProposal(seats_delta=1, projects_delta=-10),
        catalog,
    )

    assert evaluation.admissible is True


@pytest.mark.parametrize("dimension", list(Dimension))
def test_buying_without_selling_is_never_admissible(dimension, starter_plan, typical_usage, catalog):
    step = catalog.rule(dimension).step
    proposal = ExchangeProposal(**{
        Dimension.SEATS: {"seats_delta": step},
        Dimension.PROJECTS: {"projects_delta": step},
        Dimension.STORAGE: {"storage_delta": step},
    }[dimension])

    evaluation = evaluate_proposal(starter_plan, typical_usage, proposal, catalog)

    assert evaluation.admissible is False
    assert RejectionReason.INSUFFICIENT_POINTS in _reasons(evaluation)


@pytest.mark.parametrize(
    ("proposal", "admissible"),
    [
        (ExchangeProposal(projects_delta=-10), True),
        (ExchangeProposal(projects_delta=-15), False),
        (ExchangeProposal(storage_delta=-7), True),
        (ExchangeProposal(storage_delta=-8), False),
        (ExchangeProposal(seats_delta=-1), False),
    ],
)
def test_selling_down_to_floor_boundary(proposal, admissible, starter_plan, typical_usage, catalog):
    evaluation = evaluate_proposal(starter_plan, typical_usage, proposal, catalog)

    assert evaluation.admissible is admissible
    if not admissible:
        assert evaluation.rejection_reason == RejectionReason.BELOW_FLOOR


@pytest.mark.parametrize(
    ("proposal", "admissible"),
    [
        # 8 points buy exactly 8 GB: target 18 == ceiling
        (ExchangeProposal(projects_delta=-10, storage_delta=8), True),
        (ExchangeProposal(projects_delta=-10, storage_delta=9), False),
        # 8 points buy one seat: target 6 == ceiling
        (ExchangeProposal(projects_delta=-10, seats_delta=1), True),
        (ExchangeProposal(projects_delta=-10, seats_delta=2), False),
    ],
)
def test_buying_up_to_ceiling_boundary(proposal, admissible, starter_plan, typical_usage, catalog):
    evaluation = evaluate_proposal(starter_plan, typical_usage, proposal, catalog)

    assert evaluation.admissible is admissible
    if not admissible:
        assert RejectionReason.ABOVE_CEILING in _reasons(evaluation)


def test_partial_funding_is_insufficient(starter_plan, typical_usage, catalog):
    evaluation = evaluate_proposal(
        starter_plan,
        typical_usage,
        ExchangeProposal(projects_delta=-5, seats_delta=1),
        catalog,
    )

    assert evaluation.rejection_reason == RejectionReason.INSUFFICIENT_POINTS
    assert evaluation.points.balance == pytest.approx(4.0 - 7.0)


@pytest.mark.parametrize("projects_delta", [-3, -7, 1, 12])
def test_off_step_delta_is_invalid(projects_delta, starter_plan, typical_usage, catalog):
    evaluation = evaluate_proposal(
        starter_plan,
        typical_usage,
        ExchangeProposal(projects_delta=projects_delta),
        catalog,
    )

    assert RejectionReason.INVALID_STEP in _reasons(evaluation)
    violation = next(v for v in evaluation.violations if v.reason == RejectionReason.INVALID_STEP)
    assert violation.dimension == Dimension.PROJECTS
    assert violation.limit == 5


def test_invalid_step_outranks_range_reasons(starter_plan, typical_usage, catalog):
    evaluation = evaluate_proposal(
        starter_plan,
        typical_usage,
        ExchangeProposal(projects_delta=-13, seats_delta=-1),
        catalog,
    )
    assert evaluation.rejection_reason == RejectionReason.INVALID_STEP


def test_epsilon_absorbs_float_error():
    # 7 GB of storage earns 0.3 * 7, which is a hair under 2.1 in binary floating point
    rules = dict(DEFAULT_RULES)
    rules[Dimension.PROJECTS] = DimensionRule(sell_rate=0.8, buy_rate=2.1, step=1)
    catalog = EntitlementCatalog(rules=rules)
    plan = PlanLimits(seats_base=5, projects_base=20, storage_base_gb=10, plan_tier=EligibilityTier.TRADABLE)
    usage = UsageSnapshot(seats_used=5, projects_used=20, storage_used_mb=3 * 1024)

    evaluation = evaluate_proposal(plan, usage, ExchangeProposal(storage_delta=-7, projects_delta=1), catalog)

    assert evaluation.bounds[Dimension.PROJECTS].ceiling == 21
    assert evaluation.admissible is True


# ---------------------------------------------------------------------------
# Plan tiers
# ---------------------------------------------------------------------------


def test_free_plan_is_not_eligible(typical_usage, catalog):
    plan = PlanLimits.from_storage_mb("Free", seats_base=2, projects_base=10, storage_base_mb=500)
    evaluation = evaluate_proposal(plan, typical_usage, ExchangeProposal(projects_delta=-5), catalog)

    assert evaluation.status == ExchangeStatus.REJECTED
    assert evaluation.rejection_reason == RejectionReason.NOT_ELIGIBLE
    assert evaluation.bounds == {}


def test_unlimited_plan_short_circuits(typical_usage, catalog):
    plan = PlanLimits.from_storage_mb("Enterprise", seats_base=None, projects_base=None, storage_base_mb=None)
    evaluation = evaluate_proposal(plan, typical_usage, ExchangeProposal(seats_delta=50), catalog)

    assert evaluation.status == ExchangeStatus.NO_OP_UNLIMITED
    assert evaluation.admissible is True
    assert evaluation.violations == []


def test_unbounded_dimension_is_not_tradable(typical_usage, catalog):
    plan = PlanLimits.from_storage_mb("Professional", seats_base=25, projects_base=None, storage_base_mb=10240)

    bounds = compute_bounds(plan, typical_usage, catalog)
    assert bounds[Dimension.PROJECTS].tradable is False
    assert bounds[Dimension.PROJECTS].ceiling is None
    # 20 spare seats fund storage; unbounded projects contribute nothing
    assert bounds[Dimension.STORAGE].ceiling == 10 + 60

    evaluation = evaluate_proposal(plan, typical_usage, ExchangeProposal(seats_delta=-2, projects_delta=5), catalog)
    assert evaluation.rejection_reason == RejectionReason.UNBOUNDED_DIMENSION


def test_bounded_dimensions_still_trade_on_partially_unbounded_plan(typical_usage, catalog):
    plan = PlanLimits.from_storage_mb("Professional", seats_base=25, projects_base=None, storage_base_mb=10240)
    evaluation = evaluate_proposal(plan, typical_usage, ExchangeProposal(seats_delta=-2, storage_delta=6), catalog)

    assert evaluation.admissible is True
    assert evaluation.points.balance == pytest.approx(0.0)
