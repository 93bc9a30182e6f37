"""Plan limits, usage snapshots and effective-limit resolution.

Pure functions and value types. Storage is traded in whole GB; plan and
usage sources report MB and are converted here.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime

from entitlement_exchange.domain.catalog import Dimension
from entitlement_exchange.domain.eligibility import EligibilityTier, tier_for_plan

MB_PER_GB = 1024


def storage_gb_from_usage_mb(mb: float) -> int:
    """Convert consumed storage to GB, rounding up (a started GB counts)."""
    if mb <= 0:
        return 0
    return math.ceil(mb / MB_PER_GB)


def storage_gb_from_limit_mb(mb: int | None) -> int | None:
    """Convert a plan storage limit to GB, rounding half up. None stays unbounded."""
    if mb is None:
        return None
    return max(0, math.floor(mb / MB_PER_GB + 0.5))


@dataclass(frozen=True)
class PlanLimits:
    """Base entitlements granted by a plan. None means unbounded."""

    seats_base: int | None
    projects_base: int | None
    storage_base_gb: int | None
    plan_tier: EligibilityTier
    plan_name: str = ""

    @classmethod
    def from_storage_mb(
        cls,
        plan_name: str,
        seats_base: int | None,
        projects_base: int | None,
        storage_base_mb: int | None,
    ) -> "PlanLimits":
        return cls(
            seats_base=seats_base,
            projects_base=projects_base,
            storage_base_gb=storage_gb_from_limit_mb(storage_base_mb),
            plan_tier=tier_for_plan(plan_name),
            plan_name=plan_name,
        )

    def base(self, dimension: Dimension) -> int | None:
        if dimension == Dimension.SEATS:
            return self.seats_base
        if dimension == Dimension.PROJECTS:
            return self.projects_base
        return self.storage_base_gb


@dataclass(frozen=True)
class UsageSnapshot:
    """Live consumption reported by the usage collaborator."""

    seats_used: int = 0
    projects_used: int = 0
    storage_used_mb: float = 0.0

    def __post_init__(self) -> None:
        if self.seats_used < 0 or self.projects_used < 0 or self.storage_used_mb < 0:
            raise ValueError("Usage values must be non-negative")

    @property
    def storage_used_gb(self) -> int:
        return storage_gb_from_usage_mb(self.storage_used_mb)

    def used(self, dimension: Dimension) -> int:
        if dimension == Dimension.SEATS:
            return self.seats_used
        if dimension == Dimension.PROJECTS:
            return self.projects_used
        return self.storage_used_gb


@dataclass(frozen=True)
class ResourceOverride:
    """Persisted outcome of an admissible exchange. One per tenant."""

    tenant_id: str
    seats_delta: int
    projects_delta: int
    storage_delta_gb: int
    points_earned: float
    points_spent: float
    valid_until: datetime
    updated_at: datetime
    created_at: datetime | None = None
    version: int = 0

    def delta(self, dimension: Dimension) -> int:
        if dimension == Dimension.SEATS:
            return self.seats_delta
        if dimension == Dimension.PROJECTS:
            return self.projects_delta
        return self.storage_delta_gb

    def is_active(self, now: datetime) -> bool:
        return now < self.valid_until


@dataclass(frozen=True)
class EffectiveLimits:
    seats: int | None
    projects: int | None
    storage_gb: int | None
    override_active: bool = False
    valid_until: datetime | None = field(default=None)


def effective_limits(
    plan: PlanLimits,
    override: ResourceOverride | None,
    now: datetime,
) -> EffectiveLimits:
    """Resolve the limits a quota check should enforce right now.

    Active override deltas are added to bounded base limits. Expired
    overrides are ignored, which reverts the tenant to plan limits without
    any cleanup job.
    """
    active = override is not None and override.is_active(now)

    def resolve(dimension: Dimension) -> int | None:
        base = plan.base(dimension)
        if base is None:
            return None
        if not active:
            return base
        return max(0, base + override.delta(dimension))

    return EffectiveLimits(
        seats=resolve(Dimension.SEATS),
        projects=resolve(Dimension.PROJECTS),
        storage_gb=resolve(Dimension.STORAGE),
        override_active=active,
        valid_until=override.valid_until if active else None,
    )
