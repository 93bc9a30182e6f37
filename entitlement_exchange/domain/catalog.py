"""Exchange catalog: per-dimension rates, steps and minimums.

Fixed configuration loaded once from settings. Pure data, no DB access.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Mapping

from entitlement_exchange.core.config import Settings
from entitlement_exchange.core.exceptions import CatalogError


class Dimension(StrEnum):
    """Tradable entitlement axes."""

    SEATS = "seats"
    PROJECTS = "projects"
    STORAGE = "storage"


class FundingStrategy(StrEnum):
    """How the buy ceiling of a dimension is funded.

    CROSS: only surplus from the other dimensions counts.
    POOLED: surplus from every dimension, including the target, counts.
    """

    CROSS = "cross"
    POOLED = "pooled"


@dataclass(frozen=True)
class DimensionRule:
    """Pricing and granularity for one dimension."""

    sell_rate: float
    buy_rate: float
    step: int
    minimum: int = 0

    def __post_init__(self) -> None:
        if self.sell_rate < 0:
            raise CatalogError(f"sell_rate must be non-negative, got {self.sell_rate}")
        if self.buy_rate <= self.sell_rate:
            raise CatalogError(
                f"buy_rate ({self.buy_rate}) must be greater than sell_rate ({self.sell_rate})"
            )
        if self.step < 1:
            raise CatalogError(f"step must be >= 1, got {self.step}")
        if self.minimum < 0:
            raise CatalogError(f"minimum must be >= 0, got {self.minimum}")


DEFAULT_RULES: dict[Dimension, DimensionRule] = {
    Dimension.SEATS: DimensionRule(sell_rate=3.0, buy_rate=7.0, step=1, minimum=1),
    Dimension.PROJECTS: DimensionRule(sell_rate=0.8, buy_rate=2.5, step=5, minimum=0),
    Dimension.STORAGE: DimensionRule(sell_rate=0.3, buy_rate=1.0, step=1, minimum=0),
}

DEFAULT_EPSILON = 1e-3


@dataclass(frozen=True)
class EntitlementCatalog:
    """Immutable set of dimension rules plus the point tolerance."""

    rules: Mapping[Dimension, DimensionRule] = field(default_factory=lambda: dict(DEFAULT_RULES))
    epsilon: float = DEFAULT_EPSILON
    funding_strategy: FundingStrategy = FundingStrategy.CROSS

    def __post_init__(self) -> None:
        missing = [d.value for d in Dimension if d not in self.rules]
        if missing:
            raise CatalogError(f"Catalog is missing rules for: {missing}")
        if self.epsilon < 0:
            raise CatalogError(f"epsilon must be non-negative, got {self.epsilon}")
        # Rules are read-only after construction
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))

    def rule(self, dimension: Dimension) -> DimensionRule:
        return self.rules[dimension]


def catalog_from_settings(settings: Settings) -> EntitlementCatalog:
    """Build the catalog from application settings.

    Raises:
        CatalogError: if any rate, step or strategy is invalid
    """
    try:
        strategy = FundingStrategy(settings.exchange_funding_strategy.lower())
    except ValueError as exc:
        raise CatalogError(
            f"Unknown funding strategy: {settings.exchange_funding_strategy}"
        ) from exc

    rules = {
        Dimension.SEATS: DimensionRule(
            sell_rate=settings.exchange_sell_rate_seats,
            buy_rate=settings.exchange_buy_rate_seats,
            step=settings.exchange_step_seats,
            minimum=settings.exchange_minimum_seats,
        ),
        Dimension.PROJECTS: DimensionRule(
            sell_rate=settings.exchange_sell_rate_projects,
            buy_rate=settings.exchange_buy_rate_projects,
            step=settings.exchange_step_projects,
            minimum=settings.exchange_minimum_projects,
        ),
        Dimension.STORAGE: DimensionRule(
            sell_rate=settings.exchange_sell_rate_storage,
            buy_rate=settings.exchange_buy_rate_storage,
            step=settings.exchange_step_storage,
            minimum=settings.exchange_minimum_storage,
        ),
    }
    return EntitlementCatalog(
        rules=rules,
        epsilon=settings.exchange_epsilon,
        funding_strategy=strategy,
    )
