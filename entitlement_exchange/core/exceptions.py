from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from entitlement_exchange.domain.exchange import ExchangeEvaluation
    from entitlement_exchange.domain.limits import ResourceOverride


class ExchangeEngineError(Exception):
    """Base exception for the entitlement exchange engine."""

    pass


class CatalogError(ExchangeEngineError):
    """Raised when exchange rates or steps are misconfigured."""

    pass


class ExchangeRejectedError(ExchangeEngineError):
    """Raised by apply when a proposal is not admissible.

    Carries the full evaluation so callers can report every violated dimension.
    """

    def __init__(self, evaluation: ExchangeEvaluation):
        self.evaluation = evaluation
        reason = evaluation.rejection_reason.value if evaluation.rejection_reason else "unknown"
        super().__init__(f"Exchange rejected: {reason}")


class ConcurrentModificationError(ExchangeEngineError):
    """Raised when an override upsert lost a race against another writer."""

    def __init__(self, tenant_id: str, committed: ResourceOverride | None):
        self.tenant_id = tenant_id
        self.committed = committed
        super().__init__(f"Override for tenant '{tenant_id}' was modified concurrently")


class StorageUnavailableError(ExchangeEngineError):
    """Raised when a storage backend (overrides, plans) cannot be reached."""

    pass
