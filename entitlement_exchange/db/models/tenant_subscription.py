"""TenantSubscription model: which plan a tenant is on and when its period ends."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from entitlement_exchange.db.base import Base


class TenantSubscription(Base):
    __tablename__ = "tenant_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(255), unique=True, nullable=False, index=True)

    plan_tier_id = Column(Integer, ForeignKey("plan_tiers.id"), nullable=False)
    plan_tier = relationship("PlanTier", back_populates="subscriptions")

    # NULL when the billing provider reports no period (manual or trial accounts)
    current_period_end = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
