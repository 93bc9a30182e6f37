"""PlanTier model: subscription plan definitions."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from entitlement_exchange.db.base import Base


class PlanTier(Base):
    __tablename__ = "plan_tiers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)

    # Limits (NULL = unlimited)
    max_seats = Column(Integer, nullable=True)
    max_projects = Column(Integer, nullable=True)
    max_storage_mb = Column(Integer, nullable=True)

    subscriptions = relationship("TenantSubscription", back_populates="plan_tier")
