"""ResourceOverrideRow model: the single exchange override per tenant."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Integer, String, UniqueConstraint

from entitlement_exchange.db.base import Base


class ResourceOverrideRow(Base):
    __tablename__ = "resource_overrides"
    __table_args__ = (
        UniqueConstraint("tenant_id", name="resource_overrides_one_per_tenant"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(255), nullable=False, index=True)

    # Negative = gave up, positive = acquired
    seats_delta = Column(Integer, nullable=False, default=0)
    projects_delta = Column(Integer, nullable=False, default=0)
    storage_delta_gb = Column(Integer, nullable=False, default=0)

    points_earned = Column(Float, nullable=False, default=0.0)
    points_spent = Column(Float, nullable=False, default=0.0)

    valid_until = Column(DateTime(timezone=True), nullable=False, index=True)

    # Optimistic concurrency token, bumped on every write
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
