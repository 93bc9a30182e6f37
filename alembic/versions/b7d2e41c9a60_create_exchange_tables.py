"""create plan_tiers, tenant_subscriptions and resource_overrides

Revision ID: b7d2e41c9a60
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "b7d2e41c9a60"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create plan, subscription and exchange override tables."""
    op.create_table(
        "plan_tiers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("max_seats", sa.Integer(), nullable=True),
        sa.Column("max_projects", sa.Integer(), nullable=True),
        sa.Column("max_storage_mb", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_plan_tiers_slug"), "plan_tiers", ["slug"], unique=True)

    op.create_table(
        "tenant_subscriptions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=255), nullable=False),
        sa.Column("plan_tier_id", sa.Integer(), nullable=False),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["plan_tier_id"], ["plan_tiers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tenant_subscriptions_tenant_id"), "tenant_subscriptions", ["tenant_id"], unique=True)

    op.create_table(
        "resource_overrides",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=255), nullable=False),
        sa.Column("seats_delta", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("projects_delta", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("storage_delta_gb", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_earned", sa.Float(), nullable=False, server_default="0"),
        sa.Column("points_spent", sa.Float(), nullable=False, server_default="0"),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", name="resource_overrides_one_per_tenant"),
    )
    op.create_index(op.f("ix_resource_overrides_tenant_id"), "resource_overrides", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_resource_overrides_valid_until"), "resource_overrides", ["valid_until"], unique=False)


def downgrade() -> None:
    """Drop exchange tables."""
    op.drop_index(op.f("ix_resource_overrides_valid_until"), table_name="resource_overrides")
    op.drop_index(op.f("ix_resource_overrides_tenant_id"), table_name="resource_overrides")
    op.drop_table("resource_overrides")
    op.drop_index(op.f("ix_tenant_subscriptions_tenant_id"), table_name="tenant_subscriptions")
    op.drop_table("tenant_subscriptions")
    op.drop_index(op.f("ix_plan_tiers_slug"), table_name="plan_tiers")
    op.drop_table("plan_tiers")
