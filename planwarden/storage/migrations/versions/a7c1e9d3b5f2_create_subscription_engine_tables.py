"""create subscription engine tables

Revision ID: a7c1e9d3b5f2
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
import sqlmodel.sql.sqltypes
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a7c1e9d3b5f2"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create plans, features, users, subscriptions, usage and change log tables."""
    op.create_table(
        "plans",
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("code", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("description", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("price_monthly", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("price_yearly", sa.Numeric(10, 2), nullable=True),
        sa.Column(
            "price_currency",
            sqlmodel.sql.sqltypes.AutoString(),
            nullable=False,
            server_default="USD",
        ),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_plans_code"), "plans", ["code"], unique=True)
    # At most one default plan
    op.create_index(
        "uq_plans_single_default",
        "plans",
        ["is_default"],
        unique=True,
        postgresql_where=sa.text("is_default"),
        sqlite_where=sa.text("is_default"),
    )

    op.create_table(
        "plan_features",
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("plan_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("feature_code", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("limit_type", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("limit_value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "feature_type",
            sqlmodel.sql.sqltypes.AutoString(),
            nullable=False,
            server_default="RESOURCE",
        ),
        sa.Column("limit_period", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plan_id", "feature_code", name="uq_plan_features_plan_code"),
    )
    op.create_index(op.f("ix_plan_features_plan_id"), "plan_features", ["plan_id"])
    op.create_index(op.f("ix_plan_features_feature_code"), "plan_features", ["feature_code"])

    op.create_table(
        "users",
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("email", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("user_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("plan_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column(
            "status", sqlmodel.sql.sqltypes.AutoString(), nullable=False, server_default="ACTIVE"
        ),
        sa.Column("current_period_start", sa.DateTime(), nullable=False),
        sa.Column("current_period_end", sa.DateTime(), nullable=True),
        sa.Column("trial_start", sa.DateTime(), nullable=True),
        sa.Column("trial_end", sa.DateTime(), nullable=True),
        sa.Column("scheduled_plan_id", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("scheduled_change_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancel_reason", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("grace_overages", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("grace_period_end", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"]),
        sa.ForeignKeyConstraint(["scheduled_plan_id"], ["plans.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(scheduled_plan_id IS NULL) = (scheduled_change_at IS NULL)",
            name="ck_subscriptions_schedule_pair",
        ),
        sa.CheckConstraint(
            "(grace_overages IS NULL) = (grace_period_end IS NULL)",
            name="ck_subscriptions_grace_pair",
        ),
    )
    op.create_index(op.f("ix_subscriptions_user_id"), "subscriptions", ["user_id"], unique=True)
    op.create_index(op.f("ix_subscriptions_plan_id"), "subscriptions", ["plan_id"])
    op.create_index(
        op.f("ix_subscriptions_scheduled_change_at"), "subscriptions", ["scheduled_change_at"]
    )
    op.create_index(
        op.f("ix_subscriptions_grace_period_end"), "subscriptions", ["grace_period_end"]
    )

    op.create_table(
        "usage_records",
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("user_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("feature_code", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column(
            "period_type",
            sqlmodel.sql.sqltypes.AutoString(),
            nullable=False,
            server_default="MONTHLY",
        ),
        sa.Column("period_start", sa.DateTime(), nullable=False),
        sa.Column("period_end", sa.DateTime(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("count >= 0", name="ck_usage_records_count_non_negative"),
    )
    op.create_index(op.f("ix_usage_records_user_id"), "usage_records", ["user_id"])
    op.create_index(op.f("ix_usage_records_feature_code"), "usage_records", ["feature_code"])
    op.create_index(op.f("ix_usage_records_period_end"), "usage_records", ["period_end"])
    # Unique constraint for ON CONFLICT upsert
    op.create_unique_constraint(
        "uq_usage_records_user_feature_period",
        "usage_records",
        ["user_id", "feature_code", "period_start"],
    )

    op.create_table(
        "plan_change_logs",
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("user_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("from_plan_id", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("to_plan_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("change_type", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
        sa.Column("effective_at", sa.DateTime(), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(), nullable=True),
        sa.Column("proration_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("reason", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("details", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["from_plan_id"], ["plans.id"]),
        sa.ForeignKeyConstraint(["to_plan_id"], ["plans.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_plan_change_logs_user_id"), "plan_change_logs", ["user_id"])
    op.create_index(op.f("ix_plan_change_logs_change_type"), "plan_change_logs", ["change_type"])
    op.create_index(op.f("ix_plan_change_logs_created_at"), "plan_change_logs", ["created_at"])


def downgrade() -> None:
    """Drop all subscription engine tables."""
    op.drop_index(op.f("ix_plan_change_logs_created_at"), table_name="plan_change_logs")
    op.drop_index(op.f("ix_plan_change_logs_change_type"), table_name="plan_change_logs")
    op.drop_index(op.f("ix_plan_change_logs_user_id"), table_name="plan_change_logs")
    op.drop_table("plan_change_logs")

    op.drop_constraint("uq_usage_records_user_feature_period", "usage_records", type_="unique")
    op.drop_index(op.f("ix_usage_records_period_end"), table_name="usage_records")
    op.drop_index(op.f("ix_usage_records_feature_code"), table_name="usage_records")
    op.drop_index(op.f("ix_usage_records_user_id"), table_name="usage_records")
    op.drop_table("usage_records")

    op.drop_index(op.f("ix_subscriptions_grace_period_end"), table_name="subscriptions")
    op.drop_index(op.f("ix_subscriptions_scheduled_change_at"), table_name="subscriptions")
    op.drop_index(op.f("ix_subscriptions_plan_id"), table_name="subscriptions")
    op.drop_index(op.f("ix_subscriptions_user_id"), table_name="subscriptions")
    op.drop_table("subscriptions")

    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")

    op.drop_index(op.f("ix_plan_features_feature_code"), table_name="plan_features")
    op.drop_index(op.f("ix_plan_features_plan_id"), table_name="plan_features")
    op.drop_table("plan_features")

    op.drop_index("uq_plans_single_default", table_name="plans")
    op.drop_index(op.f("ix_plans_code"), table_name="plans")
    op.drop_table("plans")
