# ruff: noqa: I001
"""Movements core tables: reference catalogs, movements and personnel.

Revision ID: 0001_movements_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_movements_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True)


def upgrade() -> None:
    # Reference catalogs
    op.create_table(
        "currencies",
        _id(),
        sa.Column("code", sa.String(length=8), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("symbol", sa.String(length=8), nullable=True),
    )
    op.create_table(
        "organization_currencies",
        _id(),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("currency_id", sa.Uuid(), sa.ForeignKey("currencies.id"), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index(
        "ix_organization_currencies_organization_id",
        "organization_currencies",
        ["organization_id"],
    )
    op.create_table(
        "wallets",
        _id(),
        sa.Column("name", sa.String(), nullable=False),
    )
    op.create_table(
        "organization_wallets",
        _id(),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("wallet_id", sa.Uuid(), sa.ForeignKey("wallets.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index(
        "ix_organization_wallets_organization_id", "organization_wallets", ["organization_id"]
    )

    op.create_table(
        "movement_concepts",
        _id(),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "parent_id", sa.Uuid(), sa.ForeignKey("movement_concepts.id"), nullable=True
        ),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_movement_concepts_organization_id", "movement_concepts", ["organization_id"]
    )
    # Case-insensitive uniqueness of names under the same parent and organization.
    op.execute(
        sa.text(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS uniq_movement_concepts_org_parent_lower_name
            ON movement_concepts (
                coalesce(organization_id::text, '__system__'),
                coalesce(parent_id::text, '__root__'),
                lower(name)
            )
            """
        )
    )

    # Movements
    op.create_table(
        "movements",
        _id(),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("movement_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=True),
        sa.Column(
            "currency_id", sa.Uuid(), sa.ForeignKey("organization_currencies.id"), nullable=True
        ),
        sa.Column(
            "wallet_id", sa.Uuid(), sa.ForeignKey("organization_wallets.id"), nullable=True
        ),
        sa.Column("type_id", sa.Uuid(), sa.ForeignKey("movement_concepts.id"), nullable=True),
        sa.Column(
            "category_id", sa.Uuid(), sa.ForeignKey("movement_concepts.id"), nullable=True
        ),
        sa.Column(
            "subcategory_id", sa.Uuid(), sa.ForeignKey("movement_concepts.id"), nullable=True
        ),
        sa.Column("is_favorite", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_movements_organization_id", "movements", ["organization_id"])

    # Personnel
    op.create_table(
        "labor_types",
        _id(),
        sa.Column("name", sa.String(), nullable=False),
    )
    op.create_table(
        "project_personnel",
        _id(),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("labor_type_id", sa.Uuid(), sa.ForeignKey("labor_types.id"), nullable=True),
    )
    op.create_index(
        "ix_project_personnel_organization_id", "project_personnel", ["organization_id"]
    )
    op.create_index("ix_project_personnel_project_id", "project_personnel", ["project_id"])
    op.create_table(
        "personnel_rates",
        _id(),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column(
            "personnel_id", sa.Uuid(), sa.ForeignKey("project_personnel.id"), nullable=True
        ),
        sa.Column("labor_type_id", sa.Uuid(), sa.ForeignKey("labor_types.id"), nullable=True),
        sa.Column("pay_type", sa.String(), nullable=False),
        sa.Column("rate_hour", sa.Numeric(18, 2), nullable=True),
        sa.Column("rate_day", sa.Numeric(18, 2), nullable=True),
        sa.Column("rate_month", sa.Numeric(18, 2), nullable=True),
        sa.Column("currency_id", sa.Uuid(), sa.ForeignKey("currencies.id"), nullable=True),
        sa.Column("valid_from", sa.Date(), nullable=False),
        sa.Column("valid_to", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.CheckConstraint(
            "pay_type in ('hour','day','month')", name="ck_personnel_rates_pay_type"
        ),
        sa.CheckConstraint(
            "valid_to IS NULL OR valid_from <= valid_to", name="ck_personnel_rates_valid_range"
        ),
    )
    op.create_index("ix_personnel_rates_organization_id", "personnel_rates", ["organization_id"])
    op.create_table(
        "personnel_attendances",
        _id(),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column(
            "personnel_id", sa.Uuid(), sa.ForeignKey("project_personnel.id"), nullable=False
        ),
        sa.Column("attendance_date", sa.Date(), nullable=True),
        sa.Column("hours_worked", sa.Numeric(8, 2), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_personnel_attendances_organization_id", "personnel_attendances", ["organization_id"]
    )
    op.create_table(
        "personnel_payments",
        _id(),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column(
            "personnel_id", sa.Uuid(), sa.ForeignKey("project_personnel.id"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency_code", sa.String(length=8), nullable=True),
        sa.Column("paid_at", sa.Date(), nullable=False),
    )
    op.create_index(
        "ix_personnel_payments_organization_id", "personnel_payments", ["organization_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_personnel_payments_organization_id", table_name="personnel_payments")
    op.drop_table("personnel_payments")
    op.drop_index("ix_personnel_attendances_organization_id", table_name="personnel_attendances")
    op.drop_table("personnel_attendances")
    op.drop_index("ix_personnel_rates_organization_id", table_name="personnel_rates")
    op.drop_table("personnel_rates")
    op.drop_index("ix_project_personnel_project_id", table_name="project_personnel")
    op.drop_index("ix_project_personnel_organization_id", table_name="project_personnel")
    op.drop_table("project_personnel")
    op.drop_table("labor_types")
    op.drop_index("ix_movements_organization_id", table_name="movements")
    op.drop_table("movements")
    op.execute(sa.text("DROP INDEX IF EXISTS uniq_movement_concepts_org_parent_lower_name"))
    op.drop_index("ix_movement_concepts_organization_id", table_name="movement_concepts")
    op.drop_table("movement_concepts")
    op.drop_index("ix_organization_wallets_organization_id", table_name="organization_wallets")
    op.drop_table("organization_wallets")
    op.drop_table("wallets")
    op.drop_index(
        "ix_organization_currencies_organization_id", table_name="organization_currencies"
    )
    op.drop_table("organization_currencies")
    op.drop_table("currencies")
