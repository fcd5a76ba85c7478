from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: currencies / wallets
# ---------------------------


class Currency(Base):
    __tablename__ = "currencies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(8), nullable=True)


class OrganizationCurrency(Base):
    """Currency enabled for an organization.

    Movements reference this row (not ``currencies.id``) in ``currency_id``.
    """

    __tablename__ = "organization_currencies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    currency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("currencies.id"), nullable=False
    )
    is_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))


class Wallet(Base):
    __tablename__ = "wallets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)


class OrganizationWallet(Base):
    """Wallet enabled for an organization; referenced by ``movements.wallet_id``."""

    __tablename__ = "organization_wallets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    wallet_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("wallets.id"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))


# ---------------------------
# Reference: movement_concepts (type > category > subcategory)
# ---------------------------


class MovementConcept(Base):
    __tablename__ = "movement_concepts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # NULL organization_id marks a system concept shared by every organization.
    organization_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Types have no parent; categories point at a type; subcategories at a
    # category. Depth is enforced in the service layer.
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("movement_concepts.id"), nullable=True
    )
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Core: movements
# ---------------------------


class Movement(Base):
    __tablename__ = "movements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    project_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    movement_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    currency_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organization_currencies.id"), nullable=True
    )
    wallet_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organization_wallets.id"), nullable=True
    )
    type_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("movement_concepts.id"), nullable=True
    )
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("movement_concepts.id"), nullable=True
    )
    subcategory_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("movement_concepts.id"), nullable=True
    )
    is_favorite: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Personnel: labor types, rates, attendance, payments
# ---------------------------


class LaborType(Base):
    __tablename__ = "labor_types"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)


class ProjectPersonnel(Base):
    __tablename__ = "project_personnel"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    labor_type_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("labor_types.id"), nullable=True
    )


class PersonnelRate(Base):
    """Pay rate valid over ``[valid_from, valid_to]``.

    A row with ``personnel_id`` set applies to that person only; a row with
    ``personnel_id`` NULL and ``labor_type_id`` set is the labor-type default.
    """

    __tablename__ = "personnel_rates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    personnel_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("project_personnel.id"), nullable=True
    )
    labor_type_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("labor_types.id"), nullable=True
    )
    pay_type: Mapped[str] = mapped_column(String, nullable=False)
    rate_hour: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    rate_day: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    rate_month: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    currency_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("currencies.id"), nullable=True
    )
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))

    __table_args__ = (
        CheckConstraint("pay_type in ('hour','day','month')", name="ck_personnel_rates_pay_type"),
        CheckConstraint(
            "valid_to IS NULL OR valid_from <= valid_to", name="ck_personnel_rates_valid_range"
        ),
    )


class PersonnelAttendance(Base):
    __tablename__ = "personnel_attendances"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    personnel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("project_personnel.id"), nullable=False
    )
    # Site-log date when known; otherwise the creation date is used.
    attendance_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    hours_worked: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class PersonnelPayment(Base):
    __tablename__ = "personnel_payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    personnel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("project_personnel.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    paid_at: Mapped[date] = mapped_column(Date, nullable=False)


__all__ = [
    "Base",
    "Currency",
    "OrganizationCurrency",
    "Wallet",
    "OrganizationWallet",
    "MovementConcept",
    "Movement",
    "LaborType",
    "ProjectPersonnel",
    "PersonnelRate",
    "PersonnelAttendance",
    "PersonnelPayment",
]
