"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the movements domain used by ``movement_import``.
"""

from .movements import (
    Base,
    Currency,
    LaborType,
    Movement,
    MovementConcept,
    OrganizationCurrency,
    OrganizationWallet,
    PersonnelAttendance,
    PersonnelPayment,
    PersonnelRate,
    ProjectPersonnel,
    Wallet,
)

__all__ = [
    "Base",
    "Currency",
    "LaborType",
    "Movement",
    "MovementConcept",
    "OrganizationCurrency",
    "OrganizationWallet",
    "PersonnelAttendance",
    "PersonnelPayment",
    "PersonnelRate",
    "ProjectPersonnel",
    "Wallet",
]
