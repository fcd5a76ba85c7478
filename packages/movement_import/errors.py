"""Exception hierarchy for the import pipeline.

Every stage raises a subclass of :class:`MovementImportError` so callers (the
CLI, a host application) can catch the family in one place and still branch
on the specific failure. Normalization misses are not errors; they surface as
incompatible values for the operator to resolve.
"""

from __future__ import annotations

from collections.abc import Sequence


class MovementImportError(Exception):
    """Base class for all import pipeline failures."""


class FileFormatError(MovementImportError):
    """The input file could not be parsed or has no usable header row."""


class MappingValidationError(MovementImportError):
    """The column mapping cannot advance; ``problems`` lists every issue found."""

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems: tuple[str, ...] = tuple(problems)
        super().__init__("; ".join(self.problems))


class IntegrityViolationError(MovementImportError):
    """At least one record carries a non-identifier value in an identifier field."""

    def __init__(self, offending_count: int) -> None:
        self.offending_count = offending_count
        super().__init__(
            f"{offending_count} movement(s) have invalid identifier values; "
            "resolve the incompatible values before importing"
        )


class BatchWriteError(MovementImportError):
    """The storage layer rejected the batch; ``message`` is its error text verbatim."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class PersonnelScopeError(MovementImportError):
    """One or more personnel ids do not belong to the requested organization/project."""

    def __init__(self, personnel_ids: Sequence[str]) -> None:
        self.personnel_ids: tuple[str, ...] = tuple(personnel_ids)
        super().__init__(
            "One or more personnel do not belong to the specified organization or project: "
            + ", ".join(self.personnel_ids)
        )


__all__ = [
    "BatchWriteError",
    "FileFormatError",
    "IntegrityViolationError",
    "MappingValidationError",
    "MovementImportError",
    "PersonnelScopeError",
]
