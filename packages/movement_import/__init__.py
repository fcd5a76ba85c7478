"""Public interface for the ``movement_import`` package.

Bulk import of financial movements from spreadsheets and CSV files:
File Parser → Column Mapper → Value Normalizer → Incompatibility Resolver →
Batch Submitter. This module only re-exports the stable import surface.
"""

from .errors import (
    BatchWriteError,
    FileFormatError,
    IntegrityViolationError,
    MappingValidationError,
    MovementImportError,
    PersonnelScopeError,
)
from .mapping import ColumnMapping, suggest_field
from .models import (
    FieldKind,
    ImportContext,
    ImportRecord,
    ParsedFile,
    RecordDraft,
    TargetField,
)
from .normalizer import UNSET, ManualOverrides, ValueNormalizer
from .parsing import parse_bytes, parse_file
from .resolver import IncompatibilityResolver, IncompatibleValue, review_incompatible_values
from .session import ImportSession
from .submit import SubmitResult, submit_batch

__all__ = [
    # Pipeline
    "ColumnMapping",
    "ImportSession",
    "IncompatibilityResolver",
    "IncompatibleValue",
    "ManualOverrides",
    "UNSET",
    "ValueNormalizer",
    "parse_bytes",
    "parse_file",
    "review_incompatible_values",
    "submit_batch",
    "suggest_field",
    # Models / types
    "FieldKind",
    "ImportContext",
    "ImportRecord",
    "ParsedFile",
    "RecordDraft",
    "SubmitResult",
    "TargetField",
    # Errors
    "BatchWriteError",
    "FileFormatError",
    "IntegrityViolationError",
    "MappingValidationError",
    "MovementImportError",
    "PersonnelScopeError",
]
