"""
Error taxonomy.

Every error carries enough context (row, column, offending value) for the
caller to decide whether to abort or relax the configuration. Nothing here
is ever recovered silently.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class NormalizerError(ValueError):
    issue = "normalization_failed"
    action = "aborted"

    def __init__(
        self,
        message: str,
        *,
        row: Optional[int] = None,
        column: Optional[Any] = None,
        value: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.row = row
        self.column = column
        self.value = value

    def to_report_item(self) -> Dict[str, Any]:
        return {
            "row": self.row,
            "column": None if self.column is None else str(self.column),
            "issue": self.issue,
            "value": None if self.value is None else str(self.value),
            "action": self.action,
            "message": self.message,
        }


class DecodeError(NormalizerError):
    """Malformed byte sequence or unresolvable encoding."""

    issue = "decode_error"

    def __init__(self, message: str, *, offset: Optional[int] = None, **context: Any):
        super().__init__(message, **context)
        self.offset = offset

    def to_report_item(self) -> Dict[str, Any]:
        item = super().to_report_item()
        item["offset"] = self.offset
        return item


class StructuralError(NormalizerError):
    """Row width that cannot be reconciled by right-padding."""

    issue = "row_too_long"


class ValidationError(NormalizerError):
    """Measurement triplet invariant violated."""

    issue = "triplet_invalid"


class MeasurementRegionError(ValidationError):
    issue = "measurement_region_not_found"


class SchemaCollisionError(NormalizerError):
    issue = "duplicate_column"
