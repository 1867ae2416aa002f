"""
Exception types for referral workflow.

Validation outcomes are returned as values (see models.transitions); the
exceptions here cover configuration errors, programmer errors and the
fail-closed path of the executor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from referral_workflow.models import TransitionViolation


class WorkflowError(Exception):
    """Base class for referral workflow errors."""


class CatalogError(WorkflowError):
    """A stage or document catalog could not be loaded or is malformed."""


class UnknownStage(WorkflowError, LookupError):
    """A stage name is not present in the stage catalog."""

    def __init__(self, stage: str | None):
        self.stage = stage
        super().__init__(f"Unknown workflow stage: {stage!r}")


class UnknownDocument(WorkflowError, LookupError):
    """One or more document keys are not present in the document catalog."""

    def __init__(self, keys: list[str]):
        self.keys = keys
        super().__init__(f"Unknown document key(s): {', '.join(keys)}")


class TransitionRejected(WorkflowError):
    """Raised by the executor when a transition fails re-validation."""

    def __init__(self, violation: TransitionViolation):
        self.violation = violation
        super().__init__(violation.message)


class RecordNotFound(WorkflowError, LookupError):
    """A patient or order row does not exist in the store."""

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table} record not found: {record_id}")
