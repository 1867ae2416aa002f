"""
Transition requests, verdicts and results.

Validation never raises for user-correctable problems. Each check returns
one of the verdict models below; `Approved` is the only one whose
`approved` flag is true. Every verdict carries a `message` suitable for
showing verbatim to the person who requested the change.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, computed_field

from referral_workflow.models.referral import Note, Order, RegressionRecord


# =============================================================================
# REQUEST
# =============================================================================


class TransitionRequest(BaseModel):
    """A proposed stage move for one referral."""
    model_config = ConfigDict(frozen=True)

    order_id: str
    from_stage: str
    to_stage: str
    note: str
    regression_reason: str | None = None


# =============================================================================
# VERDICTS
# =============================================================================


class TransitionVerdict(BaseModel):
    """Base class for all validation outcomes."""
    model_config = ConfigDict(frozen=True)

    code: str

    @property
    def approved(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return self.code


class Approved(TransitionVerdict):
    code: Literal["approved"] = "approved"

    @property
    def approved(self) -> bool:
        return True

    @property
    def message(self) -> str:
        return "Transition approved."


class TransitionViolation(TransitionVerdict):
    """A transition that must not be applied."""


class EmptyNote(TransitionViolation):
    code: Literal["empty_note"] = "empty_note"

    @property
    def message(self) -> str:
        return "A note is required for all stage changes."


class MissingRegressionReason(TransitionViolation):
    code: Literal["missing_regression_reason"] = "missing_regression_reason"
    from_stage: str
    to_stage: str

    @property
    def message(self) -> str:
        return (
            f"A reason is required for stage regressions "
            f"({self.from_stage} -> {self.to_stage})."
        )


class ParNotReady(TransitionViolation):
    code: Literal["par_not_ready"] = "par_not_ready"
    stage: str
    missing_docs: list[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.missing_docs:
            return f"Cannot move to {self.stage}: no required documents are on file."
        return f"Cannot move to {self.stage}. Missing documents: {', '.join(self.missing_docs)}"


class NoOpTransition(TransitionViolation):
    code: Literal["no_op_transition"] = "no_op_transition"
    stage: str

    @property
    def message(self) -> str:
        return f"Referral is already in {self.stage}."


class PatientNotFound(TransitionViolation):
    """The patient record behind an order could not be found."""
    code: Literal["patient_not_found"] = "patient_not_found"
    patient_id: str

    @property
    def message(self) -> str:
        return f"Patient record not found: {self.patient_id}"


class OrderNotFound(TransitionViolation):
    code: Literal["order_not_found"] = "order_not_found"

    @property
    def message(self) -> str:
        return "Referral not found."


class UnknownStageViolation(TransitionViolation):
    """Bulk-mode wrapper for an order whose stage is not in the catalog."""
    code: Literal["unknown_stage"] = "unknown_stage"
    stage: str | None = None

    @property
    def message(self) -> str:
        return f"Unknown workflow stage: {self.stage!r}"


class ApplyFailed(TransitionViolation):
    """A validated transition could not be written to the store."""
    code: Literal["apply_failed"] = "apply_failed"
    detail: str

    @property
    def message(self) -> str:
        return f"Apply failed: {self.detail}"


# =============================================================================
# RESULTS
# =============================================================================


class TransitionResult(BaseModel):
    """
    The mutations one approved transition produces.

    The caller persists `order_update`, `note` and `regression` together
    as one unit, then forwards the audit records to the ledger.
    """

    order: Order
    note: Note
    regression: RegressionRecord | None = None

    @computed_field
    @property
    def is_regression(self) -> bool:
        return self.regression is not None

    @property
    def order_id(self) -> str:
        return self.order.id

    @property
    def ok(self) -> bool:
        return True

    @property
    def order_update(self) -> dict[str, Any]:
        """Column values to write back onto the order row."""
        return self.order.model_dump(
            mode="json",
            include={"workflow_stage", "last_stage_note", "last_stage_change"},
        )


class TransitionError(BaseModel):
    """A transition that produced no result, with the reason why."""

    order_id: str
    error: SerializeAsAny[TransitionViolation]

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return self.error.message
