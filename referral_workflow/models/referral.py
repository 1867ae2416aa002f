"""
Core data models for referral workflow.

These Pydantic models define the records the engine reads (stages, patients,
orders) and the append-only records it produces (notes, regression records).
Rows coming back from the store are validated into these models; extra
columns are ignored.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================


class DocStatus(str, Enum):
    COMPLETE = "Complete"
    MISSING = "Missing"
    PENDING = "Pending"


class NoteSource(str, Enum):
    MANUAL = "manual"
    STAGE_CHANGE = "stage_change"


class StoplightStatus(str, Enum):
    """Priority/risk indicator shown next to a referral."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


# =============================================================================
# CATALOG
# =============================================================================


class Stage(BaseModel):
    """A named step in the referral lifecycle."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Unique stage name")
    index: int = Field(ge=0, description="Position in the catalog (0-based)")
    required_docs: frozenset[str] = Field(
        default_factory=frozenset,
        description="Document keys needed to leave this stage",
    )
    target_days: int | None = Field(
        default=None,
        ge=0,
        description="Target dwell time in days, None when untracked",
    )

    def __str__(self) -> str:
        return self.name


# =============================================================================
# PATIENT / ORDER
# =============================================================================


class Patient(BaseModel):
    """
    Patient attributes that drive document requirements.

    `required_documents` accumulates over time. The engine only proposes
    additions to it; removal is an explicit user edit.
    """

    id: str
    name: str | None = None
    required_documents: set[str] = Field(default_factory=set)
    telehealth_enabled: bool = False
    financial_assistance: bool = False
    primary_insurance: str | None = None

    @field_validator("required_documents", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return set() if value is None else value

    @field_validator("telehealth_enabled", "financial_assistance", mode="before")
    @classmethod
    def _none_to_false(cls, value: Any) -> Any:
        return False if value is None else value


class Order(BaseModel):
    """A referral currently moving through the workflow."""

    id: str
    patient_id: str
    workflow_stage: str
    document_status: dict[str, DocStatus] = Field(default_factory=dict)
    last_stage_change: datetime | None = None
    last_stage_note: str | None = None
    chair_type: str | None = None
    stoplight_status: StoplightStatus | None = None

    @field_validator("document_status", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value


# =============================================================================
# AUDIT RECORDS
# =============================================================================


class Note(BaseModel):
    """Append-only history entry for a patient."""
    patient_id: str
    body: str
    source: NoteSource = NoteSource.MANUAL
    stage_from: str | None = None
    stage_to: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    created_by: str | None = None


class RegressionRecord(BaseModel):
    """Append-only record of a backward stage move."""
    order_id: str
    previous_stage: str
    new_stage: str
    reason: str
    notes: str = ""
    user_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("reason", "notes", mode="before")
    @classmethod
    def _none_to_blank(cls, value: Any) -> Any:
        return "" if value is None else value


# =============================================================================
# READINESS / DWELL
# =============================================================================


class Readiness(BaseModel):
    """Document completion for a referral."""
    model_config = ConfigDict(frozen=True)

    completed: int = Field(ge=0)
    total: int = Field(ge=0)

    @computed_field
    @property
    def ready(self) -> bool:
        # An empty requirement set never opens the gate.
        return self.total > 0 and self.completed == self.total


class StageDwell(BaseModel):
    """How long a referral has been sitting in its current stage."""
    stage: str
    days_in_stage: int
    target_days: int | None = None

    @computed_field
    @property
    def overdue(self) -> bool:
        return self.target_days is not None and self.days_in_stage > self.target_days

    @computed_field
    @property
    def days_over(self) -> int:
        if not self.overdue:
            return 0
        return self.days_in_stage - self.target_days


class StageSummary(BaseModel):
    """Per-stage counts for a pipeline view."""
    stage: str
    index: int
    count: int = 0
    average_days: float = 0.0
    target_days: int | None = None
