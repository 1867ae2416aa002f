"""
Data models for referral workflow.
"""

from .referral import (
    DocStatus,
    NoteSource,
    StoplightStatus,
    Stage,
    Patient,
    Order,
    Note,
    RegressionRecord,
    Readiness,
    StageDwell,
    StageSummary,
    utcnow,
)
from .transitions import (
    TransitionRequest,
    TransitionVerdict,
    TransitionViolation,
    Approved,
    EmptyNote,
    MissingRegressionReason,
    ParNotReady,
    NoOpTransition,
    PatientNotFound,
    OrderNotFound,
    UnknownStageViolation,
    ApplyFailed,
    TransitionResult,
    TransitionError,
)

__all__ = [
    "DocStatus",
    "NoteSource",
    "StoplightStatus",
    "Stage",
    "Patient",
    "Order",
    "Note",
    "RegressionRecord",
    "Readiness",
    "StageDwell",
    "StageSummary",
    "utcnow",
    "TransitionRequest",
    "TransitionVerdict",
    "TransitionViolation",
    "Approved",
    "EmptyNote",
    "MissingRegressionReason",
    "ParNotReady",
    "NoOpTransition",
    "PatientNotFound",
    "OrderNotFound",
    "UnknownStageViolation",
    "ApplyFailed",
    "TransitionResult",
    "TransitionError",
]
