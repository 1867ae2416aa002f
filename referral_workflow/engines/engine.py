"""
Workflow engine facade.

Binds one stage catalog to the pure engine functions so adapters can hold
a single object instead of threading the catalog through every call.
"""

from __future__ import annotations

from datetime import datetime
from typing import Hashable, Iterable, Mapping

from referral_workflow.engines import executor, readiness, regression, requirements, validator
from referral_workflow.engines.catalog import DocumentCatalog, StageCatalog, load_default_catalogs
from referral_workflow.models import (
    Note,
    Order,
    Patient,
    Readiness,
    RegressionRecord,
    StageDwell,
    StageSummary,
    TransitionError,
    TransitionResult,
    TransitionVerdict,
)


class WorkflowEngine:
    """The referral transition and document-readiness engine for one catalog."""

    def __init__(self, catalog: StageCatalog, documents: DocumentCatalog | None = None):
        self.catalog = catalog
        self.documents = documents

    @classmethod
    def from_defaults(cls) -> WorkflowEngine:
        """Engine over the configured default catalogs."""
        catalog, documents = load_default_catalogs()
        return cls(catalog, documents)

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def derive_required_documents(self, patient: Patient, order: Order | None = None) -> set[Hashable]:
        return requirements.derive_required_documents(patient, order)

    def evaluate_readiness(
        self,
        required_docs: Iterable[Hashable],
        document_status: Mapping[Hashable, object],
    ) -> Readiness:
        return readiness.evaluate_readiness(required_docs, document_status)

    def stage_relevant_docs(self, required_docs: Iterable[Hashable], stage: str) -> set[Hashable]:
        return readiness.stage_relevant_docs(required_docs, self.catalog.by_name(stage))

    def missing_documents(
        self,
        required_docs: Iterable[Hashable],
        document_status: Mapping[Hashable, object],
    ) -> list[Hashable]:
        return readiness.missing_documents(required_docs, document_status)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def is_backward(self, from_stage: str, to_stage: str) -> bool:
        return regression.is_backward(from_stage, to_stage, self.catalog)

    def validate_transition(
        self,
        order: Order,
        to_stage: str,
        note: str,
        regression_reason: str | None = None,
        *,
        patient: Patient | None = None,
    ) -> TransitionVerdict:
        return validator.validate_transition(
            order, to_stage, note, regression_reason, catalog=self.catalog, patient=patient,
        )

    def stage_options(self, order: Order, patient: Patient | None = None) -> list[tuple[str, bool]]:
        return validator.stage_options(order, self.catalog, patient)

    def apply_transition(
        self,
        order: Order,
        patient: Patient,
        to_stage: str,
        note: str,
        regression_reason: str | None = None,
        *,
        now: datetime | None = None,
        user_id: str | None = None,
    ) -> TransitionResult:
        return executor.apply_transition(
            order, patient, to_stage, note, regression_reason,
            catalog=self.catalog, now=now, user_id=user_id,
        )

    def apply_bulk_transition(
        self,
        orders: Iterable[Order],
        to_stage: str,
        note: str,
        patients: Mapping[str, Patient],
        *,
        now: datetime | None = None,
        user_id: str | None = None,
        regression_reason: str | None = None,
    ) -> list[TransitionResult | TransitionError]:
        return executor.apply_bulk_transition(
            orders, to_stage, note, patients,
            catalog=self.catalog, now=now, user_id=user_id, regression_reason=regression_reason,
        )

    # -------------------------------------------------------------------------
    # Dwell and insights
    # -------------------------------------------------------------------------

    def stage_dwell(self, order: Order, now: datetime | None = None) -> StageDwell:
        return readiness.stage_dwell(order, self.catalog, now)

    def pipeline_summary(self, orders: Iterable[Order], now: datetime | None = None) -> list[StageSummary]:
        return readiness.pipeline_summary(orders, self.catalog, now)

    def regression_history(self, notes: Iterable[Note]) -> list[Note]:
        return regression.regression_history(notes, self.catalog)

    def top_regression_reasons(
        self,
        records: Iterable[RegressionRecord],
        limit: int = 5,
    ) -> list[tuple[str, int]]:
        return regression.top_regression_reasons(records, limit)
