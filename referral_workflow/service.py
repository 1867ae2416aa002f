"""
Workflow service.

Runs the referral control flow against the store: refresh a patient's
required documents, check readiness, validate and apply a stage change,
then persist the result. Every outcome is returned as a value so adapters
can show it to the user as-is.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from referral_workflow.db import (
    NoteRepository,
    OrderRepository,
    PatientRepository,
    RegressionRepository,
    SupabaseClient,
    TransitionRepository,
    get_client,
)
from referral_workflow.engines import WorkflowEngine
from referral_workflow.models import (
    ApplyFailed,
    Note,
    OrderNotFound,
    Patient,
    PatientNotFound,
    Readiness,
    StageSummary,
    TransitionError,
    TransitionResult,
)

logger = logging.getLogger(__name__)


class WorkflowService:
    """Stage changes and document upkeep for referrals held in Supabase."""

    def __init__(self, engine: WorkflowEngine, client: Optional[SupabaseClient] = None):
        client = client or get_client()
        self.engine = engine
        self.patients = PatientRepository(client)
        self.orders = OrderRepository(client)
        self.notes = NoteRepository(client)
        self.regressions = RegressionRepository(client)
        self.transitions = TransitionRepository(client)

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def refresh_required_documents(self, patient_id: str) -> Patient:
        """
        Re-derive a patient's required documents and store any additions.

        Call after any change to telehealth, financial assistance, primary
        insurance or the current order's chair type.
        """
        patient = self.patients.require(patient_id)
        order = self.orders.get_current_for_patient(patient_id)
        derived = self.engine.derive_required_documents(patient, order)
        if self.engine.documents is not None:
            self.engine.documents.validate_keys(derived)
        return self.patients.merge_required_documents(patient_id, derived)

    def readiness(self, order_id: str) -> Readiness:
        order = self.orders.require(order_id)
        patient = self.patients.require(order.patient_id)
        return self.engine.evaluate_readiness(patient.required_documents, order.document_status)

    # -------------------------------------------------------------------------
    # Stage changes
    # -------------------------------------------------------------------------

    def change_stage(
        self,
        order_id: str,
        to_stage: str,
        note: str,
        regression_reason: str | None = None,
        *,
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> TransitionResult | TransitionError:
        """Validate, apply and persist one stage change."""
        order = self.orders.get_by_id(order_id)
        if order is None:
            return TransitionError(order_id=order_id, error=OrderNotFound())
        patient = self.patients.get_by_id(order.patient_id)
        if patient is None:
            return TransitionError(order_id=order_id, error=PatientNotFound(patient_id=order.patient_id))

        verdict = self.engine.validate_transition(
            order, to_stage, note, regression_reason, patient=patient,
        )
        if not verdict.approved:
            return TransitionError(order_id=order_id, error=verdict)

        result = self.engine.apply_transition(
            order, patient, to_stage, note, regression_reason, now=now, user_id=user_id,
        )
        try:
            self.transitions.persist(result)
        except Exception as e:
            logger.error("Failed to persist order %s: %s", order_id, e)
            return TransitionError(order_id=order_id, error=ApplyFailed(detail=str(e)))
        return result

    def bulk_change_stage(
        self,
        order_ids: Iterable[str],
        to_stage: str,
        note: str,
        *,
        user_id: str | None = None,
        regression_reason: str | None = None,
        now: datetime | None = None,
    ) -> list[TransitionResult | TransitionError]:
        """
        Move many referrals to one stage, each committed on its own.

        Returns one outcome per distinct order id, in request order. A
        repeated id is moved once.
        """
        order_ids = list(dict.fromkeys(str(i) for i in order_ids))
        orders = {o.id: o for o in self.orders.get_many(order_ids)}
        patients = self.patients.get_many({o.patient_id for o in orders.values()})

        applied = self.engine.apply_bulk_transition(
            [orders[i] for i in order_ids if i in orders],
            to_stage,
            note,
            patients,
            now=now,
            user_id=user_id,
            regression_reason=regression_reason,
        )
        by_id = {r.order_id: r for r in self.transitions.persist_many(applied)}

        outcomes = []
        for order_id in order_ids:
            outcome = by_id.get(order_id)
            if outcome is None:
                outcome = TransitionError(order_id=order_id, error=OrderNotFound())
            outcomes.append(outcome)

        failed = [o for o in outcomes if not o.ok]
        if failed:
            logger.warning("Bulk move to %s: %d of %d failed", to_stage, len(failed), len(outcomes))
        return outcomes

    # -------------------------------------------------------------------------
    # History and insights
    # -------------------------------------------------------------------------

    def regression_history(self, patient_id: str) -> list[Note]:
        return self.engine.regression_history(self.notes.get_stage_changes(patient_id))

    def top_regression_reasons(self, limit: int = 5) -> list[tuple[str, int]]:
        return self.engine.top_regression_reasons(self.regressions.get_recent(), limit)

    def pipeline_summary(self, now: datetime | None = None) -> list[StageSummary]:
        return self.engine.pipeline_summary(self.orders.list_all(), now)
