"""
Transition execution.

The executor turns an approved transition into a TransitionResult: the
updated order, the stage-change note and, for backward moves, a
regression record. It performs no I/O. Persisting a result is the
caller's job and must happen as one unit per referral, so that a stage
change never lands without its note.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Mapping

from referral_workflow.engines.catalog import StageCatalog
from referral_workflow.engines.regression import BULK_REGRESSION_REASON, is_backward
from referral_workflow.engines.validator import validate_transition
from referral_workflow.exceptions import TransitionRejected, UnknownStage
from referral_workflow.models import (
    Note,
    NoteSource,
    Order,
    Patient,
    PatientNotFound,
    RegressionRecord,
    TransitionError,
    TransitionResult,
    UnknownStageViolation,
    utcnow,
)

logger = logging.getLogger(__name__)


def _build_result(
    order: Order,
    patient_id: str,
    to_stage: str,
    note: str,
    regression_reason: str | None,
    catalog: StageCatalog,
    now: datetime,
    user_id: str | None,
) -> TransitionResult:
    from_stage = order.workflow_stage
    updated = order.model_copy(update={
        "workflow_stage": to_stage,
        "last_stage_note": note,
        "last_stage_change": now,
    })
    stage_note = Note(
        patient_id=patient_id,
        body=note,
        source=NoteSource.STAGE_CHANGE,
        stage_from=from_stage,
        stage_to=to_stage,
        created_at=now,
        created_by=user_id,
    )

    regression = None
    if is_backward(from_stage, to_stage, catalog):
        regression = RegressionRecord(
            order_id=order.id,
            previous_stage=from_stage,
            new_stage=to_stage,
            reason=regression_reason,
            notes=note,
            user_id=user_id,
            created_at=now,
        )
        logger.info(
            "Order %s regressed %s -> %s (%s)", order.id, from_stage, to_stage, regression_reason
        )
    else:
        logger.info("Order %s moved %s -> %s", order.id, from_stage, to_stage)

    return TransitionResult(order=updated, note=stage_note, regression=regression)


def apply_transition(
    order: Order,
    patient: Patient,
    to_stage: str,
    note: str,
    regression_reason: str | None = None,
    *,
    catalog: StageCatalog,
    now: datetime | None = None,
    user_id: str | None = None,
) -> TransitionResult:
    """
    Produce the mutations for moving one referral to `to_stage`.

    The request is validated again here; a violation raises
    TransitionRejected instead of producing a result.

    Args:
        order: The referral at its current stage
        patient: The order's patient (required documents for the gate);
            a patient other than `order.patient_id` is rejected with
            PatientNotFound
        to_stage: Target stage name
        note: Audit note text
        regression_reason: Required when the move is backward
        catalog: Stage catalog
        now: Timestamp for the change, defaults to the current UTC time
        user_id: Who made the change, recorded on the note and regression

    Returns:
        TransitionResult with the updated order, note and optional
        regression record.
    """
    if patient.id != order.patient_id:
        logger.warning("Order %s: patient %s does not own it", order.id, patient.id)
        raise TransitionRejected(PatientNotFound(patient_id=order.patient_id))

    verdict = validate_transition(
        order, to_stage, note, regression_reason, catalog=catalog, patient=patient,
    )
    if not verdict.approved:
        logger.warning("Order %s: rejected move to %s: %s", order.id, to_stage, verdict.code)
        raise TransitionRejected(verdict)

    return _build_result(
        order,
        patient.id,
        to_stage,
        note,
        regression_reason.strip() if regression_reason else None,
        catalog,
        now or utcnow(),
        user_id,
    )


def apply_bulk_transition(
    orders: Iterable[Order],
    to_stage: str,
    note: str,
    patients: Mapping[str, Patient],
    *,
    catalog: StageCatalog,
    now: datetime | None = None,
    user_id: str | None = None,
    regression_reason: str | None = None,
) -> list[TransitionResult | TransitionError]:
    """
    Move many referrals to the same stage with the same note.

    Each order is handled on its own: its current stage is its from-stage,
    so regressions are classified per item. One failing order never stops
    the rest. Backward moves do not need a reason here; they are recorded
    with `regression_reason` or BULK_REGRESSION_REASON.

    Args:
        orders: Referrals to move
        to_stage: Target stage for every referral
        note: Note text for every referral
        patients: Patients by id; an order whose patient is absent fails
            with PatientNotFound
        catalog: Stage catalog
        now: Timestamp shared by the whole batch
        user_id: Who made the change
        regression_reason: Optional reason for any backward moves

    Returns:
        One TransitionResult or TransitionError per order, in input order.
    """
    if to_stage not in catalog:
        raise UnknownStage(to_stage)

    now = now or utcnow()
    reason = (regression_reason or "").strip() or BULK_REGRESSION_REASON

    results: list[TransitionResult | TransitionError] = []
    for order in orders:
        patient = patients.get(order.patient_id)
        if patient is None or patient.id != order.patient_id:
            logger.warning("Order %s: patient %s not found", order.id, order.patient_id)
            results.append(TransitionError(
                order_id=order.id,
                error=PatientNotFound(patient_id=order.patient_id),
            ))
            continue

        try:
            verdict = validate_transition(
                order,
                to_stage,
                note,
                catalog=catalog,
                patient=patient,
                require_regression_reason=False,
            )
        except UnknownStage as e:
            logger.warning("Order %s: %s", order.id, e)
            results.append(TransitionError(
                order_id=order.id,
                error=UnknownStageViolation(stage=e.stage),
            ))
            continue

        if not verdict.approved:
            results.append(TransitionError(order_id=order.id, error=verdict))
            continue

        results.append(_build_result(
            order, patient.id, to_stage, note, reason, catalog, now, user_id,
        ))

    failed = sum(1 for r in results if not r.ok)
    logger.info("Bulk move to %s: %d applied, %d failed", to_stage, len(results) - failed, failed)
    return results
