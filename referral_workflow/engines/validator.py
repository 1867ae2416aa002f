"""
Stage transition validation.

Any stage may move to any other stage; the workflow is not a strict linear
pipeline. A move is gated by these checks, applied in order, and the first
failing check decides the verdict:

1. The note must contain non-whitespace text.
2. A backward move needs a regression reason.
3. The preauthorization stage can only be entered once every required
   document is complete.
4. Moving to the current stage is a no-op.

Validation is pure. It is safe to call on every keystroke of a form.
"""

from __future__ import annotations

import logging
from typing import Hashable, Iterable, Mapping

from referral_workflow.engines.catalog import StageCatalog
from referral_workflow.engines.readiness import is_ready, missing_documents
from referral_workflow.engines.regression import is_backward
from referral_workflow.models import (
    Approved,
    EmptyNote,
    MissingRegressionReason,
    NoOpTransition,
    Order,
    ParNotReady,
    Patient,
    TransitionRequest,
    TransitionVerdict,
)

logger = logging.getLogger(__name__)


def _blank(text: str | None) -> bool:
    return not text or not text.strip()


def check_request(
    request: TransitionRequest,
    required_docs: Iterable[Hashable],
    document_status: Mapping[Hashable, object],
    catalog: StageCatalog,
    *,
    require_regression_reason: bool = True,
) -> TransitionVerdict:
    """
    Validate a transition request against readiness inputs.

    Returns a verdict value; only unknown stage names raise (UnknownStage).
    """
    if _blank(request.note):
        return EmptyNote()

    backward = is_backward(request.from_stage, request.to_stage, catalog)
    if backward and require_regression_reason and _blank(request.regression_reason):
        return MissingRegressionReason(from_stage=request.from_stage, to_stage=request.to_stage)

    if request.to_stage == catalog.par_stage:
        required = set(required_docs)
        if not is_ready(required, document_status):
            return ParNotReady(
                stage=request.to_stage,
                missing_docs=missing_documents(required, document_status),
            )

    if request.to_stage == request.from_stage:
        return NoOpTransition(stage=request.to_stage)

    return Approved()


def build_request(
    order: Order,
    to_stage: str,
    note: str,
    regression_reason: str | None = None,
) -> TransitionRequest:
    return TransitionRequest(
        order_id=order.id,
        from_stage=order.workflow_stage,
        to_stage=to_stage,
        note=note or "",
        regression_reason=regression_reason,
    )


def validate_transition(
    order: Order,
    to_stage: str,
    note: str,
    regression_reason: str | None = None,
    *,
    catalog: StageCatalog,
    patient: Patient | None = None,
    require_regression_reason: bool = True,
) -> TransitionVerdict:
    """
    Decide whether `order` may move to `to_stage`.

    Args:
        order: The referral, at its current stage
        to_stage: Target stage name
        note: Audit note text for the change
        regression_reason: Reason code, required for backward moves
        catalog: Stage catalog defining order and the gate stage
        patient: The order's patient; its required documents feed the
            preauthorization gate. Without it nothing counts as required,
            so the gate stays closed.
        require_regression_reason: False for the bulk path

    Returns:
        Approved, or the first violation found.
    """
    request = build_request(order, to_stage, note, regression_reason)
    required = patient.required_documents if patient is not None else set()
    verdict = check_request(
        request,
        required,
        order.document_status,
        catalog,
        require_regression_reason=require_regression_reason,
    )
    logger.debug("Order %s: %s -> %s: %s", order.id, order.workflow_stage, to_stage, verdict.code)
    return verdict


def stage_options(
    order: Order,
    catalog: StageCatalog,
    patient: Patient | None = None,
) -> list[tuple[str, bool]]:
    """
    (stage name, enabled) pairs for a stage picker.

    The current stage is disabled, and so is the gate stage while documents
    are outstanding. Note and regression checks depend on user input and
    are not reflected here.
    """
    required = patient.required_documents if patient is not None else set()
    ready = is_ready(required, order.document_status)
    options = []
    for stage in catalog:
        enabled = stage.name != order.workflow_stage
        if stage.name == catalog.par_stage and not ready:
            enabled = False
        options.append((stage.name, enabled))
    return options
