"""
Document readiness and stage dwell.

Readiness answers "are all of this referral's required documents marked
complete", which gates entry to the preauthorization stage. Dwell answers
"how long has this referral sat in its current stage, and is that past the
stage's target".
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Hashable, Iterable, Mapping

from referral_workflow.engines.catalog import StageCatalog
from referral_workflow.models import (
    DocStatus,
    Order,
    Readiness,
    Stage,
    StageDwell,
    StageSummary,
    utcnow,
)

SECONDS_PER_DAY = 86400


# =============================================================================
# DOCUMENT COMPLETION
# =============================================================================


def is_complete(status: Mapping[Hashable, object], key: Hashable) -> bool:
    return status.get(key) == DocStatus.COMPLETE


def completion(
    required_docs: Iterable[Hashable],
    status: Mapping[Hashable, object],
) -> Readiness:
    """Count completed documents among the required ones."""
    required = set(required_docs)
    completed = sum(1 for key in required if is_complete(status, key))
    return Readiness(completed=completed, total=len(required))


def evaluate_readiness(
    required_docs: Iterable[Hashable],
    status: Mapping[Hashable, object],
) -> Readiness:
    """Completion counts plus the ready flag (see Readiness.ready)."""
    return completion(required_docs, status)


def is_ready(required_docs: Iterable[Hashable], status: Mapping[Hashable, object]) -> bool:
    """
    True iff at least one document is required and all are complete.

    A referral with nothing required is not ready: the gate stays closed
    until someone has decided what the referral needs.
    """
    return completion(required_docs, status).ready


def missing_documents(
    required_docs: Iterable[Hashable],
    status: Mapping[Hashable, object],
) -> list[Hashable]:
    """Required-but-incomplete keys, sorted for display."""
    return sorted(key for key in set(required_docs) if not is_complete(status, key))


def stage_relevant_docs(required_docs: Iterable[Hashable], stage: Stage) -> set[Hashable]:
    """The part of a patient's requirements that matters for leaving `stage`."""
    return set(required_docs) & stage.required_docs


# =============================================================================
# STAGE DWELL
# =============================================================================


def days_in_stage(order: Order, now: datetime | None = None) -> int:
    """Whole days since the last stage change (0 when unknown or in the future)."""
    if order.last_stage_change is None:
        return 0
    now = now or utcnow()
    changed = order.last_stage_change
    if changed.tzinfo is None and now.tzinfo is not None:
        changed = changed.replace(tzinfo=now.tzinfo)
    elif changed.tzinfo is not None and now.tzinfo is None:
        now = now.replace(tzinfo=changed.tzinfo)
    seconds = (now - changed).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // SECONDS_PER_DAY)


def stage_dwell(order: Order, catalog: StageCatalog, now: datetime | None = None) -> StageDwell:
    stage = catalog.by_name(order.workflow_stage)
    return StageDwell(
        stage=stage.name,
        days_in_stage=days_in_stage(order, now),
        target_days=stage.target_days,
    )


def pipeline_summary(
    orders: Iterable[Order],
    catalog: StageCatalog,
    now: datetime | None = None,
) -> list[StageSummary]:
    """
    Count referrals and average dwell per stage, in catalog order.

    Stages with no referrals are included with zero counts.
    """
    now = now or utcnow()
    days: dict[str, list[int]] = defaultdict(list)
    for order in orders:
        catalog.by_name(order.workflow_stage)  # raises UnknownStage
        days[order.workflow_stage].append(days_in_stage(order, now))

    summary = []
    for stage in catalog:
        stage_days = days.get(stage.name, [])
        summary.append(StageSummary(
            stage=stage.name,
            index=stage.index,
            count=len(stage_days),
            average_days=(sum(stage_days) / len(stage_days)) if stage_days else 0.0,
            target_days=stage.target_days,
        ))
    return summary
