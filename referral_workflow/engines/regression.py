"""
Regression classification and insights.

A regression is a move to a stage that sits earlier in the catalog than the
referral's current stage.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from referral_workflow.engines.catalog import StageCatalog
from referral_workflow.models import Note, NoteSource, RegressionRecord

REGRESSION_REASONS = (
    "Documentation Error",
    "Payer Request",
    "Clinical Update",
    "Incorrect Stage",
    "Other",
)

# Reason recorded for backward moves made through the bulk path, which does
# not ask for one.
BULK_REGRESSION_REASON = "Bulk Update"


def is_backward(from_stage: str, to_stage: str, catalog: StageCatalog) -> bool:
    """
    True when `to_stage` comes before `from_stage` in the catalog.

    Raises UnknownStage if either name is not in the catalog.
    """
    return catalog.index_of(to_stage) < catalog.index_of(from_stage)


def regression_history(notes: Iterable[Note], catalog: StageCatalog) -> list[Note]:
    """
    Stage-change notes that moved a referral backward.

    Notes whose stages are no longer in the catalog (renamed or retired
    stages) cannot be ordered and are skipped.
    """
    history = []
    for note in notes:
        if note.source != NoteSource.STAGE_CHANGE:
            continue
        if note.stage_from not in catalog or note.stage_to not in catalog:
            continue
        if is_backward(note.stage_from, note.stage_to, catalog):
            history.append(note)
    return history


def _reason_key(record: RegressionRecord) -> str:
    if record.reason and record.reason.strip():
        return record.reason.strip()
    # Older rows carry only free text; bucket them by their opening words.
    return " ".join(record.notes.lower().split()[:3])


def top_regression_reasons(
    records: Iterable[RegressionRecord],
    limit: int = 5,
) -> list[tuple[str, int]]:
    """Most common regression reasons as (reason, count), most frequent first."""
    counts = Counter(key for key in map(_reason_key, records) if key)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]
