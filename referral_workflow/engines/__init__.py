"""
Referral workflow engines.
"""

from .catalog import (
    DEFAULT_PAR_STAGE,
    StageCatalog,
    DocumentCatalog,
    DocumentType,
    DocumentTemplate,
    load_stage_catalog,
    load_document_catalog,
    load_default_catalogs,
)
from .requirements import (
    REQUIREMENT_RULES,
    RequirementRule,
    added_documents,
    derive_required_documents,
    matching_rules,
)
from .readiness import (
    completion,
    evaluate_readiness,
    is_ready,
    missing_documents,
    stage_relevant_docs,
    days_in_stage,
    stage_dwell,
    pipeline_summary,
)
from .regression import (
    REGRESSION_REASONS,
    BULK_REGRESSION_REASON,
    is_backward,
    regression_history,
    top_regression_reasons,
)
from .validator import validate_transition, stage_options
from .executor import apply_transition, apply_bulk_transition
from .engine import WorkflowEngine

__all__ = [
    "DEFAULT_PAR_STAGE",
    "StageCatalog",
    "DocumentCatalog",
    "DocumentType",
    "DocumentTemplate",
    "load_stage_catalog",
    "load_document_catalog",
    "load_default_catalogs",
    "REQUIREMENT_RULES",
    "RequirementRule",
    "derive_required_documents",
    "added_documents",
    "matching_rules",
    "completion",
    "evaluate_readiness",
    "is_ready",
    "missing_documents",
    "stage_relevant_docs",
    "days_in_stage",
    "stage_dwell",
    "pipeline_summary",
    "REGRESSION_REASONS",
    "BULK_REGRESSION_REASON",
    "is_backward",
    "regression_history",
    "top_regression_reasons",
    "validate_transition",
    "stage_options",
    "apply_transition",
    "apply_bulk_transition",
    "WorkflowEngine",
]
