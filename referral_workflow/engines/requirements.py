"""
Document requirement derivation.

Patient and order attributes pull extra documents into a patient's
required set. Every rule is checked independently and all matching rules
contribute; the result is always a superset of what the patient already
has on file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Hashable, Iterable

from referral_workflow.models import Order, Patient

logger = logging.getLogger(__name__)


def _contains_any(value: str | None, needles: Iterable[str]) -> bool:
    if not value:
        return False
    value = value.lower()
    return any(needle in value for needle in needles)


@dataclass(frozen=True)
class RequirementRule:
    """A condition on patient/order attributes and the documents it adds."""
    name: str
    applies: Callable[[Patient, Order | None], bool]
    adds: tuple[str, ...]


REQUIREMENT_RULES: tuple[RequirementRule, ...] = (
    RequirementRule(
        "telehealth",
        lambda patient, order: patient.telehealth_enabled,
        ("TELE_EVAL", "TELE_CONSENT"),
    ),
    RequirementRule(
        "financial_assistance",
        lambda patient, order: patient.financial_assistance,
        ("FIN_HARDSHIP", "ABN"),
    ),
    RequirementRule(
        "payer_authorization",
        lambda patient, order: _contains_any(patient.primary_insurance, ("medicaid", "uhc")),
        ("AUTH_FORM", "PAR_REQ"),
    ),
    RequirementRule(
        "power_chair",
        lambda patient, order: order is not None and _contains_any(order.chair_type, ("power",)),
        ("ATP_EVAL", "LMN", "HOME_ASSESS"),
    ),
)


def matching_rules(
    patient: Patient,
    order: Order | None,
    rules: Iterable[RequirementRule] = REQUIREMENT_RULES,
) -> list[RequirementRule]:
    """Rules whose condition holds for this patient/order pair."""
    return [rule for rule in rules if rule.applies(patient, order)]


def derive_required_documents(
    patient: Patient,
    order: Order | None = None,
    rules: Iterable[RequirementRule] = REQUIREMENT_RULES,
) -> set[Hashable]:
    """
    Compute the effective required-document set for a patient/order pair.

    Starts from `patient.required_documents` and unions in the documents
    of every matching rule. Pure and idempotent: feeding the result back
    in as the patient's required set yields the same result.

    Args:
        patient: The patient whose attributes drive the rules
        order: The patient's current referral, if any (chair type rule)
        rules: Rule table, defaulting to REQUIREMENT_RULES

    Returns:
        A new set; the patient model is not modified.
    """
    required: set[Hashable] = set(patient.required_documents)
    for rule in matching_rules(patient, order, rules):
        required.update(rule.adds)

    added = required - patient.required_documents
    if added:
        logger.debug("Patient %s: derived documents %s", patient.id, sorted(added))
    return required


def added_documents(patient: Patient, order: Order | None = None) -> set[Hashable]:
    """Documents the derivation would add that the patient does not have yet."""
    return derive_required_documents(patient, order) - patient.required_documents
