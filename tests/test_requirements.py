"""
Tests for required-document derivation.
"""

import pytest

from referral_workflow.engines import (
    REQUIREMENT_RULES,
    added_documents,
    derive_required_documents,
    matching_rules,
)
from referral_workflow.models import Patient

from conftest import make_order


class TestDeriveRequiredDocuments:
    """Attribute rules that pull documents into the required set."""

    def test_telehealth(self):
        patient = Patient(id="p1", telehealth_enabled=True, required_documents={"F2F"})
        assert derive_required_documents(patient) == {"F2F", "TELE_EVAL", "TELE_CONSENT"}

    def test_payer_match_is_case_insensitive(self):
        patient = Patient(id="p1", primary_insurance="UHC Medicaid Advantage")
        assert derive_required_documents(patient) == {"AUTH_FORM", "PAR_REQ"}

    @pytest.mark.parametrize("insurance", ["medicaid", "Colorado MEDICAID", "uhc", "Uhc Choice"])
    def test_payer_substrings(self, insurance):
        patient = Patient(id="p1", primary_insurance=insurance)
        assert {"AUTH_FORM", "PAR_REQ"} <= derive_required_documents(patient)

    def test_other_payer_adds_nothing(self):
        patient = Patient(id="p1", primary_insurance="Aetna", required_documents={"F2F"})
        assert derive_required_documents(patient) == {"F2F"}

    def test_financial_assistance(self):
        patient = Patient(id="p1", financial_assistance=True)
        assert derive_required_documents(patient) == {"FIN_HARDSHIP", "ABN"}

    def test_power_chair_needs_order(self):
        patient = Patient(id="p1")
        assert derive_required_documents(patient) == set()

        order = make_order("o1", "Intake", chair_type="Power Wheelchair")
        assert derive_required_documents(patient, order) == {"ATP_EVAL", "LMN", "HOME_ASSESS"}

        manual = make_order("o2", "Intake", chair_type="Manual")
        assert derive_required_documents(patient, manual) == set()

    def test_rules_combine(self):
        patient = Patient(
            id="p1",
            telehealth_enabled=True,
            financial_assistance=True,
            primary_insurance="Medicaid",
            required_documents={"HIPAA"},
        )
        order = make_order("o1", "Intake", chair_type="power")
        derived = derive_required_documents(patient, order)
        assert derived == {
            "HIPAA", "TELE_EVAL", "TELE_CONSENT", "FIN_HARDSHIP", "ABN",
            "AUTH_FORM", "PAR_REQ", "ATP_EVAL", "LMN", "HOME_ASSESS",
        }
        assert len(matching_rules(patient, order)) == len(REQUIREMENT_RULES)

    def test_never_removes_existing_documents(self):
        # Turning telehealth off does not take the telehealth documents away.
        patient = Patient(
            id="p1",
            telehealth_enabled=False,
            required_documents={"TELE_EVAL", "TELE_CONSENT", "F2F"},
        )
        assert derive_required_documents(patient) == {"TELE_EVAL", "TELE_CONSENT", "F2F"}

    def test_idempotent(self):
        patient = Patient(id="p1", telehealth_enabled=True, primary_insurance="uhc")
        once = derive_required_documents(patient)
        again = derive_required_documents(patient.model_copy(update={"required_documents": once}))
        assert again == once

    def test_does_not_mutate_patient(self):
        patient = Patient(id="p1", telehealth_enabled=True, required_documents={"F2F"})
        derive_required_documents(patient)
        assert patient.required_documents == {"F2F"}

    def test_added_documents(self):
        patient = Patient(id="p1", telehealth_enabled=True, required_documents={"TELE_EVAL"})
        assert added_documents(patient) == {"TELE_CONSENT"}

    def test_missing_flags_treated_as_false(self):
        patient = Patient.model_validate({
            "id": "p1",
            "telehealth_enabled": None,
            "financial_assistance": None,
            "required_documents": None,
        })
        assert derive_required_documents(patient) == set()
