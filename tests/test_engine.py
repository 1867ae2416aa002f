"""
Tests for the WorkflowEngine facade over the default catalogs.
"""

import pytest

from referral_workflow.engines import WorkflowEngine
from referral_workflow.exceptions import UnknownStage
from referral_workflow.models import Approved, ParNotReady, Patient

from conftest import NOW, PAR, make_order


@pytest.fixture
def engine(monkeypatch):
    monkeypatch.delenv("REFERRAL_WORKFLOW_CATALOG", raising=False)
    monkeypatch.delenv("REFERRAL_DOCUMENT_CATALOG", raising=False)
    return WorkflowEngine.from_defaults()


class TestWorkflowEngine:

    def test_catalogs_loaded(self, engine):
        assert engine.catalog.par_stage == PAR
        assert engine.documents is not None
        assert engine.documents.label("F2F") != "F2F"

    def test_full_referral_path(self, engine):
        patient = Patient(
            id="p1",
            telehealth_enabled=True,
            required_documents={"F2F", "PT_EVAL"},
        )
        required = engine.derive_required_documents(patient)
        patient = patient.model_copy(update={"required_documents": required})

        order = make_order(
            "o1",
            "Documentation Verification",
            document_status={"F2F": "Complete", "PT_EVAL": "Complete", "TELE_EVAL": "Complete"},
        )
        verdict = engine.validate_transition(order, PAR, "submitting", patient=patient)
        assert isinstance(verdict, ParNotReady)
        assert verdict.missing_docs == ["TELE_CONSENT"]

        order.document_status["TELE_CONSENT"] = "Complete"
        assert engine.evaluate_readiness(patient.required_documents, order.document_status).ready
        assert isinstance(
            engine.validate_transition(order, PAR, "submitting", patient=patient), Approved,
        )

        result = engine.apply_transition(order, patient, PAR, "submitting", now=NOW)
        assert result.order.workflow_stage == PAR
        assert engine.stage_dwell(result.order, NOW).target_days == 7

        back = engine.apply_transition(
            result.order, patient, "Clinical Review", "payer wants new eval", "Payer Request",
        )
        assert back.is_regression
        assert engine.regression_history([result.note, back.note]) == [back.note]
        assert engine.top_regression_reasons([back.regression]) == [("Payer Request", 1)]

    def test_stage_relevant_docs_by_name(self, engine):
        required = {"F2F", "HIPAA", "VENDOR_FORM"}
        assert engine.stage_relevant_docs(required, "Vendor / Order Processing") == {"VENDOR_FORM"}
        with pytest.raises(UnknownStage):
            engine.stage_relevant_docs(required, "Nowhere")

    def test_is_backward(self, engine):
        assert engine.is_backward(PAR, "Clinical Review")
        assert not engine.is_backward("Referral Received", PAR)

    def test_bulk(self, engine):
        orders = [make_order("o1", "Referral Received"), make_order("o2", "Clinical Review")]
        results = engine.apply_bulk_transition(
            orders, "Insurance Verification", "batch", {"p1": Patient(id="p1")},
        )
        assert [r.is_regression for r in results] == [False, True]

    def test_pipeline_and_options(self, engine):
        orders = [make_order("o1", "Referral Received")]
        summary = engine.pipeline_summary(orders, NOW)
        assert len(summary) == 10
        assert summary[0].count == 1

        options = dict(engine.stage_options(orders[0], Patient(id="p1")))
        assert options["Referral Received"] is False
        assert options[PAR] is False
        assert options["Delivery & Billing"] is True
