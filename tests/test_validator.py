"""
Tests for stage transition validation.
"""

import pytest

from referral_workflow.engines import is_backward, stage_options, validate_transition
from referral_workflow.exceptions import UnknownStage
from referral_workflow.models import (
    Approved,
    EmptyNote,
    MissingRegressionReason,
    NoOpTransition,
    ParNotReady,
    Patient,
)

from conftest import PAR, make_order


class TestParGate:
    """Entering the preauthorization stage requires complete documents."""

    def test_ready_patient_approved(self, catalog, patient, order):
        verdict = validate_transition(order, PAR, "ready", catalog=catalog, patient=patient)
        assert isinstance(verdict, Approved)
        assert verdict.approved
        assert verdict.message == "Transition approved."

    def test_missing_document_blocks(self, catalog, patient):
        order = make_order(
            "o1", "Intake", document_status={"F2F": "Complete", "PT_EVAL": "Missing"},
        )
        verdict = validate_transition(order, PAR, "ready", catalog=catalog, patient=patient)
        assert isinstance(verdict, ParNotReady)
        assert not verdict.approved
        assert verdict.missing_docs == ["PT_EVAL"]
        assert "PT_EVAL" in verdict.message

    def test_missing_docs_sorted(self, catalog):
        patient = Patient(id="p1", required_documents={"SWO", "F2F", "PT_EVAL"})
        order = make_order("o1", "Intake")
        verdict = validate_transition(order, PAR, "ready", catalog=catalog, patient=patient)
        assert verdict.missing_docs == ["F2F", "PT_EVAL", "SWO"]

    def test_no_requirements_blocks(self, catalog):
        patient = Patient(id="p1")
        order = make_order("o1", "Intake", document_status={"F2F": "Complete"})
        verdict = validate_transition(order, PAR, "ready", catalog=catalog, patient=patient)
        assert isinstance(verdict, ParNotReady)
        assert verdict.missing_docs == []

    def test_without_patient_gate_stays_closed(self, catalog, order):
        verdict = validate_transition(order, PAR, "ready", catalog=catalog)
        assert isinstance(verdict, ParNotReady)

    def test_gate_does_not_apply_elsewhere(self, catalog):
        patient = Patient(id="p1", required_documents={"F2F"})
        order = make_order("o1", "Intake")
        verdict = validate_transition(order, "Docs", "moving on", catalog=catalog, patient=patient)
        assert isinstance(verdict, Approved)

    def test_configured_gate_stage(self):
        from referral_workflow.engines import StageCatalog

        catalog = StageCatalog.from_config({
            "par_stage": "Auth",
            "workflow": [{"stage": "Intake"}, {"stage": "Auth"}, {"stage": PAR}],
        })
        patient = Patient(id="p1", required_documents={"F2F"})
        order = make_order("o1", "Intake")

        assert isinstance(
            validate_transition(order, "Auth", "go", catalog=catalog, patient=patient), ParNotReady,
        )
        assert isinstance(
            validate_transition(order, PAR, "go", catalog=catalog, patient=patient), Approved,
        )


class TestRegressions:
    """Backward moves need a reason."""

    def test_reason_required(self, short_catalog):
        order = make_order("o1", "PAR")
        verdict = validate_transition(order, "Docs", "fixed error", catalog=short_catalog)
        assert isinstance(verdict, MissingRegressionReason)
        assert (verdict.from_stage, verdict.to_stage) == ("PAR", "Docs")

    def test_with_reason_approved(self, short_catalog):
        order = make_order("o1", "PAR")
        verdict = validate_transition(
            order, "Docs", "fixed error", "Documentation Error", catalog=short_catalog,
        )
        assert isinstance(verdict, Approved)

    def test_blank_reason_rejected(self, short_catalog):
        order = make_order("o1", "Delivered")
        verdict = validate_transition(order, "Intake", "redo", "   ", catalog=short_catalog)
        assert isinstance(verdict, MissingRegressionReason)

    def test_bulk_mode_skips_reason(self, short_catalog):
        order = make_order("o1", "Delivered")
        verdict = validate_transition(
            order, "Intake", "redo", catalog=short_catalog, require_regression_reason=False,
        )
        assert isinstance(verdict, Approved)

    def test_forward_needs_no_reason(self, short_catalog):
        order = make_order("o1", "Intake")
        assert isinstance(
            validate_transition(order, "Delivered", "skip ahead", catalog=short_catalog), Approved,
        )

    def test_backward_iff_lower_index(self, short_catalog):
        for source in short_catalog:
            for target in short_catalog:
                backward = is_backward(source.name, target.name, short_catalog)
                assert backward == (target.index < source.index)

                verdict = validate_transition(
                    make_order("o1", source.name), target.name, "note", catalog=short_catalog,
                )
                if backward:
                    assert isinstance(verdict, MissingRegressionReason)
                elif source.name == target.name:
                    assert isinstance(verdict, NoOpTransition)
                else:
                    assert isinstance(verdict, Approved)


class TestRuleOrder:
    """The first failing check decides the verdict."""

    @pytest.mark.parametrize("note", ["", "   ", "\n\t", None])
    def test_empty_note_first(self, catalog, note):
        order = make_order("o1", "Delivered")
        verdict = validate_transition(order, PAR, note, catalog=catalog)
        assert isinstance(verdict, EmptyNote)
        assert verdict.message == "A note is required for all stage changes."

    def test_empty_note_before_stage_lookup(self, catalog):
        order = make_order("o1", "Retired")
        assert isinstance(validate_transition(order, "Nowhere", "", catalog=catalog), EmptyNote)

    def test_reason_before_gate(self, catalog):
        order = make_order("o1", "Delivered")
        verdict = validate_transition(order, PAR, "back to auth", catalog=catalog)
        assert isinstance(verdict, MissingRegressionReason)

    def test_gate_before_no_op(self, catalog, patient):
        order = make_order("o1", PAR, document_status={"F2F": "Complete"})
        verdict = validate_transition(order, PAR, "again", catalog=catalog, patient=patient)
        assert isinstance(verdict, ParNotReady)

    def test_no_op(self, catalog, patient, order):
        verdict = validate_transition(order, "Intake", "nothing", catalog=catalog, patient=patient)
        assert isinstance(verdict, NoOpTransition)
        assert verdict.stage == "Intake"

    def test_unknown_stage_raises(self, catalog, order):
        with pytest.raises(UnknownStage):
            validate_transition(order, "Nowhere", "note", catalog=catalog)

        with pytest.raises(UnknownStage):
            validate_transition(make_order("o2", "Retired"), "Intake", "note", catalog=catalog)


class TestStageOptions:

    def test_current_and_gate_disabled(self, catalog):
        patient = Patient(id="p1", required_documents={"F2F"})
        order = make_order("o1", "Intake")
        assert stage_options(order, catalog, patient) == [
            ("Intake", False),
            ("Docs", True),
            (PAR, False),
            ("Delivered", True),
        ]

    def test_gate_enabled_when_ready(self, catalog, patient, order):
        options = dict(stage_options(order, catalog, patient))
        assert options[PAR] is True
        assert options["Intake"] is False
