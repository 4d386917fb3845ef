"""Tests for step criteria, the decision rule chain and decision details."""

import pytest

from src.core.entities.verification import (
    Decision,
    DocumentAuthenticityResult,
    DocumentType,
    ExtractedDocumentData,
    FacialRecognitionResult,
    OCRResult,
    RiskAssessment,
    RiskCategory,
    RiskFactor,
    RiskLevel,
)
from src.core.entities.workflow import CriteriaEvaluation, StepType, VerificationStepResult
from src.infrastructure.rules.decision_engine import DecisionEngine, DecisionOutcome


def _step(step_type: StepType, success: bool = True, required: bool = True) -> VerificationStepResult:
    return VerificationStepResult(
        step_id=step_type.value,
        step_type=step_type,
        required=required,
        success=success,
    )


def _all_steps(**overrides) -> list[VerificationStepResult]:
    """overrides: step_type name -> (success, required)"""
    results = []
    for step_type in StepType:
        success, required = overrides.get(step_type.name, (True, True))
        results.append(_step(step_type, success, required))
    return results


def _assessment(overall=0.1, level=RiskLevel.LOW, factors=None, manual=False) -> RiskAssessment:
    return RiskAssessment(
        overall_risk=overall,
        risk_level=level,
        factors=factors or [],
        recommendations=[],
        requires_manual_review=manual,
    )


def _authenticity(is_authentic=True, confidence=0.9, anomalies=None):
    return DocumentAuthenticityResult(
        is_authentic=is_authentic,
        confidence=confidence,
        security_features=[],
        anomalies=anomalies or [],
        document_type=DocumentType.PASSPORT,
    )


def _ocr(confidence=0.9, errors=None):
    return OCRResult(ExtractedDocumentData(DocumentType.PASSPORT), confidence, errors=errors or [])


def _facial(match=True, confidence=95.0, quality=0.8, face_detected=True):
    return FacialRecognitionResult(match, confidence, face_detected, quality)


@pytest.fixture
def engine():
    return DecisionEngine()


class TestStepCriteria:
    def test_authenticity(self, engine):
        assert engine.evaluate_step(_authenticity()).passed
        assert not engine.evaluate_step(_authenticity(confidence=0.69)).passed
        assert not engine.evaluate_step(_authenticity(is_authentic=False)).passed

    def test_ocr(self, engine):
        assert engine.evaluate_step(_ocr()).passed
        assert not engine.evaluate_step(_ocr(confidence=0.6)).passed
        assert not engine.evaluate_step(_ocr(errors=["Invalid expiry date format"])).passed

    def test_facial(self, engine):
        assert engine.evaluate_step(_facial()).passed
        assert not engine.evaluate_step(_facial(confidence=79.0)).passed
        assert not engine.evaluate_step(_facial(quality=0.5)).passed
        assert not engine.evaluate_step(_facial(match=False)).passed

    def test_risk(self, engine):
        assert engine.evaluate_step(_assessment(overall=0.6)).passed
        assert not engine.evaluate_step(_assessment(overall=0.61)).passed

    def test_criteria_three_of_four(self, engine):
        assert engine.evaluate_step(CriteriaEvaluation(3, 4)).passed
        assert not engine.evaluate_step(CriteriaEvaluation(2, 4)).passed

    def test_unknown_payload(self, engine):
        with pytest.raises(TypeError):
            engine.evaluate_step("not a payload")

    def test_evaluate_criteria(self, engine):
        evaluation = engine.evaluate_criteria(
            _authenticity(), _facial(match=False), _ocr(), _assessment(overall=0.2),
        )
        assert evaluation.passed_count == 3
        assert evaluation.total == 4
        assert evaluation.criteria["facial_match"] is False


class TestRuleChain:
    def test_rule_order_is_explicit(self, engine):
        assert [rule_id for rule_id, _, _ in engine.rules] == [
            "AUTO_APPROVE", "AUTO_REJECT", "MANUAL_REVIEW", "DEFAULT",
        ]

    def test_all_steps_pass_approves(self, engine):
        decision = engine.decide(_all_steps(), _assessment())
        assert decision.decision == Decision.APPROVE
        assert decision.automated
        assert not decision.requires_manual_review

    def test_required_step_failure_rejects(self, engine):
        results = _all_steps(FACIAL_RECOGNITION=(False, True))
        decision = engine.decide(results, _assessment())
        assert decision.decision == Decision.REJECT
        assert decision.automated
        assert not decision.requires_manual_review

    def test_optional_step_failure_flags(self, engine):
        results = _all_steps(FACIAL_RECOGNITION=(False, False))
        decision = engine.decide(results, _assessment())
        assert decision.decision == Decision.FLAG_FOR_REVIEW
        assert not decision.automated
        assert decision.requires_manual_review

    def test_evaluation_stops_at_first_critical_failure(self, engine):
        results = _all_steps(DOCUMENT_AUTHENTICITY=(False, True), OCR_EXTRACTION=(False, True))
        outcome = engine.summarize(results)
        assert [r.step_type for r in outcome.steps] == [StepType.DOCUMENT_AUTHENTICITY]
        assert outcome.critical_failures == 1
        assert not outcome.overall_success

    def test_default_rule_when_nothing_else_matches(self):
        engine = DecisionEngine(rules=[
            ("NEVER", lambda outcome: False, DecisionOutcome(Decision.APPROVE, True, False)),
            *DecisionEngine().rules[-1:],
        ])
        decision = engine.decide(_all_steps(), _assessment())
        assert decision.decision == Decision.FLAG_FOR_REVIEW

    def test_rule_error_defaults_to_review(self):
        def broken(outcome):
            raise RuntimeError("boom")

        engine = DecisionEngine(rules=[("BROKEN", broken, DecisionOutcome(Decision.APPROVE, True, False))])
        decision = engine.decide(_all_steps(), _assessment())
        assert decision.decision == Decision.FLAG_FOR_REVIEW
        assert decision.confidence == 0.0
        assert decision.reasoning == ["Decision engine error occurred"]
        assert decision.next_steps == ["Manual review required due to system error"]

    def test_no_matching_rule_defaults_to_review(self):
        engine = DecisionEngine(rules=[])
        decision = engine.decide(_all_steps(), _assessment())
        assert decision.decision == Decision.FLAG_FOR_REVIEW
        assert decision.confidence == 0.0


class TestDecisionDetails:
    @pytest.mark.parametrize("level, expected", [
        (RiskLevel.LOW, 1.0),
        (RiskLevel.MEDIUM, 0.8),
        (RiskLevel.HIGH, 0.5),
        (RiskLevel.CRITICAL, 0.3),
    ])
    def test_approve_confidence(self, level, expected):
        outcome = DecisionOutcome(Decision.APPROVE, True, False)
        assert DecisionEngine.confidence(outcome, _assessment(level=level)) == pytest.approx(expected)

    def test_reject_confidence(self):
        outcome = DecisionOutcome(Decision.REJECT, True, False)
        assert DecisionEngine.confidence(outcome, _assessment(level=RiskLevel.CRITICAL)) == pytest.approx(0.2)

    def test_flag_confidence(self):
        outcome = DecisionOutcome(Decision.FLAG_FOR_REVIEW, False, True)
        assert DecisionEngine.confidence(outcome, _assessment(level=RiskLevel.LOW)) == pytest.approx(0.7)

    def test_reasoning_order(self):
        factors = [
            RiskFactor(RiskCategory.FACIAL_MATCH, 0.9, 0.25, "Risk based on facial recognition analysis"),
            RiskFactor(RiskCategory.BEHAVIORAL, 0.3, 0.10, "Risk based on user behavior patterns"),
        ]
        outcome = DecisionOutcome(Decision.REJECT, True, False)
        reasoning = DecisionEngine.reasoning(outcome, _assessment(0.85, RiskLevel.CRITICAL, factors))
        assert reasoning == [
            "Overall risk level: CRITICAL",
            "High risk factors detected",
            "High risk in facial_match: Risk based on facial recognition analysis",
            "Critical verification failures detected",
            "Risk level exceeds acceptable thresholds",
        ]

    def test_next_steps_approve(self):
        outcome = DecisionOutcome(Decision.APPROVE, True, False)
        assert DecisionEngine.next_steps(outcome, _assessment()) == [
            "Update user verification status",
            "Send approval notification",
            "Enable platform access",
        ]

    def test_next_steps_flag_with_critical_risk(self):
        outcome = DecisionOutcome(Decision.FLAG_FOR_REVIEW, False, True)
        steps = DecisionEngine.next_steps(outcome, _assessment(0.9, RiskLevel.CRITICAL, manual=True))
        assert steps == [
            "Queue for manual review",
            "Notify review team",
            "Maintain pending status",
            "Schedule manual review",
            "Implement enhanced monitoring",
            "Consider fraud investigation",
        ]
