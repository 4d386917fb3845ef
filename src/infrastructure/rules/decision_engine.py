"""
Decision Engine.

Two jobs:
1. Step criteria: decide whether each workflow step passed, given its
   payload (authenticity, OCR, facial, risk, decision criteria).
2. Rule chain: an explicit ordered list of (rule_id, predicate, outcome),
   first match wins:
      AUTO_APPROVE → AUTO_REJECT → MANUAL_REVIEW → DEFAULT
   then confidence, reasoning and next steps for the chosen outcome.

A failure of a required step is a critical failure; evaluation of the
step list stops there. Any error while deciding yields FLAG_FOR_REVIEW
with confidence 0, never an approval.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from src.core.entities.verification import (
    Decision,
    DocumentAuthenticityResult,
    FacialRecognitionResult,
    OCRResult,
    RiskAssessment,
    RiskLevel,
    VerificationDecision,
)
from src.core.entities.workflow import (
    CriteriaEvaluation,
    StepPayload,
    VerificationStepResult,
)
from src.core.errors import DecisionFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepCriteria:
    authenticity_min_confidence: float = 0.7
    ocr_min_confidence: float = 0.7
    facial_min_confidence: float = 80.0
    face_quality_threshold: float = 0.6
    max_acceptable_risk: float = 0.6
    min_criteria_passed: int = 3


@dataclass(frozen=True)
class StepEvaluation:
    passed: bool
    score: float
    details: str


@dataclass(frozen=True)
class WorkflowOutcome:
    """Step results as seen by the rule chain."""
    steps: list[VerificationStepResult]
    overall_success: bool          # every required step succeeded
    critical_failures: int


@dataclass(frozen=True)
class DecisionOutcome:
    decision: Decision
    automated: bool
    requires_manual_review: bool


DecisionRule = tuple[str, Callable[[WorkflowOutcome], bool], DecisionOutcome]


# ── Rules ──────────────────────────────────────────────────

def _auto_approve(outcome: WorkflowOutcome) -> bool:
    return (
        outcome.overall_success
        and outcome.critical_failures == 0
        and all(step.success for step in outcome.steps)
    )


def _auto_reject(outcome: WorkflowOutcome) -> bool:
    return outcome.critical_failures > 0 or not outcome.overall_success


def _manual_review(outcome: WorkflowOutcome) -> bool:
    return (
        outcome.overall_success
        and outcome.critical_failures == 0
        and any(not step.success for step in outcome.steps)
    )


def _always(_outcome: WorkflowOutcome) -> bool:
    return True


FLAG_OUTCOME = DecisionOutcome(Decision.FLAG_FOR_REVIEW, automated=False, requires_manual_review=True)

DEFAULT_RULES: list[DecisionRule] = [
    ("AUTO_APPROVE", _auto_approve, DecisionOutcome(Decision.APPROVE, automated=True, requires_manual_review=False)),
    ("AUTO_REJECT", _auto_reject, DecisionOutcome(Decision.REJECT, automated=True, requires_manual_review=False)),
    ("MANUAL_REVIEW", _manual_review, FLAG_OUTCOME),
    ("DEFAULT", _always, FLAG_OUTCOME),
]

LEVEL_CONFIDENCE = {
    RiskLevel.LOW: 0.3,
    RiskLevel.MEDIUM: 0.1,
    RiskLevel.HIGH: -0.2,
    RiskLevel.CRITICAL: -0.4,
}

DECISION_REASONING = {
    Decision.APPROVE: [
        "All verification criteria met",
        "Risk level within acceptable limits",
    ],
    Decision.REJECT: [
        "Critical verification failures detected",
        "Risk level exceeds acceptable thresholds",
    ],
    Decision.FLAG_FOR_REVIEW: [
        "Manual review required due to risk factors",
        "Automated decision not possible",
    ],
}

DECISION_NEXT_STEPS = {
    Decision.APPROVE: [
        "Update user verification status",
        "Send approval notification",
        "Enable platform access",
    ],
    Decision.REJECT: [
        "Update user verification status",
        "Send rejection notification",
        "Log rejection reason",
        "Block platform access",
    ],
    Decision.FLAG_FOR_REVIEW: [
        "Queue for manual review",
        "Notify review team",
        "Maintain pending status",
    ],
}

HIGH_RISK_FACTOR = 0.7


class DecisionEngine:
    """Evaluates step criteria and runs the ordered rule chain."""

    def __init__(self, criteria: StepCriteria | None = None, rules: list[DecisionRule] | None = None):
        self._criteria = criteria or StepCriteria()
        self._rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    @property
    def rules(self) -> list[DecisionRule]:
        return list(self._rules)

    # ─── Step criteria ──────────────────────────────────────

    def evaluate_step(self, payload: StepPayload) -> StepEvaluation:
        """Pass/fail for one step payload, dispatched on its type."""
        c = self._criteria

        if isinstance(payload, DocumentAuthenticityResult):
            passed = (
                payload.is_authentic
                and payload.confidence >= c.authenticity_min_confidence
                and not payload.anomalies
            )
            return StepEvaluation(passed, payload.confidence,
                                  f"Document authenticity: {_label(passed)} ({payload.confidence:.2f})")

        if isinstance(payload, OCRResult):
            passed = payload.confidence >= c.ocr_min_confidence and not payload.errors
            return StepEvaluation(passed, payload.confidence,
                                  f"OCR extraction: {_label(passed)} ({payload.confidence:.2f})")

        if isinstance(payload, FacialRecognitionResult):
            passed = (
                payload.match
                and payload.confidence >= c.facial_min_confidence
                and payload.face_detected
                and payload.face_quality >= c.face_quality_threshold
            )
            return StepEvaluation(passed, payload.confidence / 100,
                                  f"Facial recognition: {_label(passed)} ({payload.confidence:.0f}%)")

        if isinstance(payload, RiskAssessment):
            passed = payload.overall_risk <= c.max_acceptable_risk
            return StepEvaluation(passed, 1 - payload.overall_risk,
                                  f"Risk assessment: {_label(passed)} ({payload.overall_risk:.2f})")

        if isinstance(payload, CriteriaEvaluation):
            passed = payload.passed_count >= c.min_criteria_passed
            return StepEvaluation(passed, payload.passed_count / payload.total,
                                  f"Decision criteria: {_label(passed)} ({payload.passed_count}/{payload.total})")

        raise TypeError(f"Unsupported step payload: {type(payload).__name__}")

    def evaluate_criteria(
        self,
        authenticity: DocumentAuthenticityResult,
        facial: FacialRecognitionResult,
        ocr: OCRResult,
        assessment: RiskAssessment,
    ) -> CriteriaEvaluation:
        criteria = {
            "document_authentic": authenticity.is_authentic,
            "facial_match": facial.match,
            "ocr_confidence": ocr.confidence >= self._criteria.ocr_min_confidence,
            "risk_acceptable": assessment.overall_risk <= self._criteria.max_acceptable_risk,
        }
        return CriteriaEvaluation(
            passed_count=sum(1 for ok in criteria.values() if ok),
            total=len(criteria),
            criteria=criteria,
        )

    # ─── Decision ───────────────────────────────────────────

    @staticmethod
    def summarize(results: list[VerificationStepResult]) -> WorkflowOutcome:
        """Walk the ordered results, stopping at the first critical failure."""
        evaluated: list[VerificationStepResult] = []
        for result in results:
            evaluated.append(result)
            if result.critical_failure:
                break
        critical = sum(1 for r in evaluated if r.critical_failure)
        return WorkflowOutcome(
            steps=evaluated,
            overall_success=all(r.success for r in evaluated if r.required),
            critical_failures=critical,
        )

    def apply_rules(self, outcome: WorkflowOutcome) -> tuple[str, DecisionOutcome]:
        for rule_id, predicate, decision in self._rules:
            if predicate(outcome):
                return rule_id, decision
        raise DecisionFailure("No decision rule matched")

    def decide(self, results: list[VerificationStepResult], assessment: RiskAssessment) -> VerificationDecision:
        """Run the rule chain; falls back to FLAG_FOR_REVIEW on any error."""
        try:
            outcome = self.summarize(results)
            rule_id, chosen = self.apply_rules(outcome)
            logger.info(
                f"Rule {rule_id} → {chosen.decision.value} "
                f"(critical_failures={outcome.critical_failures}, risk={assessment.risk_level.value})"
            )
            return VerificationDecision(
                decision=chosen.decision,
                confidence=self.confidence(chosen, assessment),
                reasoning=self.reasoning(chosen, assessment),
                automated=chosen.automated,
                requires_manual_review=chosen.requires_manual_review,
                next_steps=self.next_steps(chosen, assessment),
            )
        except Exception:
            logger.exception("Decision engine error, defaulting to manual review")
            return self.fallback_decision()

    @staticmethod
    def fallback_decision() -> VerificationDecision:
        return VerificationDecision(
            decision=Decision.FLAG_FOR_REVIEW,
            confidence=0.0,
            reasoning=["Decision engine error occurred"],
            automated=False,
            requires_manual_review=True,
            next_steps=["Manual review required due to system error"],
        )

    @staticmethod
    def confidence(outcome: DecisionOutcome, assessment: RiskAssessment) -> float:
        confidence = 0.5 + LEVEL_CONFIDENCE[assessment.risk_level]

        if outcome.decision == Decision.APPROVE and outcome.automated:
            confidence += 0.2
        elif outcome.decision == Decision.REJECT and outcome.automated:
            confidence += 0.1
        elif outcome.requires_manual_review:
            confidence -= 0.1

        return round(max(0.0, min(1.0, confidence)), 4)

    @staticmethod
    def reasoning(outcome: DecisionOutcome, assessment: RiskAssessment) -> list[str]:
        reasoning = [f"Overall risk level: {assessment.risk_level.value}"]

        if assessment.overall_risk > 0.8:
            reasoning.append("High risk factors detected")
        elif assessment.overall_risk > 0.5:
            reasoning.append("Medium risk factors detected")
        else:
            reasoning.append("Low risk factors detected")

        for factor in assessment.factors:
            if factor.score > HIGH_RISK_FACTOR:
                reasoning.append(f"High risk in {factor.category.value.lower()}: {factor.description}")

        reasoning.extend(DECISION_REASONING[outcome.decision])
        return reasoning

    @staticmethod
    def next_steps(outcome: DecisionOutcome, assessment: RiskAssessment) -> list[str]:
        steps = list(DECISION_NEXT_STEPS[outcome.decision])

        if assessment.requires_manual_review:
            steps.append("Schedule manual review")

        if assessment.risk_level == RiskLevel.CRITICAL:
            steps.append("Implement enhanced monitoring")
            steps.append("Consider fraud investigation")

        return steps


def _label(passed: bool) -> str:
    return "PASSED" if passed else "FAILED"
