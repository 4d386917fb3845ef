"""
Pydantic schemas: serialização das entidades de verificação.

Usados para gravar a decisão no registro (JSON) e para expor o
resultado a quem consome o pipeline.
"""

from pydantic import BaseModel

from src.core.entities.verification import (
    Decision,
    RiskAssessment,
    RiskCategory,
    RiskFactor,
    RiskLevel,
    VerificationDecision,
    VerificationStatus,
)
from src.core.entities.verification_result import VerificationResult
from src.core.entities.workflow import StepType, VerificationStepResult


class DecisionSchema(BaseModel):
    decision: Decision
    confidence: float
    reasoning: list[str]
    automated: bool
    requires_manual_review: bool
    next_steps: list[str]

    @classmethod
    def from_entity(cls, decision: VerificationDecision) -> "DecisionSchema":
        return cls(
            decision=decision.decision,
            confidence=decision.confidence,
            reasoning=list(decision.reasoning),
            automated=decision.automated,
            requires_manual_review=decision.requires_manual_review,
            next_steps=list(decision.next_steps),
        )

    def to_entity(self) -> VerificationDecision:
        return VerificationDecision(
            decision=self.decision,
            confidence=self.confidence,
            reasoning=list(self.reasoning),
            automated=self.automated,
            requires_manual_review=self.requires_manual_review,
            next_steps=list(self.next_steps),
        )


class RiskFactorSchema(BaseModel):
    category: RiskCategory
    score: float
    weight: float
    description: str
    evidence: list[str] = []

    @classmethod
    def from_entity(cls, factor: RiskFactor) -> "RiskFactorSchema":
        return cls(
            category=factor.category,
            score=factor.score,
            weight=factor.weight,
            description=factor.description,
            evidence=list(factor.evidence),
        )

    def to_entity(self) -> RiskFactor:
        return RiskFactor(
            category=self.category,
            score=self.score,
            weight=self.weight,
            description=self.description,
            evidence=list(self.evidence),
        )


class RiskAssessmentSchema(BaseModel):
    overall_risk: float
    risk_level: RiskLevel
    factors: list[RiskFactorSchema]
    recommendations: list[str]
    requires_manual_review: bool

    @classmethod
    def from_entity(cls, assessment: RiskAssessment) -> "RiskAssessmentSchema":
        return cls(
            overall_risk=assessment.overall_risk,
            risk_level=assessment.risk_level,
            factors=[RiskFactorSchema.from_entity(f) for f in assessment.factors],
            recommendations=list(assessment.recommendations),
            requires_manual_review=assessment.requires_manual_review,
        )

    def to_entity(self) -> RiskAssessment:
        return RiskAssessment(
            overall_risk=self.overall_risk,
            risk_level=self.risk_level,
            factors=[f.to_entity() for f in self.factors],
            recommendations=list(self.recommendations),
            requires_manual_review=self.requires_manual_review,
        )


class StepResultSchema(BaseModel):
    """Resumo de uma etapa (sem o payload)."""
    step_id: str
    step_type: StepType
    required: bool
    success: bool
    error: str | None = None
    details: str = ""
    processing_time_ms: float = 0.0
    attempts: int = 1

    @classmethod
    def from_entity(cls, result: VerificationStepResult) -> "StepResultSchema":
        return cls(
            step_id=result.step_id,
            step_type=result.step_type,
            required=result.required,
            success=result.success,
            error=result.error,
            details=result.details,
            processing_time_ms=result.processing_time_ms,
            attempts=result.attempts,
        )


class VerificationResultSchema(BaseModel):
    verification_id: str
    success: bool
    risk_score: float
    authenticity_score: float
    data_validation_score: float
    facial_match_score: float
    status: VerificationStatus
    message: str
    decision: DecisionSchema | None = None
    risk_assessment: RiskAssessmentSchema | None = None
    steps: list[StepResultSchema] = []
    total_latency_ms: float = 0.0

    @classmethod
    def from_entity(cls, result: VerificationResult) -> "VerificationResultSchema":
        return cls(
            verification_id=result.verification_id,
            success=result.success,
            risk_score=result.risk_score,
            authenticity_score=result.authenticity_score,
            data_validation_score=result.data_validation_score,
            facial_match_score=result.facial_match_score,
            status=result.status,
            message=result.message,
            decision=DecisionSchema.from_entity(result.decision) if result.decision else None,
            risk_assessment=(
                RiskAssessmentSchema.from_entity(result.risk_assessment)
                if result.risk_assessment else None
            ),
            steps=[StepResultSchema.from_entity(r) for r in result.step_results],
            total_latency_ms=result.total_latency_ms,
        )
