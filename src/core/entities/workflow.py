"""
Entity: Verification Workflow

Etapas do workflow, resultados por etapa e a máquina de estados
PENDING → RUNNING → {APPROVED | REJECTED | FLAGGED}.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

from src.core.entities.verification import (
    DocumentAuthenticityResult,
    FacialRecognitionResult,
    OCRResult,
    RiskAssessment,
    VerificationStatus,
    utcnow,
)
from src.core.errors import InvalidTransitionError


class StepType(str, Enum):
    DOCUMENT_AUTHENTICITY = "DOCUMENT_AUTHENTICITY"
    OCR_EXTRACTION = "OCR_EXTRACTION"
    FACIAL_RECOGNITION = "FACIAL_RECOGNITION"
    RISK_ASSESSMENT = "RISK_ASSESSMENT"
    DECISION_CRITERIA = "DECISION_CRITERIA"


ANALYSIS_STEPS = (
    StepType.DOCUMENT_AUTHENTICITY,
    StepType.OCR_EXTRACTION,
    StepType.FACIAL_RECOGNITION,
)


@dataclass(frozen=True)
class CriteriaEvaluation:
    """Resultado da etapa de critérios de decisão (k de n critérios)."""
    passed_count: int
    total: int
    criteria: dict[str, bool] = field(default_factory=dict)


# Payload de uma etapa: um tipo por StepType
StepPayload = Union[
    DocumentAuthenticityResult,
    OCRResult,
    FacialRecognitionResult,
    RiskAssessment,
    CriteriaEvaluation,
]


@dataclass(frozen=True)
class VerificationStep:
    """Definição de uma etapa do workflow."""
    id: str
    name: str
    type: StepType
    required: bool = True
    timeout_ms: float = 30_000
    retry_count: int = 0


@dataclass(frozen=True)
class VerificationStepResult:
    step_id: str
    step_type: StepType
    required: bool
    success: bool
    payload: StepPayload | None = None
    error: str | None = None
    details: str = ""
    processing_time_ms: float = 0.0
    attempts: int = 1
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def critical_failure(self) -> bool:
        return self.required and not self.success


def default_steps() -> list[VerificationStep]:
    """Workflow padrão: todas as etapas obrigatórias."""
    return [
        VerificationStep("DOC_AUTH", "Document Authenticity Check",
                         StepType.DOCUMENT_AUTHENTICITY, True, 30_000, 2),
        VerificationStep("OCR_EXTRACTION", "OCR Data Extraction",
                         StepType.OCR_EXTRACTION, True, 45_000, 2),
        VerificationStep("FACIAL_RECOGNITION", "Facial Recognition",
                         StepType.FACIAL_RECOGNITION, True, 30_000, 2),
        VerificationStep("RISK_ASSESSMENT", "Risk Assessment",
                         StepType.RISK_ASSESSMENT, True, 10_000, 1),
        VerificationStep("DECISION_CRITERIA", "Decision Criteria",
                         StepType.DECISION_CRITERIA, True, 5_000, 0),
    ]


# ── Máquina de estados ─────────────────────────────────────

ALLOWED_TRANSITIONS: dict[VerificationStatus, set[VerificationStatus]] = {
    VerificationStatus.PENDING: {VerificationStatus.RUNNING},
    VerificationStatus.RUNNING: {
        VerificationStatus.APPROVED,
        VerificationStatus.REJECTED,
        VerificationStatus.FLAGGED,
    },
    VerificationStatus.FLAGGED: {VerificationStatus.APPROVED, VerificationStatus.REJECTED},
    VerificationStatus.APPROVED: set(),
    VerificationStatus.REJECTED: set(),
}


def check_transition(current: VerificationStatus, target: VerificationStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)


@dataclass
class VerificationWorkflow:
    """Lista ordenada de etapas + resultados acumulados de uma execução."""
    steps: list[VerificationStep]
    status: VerificationStatus = VerificationStatus.PENDING
    results: list[VerificationStepResult] = field(default_factory=list)

    def transition(self, target: VerificationStatus) -> None:
        check_transition(self.status, target)
        self.status = target

    def step(self, step_type: StepType) -> VerificationStep | None:
        return next((s for s in self.steps if s.type == step_type), None)

    def result_for(self, step_type: StepType) -> VerificationStepResult | None:
        return next((r for r in self.results if r.step_type == step_type), None)

    def record(self, result: VerificationStepResult) -> None:
        self.results.append(result)

    def ordered_results(self) -> list[VerificationStepResult]:
        """Resultados na ordem de definição das etapas (não na ordem de término)."""
        order = {s.id: i for i, s in enumerate(self.steps)}
        return sorted(self.results, key=lambda r: order.get(r.step_id, len(order)))

