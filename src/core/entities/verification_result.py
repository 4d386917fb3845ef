"""
Entity: Verification Result

O que o chamador recebe de uma execução do pipeline.
"""

from dataclasses import dataclass, field

from src.core.entities.verification import (
    RiskAssessment,
    VerificationDecision,
    VerificationStatus,
)
from src.core.entities.workflow import VerificationStepResult


@dataclass(frozen=True)
class VerificationResult:
    """Resultado consolidado: decisão, scores e rastreabilidade por etapa."""

    verification_id: str
    success: bool                          # True somente quando APPROVE
    risk_score: float
    authenticity_score: float
    data_validation_score: float
    facial_match_score: float              # 0.0 a 1.0
    status: VerificationStatus
    message: str

    # --- Rastreabilidade ---
    decision: VerificationDecision | None = None
    risk_assessment: RiskAssessment | None = None
    step_results: list[VerificationStepResult] = field(default_factory=list)
    total_latency_ms: float = 0.0
