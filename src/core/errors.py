"""
Errors do pipeline de verificação.

ANALYSIS_FAILURE  → capturado por etapa (StepResult com success=False)
AGGREGATION_FAILURE → fatal para o pipeline (resultado REJECTED)
DECISION_FAILURE  → decisão cai em FLAG_FOR_REVIEW com confiança 0
"""


class VerificationError(Exception):
    """Base de todos os erros do domínio de verificação."""


class AnalysisFailure(VerificationError):
    """Uma capacidade externa falhou ou devolveu dados malformados."""

    def __init__(self, step_id: str, detail: str):
        self.step_id = step_id
        self.detail = detail
        super().__init__(f"{step_id}: {detail}")


class AggregationFailure(VerificationError):
    """A avaliação de risco não pode rodar (pré-requisito ausente)."""


class DecisionFailure(VerificationError):
    """Erro inesperado ao avaliar a cadeia de regras."""


class InvalidTransitionError(VerificationError):
    """Transição de status não permitida pela máquina de estados."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition verification from {current} to {target}")


class VerificationNotFoundError(VerificationError):
    def __init__(self, verification_id: str):
        self.verification_id = verification_id
        super().__init__(f"Verification not found: {verification_id}")
