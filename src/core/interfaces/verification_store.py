"""
Contract: Verification Store / Audit Log

Leitura e escrita dos registros de verificação e da trilha de
auditoria. Implementação pode ser SQLAlchemy, Mongo, API externa...
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from src.core.entities.verification import (
    UserHistory,
    VerificationDecision,
    VerificationRequest,
    VerificationScores,
    VerificationStatus,
)


@dataclass(frozen=True)
class VerificationRecordView:
    """O que o core (e o revisor humano) lê de um registro."""
    verification_id: str
    user_id: str
    document_type: str
    user_type: str
    status: VerificationStatus
    risk_score: float | None = None
    authenticity_score: float | None = None
    data_validation_score: float | None = None
    facial_match_score: float | None = None
    decision: VerificationDecision | None = None
    reviewed_by: str | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None
    reviewed_at: datetime | None = None


@dataclass(frozen=True)
class AuditEntry:
    verification_id: str
    action: str                   # "SUBMITTED", "STEP_FAILED", "APPROVED", "MANUAL_REVIEW"...
    actor: str
    details: dict = field(default_factory=dict)
    timestamp: datetime | None = None


class IVerificationStore(ABC):
    """Port: Verification Store"""

    @abstractmethod
    def create_record(self, request: VerificationRequest) -> str:
        """Cria o registro PENDING e devolve o verification_id."""
        ...

    @abstractmethod
    def load_user_history(self, user_id: str) -> UserHistory | None:
        """Histórico do usuário; None quando não há verificações anteriores."""
        ...

    @abstractmethod
    def persist_decision(
        self,
        verification_id: str,
        decision: VerificationDecision,
        scores: VerificationScores,
        status: VerificationStatus,
    ) -> None:
        """Grava decisão, scores e status final."""
        ...

    @abstractmethod
    def get(self, verification_id: str) -> VerificationRecordView | None:
        ...

    @abstractmethod
    def apply_review(
        self,
        verification_id: str,
        status: VerificationStatus,
        reviewed_by: str,
        rejection_reason: str | None = None,
    ) -> VerificationRecordView:
        """
        Grava o resultado de uma revisão manual.

        Revalida a transição contra o status gravado; levanta
        InvalidTransitionError se o registro já foi resolvido.
        """
        ...


class IAuditLog(ABC):
    """Port: Audit Log"""

    @abstractmethod
    def append(self, verification_id: str, action: str, actor: str, details: dict | None = None) -> None:
        ...
