"""
Use Case: Review Verification

Resolve uma verificação FLAGGED por ação de um revisor humano
(APPROVED ou REJECTED). Qualquer outro status é transição inválida.
"""

import logging
from dataclasses import dataclass

from src.core.entities.verification import VerificationStatus
from src.core.entities.workflow import check_transition
from src.core.errors import VerificationNotFoundError
from src.core.interfaces.verification_store import (
    IAuditLog,
    IVerificationStore,
    VerificationRecordView,
)

logger = logging.getLogger(__name__)


@dataclass
class ReviewInput:
    """Input da revisão manual."""
    verification_id: str
    status: VerificationStatus       # APPROVED ou REJECTED
    reviewer_id: str
    rejection_reason: str | None = None


class ReviewVerificationUseCase:
    """
    Use Case: aplica a decisão do revisor.

    Valida a transição pela máquina de estados, grava o resultado
    e registra MANUAL_REVIEW na trilha de auditoria.
    """

    def __init__(self, store: IVerificationStore, audit_log: IAuditLog | None = None):
        self._store = store
        self._audit_log = audit_log

    def execute(self, review: ReviewInput) -> VerificationRecordView:
        record = self._store.get(review.verification_id)
        if record is None:
            raise VerificationNotFoundError(review.verification_id)

        check_transition(record.status, review.status)

        updated = self._store.apply_review(
            review.verification_id,
            review.status,
            review.reviewer_id,
            review.rejection_reason,
        )
        logger.info(
            f"[{review.verification_id}] Manual review by {review.reviewer_id}: "
            f"{record.status.value} → {review.status.value}"
        )

        if self._audit_log is not None:
            self._audit_log.append(review.verification_id, "MANUAL_REVIEW", review.reviewer_id, {
                "previous_status": record.status.value,
                "status": review.status.value,
                "rejection_reason": review.rejection_reason,
            })

        return updated
