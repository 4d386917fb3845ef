"""
Verification Repository: SQLAlchemy adapters for the store/audit ports.

Handles:
  - Creating verification records and persisting decisions
  - User history lookup (last N verifications) for the behavioral factor
  - Manual review updates
  - Listing and aggregated metrics
  - Audit trail
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import desc
from sqlalchemy.orm import sessionmaker

from src.core.entities.verification import (
    PriorVerification,
    UserHistory,
    VerificationDecision,
    VerificationRequest,
    VerificationScores,
    VerificationStatus,
    utcnow,
)
from src.core.entities.workflow import check_transition
from src.core.errors import InvalidTransitionError, VerificationNotFoundError
from src.core.interfaces.verification_store import (
    AuditEntry,
    IAuditLog,
    IVerificationStore,
    VerificationRecordView,
)
from src.infrastructure.db.database import session_scope
from src.infrastructure.db.models import AuditLogEntry, VerificationRecord
from src.schemas.verification import DecisionSchema

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10
SUSPICIOUS_RISK_SCORE = 0.8


@dataclass(frozen=True)
class VerificationMetrics:
    total: int
    approved: int
    rejected: int
    flagged: int
    pending: int
    avg_processing_time_ms: float
    success_rate: float           # approved / total
    accuracy_rate: float          # (approved + rejected) / total
    last_updated: datetime


def _to_view(record: VerificationRecord) -> VerificationRecordView:
    decision = None
    if record.decision_json:
        decision = DecisionSchema.model_validate(record.decision_json).to_entity()
    return VerificationRecordView(
        verification_id=record.id,
        user_id=record.user_id,
        document_type=record.document_type,
        user_type=record.user_type,
        status=VerificationStatus(record.status),
        risk_score=record.risk_score,
        authenticity_score=record.authenticity_score,
        data_validation_score=record.data_validation_score,
        facial_match_score=record.facial_match_score,
        decision=decision,
        reviewed_by=record.reviewed_by,
        rejection_reason=record.rejection_reason,
        created_at=record.created_at,
        reviewed_at=record.reviewed_at,
    )


class SqlVerificationRepository(IVerificationStore):
    """Repository for verification records."""

    def __init__(self, session_factory: sessionmaker, history_limit: int = HISTORY_LIMIT):
        self._factory = session_factory
        self._history_limit = history_limit

    def create_record(self, request: VerificationRequest) -> str:
        with session_scope(self._factory) as db:
            record = VerificationRecord(
                user_id=request.user_id,
                document_type=request.document_type.value,
                user_type=request.user_type.value,
                status=VerificationStatus.PENDING.value,
            )
            db.add(record)
            db.flush()
            logger.info(f"Created verification {record.id} for user {request.user_id}")
            return record.id

    def load_user_history(self, user_id: str) -> UserHistory | None:
        with session_scope(self._factory) as db:
            records = (
                db.query(VerificationRecord)
                .filter_by(user_id=user_id)
                .order_by(desc(VerificationRecord.created_at))
                .limit(self._history_limit)
                .all()
            )
            if not records:
                return None

            return UserHistory(
                previous_verifications=[
                    PriorVerification(
                        verification_id=r.id,
                        status=VerificationStatus(r.status),
                        created_at=r.created_at,
                    )
                    for r in records
                ],
                verification_attempts=[r.created_at for r in records],
                suspicious_activity=any(
                    r.risk_score is not None and r.risk_score > SUSPICIOUS_RISK_SCORE for r in records
                ),
            )

    def persist_decision(
        self,
        verification_id: str,
        decision: VerificationDecision,
        scores: VerificationScores,
        status: VerificationStatus,
    ) -> None:
        with session_scope(self._factory) as db:
            record = db.get(VerificationRecord, verification_id)
            if record is None:
                raise VerificationNotFoundError(verification_id)
            record.status = status.value
            record.risk_score = scores.risk_score
            record.authenticity_score = scores.authenticity_score
            record.data_validation_score = scores.data_validation_score
            record.facial_match_score = scores.facial_match_score
            record.decision_json = DecisionSchema.from_entity(decision).model_dump(mode="json")
            record.completed_at = utcnow()
            logger.info(f"Persisted decision for {verification_id} [{status.value}]")

    def get(self, verification_id: str) -> VerificationRecordView | None:
        with session_scope(self._factory) as db:
            record = db.get(VerificationRecord, verification_id)
            return _to_view(record) if record else None

    def apply_review(
        self,
        verification_id: str,
        status: VerificationStatus,
        reviewed_by: str,
        rejection_reason: str | None = None,
    ) -> VerificationRecordView:
        with session_scope(self._factory) as db:
            record = db.get(VerificationRecord, verification_id)
            if record is None:
                raise VerificationNotFoundError(verification_id)
            current = VerificationStatus(record.status)
            check_transition(current, status)

            # Update condicional: outro revisor pode ter resolvido o registro antes
            updated = (
                db.query(VerificationRecord)
                .filter(VerificationRecord.id == verification_id, VerificationRecord.status == current.value)
                .update({
                    VerificationRecord.status: status.value,
                    VerificationRecord.reviewed_by: reviewed_by,
                    VerificationRecord.reviewed_at: utcnow(),
                    VerificationRecord.rejection_reason: (
                        rejection_reason if status == VerificationStatus.REJECTED else None
                    ),
                }, synchronize_session=False)
            )
            if updated == 0:
                raise InvalidTransitionError(current.value, status.value)
            db.refresh(record)
            return _to_view(record)

    def list_for_user(self, user_id: str, limit: int = 50, offset: int = 0) -> list[VerificationRecordView]:
        with session_scope(self._factory) as db:
            records = (
                db.query(VerificationRecord)
                .filter_by(user_id=user_id)
                .order_by(desc(VerificationRecord.created_at))
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [_to_view(r) for r in records]

    def get_stats(self) -> VerificationMetrics:
        """Aggregated counts, average processing time and rates."""
        with session_scope(self._factory) as db:
            query = db.query(VerificationRecord)
            total = query.count()
            counts = {
                status: query.filter_by(status=status.value).count()
                for status in (
                    VerificationStatus.APPROVED,
                    VerificationStatus.REJECTED,
                    VerificationStatus.FLAGGED,
                    VerificationStatus.PENDING,
                )
            }
            completed = query.filter(VerificationRecord.completed_at.isnot(None)).all()
            times = [r.processing_time_ms for r in completed if r.processing_time_ms is not None]

            approved = counts[VerificationStatus.APPROVED]
            rejected = counts[VerificationStatus.REJECTED]
            return VerificationMetrics(
                total=total,
                approved=approved,
                rejected=rejected,
                flagged=counts[VerificationStatus.FLAGGED],
                pending=counts[VerificationStatus.PENDING],
                avg_processing_time_ms=round(sum(times) / len(times), 1) if times else 0.0,
                success_rate=round(approved / total, 4) if total else 0.0,
                accuracy_rate=round((approved + rejected) / total, 4) if total else 0.0,
                last_updated=utcnow(),
            )


class SqlAuditLog(IAuditLog):
    """Audit trail stored in verification_audit_logs."""

    def __init__(self, session_factory: sessionmaker):
        self._factory = session_factory

    def append(self, verification_id: str, action: str, actor: str, details: dict | None = None) -> None:
        with session_scope(self._factory) as db:
            db.add(AuditLogEntry(
                verification_id=verification_id,
                action=action,
                performed_by=actor,
                details=details or {},
            ))
        logger.debug(f"Audit {verification_id}: {action} by {actor}")

    def entries(self, verification_id: str) -> list[AuditEntry]:
        with session_scope(self._factory) as db:
            rows = (
                db.query(AuditLogEntry)
                .filter_by(verification_id=verification_id)
                .order_by(AuditLogEntry.timestamp)
                .all()
            )
            return [
                AuditEntry(
                    verification_id=row.verification_id,
                    action=row.action,
                    actor=row.performed_by,
                    details=row.details or {},
                    timestamp=row.timestamp,
                )
                for row in rows
            ]
