"""
Database Models: SQLAlchemy.

Tables:
  - verifications: one row per submission (status, scores, decision JSON)
  - verification_audit_logs: audit trail per verification
"""

import uuid

from sqlalchemy import (
    Column, String, Float, DateTime, Text, JSON, ForeignKey,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from src.core.entities.verification import utcnow


class Base(DeclarativeBase):
    pass


class VerificationRecord(Base):
    """Stores every verification run. Image bytes are never stored."""
    __tablename__ = "verifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True)
    document_type = Column(String(30), nullable=False)
    user_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)

    # Scores
    risk_score = Column(Float, nullable=True)
    authenticity_score = Column(Float, nullable=True)
    data_validation_score = Column(Float, nullable=True)
    facial_match_score = Column(Float, nullable=True)

    # Decision (serialized VerificationDecision)
    decision_json = Column(JSON, nullable=True)

    # Manual review
    reviewed_by = Column(String(64), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    audit_entries = relationship(
        "AuditLogEntry", back_populates="verification", cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Verification {self.id} [{self.status}] risk={self.risk_score}>"

    @property
    def processing_time_ms(self) -> float | None:
        if self.created_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.created_at).total_seconds() * 1000


class AuditLogEntry(Base):
    """One audit action (SUBMITTED, STEP_FAILED, APPROVED, MANUAL_REVIEW...)."""
    __tablename__ = "verification_audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    verification_id = Column(
        String(36), ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    action = Column(String(30), nullable=False)
    performed_by = Column(String(64), nullable=False)
    details = Column(JSON, default=dict)
    timestamp = Column(DateTime, default=utcnow, index=True)

    verification = relationship("VerificationRecord", back_populates="audit_entries")

    def __repr__(self):
        return f"<Audit {self.verification_id} {self.action} by {self.performed_by}>"
