"""
Entity: Verification

Tipos de domínio do pipeline de verificação de identidade:
requisição, resultados de cada análise, fatores de risco e decisão.
Modelos puros: sem dependência de framework ou banco.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class DocumentType(str, Enum):
    DRIVERS_LICENSE = "DRIVERS_LICENSE"
    NATIONAL_ID = "NATIONAL_ID"
    PASSPORT = "PASSPORT"


class UserType(str, Enum):
    CUSTOMER = "CUSTOMER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AnomalyType(str, Enum):
    LOW_QUALITY = "LOW_QUALITY"
    WRONG_DOCUMENT_TYPE = "WRONG_DOCUMENT_TYPE"
    TAMPERING = "TAMPERING"
    EXPIRED = "EXPIRED"


class LandmarkType(str, Enum):
    EYE = "EYE"
    NOSE = "NOSE"
    MOUTH = "MOUTH"
    EAR = "EAR"
    CHIN = "CHIN"


class RiskCategory(str, Enum):
    DOCUMENT_AUTHENTICITY = "DOCUMENT_AUTHENTICITY"
    DATA_CONSISTENCY = "DATA_CONSISTENCY"
    FACIAL_MATCH = "FACIAL_MATCH"
    BEHAVIORAL = "BEHAVIORAL"
    TECHNICAL = "TECHNICAL"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Decision(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    FLAG_FOR_REVIEW = "FLAG_FOR_REVIEW"


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FLAGGED = "FLAGGED"


DECISION_STATUS = {
    Decision.APPROVE: VerificationStatus.APPROVED,
    Decision.REJECT: VerificationStatus.REJECTED,
    Decision.FLAG_FOR_REVIEW: VerificationStatus.FLAGGED,
}


# ── Requisição ─────────────────────────────────────────────

@dataclass(frozen=True)
class VerificationRequest:
    """Uma submissão: documento (frente/verso) + selfie. Bytes não são persistidos."""
    user_id: str
    document_type: DocumentType
    user_type: UserType
    front_image: bytes
    selfie_image: bytes
    back_image: bytes | None = None


# ── Autenticidade do documento ─────────────────────────────

@dataclass(frozen=True)
class SecurityFeature:
    name: str
    detected: bool
    confidence: float
    description: str


@dataclass(frozen=True)
class Anomaly:
    type: AnomalyType
    severity: Severity
    description: str
    confidence: float


@dataclass(frozen=True)
class DocumentAuthenticityResult:
    """Resultado da análise de autenticidade da imagem frontal."""
    is_authentic: bool
    confidence: float                      # 0.0 a 1.0
    security_features: list[SecurityFeature]
    anomalies: list[Anomaly]
    document_type: DocumentType
    issuer: str | None = None
    issue_date: str | None = None
    expiry_date: str | None = None


# ── OCR / dados extraídos ──────────────────────────────────

@dataclass(frozen=True)
class ExtractedDocumentData:
    """Campos extraídos do documento. String vazia = campo ausente."""
    document_type: DocumentType
    document_number: str = ""
    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    expiry_date: str = ""
    issue_date: str = ""
    address: str = ""
    nationality: str = ""
    gender: str = ""
    issuer: str = ""


@dataclass(frozen=True)
class OCRResult:
    extracted_data: ExtractedDocumentData
    confidence: float                      # 0.0 a 1.0
    processing_time_ms: float = 0.0
    errors: list[str] = field(default_factory=list)


# ── Reconhecimento facial ──────────────────────────────────

@dataclass(frozen=True)
class FaceLandmark:
    type: LandmarkType
    x: float
    y: float
    confidence: float


@dataclass(frozen=True)
class FacialRecognitionResult:
    match: bool
    confidence: float                      # 0 a 100
    face_detected: bool
    face_quality: float                    # 0.0 a 1.0
    landmarks: list[FaceLandmark] = field(default_factory=list)
    liveness: bool = False
    liveness_confidence: float = 0.0
    spoofing_indicators: list[str] = field(default_factory=list)
    processing_time_ms: float = 0.0


# ── Histórico do usuário ───────────────────────────────────

@dataclass(frozen=True)
class PriorVerification:
    verification_id: str
    status: VerificationStatus
    created_at: datetime


@dataclass(frozen=True)
class UserHistory:
    """Histórico usado pelo fator comportamental."""
    previous_verifications: list[PriorVerification] = field(default_factory=list)
    verification_attempts: list[datetime] = field(default_factory=list)
    suspicious_activity: bool = False


# ── Risco e decisão ────────────────────────────────────────

@dataclass(frozen=True)
class RiskFactor:
    category: RiskCategory
    score: float                           # 0.0 (limpo) a 1.0 (alto risco)
    weight: float
    description: str
    evidence: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RiskAssessment:
    overall_risk: float
    risk_level: RiskLevel
    factors: list[RiskFactor]
    recommendations: list[str]
    requires_manual_review: bool

    def factor(self, category: RiskCategory) -> RiskFactor | None:
        return next((f for f in self.factors if f.category == category), None)


@dataclass(frozen=True)
class VerificationDecision:
    decision: Decision
    confidence: float
    reasoning: list[str]
    automated: bool
    requires_manual_review: bool
    next_steps: list[str]


@dataclass(frozen=True)
class VerificationScores:
    """Scores persistidos junto com a decisão."""
    risk_score: float
    authenticity_score: float
    data_validation_score: float
    facial_match_score: float


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
