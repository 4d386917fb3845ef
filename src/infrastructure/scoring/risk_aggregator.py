"""
Risk aggregation.

Builds the five risk factors (document authenticity, data consistency,
facial match, behavioral, technical), combines them into a weighted
overall risk, derives the risk level, manual review flag and
recommendations. No hidden state: same factors in, same assessment out.
"""

from dataclasses import dataclass

from src.core.entities.verification import (
    DocumentAuthenticityResult,
    DocumentType,
    FacialRecognitionResult,
    OCRResult,
    RiskAssessment,
    RiskCategory,
    RiskFactor,
    RiskLevel,
    UserHistory,
    UserType,
)
from src.infrastructure.scoring.authenticity_scorer import SEVERITY_WEIGHTS
from src.infrastructure.scoring.behavioral_scorer import BehavioralRiskScorer
from src.infrastructure.scoring.facial_scorer import FacialRiskScorer
from src.infrastructure.scoring.field_validator import FieldValidator

DEFAULT_WEIGHTS = {
    RiskCategory.DOCUMENT_AUTHENTICITY: 0.35,
    RiskCategory.DATA_CONSISTENCY: 0.25,
    RiskCategory.FACIAL_MATCH: 0.25,
    RiskCategory.BEHAVIORAL: 0.10,
    RiskCategory.TECHNICAL: 0.05,
}

LEVEL_RECOMMENDATIONS = {
    RiskLevel.LOW: ["Verification can proceed automatically"],
    RiskLevel.MEDIUM: [
        "Consider additional verification steps",
        "Monitor for suspicious activity",
    ],
    RiskLevel.HIGH: [
        "Manual review required",
        "Request additional documentation",
        "Enhanced monitoring recommended",
    ],
    RiskLevel.CRITICAL: [
        "Immediate manual review required",
        "Consider blocking verification",
        "Investigate for fraud",
    ],
}

FACTOR_RECOMMENDATIONS = {
    RiskCategory.DOCUMENT_AUTHENTICITY: [
        "Request new document images",
        "Verify document authenticity manually",
    ],
    RiskCategory.DATA_CONSISTENCY: [
        "Verify extracted data manually",
        "Request document re-upload",
    ],
    RiskCategory.FACIAL_MATCH: [
        "Request new selfie image",
        "Verify identity manually",
    ],
    RiskCategory.BEHAVIORAL: [
        "Review user history",
        "Implement additional security measures",
    ],
    RiskCategory.TECHNICAL: [
        "Retry verification process",
        "Check system performance",
    ],
}

FACTOR_RECOMMENDATION_THRESHOLD = 0.7
CRITICAL_FACTOR_THRESHOLD = 0.8
ELEVATED_FACTOR_THRESHOLD = 0.6
ELEVATED_FACTOR_COUNT = 3


@dataclass(frozen=True)
class RiskThresholds:
    """Inclusive upper bounds for LOW / MEDIUM / HIGH."""
    low: float = 0.3
    medium: float = 0.6
    high: float = 0.8


@dataclass(frozen=True)
class TechnicalThresholds:
    slow_facial_ms: float = 10_000
    slow_ocr_ms: float = 15_000
    min_average_confidence: float = 0.6


class RiskAggregator:
    """Weighted multi-factor risk assessment."""

    def __init__(
        self,
        field_validator: FieldValidator,
        facial_scorer: FacialRiskScorer,
        behavioral_scorer: BehavioralRiskScorer,
        weights: dict[RiskCategory, float] | None = None,
        thresholds: RiskThresholds | None = None,
        technical: TechnicalThresholds | None = None,
        min_ocr_confidence: float = 0.7,
    ):
        self._validator = field_validator
        self._facial = facial_scorer
        self._behavioral = behavioral_scorer
        self._weights = {**DEFAULT_WEIGHTS, **(weights or {})}
        self._thresholds = thresholds or RiskThresholds()
        self._technical = technical or TechnicalThresholds()
        self._min_ocr_confidence = min_ocr_confidence

    def assess(
        self,
        authenticity: DocumentAuthenticityResult,
        facial: FacialRecognitionResult,
        ocr: OCRResult,
        user_type: UserType,
        document_type: DocumentType,
        history: UserHistory | None = None,
    ) -> RiskAssessment:
        """Score all five factors and aggregate them."""
        factors = [
            self.document_authenticity_factor(authenticity),
            self.data_consistency_factor(ocr, user_type, document_type),
            self._facial.score(facial),
            self._behavioral.score(history),
            self.technical_factor(authenticity, facial, ocr),
        ]
        return self.aggregate(factors)

    def aggregate(self, factors: list[RiskFactor]) -> RiskAssessment:
        overall = self.overall_risk(factors)
        level = self.determine_risk_level(overall)
        return RiskAssessment(
            overall_risk=overall,
            risk_level=level,
            factors=list(factors),
            recommendations=self.recommendations(factors, level),
            requires_manual_review=self.requires_manual_review(overall, factors),
        )

    # ─── Factors ────────────────────────────────────────────

    def document_authenticity_factor(self, authenticity: DocumentAuthenticityResult) -> RiskFactor:
        score = 0.0
        evidence: list[str] = []

        if not authenticity.is_authentic:
            score += 0.8
            evidence.append("Document authenticity check failed")
        else:
            score += (1 - authenticity.confidence) * 0.6

        for anomaly in authenticity.anomalies:
            score += SEVERITY_WEIGHTS[anomaly.severity] * anomaly.confidence
            evidence.append(f"{anomaly.type.value}: {anomaly.description}")

        total = len(authenticity.security_features)
        if total > 0:
            detected = sum(1 for f in authenticity.security_features if f.detected)
            if detected / total < 0.7:
                score += 0.3
                evidence.append("Insufficient security features detected")

        return self._factor(
            RiskCategory.DOCUMENT_AUTHENTICITY, score,
            "Risk based on document authenticity analysis", evidence,
        )

    def data_consistency_factor(
        self,
        ocr: OCRResult,
        user_type: UserType,
        document_type: DocumentType,
    ) -> RiskFactor:
        score = 0.0
        evidence: list[str] = []

        if ocr.confidence < self._min_ocr_confidence:
            score += 0.4
            evidence.append("Low OCR confidence")

        validation = self._validator.validate(ocr.extracted_data, document_type, user_type)
        if not validation.is_valid:
            score += 0.5
            evidence.extend(validation.errors)

        if validation.completeness < 0.8:
            score += 0.3
            evidence.append("Incomplete document data")

        if validation.consistency_issues:
            score += 0.4
            evidence.append("Data inconsistent with user type requirements")
            evidence.extend(validation.consistency_issues)

        if validation.suspicious_patterns:
            score += 0.3
            evidence.extend(validation.suspicious_patterns)

        return self._factor(
            RiskCategory.DATA_CONSISTENCY, score,
            "Risk based on data extraction and validation", evidence,
        )

    def technical_factor(
        self,
        authenticity: DocumentAuthenticityResult,
        facial: FacialRecognitionResult,
        ocr: OCRResult,
    ) -> RiskFactor:
        """Penalizes degraded upstream signal even when no anomaly fired."""
        score = 0.0
        evidence: list[str] = []
        t = self._technical

        if facial.processing_time_ms > t.slow_facial_ms:
            score += 0.2
            evidence.append("Slow facial recognition processing")

        if ocr.processing_time_ms > t.slow_ocr_ms:
            score += 0.2
            evidence.append("Slow OCR processing")

        if ocr.errors:
            score += 0.3
            evidence.append("OCR processing errors")

        avg_confidence = (authenticity.confidence + facial.confidence / 100 + ocr.confidence) / 3
        if avg_confidence < t.min_average_confidence:
            score += 0.4
            evidence.append("Low confidence across all verification services")

        return self._factor(
            RiskCategory.TECHNICAL, score,
            "Risk based on technical processing quality", evidence,
        )

    # ─── Aggregation ────────────────────────────────────────

    @staticmethod
    def overall_risk(factors: list[RiskFactor]) -> float:
        total_weight = sum(f.weight for f in factors)
        if total_weight <= 0:
            return 0.0
        overall = sum(f.score * f.weight for f in factors) / total_weight
        return max(0.0, min(1.0, overall))

    def determine_risk_level(self, overall_risk: float) -> RiskLevel:
        if overall_risk <= self._thresholds.low:
            return RiskLevel.LOW
        elif overall_risk <= self._thresholds.medium:
            return RiskLevel.MEDIUM
        elif overall_risk <= self._thresholds.high:
            return RiskLevel.HIGH
        return RiskLevel.CRITICAL

    def requires_manual_review(self, overall_risk: float, factors: list[RiskFactor]) -> bool:
        if overall_risk >= self._thresholds.high:
            return True
        if any(f.score > CRITICAL_FACTOR_THRESHOLD for f in factors):
            return True
        elevated = [f for f in factors if f.score > ELEVATED_FACTOR_THRESHOLD]
        return len(elevated) >= ELEVATED_FACTOR_COUNT

    @staticmethod
    def recommendations(factors: list[RiskFactor], level: RiskLevel) -> list[str]:
        recommendations = list(LEVEL_RECOMMENDATIONS[level])
        for factor in factors:
            if factor.score > FACTOR_RECOMMENDATION_THRESHOLD:
                recommendations.extend(FACTOR_RECOMMENDATIONS[factor.category])
        # dedup preservando a ordem
        return list(dict.fromkeys(recommendations))

    def _factor(self, category: RiskCategory, score: float, description: str, evidence: list[str]) -> RiskFactor:
        return RiskFactor(
            category=category,
            score=min(1.0, max(0.0, score)),
            weight=self._weights[category],
            description=description,
            evidence=evidence,
        )
