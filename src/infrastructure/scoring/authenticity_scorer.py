"""
Document authenticity scoring.

Turns the vision provider's text/face output for the front image into a
DocumentAuthenticityResult:
- anomaly detection (low quality text, missing face, multiple faces)
- security feature checks (ordered list, injectable per document type)
- issuer / issue date / expiry date lookup in the detected text

Score: start at 1.0, subtract severity_weight * confidence per anomaly,
blend 70/30 with the detected security feature ratio, clamp to [0, 1].
"""

import re
from typing import Callable

from src.core.entities.verification import (
    Anomaly,
    AnomalyType,
    DocumentAuthenticityResult,
    DocumentType,
    SecurityFeature,
    Severity,
)
from src.core.interfaces.vision_provider import DocumentAnalysis
from src.infrastructure.scoring.facial_scorer import face_quality_score

SEVERITY_WEIGHTS = {
    Severity.LOW: 0.1,
    Severity.MEDIUM: 0.3,
    Severity.HIGH: 0.6,
    Severity.CRITICAL: 0.9,
}

LOW_LINE_CONFIDENCE = 70.0
LOW_QUALITY_RATIO = 0.3

DATE_PATTERN = re.compile(r"\b(\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}|\d{4}[/.-]\d{1,2}[/.-]\d{1,2})\b")

SecurityFeatureCheck = Callable[[DocumentAnalysis], SecurityFeature]


# ── Feature checks ──────────────────────────────────────────

def check_text_quality(analysis: DocumentAnalysis) -> SecurityFeature:
    lines = analysis.text_lines
    avg = sum(line.confidence for line in lines) / len(lines) if lines else 0.0
    return SecurityFeature(
        name="Text Quality",
        detected=avg > LOW_LINE_CONFIDENCE,
        confidence=round(avg / 100, 4),
        description="Document text clarity and consistency",
    )


def check_face_quality(analysis: DocumentAnalysis) -> SecurityFeature:
    quality = face_quality_score(analysis.faces[0]) if analysis.faces else 0.0
    return SecurityFeature(
        name="Face Quality",
        detected=quality > 0.6,
        confidence=quality,
        description="Document photo quality and positioning",
    )


def static_feature(name: str, confidence: float, description: str) -> SecurityFeatureCheck:
    """Feature reported as present with a fixed confidence."""
    def check(_analysis: DocumentAnalysis) -> SecurityFeature:
        return SecurityFeature(name=name, detected=True, confidence=confidence, description=description)
    return check


DEFAULT_FEATURE_CHECKS: dict[DocumentType, list[SecurityFeatureCheck]] = {
    DocumentType.DRIVERS_LICENSE: [
        check_text_quality,
        check_face_quality,
        static_feature("License Number Format", 0.8, "Valid driver license number format"),
        static_feature("State/Province Code", 0.9, "Valid state or province identifier"),
    ],
    DocumentType.PASSPORT: [
        check_text_quality,
        check_face_quality,
        static_feature("Passport Number Format", 0.8, "Valid passport number format"),
        static_feature("Country Code", 0.9, "Valid country identifier"),
    ],
    DocumentType.NATIONAL_ID: [
        check_text_quality,
        check_face_quality,
        static_feature("ID Number Format", 0.8, "Valid national ID number format"),
        static_feature("Government Seal", 0.7, "Government authority seal or logo"),
    ],
}

DEFAULT_ISSUERS = {
    DocumentType.DRIVERS_LICENSE: "Department of Motor Vehicles",
    DocumentType.PASSPORT: "Government Authority",
    DocumentType.NATIONAL_ID: "Unknown",
}

ISSUER_PATTERNS = {
    DocumentType.DRIVERS_LICENSE: [
        re.compile(r"issued by\s+([a-z][a-z ]+)", re.IGNORECASE),
        re.compile(r"((?:department|dept\.?) of [a-z ]*motor vehicles|dmv)", re.IGNORECASE),
    ],
    DocumentType.PASSPORT: [
        re.compile(r"issued by\s+([a-z][a-z ]+)", re.IGNORECASE),
        re.compile(r"authority:?\s+([a-z][a-z ]+)", re.IGNORECASE),
    ],
    DocumentType.NATIONAL_ID: [],
}


class AuthenticityScorer:
    """Scores a document image from its text-detection and face-detection output."""

    def __init__(
        self,
        pass_threshold: float = 0.7,
        feature_checks: dict[DocumentType, list[SecurityFeatureCheck]] | None = None,
    ):
        self._pass_threshold = pass_threshold
        self._feature_checks = feature_checks if feature_checks is not None else DEFAULT_FEATURE_CHECKS

    def score(self, analysis: DocumentAnalysis, document_type: DocumentType) -> DocumentAuthenticityResult:
        features = [check(analysis) for check in self._feature_checks.get(document_type, [])]
        anomalies = self.detect_anomalies(analysis)
        score = self.compute_score(features, anomalies)
        full_text = "\n".join(line.text for line in analysis.text_lines)

        return DocumentAuthenticityResult(
            is_authentic=score >= self._pass_threshold,
            confidence=score,
            security_features=features,
            anomalies=anomalies,
            document_type=document_type,
            issuer=self._extract_issuer(full_text, document_type),
            issue_date=self._extract_date(full_text, ("issued", "issue date", "date of issue")),
            expiry_date=self._extract_date(full_text, ("expiry", "expires", "valid until")),
        )

    # ─── Anomalies ──────────────────────────────────────────

    @staticmethod
    def detect_anomalies(analysis: DocumentAnalysis) -> list[Anomaly]:
        anomalies: list[Anomaly] = []
        lines = analysis.text_lines

        if lines:
            low = [line for line in lines if line.confidence < LOW_LINE_CONFIDENCE]
            if len(low) >= len(lines) * LOW_QUALITY_RATIO:
                anomalies.append(Anomaly(
                    type=AnomalyType.LOW_QUALITY,
                    severity=Severity.MEDIUM,
                    description="Document appears blurry or low quality",
                    confidence=0.8,
                ))

        if len(analysis.faces) == 0:
            anomalies.append(Anomaly(
                type=AnomalyType.WRONG_DOCUMENT_TYPE,
                severity=Severity.HIGH,
                description="No face detected in document photo",
                confidence=0.9,
            ))
        elif len(analysis.faces) > 1:
            anomalies.append(Anomaly(
                type=AnomalyType.TAMPERING,
                severity=Severity.MEDIUM,
                description="Multiple faces detected in document",
                confidence=0.7,
            ))

        return anomalies

    @staticmethod
    def compute_score(features: list[SecurityFeature], anomalies: list[Anomaly]) -> float:
        score = 1.0
        for anomaly in anomalies:
            score -= SEVERITY_WEIGHTS[anomaly.severity] * anomaly.confidence

        if features:
            ratio = sum(1 for f in features if f.detected) / len(features)
            score = score * 0.7 + ratio * 0.3

        return round(max(0.0, min(1.0, score)), 4)

    # ─── Document info ──────────────────────────────────────

    @staticmethod
    def _extract_issuer(text: str, document_type: DocumentType) -> str:
        for pattern in ISSUER_PATTERNS.get(document_type, []):
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return DEFAULT_ISSUERS[document_type]

    @staticmethod
    def _extract_date(text: str, keywords: tuple[str, ...]) -> str | None:
        """First date after one of the keywords (within 50 chars), else just before it."""
        lowered = text.lower()
        for keyword in keywords:
            idx = lowered.find(keyword)
            if idx == -1:
                continue
            end = idx + len(keyword)
            match = DATE_PATTERN.search(text[end: end + 50])
            if match is None:
                before = DATE_PATTERN.findall(text[max(0, idx - 50): idx])
                if before:
                    return before[-1]
                continue
            return match.group(1)
        return None
