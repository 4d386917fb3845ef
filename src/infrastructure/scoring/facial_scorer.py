"""
Facial match scoring.

Two pieces:
- FacialMatcher: turns vision-provider output (faces on both images,
  comparison, liveness) into a FacialRecognitionResult. Liveness is a
  gate: a failed check forces match=False and costs 20 confidence points.
- FacialRiskScorer: turns a FacialRecognitionResult into the
  FACIAL_MATCH risk factor.
"""

import logging
import time

from src.core.entities.verification import (
    FaceLandmark,
    FacialRecognitionResult,
    LandmarkType,
    RiskCategory,
    RiskFactor,
)
from src.core.interfaces.vision_provider import FaceDetail, IVisionProvider

logger = logging.getLogger(__name__)

LIVENESS_PENALTY = 20.0
LANDMARK_CONFIDENCE = 0.9  # providers rarely report per-landmark confidence

LANDMARK_TYPES = {
    "eyeLeft": LandmarkType.EYE,
    "eyeRight": LandmarkType.EYE,
    "leftPupil": LandmarkType.EYE,
    "rightPupil": LandmarkType.EYE,
    "nose": LandmarkType.NOSE,
    "noseLeft": LandmarkType.NOSE,
    "noseRight": LandmarkType.NOSE,
    "mouthLeft": LandmarkType.MOUTH,
    "mouthRight": LandmarkType.MOUTH,
    "mouthUp": LandmarkType.MOUTH,
    "mouthDown": LandmarkType.MOUTH,
    "leftEar": LandmarkType.EAR,
    "rightEar": LandmarkType.EAR,
    "chinBottom": LandmarkType.CHIN,
}


def face_quality_score(face: FaceDetail) -> float:
    """0.5 base, +0.1 for each good brightness/sharpness/pose reading."""
    score = 0.5
    if face.brightness is not None and face.brightness > 50:
        score += 0.1
    if face.sharpness is not None and face.sharpness > 50:
        score += 0.1
    for angle in (face.pitch, face.roll, face.yaw):
        if angle is not None and abs(angle) < 20:
            score += 0.1
    return min(1.0, round(score, 4))


def map_landmarks(face: FaceDetail) -> list[FaceLandmark]:
    landmarks = []
    for point in face.landmarks:
        landmark_type = LANDMARK_TYPES.get(point.type)
        if landmark_type is None:
            continue
        landmarks.append(FaceLandmark(
            type=landmark_type,
            x=point.x,
            y=point.y,
            confidence=LANDMARK_CONFIDENCE,
        ))
    return landmarks


class FacialMatcher:
    """Builds a FacialRecognitionResult from a document image and a selfie."""

    def __init__(self, vision: IVisionProvider):
        self._vision = vision

    def match(self, document_bytes: bytes, selfie_bytes: bytes) -> FacialRecognitionResult:
        t0 = time.perf_counter()

        document_faces = self._vision.detect_faces(document_bytes)
        selfie_faces = self._vision.detect_faces(selfie_bytes)

        if not document_faces or not selfie_faces:
            logger.info(
                f"Face missing (document={len(document_faces)}, selfie={len(selfie_faces)})"
            )
            return FacialRecognitionResult(
                match=False,
                confidence=0.0,
                face_detected=False,
                face_quality=0.0,
                processing_time_ms=round((time.perf_counter() - t0) * 1000, 2),
            )

        comparison = self._vision.compare_faces(document_bytes, selfie_bytes)
        liveness = self._vision.detect_liveness(selfie_bytes)

        match = comparison.match
        confidence = comparison.similarity if comparison.match else 0.0
        if not liveness.is_live:
            match = False
            confidence = max(0.0, confidence - LIVENESS_PENALTY)
            logger.info(f"Liveness failed: {liveness.indicators}")

        quality = (face_quality_score(document_faces[0]) + face_quality_score(selfie_faces[0])) / 2

        return FacialRecognitionResult(
            match=match,
            confidence=confidence,
            face_detected=True,
            face_quality=round(quality, 4),
            landmarks=map_landmarks(document_faces[0]),
            liveness=liveness.is_live,
            liveness_confidence=liveness.confidence,
            spoofing_indicators=list(liveness.indicators),
            processing_time_ms=round((time.perf_counter() - t0) * 1000, 2),
        )


class FacialRiskScorer:
    """FACIAL_MATCH factor: higher score = riskier."""

    DESCRIPTION = "Risk based on facial recognition analysis"

    def __init__(self, weight: float = 0.25, quality_threshold: float = 0.6, min_landmarks: int = 5):
        self._weight = weight
        self._quality_threshold = quality_threshold
        self._min_landmarks = min_landmarks

    def score(self, facial: FacialRecognitionResult) -> RiskFactor:
        score = 0.0
        evidence: list[str] = []

        if not facial.face_detected:
            score += 0.9
            evidence.append("No face detected in images")
        elif not facial.match:
            score += 0.8
            evidence.append("Facial recognition match failed")
        else:
            score += (1 - facial.confidence / 100) * 0.6

        if facial.face_quality < self._quality_threshold:
            score += 0.3
            evidence.append("Poor face quality in images")

        if len(facial.landmarks) < self._min_landmarks:
            score += 0.2
            evidence.append("Insufficient facial landmarks detected")

        return RiskFactor(
            category=RiskCategory.FACIAL_MATCH,
            score=min(1.0, max(0.0, score)),
            weight=self._weight,
            description=self.DESCRIPTION,
            evidence=evidence,
        )
