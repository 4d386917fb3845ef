"""
Behavioral risk from a user's verification history.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

from src.core.entities.verification import (
    RiskCategory,
    RiskFactor,
    UserHistory,
    VerificationStatus,
    utcnow,
)

NEW_USER_SCORE = 0.3
ATTEMPT_WINDOW = timedelta(hours=1)
MAX_ATTEMPTS_IN_WINDOW = 3


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class BehavioralRiskScorer:
    """BEHAVIORAL factor. New identities get a moderate default, not zero."""

    DESCRIPTION = "Risk based on user behavior patterns"

    def __init__(self, weight: float = 0.10, clock: Callable[[], datetime] = utcnow):
        self._weight = weight
        self._clock = clock

    def score(self, history: UserHistory | None) -> RiskFactor:
        if history is None:
            return self._factor(NEW_USER_SCORE, ["New user with no verification history"])

        score = 0.0
        evidence: list[str] = []

        rejected = sum(
            1 for v in history.previous_verifications if v.status == VerificationStatus.REJECTED
        )
        if rejected > 2:
            score += 0.6
            evidence.append("Multiple previous verification failures")
        elif rejected > 0:
            score += 0.3
            evidence.append("Previous verification failures")

        window_start = _as_utc(self._clock()) - ATTEMPT_WINDOW
        recent = sum(1 for ts in history.verification_attempts if _as_utc(ts) > window_start)
        if recent > MAX_ATTEMPTS_IN_WINDOW:
            score += 0.5
            evidence.append("Excessive verification attempts")

        if history.suspicious_activity:
            score += 0.4
            evidence.append("Suspicious activity detected")

        return self._factor(min(1.0, score), evidence)

    def _factor(self, score: float, evidence: list[str]) -> RiskFactor:
        return RiskFactor(
            category=RiskCategory.BEHAVIORAL,
            score=score,
            weight=self._weight,
            description=self.DESCRIPTION,
            evidence=evidence,
        )
