"""Tests for the BEHAVIORAL risk factor."""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.entities.verification import (
    PriorVerification,
    RiskCategory,
    UserHistory,
    VerificationStatus,
)
from src.infrastructure.scoring.behavioral_scorer import BehavioralRiskScorer

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _prior(status: VerificationStatus, minutes_ago: int = 600) -> PriorVerification:
    return PriorVerification(f"v-{minutes_ago}", status, NOW - timedelta(minutes=minutes_ago))


@pytest.fixture
def scorer():
    return BehavioralRiskScorer(clock=lambda: NOW)


class TestBehavioralRiskScorer:
    def test_new_user_gets_moderate_default(self, scorer):
        factor = scorer.score(None)
        assert factor.category == RiskCategory.BEHAVIORAL
        assert factor.score == 0.3
        assert factor.evidence == ["New user with no verification history"]

    def test_clean_history(self, scorer):
        history = UserHistory(previous_verifications=[_prior(VerificationStatus.APPROVED)])
        assert scorer.score(history).score == 0.0

    def test_one_rejection(self, scorer):
        history = UserHistory(previous_verifications=[_prior(VerificationStatus.REJECTED)])
        factor = scorer.score(history)
        assert factor.score == 0.3
        assert factor.evidence == ["Previous verification failures"]

    def test_many_rejections(self, scorer):
        history = UserHistory(previous_verifications=[
            _prior(VerificationStatus.REJECTED, m) for m in (100, 200, 300)
        ])
        factor = scorer.score(history)
        assert factor.score == 0.6
        assert factor.evidence == ["Multiple previous verification failures"]

    def test_excessive_attempts_in_last_hour(self, scorer):
        attempts = [NOW - timedelta(minutes=m) for m in (5, 10, 20, 40)]
        factor = scorer.score(UserHistory(verification_attempts=attempts))
        assert factor.score == 0.5
        assert factor.evidence == ["Excessive verification attempts"]

    def test_old_attempts_do_not_count(self, scorer):
        attempts = [NOW - timedelta(minutes=m) for m in (5, 10, 90, 120)]
        assert scorer.score(UserHistory(verification_attempts=attempts)).score == 0.0

    def test_naive_timestamps_are_utc(self, scorer):
        attempts = [(NOW - timedelta(minutes=m)).replace(tzinfo=None) for m in (1, 2, 3, 4)]
        assert scorer.score(UserHistory(verification_attempts=attempts)).score == 0.5

    def test_suspicious_activity(self, scorer):
        factor = scorer.score(UserHistory(suspicious_activity=True))
        assert factor.score == 0.4
        assert factor.evidence == ["Suspicious activity detected"]

    def test_additive_then_clamped(self, scorer):
        history = UserHistory(
            previous_verifications=[_prior(VerificationStatus.REJECTED, m) for m in (100, 200, 300)],
            verification_attempts=[NOW - timedelta(minutes=m) for m in (1, 2, 3, 4)],
            suspicious_activity=True,
        )
        assert scorer.score(history).score == 1.0
