"""
Composition root.

Builds scorers, engine and use cases once, from Settings, and wires the
concrete adapters in. Vision and field-extraction providers are supplied
by the caller.
"""

from src.config.settings import Settings, configure_logging, get_settings
from src.core.entities.verification import RiskCategory
from src.core.entities.workflow import VerificationStep
from src.core.interfaces.field_extractor import IFieldExtractor
from src.core.interfaces.verification_store import IAuditLog, IVerificationStore
from src.core.interfaces.vision_provider import IVisionProvider
from src.core.use_cases.review_verification import ReviewVerificationUseCase
from src.core.use_cases.run_verification import RunVerificationUseCase
from src.infrastructure.db.database import create_db_engine, create_session_factory, init_db
from src.infrastructure.db.repository import SqlAuditLog, SqlVerificationRepository
from src.infrastructure.rules.decision_engine import DecisionEngine, StepCriteria
from src.infrastructure.scoring.authenticity_scorer import AuthenticityScorer
from src.infrastructure.scoring.behavioral_scorer import BehavioralRiskScorer
from src.infrastructure.scoring.facial_scorer import FacialMatcher, FacialRiskScorer
from src.infrastructure.scoring.field_validator import FieldValidator, OCRReader
from src.infrastructure.scoring.risk_aggregator import (
    RiskAggregator,
    RiskThresholds,
    TechnicalThresholds,
)


def build_risk_aggregator(settings: Settings) -> RiskAggregator:
    weights = {RiskCategory(name): value for name, value in settings.risk_weights().items()}
    return RiskAggregator(
        field_validator=FieldValidator(),
        facial_scorer=FacialRiskScorer(
            weight=weights[RiskCategory.FACIAL_MATCH],
            quality_threshold=settings.face_quality_threshold,
        ),
        behavioral_scorer=BehavioralRiskScorer(weight=weights[RiskCategory.BEHAVIORAL]),
        weights=weights,
        thresholds=RiskThresholds(
            low=settings.risk_threshold_low,
            medium=settings.risk_threshold_medium,
            high=settings.risk_threshold_high,
        ),
        technical=TechnicalThresholds(
            slow_facial_ms=settings.slow_facial_ms,
            slow_ocr_ms=settings.slow_ocr_ms,
            min_average_confidence=settings.min_average_confidence,
        ),
        min_ocr_confidence=settings.ocr_min_confidence,
    )


def build_decision_engine(settings: Settings) -> DecisionEngine:
    return DecisionEngine(StepCriteria(
        authenticity_min_confidence=settings.authenticity_min_confidence,
        ocr_min_confidence=settings.ocr_min_confidence,
        facial_min_confidence=settings.facial_min_confidence,
        face_quality_threshold=settings.face_quality_threshold,
        max_acceptable_risk=settings.risk_threshold_medium,
    ))


def build_sql_adapters(settings: Settings | None = None) -> tuple[SqlVerificationRepository, SqlAuditLog]:
    """Engine + tables + repository/audit log for settings.database_url."""
    settings = settings or get_settings()
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    factory = create_session_factory(engine)
    return SqlVerificationRepository(factory), SqlAuditLog(factory)


def build_run_verification(
    vision: IVisionProvider,
    extractor: IFieldExtractor,
    settings: Settings | None = None,
    store: IVerificationStore | None = None,
    audit_log: IAuditLog | None = None,
    steps: list[VerificationStep] | None = None,
) -> RunVerificationUseCase:
    """Factory: build the verification use case with concrete adapters."""
    settings = settings or get_settings()
    configure_logging(settings)
    return RunVerificationUseCase(
        vision=vision,
        authenticity_scorer=AuthenticityScorer(pass_threshold=settings.authenticity_min_confidence),
        ocr_reader=OCRReader(extractor, min_field_confidence=settings.ocr_min_field_confidence),
        facial_matcher=FacialMatcher(vision),
        risk_aggregator=build_risk_aggregator(settings),
        decision_engine=build_decision_engine(settings),
        store=store,
        audit_log=audit_log,
        steps=steps,
        backoff_seconds=settings.step_retry_backoff_seconds,
    )


def build_review_verification(store: IVerificationStore, audit_log: IAuditLog | None = None) -> ReviewVerificationUseCase:
    return ReviewVerificationUseCase(store, audit_log)
