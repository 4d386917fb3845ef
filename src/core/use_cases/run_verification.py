"""
Use Case: Run Verification.

Orquestra: (Autenticidade ‖ OCR ‖ Facial) → Risco → Critérios → Decisão
As três análises rodam em paralelo, cada uma isolada no seu slot de
resultado; risco e decisão são estritamente sequenciais.
Timeout e retry por etapa vêm da definição da etapa.
"""

import asyncio
import logging
import time
import uuid

from src.core.entities.verification import (
    DECISION_STATUS,
    Decision,
    DocumentAuthenticityResult,
    DocumentType,
    ExtractedDocumentData,
    FacialRecognitionResult,
    OCRResult,
    RiskAssessment,
    UserHistory,
    VerificationDecision,
    VerificationRequest,
    VerificationScores,
    VerificationStatus,
)
from src.core.entities.verification_result import VerificationResult
from src.core.entities.workflow import (
    StepPayload,
    StepType,
    VerificationStep,
    VerificationStepResult,
    VerificationWorkflow,
    default_steps,
)
from src.core.errors import AggregationFailure
from src.core.interfaces.verification_store import IAuditLog, IVerificationStore
from src.core.interfaces.vision_provider import IVisionProvider
from src.infrastructure.rules.decision_engine import DecisionEngine
from src.infrastructure.scoring.authenticity_scorer import AuthenticityScorer
from src.infrastructure.scoring.facial_scorer import FacialMatcher
from src.infrastructure.scoring.field_validator import OCRReader
from src.infrastructure.scoring.risk_aggregator import RiskAggregator

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


class RunVerificationUseCase:
    """
    Use Case: recebe documento + selfie → roda o workflow → retorna resultado.

    Dependency Injection: scorers, engine e ports vêm pelo construtor.
    Store e audit log são opcionais; sem store, o chamador persiste.
    """

    def __init__(
        self,
        vision: IVisionProvider,
        authenticity_scorer: AuthenticityScorer,
        ocr_reader: OCRReader,
        facial_matcher: FacialMatcher,
        risk_aggregator: RiskAggregator,
        decision_engine: DecisionEngine,
        store: IVerificationStore | None = None,
        audit_log: IAuditLog | None = None,
        steps: list[VerificationStep] | None = None,
        backoff_seconds: float = 0.5,
    ):
        self._vision = vision
        self._authenticity = authenticity_scorer
        self._ocr = ocr_reader
        self._facial = facial_matcher
        self._aggregator = risk_aggregator
        self._decision = decision_engine
        self._store = store
        self._audit_log = audit_log
        self._steps = list(steps) if steps is not None else default_steps()
        self._backoff = backoff_seconds

    async def execute(
        self,
        request: VerificationRequest,
        history: UserHistory | None = None,
        verification_id: str | None = None,
    ) -> VerificationResult:
        """
        Executa o workflow completo. Nunca levanta exceção.

        1. Registro + audit SUBMITTED
        2. Autenticidade, OCR e facial em paralelo (timeout/retry por etapa)
        3. Avaliação de risco (precisa das três análises)
        4. Critérios de decisão
        5. Cadeia de regras → decisão, status final, persistência
        """
        t_start = time.perf_counter()
        workflow = VerificationWorkflow(steps=list(self._steps))
        vid = verification_id

        try:
            # ── 1. Registro ────────────────────────────────────
            if history is None and self._store is not None:
                history = await asyncio.to_thread(self._store.load_user_history, request.user_id)

            if vid is None:
                vid = await self._create_record(request)
            self._audit(vid, "SUBMITTED", request.user_id, {
                "document_type": request.document_type.value,
                "user_type": request.user_type.value,
            })
            workflow.transition(VerificationStatus.RUNNING)
            logger.info(f"[{vid}] Verification started for user {request.user_id}")

            # ── 2. Análises em paralelo ────────────────────────
            analyses = await asyncio.gather(
                self._run_step(
                    self._require_step(workflow, StepType.DOCUMENT_AUTHENTICITY),
                    self._check_authenticity, request,
                ),
                self._run_step(
                    self._require_step(workflow, StepType.OCR_EXTRACTION),
                    self._ocr.read, request.front_image, request.document_type,
                ),
                self._run_step(
                    self._require_step(workflow, StepType.FACIAL_RECOGNITION),
                    self._facial.match, request.front_image, request.selfie_image,
                ),
            )
            for result in analyses:
                self._record(vid, workflow, result)

            doc_type = request.document_type
            authenticity = self._payload(workflow, StepType.DOCUMENT_AUTHENTICITY, DocumentAuthenticityResult, doc_type)
            ocr = self._payload(workflow, StepType.OCR_EXTRACTION, OCRResult, doc_type)
            facial = self._payload(workflow, StepType.FACIAL_RECOGNITION, FacialRecognitionResult, doc_type)

            # ── 3. Risco ───────────────────────────────────────
            risk_result = await self._run_step(
                self._require_step(workflow, StepType.RISK_ASSESSMENT),
                self._aggregator.assess,
                authenticity, facial, ocr, request.user_type, request.document_type, history,
            )
            self._record(vid, workflow, risk_result)
            assessment = self._payload(workflow, StepType.RISK_ASSESSMENT, RiskAssessment)

            # ── 4. Critérios ───────────────────────────────────
            criteria_step = workflow.step(StepType.DECISION_CRITERIA)
            if criteria_step is not None:
                criteria_result = await self._run_step(
                    criteria_step,
                    self._decision.evaluate_criteria, authenticity, facial, ocr, assessment,
                )
                self._record(vid, workflow, criteria_result)

            # ── 5. Decisão ─────────────────────────────────────
            decision = self._decision.decide(workflow.ordered_results(), assessment)
            status = DECISION_STATUS[decision.decision]
            workflow.transition(status)

            scores = VerificationScores(
                risk_score=assessment.overall_risk,
                authenticity_score=authenticity.confidence,
                data_validation_score=ocr.confidence,
                facial_match_score=round(facial.confidence / 100, 4),
            )
            await self._persist(vid, decision, scores, status)
            self._audit(vid, status.value, SYSTEM_ACTOR, {
                "decision": decision.decision.value,
                "confidence": decision.confidence,
                "risk_level": assessment.risk_level.value,
                "risk_score": assessment.overall_risk,
            })

            total_ms = round((time.perf_counter() - t_start) * 1000, 2)
            logger.info(
                f"[{vid}] {status.value} (risk={assessment.overall_risk:.3f}, "
                f"level={assessment.risk_level.value}, {total_ms} ms)"
            )

            return VerificationResult(
                verification_id=vid,
                success=decision.decision == Decision.APPROVE,
                risk_score=scores.risk_score,
                authenticity_score=scores.authenticity_score,
                data_validation_score=scores.data_validation_score,
                facial_match_score=scores.facial_match_score,
                status=status,
                message="; ".join(decision.reasoning),
                decision=decision,
                risk_assessment=assessment,
                step_results=workflow.ordered_results(),
                total_latency_ms=total_ms,
            )

        except Exception as e:
            vid = vid or str(uuid.uuid4())
            logger.exception(f"[{vid}] Verification pipeline failed")
            return await self._failed_result(vid, e, workflow, t_start)

    # ─── Steps ─────────────────────────────────────────────

    def _check_authenticity(self, request: VerificationRequest) -> DocumentAuthenticityResult:
        analysis = self._vision.analyze_document(request.front_image)
        return self._authenticity.score(analysis, request.document_type)

    async def _run_step(self, step: VerificationStep, fn, *args) -> VerificationStepResult:
        """
        Roda uma chamada bloqueante em thread, com timeout e retry.

        Exceções viram um StepResult com success=False; nunca propagam.
        """
        t0 = time.perf_counter()
        last_error = ""
        attempts = 0

        for attempt in range(step.retry_count + 1):
            attempts = attempt + 1
            try:
                payload = await asyncio.wait_for(
                    asyncio.to_thread(fn, *args),
                    timeout=step.timeout_ms / 1000,
                )
                break
            except asyncio.TimeoutError:
                last_error = f"Step timed out after {step.timeout_ms:.0f} ms"
            except Exception as e:
                last_error = str(e) or type(e).__name__

            logger.warning(f"[{step.id}] Attempt {attempts}/{step.retry_count + 1} failed: {last_error}")
            if attempt < step.retry_count:
                await asyncio.sleep(self._backoff * 2 ** attempt)
        else:
            return VerificationStepResult(
                step_id=step.id,
                step_type=step.type,
                required=step.required,
                success=False,
                error=last_error,
                details=f"{step.name} failed",
                processing_time_ms=round((time.perf_counter() - t0) * 1000, 2),
                attempts=attempts,
            )

        evaluation = self._decision.evaluate_step(payload)
        return VerificationStepResult(
            step_id=step.id,
            step_type=step.type,
            required=step.required,
            success=evaluation.passed,
            payload=payload,
            error=None if evaluation.passed else self._signal_error(payload),
            details=evaluation.details,
            processing_time_ms=round((time.perf_counter() - t0) * 1000, 2),
            attempts=attempts,
        )

    @staticmethod
    def _signal_error(payload: StepPayload) -> str | None:
        """Mensagem para falta de sinal (sem face, sem texto)."""
        if isinstance(payload, FacialRecognitionResult) and not payload.face_detected:
            return "No face detected in images"
        if isinstance(payload, OCRResult):
            data = payload.extracted_data
            if not any(getattr(data, name) for name in ("document_number", "first_name", "last_name")):
                return "No text detected in document image"
        return None

    @staticmethod
    def _require_step(workflow: VerificationWorkflow, step_type: StepType) -> VerificationStep:
        step = workflow.step(step_type)
        if step is None:
            raise AggregationFailure(f"Workflow has no {step_type.value} step")
        return step

    @classmethod
    def _payload(
        cls,
        workflow: VerificationWorkflow,
        step_type: StepType,
        expected: type,
        document_type: DocumentType | None = None,
    ):
        """
        Payload de uma etapa já executada.

        Etapa obrigatória sem payload é fatal para o pipeline. Etapa
        opcional sem payload segue com o pior resultado possível.
        """
        result = workflow.result_for(step_type)
        if result is not None and isinstance(result.payload, expected):
            return result.payload

        reason = result.error if result is not None else "step did not run"
        if result is not None and not result.required and document_type is not None:
            fallback = cls._fallback_payload(step_type, document_type)
            if fallback is not None:
                logger.warning(f"Optional step {step_type.value} has no result ({reason}), using worst case")
                return fallback
        raise AggregationFailure(f"Missing {step_type.value} result ({reason})")

    @staticmethod
    def _fallback_payload(step_type: StepType, document_type: DocumentType) -> StepPayload | None:
        if step_type == StepType.DOCUMENT_AUTHENTICITY:
            return DocumentAuthenticityResult(
                is_authentic=False,
                confidence=0.0,
                security_features=[],
                anomalies=[],
                document_type=document_type,
            )
        if step_type == StepType.OCR_EXTRACTION:
            return OCRResult(
                extracted_data=ExtractedDocumentData(document_type=document_type),
                confidence=0.0,
            )
        if step_type == StepType.FACIAL_RECOGNITION:
            return FacialRecognitionResult(match=False, confidence=0.0, face_detected=False, face_quality=0.0)
        return None

    def _record(self, vid: str, workflow: VerificationWorkflow, result: VerificationStepResult) -> None:
        workflow.record(result)
        if not result.success:
            logger.warning(f"[{vid}] Step {result.step_id} failed: {result.error or result.details}")
            self._audit(vid, "STEP_FAILED", SYSTEM_ACTOR, {
                "step_id": result.step_id,
                "required": result.required,
                "error": result.error,
                "details": result.details,
                "attempts": result.attempts,
            })

    # ─── Side effects ──────────────────────────────────────

    async def _create_record(self, request: VerificationRequest) -> str:
        if self._store is None:
            return str(uuid.uuid4())
        return await asyncio.to_thread(self._store.create_record, request)

    async def _persist(
        self,
        vid: str,
        decision: VerificationDecision,
        scores: VerificationScores,
        status: VerificationStatus,
    ) -> None:
        if self._store is None:
            return
        await asyncio.to_thread(self._store.persist_decision, vid, decision, scores, status)

    def _audit(self, vid: str, action: str, actor: str, details: dict | None = None) -> None:
        if self._audit_log is None:
            return
        try:
            self._audit_log.append(vid, action, actor, details)
        except Exception:
            logger.exception(f"[{vid}] Failed to write audit entry {action}")

    async def _failed_result(
        self,
        vid: str,
        error: Exception,
        workflow: VerificationWorkflow,
        t_start: float,
    ) -> VerificationResult:
        message = f"Verification failed: {error}"
        decision = VerificationDecision(
            decision=Decision.REJECT,
            confidence=0.0,
            reasoning=[message],
            automated=True,
            requires_manual_review=False,
            next_steps=["Update user verification status", "Log rejection reason"],
        )
        scores = VerificationScores(
            risk_score=1.0,
            authenticity_score=0.0,
            data_validation_score=0.0,
            facial_match_score=0.0,
        )
        try:
            await self._persist(vid, decision, scores, VerificationStatus.REJECTED)
        except Exception:
            logger.exception(f"[{vid}] Failed to persist failed verification")
        self._audit(vid, "FAILED", SYSTEM_ACTOR, {"error": str(error)})

        return VerificationResult(
            verification_id=vid,
            success=False,
            risk_score=scores.risk_score,
            authenticity_score=scores.authenticity_score,
            data_validation_score=scores.data_validation_score,
            facial_match_score=scores.facial_match_score,
            status=VerificationStatus.REJECTED,
            message=message,
            decision=decision,
            step_results=workflow.ordered_results(),
            total_latency_ms=round((time.perf_counter() - t_start) * 1000, 2),
        )
