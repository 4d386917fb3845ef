"""Shared fakes for the vision / field-extraction ports and common fixtures."""

import time

import pytest

from src.config.settings import Settings
from src.core.entities.verification import (
    DocumentType,
    UserHistory,
    UserType,
    VerificationRequest,
)
from src.core.interfaces.field_extractor import ExtractedField, FieldExtraction, IFieldExtractor
from src.core.interfaces.vision_provider import (
    BoundingBox,
    FaceComparison,
    FaceDetail,
    IVisionProvider,
    LandmarkPoint,
    LivenessResult,
    TextLine,
)
from src.bootstrap import build_run_verification
from src.infrastructure.db.database import create_db_engine, create_session_factory, init_db
from src.infrastructure.db.repository import SqlAuditLog, SqlVerificationRepository

FRONT = b"front-image"
SELFIE = b"selfie-image"


# ═══════════════════════════════════════════════════════════════════════════
# Builders
# ═══════════════════════════════════════════════════════════════════════════

def make_face(brightness=80.0, sharpness=80.0, pose=5.0, landmarks=None) -> FaceDetail:
    if landmarks is None:
        landmarks = ["eyeLeft", "eyeRight", "nose", "mouthLeft", "mouthRight", "chinBottom"]
    return FaceDetail(
        bounding_box=BoundingBox(0.2, 0.2, 0.3, 0.4),
        confidence=99.0,
        brightness=brightness,
        sharpness=sharpness,
        pitch=pose,
        roll=pose,
        yaw=pose,
        landmarks=[LandmarkPoint(name, 0.5, 0.5) for name in landmarks],
    )


def clear_text_lines() -> list[TextLine]:
    return [
        TextLine("CALIFORNIA DRIVER LICENSE", 96.0),
        TextLine("DEPARTMENT OF MOTOR VEHICLES", 95.0),
        TextLine("DL D1234567", 97.0),
        TextLine("DOE JANE", 94.0),
        TextLine("ISSUED 01/02/2020", 93.0),
        TextLine("EXPIRES 01/02/2030", 95.0),
    ]


def good_fields(confidence=0.95, **overrides) -> list[ExtractedField]:
    values = {
        "document_number": "D1234567",
        "first_name": "JANE",
        "last_name": "DOE",
        "date_of_birth": "1990-04-12",
        "expiry_date": "2030-01-02",
        "issue_date": "2020-01-02",
    }
    values.update(overrides)
    return [ExtractedField(name, value, confidence) for name, value in values.items()]


# ═══════════════════════════════════════════════════════════════════════════
# Fakes
# ═══════════════════════════════════════════════════════════════════════════

class FakeVision(IVisionProvider):
    """Vision provider returning canned results per image."""

    def __init__(
        self,
        text_lines=None,
        faces=None,
        comparison=None,
        liveness=None,
        errors=None,
        delays=None,
    ):
        self.text_lines = clear_text_lines() if text_lines is None else text_lines
        self.faces = faces if faces is not None else {FRONT: [make_face()], SELFIE: [make_face()]}
        self.comparison = comparison or FaceComparison(match=True, similarity=98.0)
        self.liveness = liveness or LivenessResult(is_live=True, confidence=0.95)
        self.errors = errors or {}        # method name -> exception
        self.delays = delays or {}        # method name -> seconds
        self.calls: dict[str, int] = {}

    def _enter(self, method: str):
        self.calls[method] = self.calls.get(method, 0) + 1
        if method in self.delays:
            time.sleep(self.delays[method])
        if method in self.errors:
            raise self.errors[method]

    def detect_text(self, image_bytes):
        self._enter("detect_text")
        return list(self.text_lines)

    def detect_faces(self, image_bytes):
        self._enter("detect_faces")
        return list(self.faces.get(image_bytes, []))

    def compare_faces(self, source_bytes, target_bytes):
        self._enter("compare_faces")
        return self.comparison

    def detect_liveness(self, image_bytes):
        self._enter("detect_liveness")
        return self.liveness


class FakeExtractor(IFieldExtractor):
    """Field extractor; `failures` first calls raise before it succeeds."""

    def __init__(self, fields=None, failures=0, error=None):
        self.fields = good_fields() if fields is None else fields
        self.failures = failures
        self.error = error or RuntimeError("extractor unavailable")
        self.calls = 0

    def extract_fields(self, image_bytes, document_type):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return FieldExtraction(fields=list(self.fields))


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def settings():
    return Settings(_env_file=None, step_retry_backoff_seconds=0.0)


@pytest.fixture
def request_dl():
    return VerificationRequest(
        user_id="user-1",
        document_type=DocumentType.DRIVERS_LICENSE,
        user_type=UserType.CUSTOMER,
        front_image=FRONT,
        selfie_image=SELFIE,
        back_image=b"back-image",
    )


@pytest.fixture
def clean_history():
    return UserHistory()


@pytest.fixture
def vision():
    return FakeVision()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def make_use_case(settings):
    def _make(vision=None, extractor=None, **kwargs):
        return build_run_verification(
            vision or FakeVision(),
            extractor or FakeExtractor(),
            settings=settings,
            **kwargs,
        )
    return _make


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return SqlVerificationRepository(session_factory)


@pytest.fixture
def audit_log(session_factory):
    return SqlAuditLog(session_factory)
