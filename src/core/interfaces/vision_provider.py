"""
Contract: Vision Provider

Capacidade externa de visão computacional: detecção de texto,
detecção de faces, comparação de faces e liveness. Qualquer
provedor (Rekognition, modelo local, serviço externo) deve
implementar este contrato.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class TextLine:
    """Linha de texto detectada."""
    text: str
    confidence: float             # 0 a 100


@dataclass(frozen=True)
class BoundingBox:
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class LandmarkPoint:
    type: str                     # ex: "eyeLeft", "nose", "mouthRight", "chinBottom"
    x: float
    y: float


@dataclass(frozen=True)
class FaceDetail:
    """Face detectada com métricas de qualidade e pose."""
    bounding_box: BoundingBox
    confidence: float = 0.0       # 0 a 100
    brightness: float | None = None
    sharpness: float | None = None
    pitch: float | None = None
    roll: float | None = None
    yaw: float | None = None
    landmarks: list[LandmarkPoint] = field(default_factory=list)


@dataclass(frozen=True)
class DocumentAnalysis:
    """Texto + faces detectados numa imagem de documento."""
    text_lines: list[TextLine]
    faces: list[FaceDetail]


@dataclass(frozen=True)
class FaceComparison:
    match: bool
    similarity: float             # 0 a 100


@dataclass(frozen=True)
class LivenessResult:
    is_live: bool
    confidence: float             # 0.0 a 1.0
    indicators: list[str] = field(default_factory=list)


class IVisionProvider(ABC):
    """
    Port: Vision Provider

    Todas as chamadas são bloqueantes; o orquestrador as executa
    em threads separadas, com timeout e retry por etapa.
    """

    @abstractmethod
    def detect_text(self, image_bytes: bytes) -> list[TextLine]:
        """Detecta linhas de texto com confiança por linha."""
        ...

    @abstractmethod
    def detect_faces(self, image_bytes: bytes) -> list[FaceDetail]:
        """Detecta faces com bounding box, qualidade, pose e landmarks."""
        ...

    @abstractmethod
    def compare_faces(self, source_bytes: bytes, target_bytes: bytes) -> FaceComparison:
        """
        Compara a face do documento com a da selfie.

        Args:
            source_bytes: Imagem do documento.
            target_bytes: Selfie.

        Returns:
            FaceComparison com match e similaridade (0-100).
        """
        ...

    @abstractmethod
    def detect_liveness(self, image_bytes: bytes) -> LivenessResult:
        """Avalia se a selfie foi capturada de uma pessoa presente."""
        ...

    def analyze_document(self, image_bytes: bytes) -> DocumentAnalysis:
        """Texto + faces da imagem do documento."""
        return DocumentAnalysis(
            text_lines=self.detect_text(image_bytes),
            faces=self.detect_faces(image_bytes),
        )
