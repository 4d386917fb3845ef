"""
Contract: Field Extractor

Extrai campos estruturados (número, nomes, datas, nacionalidade...)
de imagens de documentos. Qualquer engine (Textract, PaddleOCR,
API externa) deve implementar este contrato.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from src.core.entities.verification import DocumentType


@dataclass(frozen=True)
class ExtractedField:
    """Campo individual extraído."""
    name: str                     # ex: "document_number", "first_name", "date_of_birth"
    value: str
    confidence: float             # 0.0 a 1.0


@dataclass(frozen=True)
class FieldExtraction:
    """Resultado bruto do extrator."""
    fields: list[ExtractedField]
    details: dict = field(default_factory=dict)


class IFieldExtractor(ABC):
    """
    Port: Field Extractor

    A implementação cuida do pré-processamento e do parsing;
    a validação dos campos fica no FieldValidator.
    """

    @abstractmethod
    def extract_fields(self, image_bytes: bytes, document_type: DocumentType) -> FieldExtraction:
        """
        Extrai campos de um documento.

        Args:
            image_bytes: Imagem em bytes.
            document_type: Tipo esperado (ajuda o parsing).

        Returns:
            FieldExtraction com campos e confiança por campo.
        """
        ...
