"""
Extracted field validation.

- OCRReader: calls the field extractor and builds the OCRResult
  (low-confidence fields dropped, mean confidence, date-format errors).
- FieldValidator: required fields + completeness, suspicious patterns,
  consistency with the user type (drivers need a license and must be 18+).
"""

import re
import time
from dataclasses import dataclass, field, fields as dc_fields
from datetime import date, datetime
from typing import Callable

from src.core.entities.verification import (
    DocumentType,
    ExtractedDocumentData,
    OCRResult,
    UserType,
)
from src.core.errors import AnalysisFailure
from src.core.interfaces.field_extractor import IFieldExtractor

BASE_REQUIRED = ("document_number", "first_name", "last_name", "date_of_birth")
EXTRA_REQUIRED = {
    DocumentType.DRIVERS_LICENSE: ("expiry_date",),
    DocumentType.PASSPORT: ("nationality", "expiry_date"),
    DocumentType.NATIONAL_ID: (),
}

FIELD_LABELS = {
    "document_number": "Document number",
    "first_name": "First name",
    "last_name": "Last name",
    "date_of_birth": "Date of birth",
    "expiry_date": "Expiry date",
    "nationality": "Nationality",
}

REPEATED_DIGIT = re.compile(r"^(\d)\1+$")
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d")

MIN_DRIVER_AGE = 18


def parse_date(value: str) -> date | None:
    """Parse ISO and common day-first formats."""
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def calculate_age(birth: date, today: date) -> int:
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def required_fields(document_type: DocumentType) -> tuple[str, ...]:
    return BASE_REQUIRED + EXTRA_REQUIRED.get(document_type, ())


@dataclass(frozen=True)
class FieldValidationResult:
    is_valid: bool
    errors: list[str]
    completeness: float                   # 0.0 a 1.0
    consistency: float                    # 1.0 = consistente
    consistency_issues: list[str] = field(default_factory=list)
    suspicious_patterns: list[str] = field(default_factory=list)


class FieldValidator:
    """Validates and scores ExtractedDocumentData."""

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def validate(
        self,
        data: ExtractedDocumentData,
        document_type: DocumentType,
        user_type: UserType,
    ) -> FieldValidationResult:
        errors = self.missing_fields(data, document_type)
        consistency, issues = self.check_consistency(data, user_type, document_type)
        return FieldValidationResult(
            is_valid=not errors,
            errors=errors,
            completeness=self.completeness(data, document_type),
            consistency=consistency,
            consistency_issues=issues,
            suspicious_patterns=self.detect_suspicious_patterns(data),
        )

    @staticmethod
    def missing_fields(data: ExtractedDocumentData, document_type: DocumentType) -> list[str]:
        errors = []
        for name in required_fields(document_type):
            if not getattr(data, name):
                label = FIELD_LABELS[name]
                if name in BASE_REQUIRED:
                    errors.append(f"{label} missing")
                else:
                    errors.append(f"{label} missing for {document_type.value.lower().replace('_', ' ')}")
        return errors

    @staticmethod
    def completeness(data: ExtractedDocumentData, document_type: DocumentType) -> float:
        names = required_fields(document_type)
        present = [n for n in names if getattr(data, n)]
        return len(present) / len(names)

    @staticmethod
    def detect_suspicious_patterns(data: ExtractedDocumentData) -> list[str]:
        patterns = []
        if data.document_number:
            if len(data.document_number) < 5:
                patterns.append("Suspiciously short document number")
            if REPEATED_DIGIT.match(data.document_number):
                patterns.append("Document number contains repeated digits")
        if data.first_name and len(data.first_name) < 2:
            patterns.append("Suspiciously short first name")
        if data.last_name and len(data.last_name) < 2:
            patterns.append("Suspiciously short last name")
        return patterns

    def check_consistency(
        self,
        data: ExtractedDocumentData,
        user_type: UserType,
        document_type: DocumentType,
    ) -> tuple[float, list[str]]:
        score = 1.0
        issues = []

        if user_type == UserType.DRIVER and document_type != DocumentType.DRIVERS_LICENSE:
            score -= 0.5
            issues.append("Drivers must verify with a driver's license")

        if user_type == UserType.DRIVER and data.date_of_birth:
            birth = parse_date(data.date_of_birth)
            if birth is not None and calculate_age(birth, self._today()) < MIN_DRIVER_AGE:
                score -= 0.3
                issues.append(f"Driver is younger than {MIN_DRIVER_AGE}")

        return max(0.0, round(score, 4)), issues


class OCRReader:
    """Runs the field extractor and assembles the OCRResult."""

    def __init__(self, extractor: IFieldExtractor, min_field_confidence: float = 0.5):
        self._extractor = extractor
        self._min_field_confidence = min_field_confidence

    def read(self, image_bytes: bytes, document_type: DocumentType) -> OCRResult:
        t0 = time.perf_counter()
        extraction = self._extractor.extract_fields(image_bytes, document_type)
        if extraction is None or extraction.fields is None:
            raise AnalysisFailure("OCR_EXTRACTION", "Field extractor returned no data")

        known = {f.name for f in dc_fields(ExtractedDocumentData)} - {"document_type"}
        values: dict[str, str] = {}
        confidences: list[float] = []
        for extracted in extraction.fields:
            if extracted.name not in known:
                continue
            confidences.append(extracted.confidence)
            if extracted.confidence < self._min_field_confidence or not extracted.value:
                continue
            values[extracted.name] = extracted.value.strip()

        data = ExtractedDocumentData(document_type=document_type, **values)
        confidence = sum(confidences) / len(confidences) if confidences else 0.0

        return OCRResult(
            extracted_data=data,
            confidence=round(confidence, 4),
            processing_time_ms=round((time.perf_counter() - t0) * 1000, 2),
            errors=self.date_format_errors(data),
        )

    @staticmethod
    def date_format_errors(data: ExtractedDocumentData) -> list[str]:
        errors = []
        for name, label in (
            ("date_of_birth", "date of birth"),
            ("expiry_date", "expiry date"),
            ("issue_date", "issue date"),
        ):
            value = getattr(data, name)
            if value and parse_date(value) is None:
                errors.append(f"Invalid {label} format")
        return errors
