"""Tests for extracted field validation and the OCR reader."""

from datetime import date

import pytest

from conftest import FakeExtractor, good_fields
from src.core.entities.verification import DocumentType, ExtractedDocumentData, UserType
from src.core.errors import AnalysisFailure
from src.core.interfaces.field_extractor import ExtractedField
from src.infrastructure.scoring.field_validator import (
    FieldValidator,
    OCRReader,
    calculate_age,
    parse_date,
)

TODAY = date(2026, 6, 1)


def _data(document_type=DocumentType.DRIVERS_LICENSE, **overrides) -> ExtractedDocumentData:
    values = {
        "document_number": "D1234567",
        "first_name": "JANE",
        "last_name": "DOE",
        "date_of_birth": "1990-04-12",
        "expiry_date": "2030-01-02",
    }
    values.update(overrides)
    return ExtractedDocumentData(document_type=document_type, **values)


@pytest.fixture
def validator():
    return FieldValidator(today=lambda: TODAY)


class TestDates:
    def test_parse_iso_and_day_first(self):
        assert parse_date("1990-04-12") == date(1990, 4, 12)
        assert parse_date("12/04/1990") == date(1990, 4, 12)
        assert parse_date("12.04.1990") == date(1990, 4, 12)

    def test_parse_garbage(self):
        assert parse_date("not a date") is None

    def test_age_before_and_after_birthday(self):
        assert calculate_age(date(2008, 6, 2), TODAY) == 17
        assert calculate_age(date(2008, 6, 1), TODAY) == 18


class TestFieldValidator:
    def test_complete_drivers_license(self, validator):
        result = validator.validate(_data(), DocumentType.DRIVERS_LICENSE, UserType.CUSTOMER)
        assert result.is_valid
        assert result.errors == []
        assert result.completeness == 1.0
        assert result.consistency == 1.0
        assert result.suspicious_patterns == []

    def test_missing_base_field(self, validator):
        result = validator.validate(_data(first_name=""), DocumentType.NATIONAL_ID, UserType.CUSTOMER)
        assert not result.is_valid
        assert result.errors == ["First name missing"]
        assert result.completeness == pytest.approx(0.75)

    def test_passport_needs_nationality_and_expiry(self, validator):
        data = _data(DocumentType.PASSPORT, expiry_date="")
        result = validator.validate(data, DocumentType.PASSPORT, UserType.CUSTOMER)
        assert result.errors == [
            "Nationality missing for passport",
            "Expiry date missing for passport",
        ]
        assert result.completeness == pytest.approx(4 / 6)

    def test_license_needs_expiry(self, validator):
        result = validator.validate(_data(expiry_date=""), DocumentType.DRIVERS_LICENSE, UserType.CUSTOMER)
        assert result.errors == ["Expiry date missing for drivers license"]

    def test_suspicious_patterns(self):
        data = _data(document_number="1111", first_name="J", last_name="D")
        patterns = FieldValidator.detect_suspicious_patterns(data)
        assert patterns == [
            "Suspiciously short document number",
            "Document number contains repeated digits",
            "Suspiciously short first name",
            "Suspiciously short last name",
        ]

    def test_driver_with_national_id_is_inconsistent(self, validator):
        consistency, issues = validator.check_consistency(
            _data(DocumentType.NATIONAL_ID), UserType.DRIVER, DocumentType.NATIONAL_ID,
        )
        assert consistency == 0.5
        assert issues == ["Drivers must verify with a driver's license"]

    def test_underage_driver(self, validator):
        consistency, issues = validator.check_consistency(
            _data(date_of_birth="2010-01-01"), UserType.DRIVER, DocumentType.DRIVERS_LICENSE,
        )
        assert consistency == 0.7
        assert issues == ["Driver is younger than 18"]

    def test_customer_age_is_not_checked(self, validator):
        consistency, issues = validator.check_consistency(
            _data(date_of_birth="2015-01-01"), UserType.CUSTOMER, DocumentType.DRIVERS_LICENSE,
        )
        assert consistency == 1.0
        assert issues == []


class TestOCRReader:
    def test_reads_fields_and_confidence(self):
        result = OCRReader(FakeExtractor()).read(b"img", DocumentType.DRIVERS_LICENSE)
        data = result.extracted_data
        assert data.document_number == "D1234567"
        assert data.first_name == "JANE"
        assert result.confidence == pytest.approx(0.95)
        assert result.errors == []

    def test_drops_low_confidence_fields(self):
        fields = good_fields() + [ExtractedField("nationality", "XX", 0.2)]
        result = OCRReader(FakeExtractor(fields=fields)).read(b"img", DocumentType.PASSPORT)
        assert result.extracted_data.nationality == ""
        # the dropped field still counts toward the mean confidence
        assert result.confidence == pytest.approx((0.95 * 6 + 0.2) / 7, abs=1e-4)

    def test_ignores_unknown_fields(self):
        fields = good_fields() + [ExtractedField("barcode", "123", 0.1)]
        result = OCRReader(FakeExtractor(fields=fields)).read(b"img", DocumentType.DRIVERS_LICENSE)
        assert result.confidence == pytest.approx(0.95)

    def test_invalid_date_format(self):
        fields = good_fields(date_of_birth="31/31/1990")
        result = OCRReader(FakeExtractor(fields=fields)).read(b"img", DocumentType.DRIVERS_LICENSE)
        assert result.errors == ["Invalid date of birth format"]

    def test_no_fields_gives_zero_confidence(self):
        result = OCRReader(FakeExtractor(fields=[])).read(b"img", DocumentType.DRIVERS_LICENSE)
        assert result.confidence == 0.0
        assert result.extracted_data.document_number == ""

    def test_extractor_returning_nothing_raises(self):
        class EmptyExtractor(FakeExtractor):
            def extract_fields(self, image_bytes, document_type):
                return None

        with pytest.raises(AnalysisFailure):
            OCRReader(EmptyExtractor()).read(b"img", DocumentType.DRIVERS_LICENSE)
