"""Tests for the validation rules engine."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from receipt_extraction.consolidation.consolidator import ConsolidatedResult
from receipt_extraction.extraction.results import LineItem
from receipt_extraction.structure.document_structure import DocumentFormat
from receipt_extraction.utils.config import ValidationConfig
from receipt_extraction.validation.rules_engine import (
    LARGE_TOTAL_SUGGESTION,
    REVIEW_SUGGESTION,
    RulesEngine,
    ValidationReport,
    ValidationResult,
)

TODAY = date(2025, 1, 1)


def receipt_result(**overrides: object) -> ConsolidatedResult:
    """A consistent Home Depot record; keyword arguments replace fields."""
    values: dict[str, object] = {
        "vendor": "Home Depot",
        "vendor_confidence": 0.95,
        "total": Decimal("21.60"),
        "total_confidence": 0.9,
        "subtotal": Decimal("20.00"),
        "tax": Decimal("1.60"),
        "date": "2024-12-25",
        "date_confidence": 0.8,
        "line_items": [
            LineItem("HAMMER", 0.8, quantity=1, total_price=Decimal("12.99")),
            LineItem("2X4 LUMBER", 0.7, total_price=Decimal("7.01")),
        ],
        "validation_passed": True,
    }
    values.update(overrides)
    return ConsolidatedResult(**values)  # type: ignore[arg-type]


@pytest.fixture
def rules_engine(config_dir: Path) -> RulesEngine:
    return RulesEngine(config_dir / "validation_rules.yaml")


class TestValidationResult:
    """Tests for the ValidationResult data class."""

    def test_creation(self) -> None:
        result = ValidationResult("date", True, "Valid", "date_format", 0.1)
        assert result.field_name == "date"
        assert result.is_valid is True
        assert result.confidence_adjustment == 0.1

    def test_report_failures(self) -> None:
        report = ValidationReport(
            all_valid=False,
            results=[
                ValidationResult("total", True, "ok", "required"),
                ValidationResult("vendor", False, "missing", "required"),
            ],
        )
        assert [r.field_name for r in report.failures] == ["vendor"]


class TestFieldValidators:
    """Tests for the single-field validators."""

    def setup_method(self) -> None:
        self.engine = RulesEngine(Path("/nonexistent/rules.yaml"))

    def test_required(self) -> None:
        assert self.engine._validate_required("vendor", "ACME", {}).is_valid
        missing = self.engine._validate_required("vendor", None, {})
        assert missing.is_valid is False
        assert missing.confidence_adjustment == -0.5
        assert not self.engine._validate_required("vendor", "  ", {}).is_valid

    def test_validate_date_valid_formats(self) -> None:
        valid_dates = [
            "01/15/2024",
            "2024-01-15",
            "January 15, 2024",
            "Jan 15, 2024",
            "15 January 2024",
        ]
        for value in valid_dates:
            result = self.engine._validate_date_format("date", value, {})
            assert result.is_valid, f"Expected valid: {value}"

    def test_validate_date_invalid(self) -> None:
        result = self.engine._validate_date_format("date", "not-a-date", {})
        assert result.is_valid is False
        assert result.confidence_adjustment < 0

    def test_validate_date_none(self) -> None:
        assert self.engine._validate_date_format("date", None, {}).is_valid

    def test_validate_positive_amount_valid(self) -> None:
        result = self.engine._validate_positive_amount("total", Decimal("12.30"), {})
        assert result.is_valid is True
        assert result.confidence_adjustment == 0.1

    def test_validate_positive_amount_with_comma(self) -> None:
        result = self.engine._validate_positive_amount("total", "$1,234.56", {})
        assert result.is_valid is True

    @pytest.mark.parametrize("value", ["0", "-100", "abc"])
    def test_validate_positive_amount_invalid(self, value: str) -> None:
        result = self.engine._validate_positive_amount("total", value, {})
        assert result.is_valid is False

    def test_validate_positive_amount_none(self) -> None:
        assert self.engine._validate_positive_amount("total", None, {}).is_valid

    def test_validate_amount_range(self) -> None:
        rule = {"min": 10, "max": 1000}
        assert self.engine._validate_amount_range("total", "500", rule).is_valid
        below = self.engine._validate_amount_range("total", "50.5", {"min": 100})
        assert below.is_valid is False
        assert not self.engine._validate_amount_range("total", "5000", rule).is_valid
        assert self.engine._validate_amount_range("total", None, rule).is_valid

    def test_amount_range_default_max_from_config(self) -> None:
        engine = RulesEngine(
            Path("/nonexistent/rules.yaml"), ValidationConfig(max_total=100.0)
        )
        assert not engine._validate_amount_range("total", "150", {}).is_valid

    def test_date_range(self) -> None:
        check = self.engine._validate_date_range
        assert check("date", "2024-12-25", {}, TODAY).is_valid
        assert check("date", "2025-01-02", {}, TODAY).is_valid
        future = check("date", "2025-01-03", {}, TODAY)
        assert future.is_valid is False
        assert future.confidence_adjustment == -0.3
        assert not check("date", "2015-01-01", {}, TODAY).is_valid
        assert not check("date", "2024-11-01", {"max_age_days": 30}, TODAY).is_valid
        assert not check("date", "garbage", {}, TODAY).is_valid
        assert check("date", None, {}, TODAY).is_valid

    def test_regex(self) -> None:
        rule = {"pattern": r"^\d{4}-"}
        assert self.engine._validate_regex("date", "2024-01-01", rule).is_valid
        assert not self.engine._validate_regex("date", "x", rule).is_valid
        assert self.engine._validate_regex("date", None, rule).is_valid


class TestRulesEngine:
    """Tests for full-record validation."""

    def test_consistent_receipt(self, rules_engine: RulesEngine) -> None:
        report = rules_engine.validate(receipt_result(), "receipt", today=TODAY)
        assert report.all_valid
        assert report.warnings == []
        rule_names = [r.rule_name for r in report.results]
        assert rule_names[-3:] == ["sum", "tax_rate", "line_item_sum"]
        assert report.field_confidences["vendor"] == pytest.approx(0.95)
        assert report.field_confidences["total"] == pytest.approx(1.0)
        assert report.field_confidences["date"] == pytest.approx(0.95)

    def test_missing_vendor(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(vendor=None, vendor_confidence=None)
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert not report.all_valid
        assert [(r.field_name, r.rule_name) for r in report.failures] == [
            ("vendor", "required")
        ]
        assert "vendor" not in report.field_confidences

    def test_sum_mismatch(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(total=Decimal("25.00"), line_items=None)
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert [r.rule_name for r in report.failures] == ["sum"]

    def test_tax_rate_too_high(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(
            subtotal=Decimal("10.00"),
            tax=Decimal("2.00"),
            total=Decimal("12.00"),
            line_items=None,
        )
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert len(report.failures) == 1
        assert report.failures[0].rule_name == "tax_rate"
        assert "exceeds" in report.failures[0].message

    def test_line_items_mismatch(self, rules_engine: RulesEngine) -> None:
        items = [LineItem("WIDGET", 0.7, total_price=Decimal("5.00"))]
        report = rules_engine.validate(
            receipt_result(line_items=items), "receipt", today=TODAY
        )
        assert [r.rule_name for r in report.failures] == ["line_item_sum"]

    def test_line_items_against_total(self, rules_engine: RulesEngine) -> None:
        items = [LineItem("WIDGET", 0.7, total_price=Decimal("10.00"))]
        result = receipt_result(
            subtotal=None, tax=None, total=Decimal("10.30"), line_items=items
        )
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert report.all_valid
        assert [r.rule_name for r in report.results][-1] == "line_item_sum"

    def test_unknown_format_uses_receipt_rules(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(vendor=None, vendor_confidence=None)
        report = rules_engine.validate(result, DocumentFormat.STATEMENT, today=TODAY)
        assert ("vendor", "required") in [
            (r.field_name, r.rule_name) for r in report.failures
        ]

    def test_bill_does_not_require_vendor(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(vendor=None, vendor_confidence=None)
        report = rules_engine.validate(result, DocumentFormat.BILL, today=TODAY)
        assert report.all_valid

    def test_invoice_requires_date(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(date=None, date_confidence=None)
        report = rules_engine.validate(result, DocumentFormat.INVOICE, today=TODAY)
        assert [(r.field_name, r.rule_name) for r in report.failures] == [
            ("date", "required")
        ]

    def test_report_does_not_change_result(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(total=Decimal("99.00"))
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert not report.all_valid
        assert result.validation_passed is True
        assert result.total_confidence == 0.9

    def test_unknown_rule_type_warns(self, tmp_path: Path) -> None:
        rules_file = tmp_path / "rules.yaml"
        with open(rules_file, "w") as f:
            yaml.dump({"receipt": {"vendor": [{"type": "bogus"}]}}, f)

        report = RulesEngine(rules_file).validate(receipt_result(), today=TODAY)
        assert report.warnings == ["Unknown rule type: bogus"]

    def test_missing_rules_file_uses_defaults(self, tmp_path: Path) -> None:
        engine = RulesEngine(tmp_path / "missing.yaml")
        assert set(engine.rules) == {"receipt", "invoice"}
        assert engine.validate(receipt_result(), today=TODAY).all_valid


class TestManualReview:
    """Tests for the manual review flag and fix suggestions."""

    def test_confident_consistent_receipt(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(overall_confidence=0.9)
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert report.needs_manual_review is False
        assert report.suggestions == []

    def test_low_confidence_needs_review(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(overall_confidence=0.4)
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert report.all_valid
        assert report.needs_manual_review is True
        assert report.suggestions == [REVIEW_SUGGESTION]

    def test_review_threshold_from_config(self, config_dir: Path) -> None:
        engine = RulesEngine(
            config_dir / "validation_rules.yaml",
            ValidationConfig(review_confidence=0.3),
        )
        report = engine.validate(
            receipt_result(overall_confidence=0.4), "receipt", today=TODAY
        )
        assert report.needs_manual_review is False

    def test_many_failures_need_review(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(
            vendor=None,
            vendor_confidence=None,
            total=Decimal("-5.00"),
            overall_confidence=0.9,
        )
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert len(report.failures) > 2
        assert report.needs_manual_review is True
        assert report.suggestions == [
            "Check top lines of receipt for vendor name",
            "Check for OCR errors in prices",
            "Consider using the calculated total from subtotal + tax",
            REVIEW_SUGGESTION,
        ]

    def test_sum_mismatch_suggestion(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(
            total=Decimal("25.00"), line_items=None, overall_confidence=0.9
        )
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert report.needs_manual_review is False
        assert report.suggestions == [
            "Consider using the calculated total from subtotal + tax"
        ]

    def test_large_total_suggestion(self, rules_engine: RulesEngine) -> None:
        result = receipt_result(
            subtotal=Decimal("1200.00"),
            tax=Decimal("96.00"),
            total=Decimal("1296.00"),
            line_items=None,
            overall_confidence=0.9,
        )
        report = rules_engine.validate(result, "receipt", today=TODAY)
        assert report.all_valid
        assert report.suggestions == [LARGE_TOTAL_SUGGESTION]
