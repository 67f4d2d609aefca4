"""Configurable validation rules for consolidated extraction results.

Checks required fields, amount sanity and date plausibility per document
format, plus cross-field arithmetic (subtotal + tax = total, tax rate, line
item sum). Documents with low confidence or several failed checks are
flagged for manual review, and failed checks carry fix suggestions. The
report is informational: it never changes a result's
``validation_passed`` flag.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from receipt_extraction.consolidation.consolidator import ConsolidatedResult
from receipt_extraction.utils.config import ValidationConfig
from receipt_extraction.utils.logger import get_logger

logger = get_logger(__name__)


DATE_FORMATS: list[str] = [
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%m-%d-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
]

SUM_TOLERANCE = Decimal("0.02")
LINE_ITEM_TOLERANCE = Decimal("0.05")
LARGE_TOTAL = Decimal("1000")
DEFAULT_FORMAT = "receipt"

# Fix hints for failed checks, looked up by (field, rule) and then by rule.
SUGGESTIONS: dict[tuple[str, str] | str, str] = {
    ("vendor", "required"): "Check top lines of receipt for vendor name",
    ("total", "required"): "Check the totals block for a missing total",
    ("date", "required"): "Check the header and footer for a transaction date",
    "sum": "Consider using the calculated total from subtotal + tax",
    "tax_rate": "Check the tax line for OCR errors",
    "line_item_sum": "Verify line item calculations",
    "positive_amount": "Check for OCR errors in prices",
    "amount_range": "Check for OCR errors in prices",
    "date_format": "Verify date format and OCR accuracy",
    "date_range": "Verify date format and OCR accuracy",
    "regex": "Check the field for OCR artifacts",
}
LARGE_TOTAL_SUGGESTION = "Verify large amounts for accuracy"
REVIEW_SUGGESTION = "Consider manual review for low-confidence extractions"


@dataclass
class ValidationResult:
    """Result of a single validation check."""

    field_name: str
    is_valid: bool
    message: str
    rule_name: str
    confidence_adjustment: float = 0.0


@dataclass
class ValidationReport:
    """Aggregated validation report for a document."""

    all_valid: bool
    results: list[ValidationResult]
    warnings: list[str] = field(default_factory=list)
    field_confidences: dict[str, float] = field(default_factory=dict)
    needs_manual_review: bool = False
    suggestions: list[str] = field(default_factory=list)

    @property
    def failures(self) -> list[ValidationResult]:
        return [r for r in self.results if not r.is_valid]


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value).replace(",", "").replace("$", ""))


def _parse_date(value: Any) -> date | None:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(str(value), fmt).date()
        except ValueError:
            continue
    return None


class RulesEngine:
    """Validates consolidated results against per-format rules.

    Rules are loaded from a YAML file keyed by document format, then by
    field name, each field holding a list of ``{type: ...}`` rules. Formats
    without their own rules use the receipt rules.

    Args:
        rules_path: Path to the validation rules YAML file.
        config: Thresholds for the date range, tax rate and manual
            review checks.
    """

    def __init__(
        self,
        rules_path: Path = Path("configs/validation_rules.yaml"),
        config: ValidationConfig | None = None,
    ) -> None:
        self.config = config or ValidationConfig()
        self.rules = self._load_rules(Path(rules_path))
        self._validators: dict[str, Any] = {
            "required": self._validate_required,
            "positive_amount": self._validate_positive_amount,
            "amount_range": self._validate_amount_range,
            "date_format": self._validate_date_format,
            "date_range": self._validate_date_range,
            "regex": self._validate_regex,
        }

    def _load_rules(self, path: Path) -> dict:
        """Load validation rules from YAML file.

        Args:
            path: Path to the rules file.

        Returns:
            Dictionary of format-specific rules.
        """
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f)
                if data:
                    logger.info("Loaded validation rules from %s", path)
                    return data
        logger.debug("Using default validation rules")
        return self._default_rules()

    def _default_rules(self) -> dict:
        return {
            "receipt": {
                "vendor": [{"type": "required"}],
                "total": [{"type": "required"}, {"type": "positive_amount"}],
                "date": [{"type": "date_format"}, {"type": "date_range"}],
            },
            "invoice": {
                "vendor": [{"type": "required"}],
                "total": [{"type": "required"}, {"type": "positive_amount"}],
                "date": [{"type": "required"}, {"type": "date_format"}],
            },
        }

    def validate(
        self,
        result: ConsolidatedResult,
        document_format: str = DEFAULT_FORMAT,
        today: date | None = None,
    ) -> ValidationReport:
        """Validate a consolidated result.

        Args:
            result: Consolidated extraction record.
            document_format: Format reported by the structure analyzer.
            today: Reference date for the date range check. Defaults to
                the current date.

        Returns:
            Validation report with per-rule results, the manual review
            flag, fix suggestions and confidences adjusted by each rule's
            outcome.
        """
        today = today or date.today()
        fields = self._fields(result)
        results: list[ValidationResult] = []
        warnings: list[str] = []
        adjusted = {
            name: conf
            for name, conf in (
                ("vendor", result.vendor_confidence),
                ("total", result.total_confidence),
                ("date", result.date_confidence),
            )
            if conf is not None
        }

        doc_rules = self.rules.get(str(document_format))
        if doc_rules is None:
            doc_rules = self.rules.get(DEFAULT_FORMAT, {})

        for field_name, rules in doc_rules.items():
            value = fields.get(field_name)

            for rule in rules:
                rule_type = rule.get("type")
                validator = self._validators.get(rule_type)

                if not validator:
                    warnings.append(f"Unknown rule type: {rule_type}")
                    continue

                if rule_type == "date_range":
                    check = validator(field_name, value, rule, today)
                else:
                    check = validator(field_name, value, rule)
                results.append(check)

                if field_name in adjusted:
                    adjusted[field_name] += check.confidence_adjustment
                    adjusted[field_name] = max(0.0, min(1.0, adjusted[field_name]))

        results.extend(self._cross_validate(result))

        all_valid = all(r.is_valid for r in results)
        failures = [r for r in results if not r.is_valid]
        needs_review = (
            result.overall_confidence < self.config.review_confidence
            or len(failures) > self.config.max_failures
        )
        logger.info(
            "Validation for %s: %s (%d checks)",
            document_format,
            "PASSED" if all_valid else "FAILED",
            len(results),
        )
        if needs_review:
            logger.warning(
                "Flagged for manual review: confidence %.3f, %d failed checks",
                result.overall_confidence,
                len(failures),
            )

        return ValidationReport(
            all_valid=all_valid,
            results=results,
            warnings=warnings,
            field_confidences=adjusted,
            needs_manual_review=needs_review,
            suggestions=self._suggest(result, failures, needs_review),
        )

    def _suggest(
        self,
        result: ConsolidatedResult,
        failures: list[ValidationResult],
        needs_review: bool,
    ) -> list[str]:
        """Collect fix hints for failed checks, without duplicates."""
        suggestions: list[str] = []
        for failure in failures:
            hint = SUGGESTIONS.get(
                (failure.field_name, failure.rule_name),
                SUGGESTIONS.get(failure.rule_name),
            )
            if hint:
                suggestions.append(hint)
        if result.total is not None and result.total > LARGE_TOTAL:
            suggestions.append(LARGE_TOTAL_SUGGESTION)
        if needs_review:
            suggestions.append(REVIEW_SUGGESTION)
        return list(dict.fromkeys(suggestions))

    def _fields(self, result: ConsolidatedResult) -> dict[str, Any]:
        return {
            "vendor": result.vendor,
            "total": result.total,
            "subtotal": result.subtotal,
            "tax": result.tax,
            "date": result.date,
            "line_items": result.line_items,
        }

    def _validate_required(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Check that a required field is present and non-empty."""
        if value is not None and str(value).strip():
            return ValidationResult(
                field_name, True, "Required field present", "required", 0.0
            )
        return ValidationResult(
            field_name,
            False,
            f"Required field missing: {field_name}",
            "required",
            -0.5,
        )

    def _validate_positive_amount(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Check that a value is a positive monetary amount."""
        if value is None:
            return ValidationResult(
                field_name, True, "No value to validate", "positive_amount"
            )

        try:
            amount = _to_decimal(value)
        except InvalidOperation:
            return ValidationResult(
                field_name,
                False,
                f"Invalid amount format: {value}",
                "positive_amount",
                -0.3,
            )
        if amount > 0:
            return ValidationResult(
                field_name,
                True,
                f"Valid positive amount: {amount}",
                "positive_amount",
                0.1,
            )
        return ValidationResult(
            field_name,
            False,
            f"Amount must be positive: {amount}",
            "positive_amount",
            -0.2,
        )

    def _validate_amount_range(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Check that an amount falls within ``[min, max]``."""
        if value is None:
            return ValidationResult(
                field_name, True, "No value to validate", "amount_range"
            )

        try:
            amount = _to_decimal(value)
            min_val = Decimal(str(rule.get("min", 0)))
            max_val = Decimal(str(rule.get("max", self.config.max_total)))
        except (InvalidOperation, TypeError):
            return ValidationResult(
                field_name, False, f"Invalid amount: {value}", "amount_range", -0.2
            )

        if min_val <= amount <= max_val:
            return ValidationResult(
                field_name, True, "Amount in valid range", "amount_range", 0.05
            )
        return ValidationResult(
            field_name,
            False,
            f"Amount {amount} outside range [{min_val}, {max_val}]",
            "amount_range",
            -0.15,
        )

    def _validate_date_format(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Check that a value parses with one of the supported date formats."""
        if value is None:
            return ValidationResult(
                field_name, True, "No value to validate", "date_format"
            )

        if _parse_date(value) is not None:
            return ValidationResult(
                field_name, True, "Valid date format", "date_format", 0.1
            )
        return ValidationResult(
            field_name, False, f"Invalid date format: {value}", "date_format", -0.2
        )

    def _validate_date_range(
        self, field_name: str, value: Any, rule: dict, today: date
    ) -> ValidationResult:
        """Reject dates in the future or older than ``max_age_days``.

        One day of slack is allowed for time zones.
        """
        if value is None:
            return ValidationResult(
                field_name, True, "No value to validate", "date_range"
            )

        parsed = _parse_date(value)
        if parsed is None:
            return ValidationResult(
                field_name, False, f"Unparseable date: {value}", "date_range", -0.2
            )

        max_age = int(rule.get("max_age_days", self.config.max_age_days))
        if parsed > today + timedelta(days=1):
            return ValidationResult(
                field_name, False, f"Date in the future: {value}", "date_range", -0.3
            )
        if parsed < today - timedelta(days=max_age):
            return ValidationResult(
                field_name,
                False,
                f"Date older than {max_age} days: {value}",
                "date_range",
                -0.1,
            )
        return ValidationResult(field_name, True, "Date in range", "date_range", 0.05)

    def _validate_regex(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Validate a field value against a custom regex pattern."""
        if value is None:
            return ValidationResult(field_name, True, "No value to validate", "regex")

        pattern = rule.get("pattern", "")
        if re.match(pattern, str(value)):
            return ValidationResult(field_name, True, "Matches pattern", "regex", 0.05)
        return ValidationResult(
            field_name,
            False,
            f"Does not match pattern: {pattern}",
            "regex",
            -0.1,
        )

    def _cross_validate(self, result: ConsolidatedResult) -> list[ValidationResult]:
        """Run cross-field checks on whichever amounts are present.

        Args:
            result: Consolidated extraction record.

        Returns:
            Results for the sum, tax rate and line item checks that apply.
        """
        results: list[ValidationResult] = []
        subtotal, tax, total = result.subtotal, result.tax, result.total

        if subtotal is not None and tax is not None and total is not None:
            difference = abs(subtotal + tax - total)
            if difference <= SUM_TOLERANCE:
                results.append(
                    ValidationResult(
                        "amounts", True, "Subtotal plus tax matches total", "sum", 0.1
                    )
                )
            else:
                results.append(
                    ValidationResult(
                        "amounts",
                        False,
                        f"Subtotal ({subtotal}) + tax ({tax}) != total ({total})",
                        "sum",
                        -0.2,
                    )
                )

        if subtotal is not None and tax is not None and subtotal > 0:
            rate = tax / subtotal
            max_rate = Decimal(str(self.config.max_tax_rate))
            if rate <= max_rate:
                results.append(
                    ValidationResult("tax", True, f"Tax rate {rate:.2%}", "tax_rate")
                )
            else:
                results.append(
                    ValidationResult(
                        "tax",
                        False,
                        f"Tax rate {rate:.2%} exceeds {max_rate:.0%}",
                        "tax_rate",
                        -0.1,
                    )
                )

        reference = subtotal if subtotal is not None else total
        priced = [
            item.total_price
            for item in result.line_items or []
            if item.total_price is not None
        ]
        if priced and reference is not None:
            items_sum = sum(priced, Decimal("0"))
            tolerance = reference * LINE_ITEM_TOLERANCE
            if abs(items_sum - reference) <= tolerance:
                results.append(
                    ValidationResult(
                        "line_items",
                        True,
                        "Line items sum matches subtotal",
                        "line_item_sum",
                        0.1,
                    )
                )
            else:
                results.append(
                    ValidationResult(
                        "line_items",
                        False,
                        f"Line items sum ({items_sum}) doesn't match ({reference})",
                        "line_item_sum",
                        -0.15,
                    )
                )

        return results
