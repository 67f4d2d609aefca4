"""Pydantic output schemas for consolidated extraction records."""

from decimal import Decimal

from pydantic import BaseModel, Field

from receipt_extraction.consolidation.consolidator import ConsolidatedResult
from receipt_extraction.validation.rules_engine import ValidationReport


def _as_float(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


class LineItemRecord(BaseModel):
    """Output schema for a single line item."""

    description: str
    quantity: int | None = None
    unit_price: float | None = None
    total_price: float | None = None
    confidence: float


class ValidationCheckRecord(BaseModel):
    """Output schema for a validation check result."""

    field_name: str
    is_valid: bool
    message: str
    rule_name: str


class ExtractionRecord(BaseModel):
    """JSON-ready record for one processed document."""

    vendor: str | None = None
    vendor_confidence: float | None = None
    total: float | None = None
    total_confidence: float | None = None
    subtotal: float | None = None
    tax: float | None = None
    date: str | None = None
    date_confidence: float | None = None
    line_items: list[LineItemRecord] = Field(default_factory=list)
    extraction_methods: list[str] = Field(default_factory=list)
    sources: dict[str, str] = Field(default_factory=dict)
    overall_confidence: float = 0.0
    validation_passed: bool = False
    validation: list[ValidationCheckRecord] = Field(default_factory=list)
    field_confidences: dict[str, float] = Field(default_factory=dict)
    needs_manual_review: bool = False
    suggestions: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(
        cls,
        result: ConsolidatedResult,
        report: ValidationReport | None = None,
    ) -> "ExtractionRecord":
        """Build a record from a consolidated result.

        Args:
            result: Consolidated extraction result.
            report: Optional validation report to attach.

        Returns:
            Record with amounts converted to floats. Validation fields stay
            empty when no report is given.
        """
        items = [
            LineItemRecord(
                description=item.description,
                quantity=item.quantity,
                unit_price=_as_float(item.unit_price),
                total_price=_as_float(item.total_price),
                confidence=item.confidence,
            )
            for item in result.line_items or []
        ]
        checks = [
            ValidationCheckRecord(
                field_name=r.field_name,
                is_valid=r.is_valid,
                message=r.message,
                rule_name=r.rule_name,
            )
            for r in (report.results if report else [])
        ]
        return cls(
            vendor=result.vendor,
            vendor_confidence=result.vendor_confidence,
            total=_as_float(result.total),
            total_confidence=result.total_confidence,
            subtotal=_as_float(result.subtotal),
            tax=_as_float(result.tax),
            date=result.date,
            date_confidence=result.date_confidence,
            line_items=items,
            extraction_methods=list(result.extraction_methods),
            sources=dict(result.sources),
            overall_confidence=result.overall_confidence,
            validation_passed=result.validation_passed,
            validation=checks,
            field_confidences=dict(report.field_confidences) if report else {},
            needs_manual_review=report.needs_manual_review if report else False,
            suggestions=list(report.suggestions) if report else [],
        )
