"""Merges per-strategy results into one record per document."""

from dataclasses import dataclass, field
from decimal import Decimal

from receipt_extraction.extraction.results import ExtractionResult, LineItem
from receipt_extraction.extraction.scoring import overall_confidence, rank_key
from receipt_extraction.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ConsolidatedResult:
    """Final extraction record.

    Each field comes from exactly one strategy; ``sources`` records which.
    """

    vendor: str | None = None
    vendor_confidence: float | None = None
    total: Decimal | None = None
    total_confidence: float | None = None
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    date: str | None = None
    date_confidence: float | None = None
    line_items: list[LineItem] | None = None
    extraction_methods: list[str] = field(default_factory=list)
    sources: dict[str, str] = field(default_factory=dict)
    overall_confidence: float = 0.0
    validation_passed: bool = False


class ResultConsolidator:
    """Selects the most trustworthy value per field.

    Results are ranked by confidence (priority breaks ties) and each field
    is taken from the first ranked result that has it. Different fields can
    therefore come from different strategies.

    Args:
        validation_threshold: Minimum vendor and total confidence for
            ``validation_passed``.
    """

    def __init__(self, validation_threshold: float = 0.5) -> None:
        self.validation_threshold = validation_threshold

    def consolidate(self, results: list[ExtractionResult]) -> ConsolidatedResult:
        """Merge strategy results.

        Args:
            results: Strategy outputs in any order. Not modified.

        Returns:
            A fresh consolidated record; the zero record when ``results`` is
            empty.
        """
        consolidated = ConsolidatedResult()
        if not results:
            logger.info("No strategy results to consolidate")
            return consolidated

        ranked = sorted(results, key=rank_key)
        methods = consolidated.extraction_methods

        for result in ranked:
            if result.has_fields() and result.strategy not in methods:
                methods.append(result.strategy)

            if result.vendor and consolidated.vendor is None:
                consolidated.vendor = result.vendor.name
                consolidated.vendor_confidence = result.vendor.confidence
                consolidated.sources["vendor"] = result.strategy

            if result.total and consolidated.total is None:
                consolidated.total = result.total.value
                consolidated.total_confidence = result.total.confidence
                consolidated.sources["total"] = result.strategy

            if result.subtotal and consolidated.subtotal is None:
                consolidated.subtotal = result.subtotal.value
                consolidated.sources["subtotal"] = result.strategy

            if result.tax and consolidated.tax is None:
                consolidated.tax = result.tax.value
                consolidated.sources["tax"] = result.strategy

            if result.date and consolidated.date is None:
                consolidated.date = result.date.value
                consolidated.date_confidence = result.date.confidence
                consolidated.sources["date"] = result.strategy

            if result.line_items and consolidated.line_items is None:
                consolidated.line_items = list(result.line_items)
                consolidated.sources["line_items"] = result.strategy

        consolidated.overall_confidence = overall_confidence(
            consolidated.vendor_confidence,
            consolidated.total_confidence,
            consolidated.date_confidence,
        )
        consolidated.validation_passed = (
            (consolidated.vendor_confidence or 0.0) >= self.validation_threshold
            and (consolidated.total_confidence or 0.0) >= self.validation_threshold
        )

        logger.info(
            "Consolidated %d results: confidence=%.3f, validation %s",
            len(results),
            consolidated.overall_confidence,
            "passed" if consolidated.validation_passed else "failed",
        )
        return consolidated
