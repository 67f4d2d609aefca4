"""Accuracy benchmarking for receipt field extraction.

Compares consolidated extraction results against labeled ground truth and
computes precision, recall, F1 score and accuracy per field, plus how often
records that passed the validation gate were entirely correct.
"""

import csv
import json
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING

from receipt_extraction.consolidation.consolidator import ConsolidatedResult
from receipt_extraction.utils.logger import get_logger

if TYPE_CHECKING:
    from receipt_extraction.pipeline import ExtractionPipeline

logger = get_logger(__name__)

BENCHMARK_FIELDS: tuple[str, ...] = ("vendor", "total", "subtotal", "tax", "date")
AMOUNT_FIELDS = frozenset({"total", "subtotal", "tax"})


@dataclass
class FieldMetrics:
    """Precision, recall, F1, and accuracy metrics for a single field.

    Args:
        field_name: Name of the extracted field being measured.
    """

    field_name: str
    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    exact_matches: int = 0
    total: int = 0

    @property
    def precision(self) -> float:
        """Fraction of predicted values that are correct."""
        denom = self.true_positives + self.false_positives
        if denom == 0:
            return 0.0
        return self.true_positives / denom

    @property
    def recall(self) -> float:
        """Fraction of expected values that were correctly predicted."""
        denom = self.true_positives + self.false_negatives
        if denom == 0:
            return 0.0
        return self.true_positives / denom

    @property
    def f1(self) -> float:
        """Harmonic mean of precision and recall."""
        if self.precision + self.recall == 0:
            return 0.0
        return 2 * (self.precision * self.recall) / (self.precision + self.recall)

    @property
    def accuracy(self) -> float:
        """Fraction of values that matched the label."""
        if self.total == 0:
            return 0.0
        return self.exact_matches / self.total


@dataclass
class BenchmarkResult:
    """Aggregated benchmark results across all documents and fields.

    Args:
        total_documents: Number of documents in ground truth.
        successful_documents: Number of documents with predictions.
        overall_accuracy: Mean field-level accuracy.
        overall_f1: Mean field-level F1 score.
        field_metrics: Per-field metric details.
        validated_documents: Predictions with ``validation_passed`` set.
        validated_correct: Validated predictions with every field right.
        avg_processing_time_ms: Average processing time in milliseconds.
        errors: List of error messages encountered.
    """

    total_documents: int
    successful_documents: int
    overall_accuracy: float
    overall_f1: float
    field_metrics: dict[str, FieldMetrics]
    validated_documents: int = 0
    validated_correct: int = 0
    avg_processing_time_ms: float = 0.0
    errors: list[str] = field(default_factory=list)

    @property
    def validation_precision(self) -> float:
        """Fraction of validation-passed records that were fully correct."""
        if self.validated_documents == 0:
            return 0.0
        return self.validated_correct / self.validated_documents


def prediction_fields(result: ConsolidatedResult) -> dict[str, str]:
    """Flatten the benchmarked fields of a result into strings."""
    values = {
        "vendor": result.vendor,
        "total": result.total,
        "subtotal": result.subtotal,
        "tax": result.tax,
        "date": result.date,
    }
    return {name: str(value) for name, value in values.items() if value is not None}


class Evaluator:
    """Evaluates extraction results against ground truth labels.

    Vendors compare case-insensitively; amounts match within
    ``amount_tolerance``.

    Args:
        amount_tolerance: Largest accepted difference for amount fields.
    """

    def __init__(self, amount_tolerance: float = 0.01) -> None:
        self.amount_tolerance = Decimal(str(amount_tolerance))

    def evaluate(
        self,
        predictions: dict[str, ConsolidatedResult],
        ground_truth: dict[str, dict[str, str]],
    ) -> BenchmarkResult:
        """Compare predictions against ground truth and compute metrics.

        Args:
            predictions: Mapping of document id to consolidated result.
            ground_truth: Mapping of document id to expected field values.
                Fields outside vendor, total, subtotal, tax and date are
                ignored.

        Returns:
            Aggregated benchmark results with per-field metrics.
        """
        field_metrics: dict[str, FieldMetrics] = {}
        errors: list[str] = []
        missing_count = 0
        validated = 0
        validated_correct = 0

        for doc_id, labels in ground_truth.items():
            expected = {k: v for k, v in labels.items() if k in BENCHMARK_FIELDS}

            if doc_id not in predictions:
                errors.append(f"Missing prediction for {doc_id}")
                missing_count += 1
                for field_name in expected:
                    metrics = field_metrics.setdefault(
                        field_name, FieldMetrics(field_name)
                    )
                    metrics.total += 1
                    metrics.false_negatives += 1
                continue

            result = predictions[doc_id]
            predicted = prediction_fields(result)
            all_correct = True

            for field_name, expected_value in expected.items():
                metrics = field_metrics.setdefault(field_name, FieldMetrics(field_name))
                metrics.total += 1

                if field_name not in predicted:
                    metrics.false_negatives += 1
                    all_correct = False
                    continue

                pred_value = predicted[field_name].strip().lower()
                exp_value = str(expected_value).strip().lower()

                if pred_value == exp_value:
                    metrics.true_positives += 1
                    metrics.exact_matches += 1
                elif field_name in AMOUNT_FIELDS and self._amount_match(
                    pred_value, exp_value
                ):
                    metrics.true_positives += 1
                    metrics.exact_matches += 1
                else:
                    metrics.false_positives += 1
                    all_correct = False

            if result.validation_passed:
                validated += 1
                if all_correct:
                    validated_correct += 1

        all_f1 = [m.f1 for m in field_metrics.values() if m.total > 0]
        all_acc = [m.accuracy for m in field_metrics.values() if m.total > 0]

        return BenchmarkResult(
            total_documents=len(ground_truth),
            successful_documents=len(ground_truth) - missing_count,
            overall_accuracy=sum(all_acc) / len(all_acc) if all_acc else 0.0,
            overall_f1=sum(all_f1) / len(all_f1) if all_f1 else 0.0,
            field_metrics=field_metrics,
            validated_documents=validated,
            validated_correct=validated_correct,
            errors=errors,
        )

    def evaluate_corpus(
        self,
        pipeline: "ExtractionPipeline",
        documents: dict[str, str],
        ground_truth: dict[str, dict[str, str]],
    ) -> BenchmarkResult:
        """Run the pipeline over a corpus and evaluate the results.

        Args:
            pipeline: Configured extraction pipeline.
            documents: Mapping of document id to raw OCR text.
            ground_truth: Mapping of document id to expected field values.

        Returns:
            Benchmark results including mean processing time.
        """
        predictions: dict[str, ConsolidatedResult] = {}
        times: list[float] = []

        for doc_id, text in documents.items():
            run = pipeline.process(text)
            predictions[doc_id] = run.consolidated
            times.append(run.processing_time_ms)
            logger.debug("Processed %s in %.1f ms", doc_id, run.processing_time_ms)

        result = self.evaluate(predictions, ground_truth)
        result.avg_processing_time_ms = sum(times) / len(times) if times else 0.0
        logger.info(
            "Benchmarked %d documents: accuracy=%.2f%%",
            len(documents),
            result.overall_accuracy * 100,
        )
        return result

    def _amount_match(self, pred: str, expected: str) -> bool:
        """Check if two amount strings are equal within the tolerance."""
        pred_clean = pred.replace(",", "").replace("$", "").replace(" ", "")
        exp_clean = expected.replace(",", "").replace("$", "").replace(" ", "")

        try:
            difference = abs(Decimal(pred_clean) - Decimal(exp_clean))
        except ArithmeticError:
            return False
        return difference <= self.amount_tolerance

    def generate_report(
        self, result: BenchmarkResult, output_path: Path | None = None
    ) -> str:
        """Generate a human-readable benchmark report.

        Args:
            result: Benchmark results to format.
            output_path: Optional path to write the report file.

        Returns:
            Formatted report string.
        """
        lines = [
            "=" * 60,
            "BENCHMARK REPORT",
            "=" * 60,
            f"Total Documents:      {result.total_documents}",
            f"Successful:           {result.successful_documents}",
            f"Overall Accuracy:     {result.overall_accuracy:.2%}",
            f"Overall F1 Score:     {result.overall_f1:.3f}",
            f"Validation Precision: {result.validation_precision:.2%} "
            f"({result.validated_correct}/{result.validated_documents})",
            f"Avg Processing Time:  {result.avg_processing_time_ms:.1f}ms",
            "",
            "Field-Level Metrics:",
            "-" * 60,
            f"{'Field':<20} {'Precision':>10} {'Recall':>10} {'F1':>10} {'Accuracy':>10}",
            "-" * 60,
        ]

        for name, metrics in sorted(result.field_metrics.items()):
            lines.append(
                f"{name:<20} {metrics.precision:>10.2%} {metrics.recall:>10.2%} "
                f"{metrics.f1:>10.3f} {metrics.accuracy:>10.2%}"
            )

        target_met = result.overall_accuracy >= 0.9
        lines.extend(
            [
                "-" * 60,
                "",
                f"Target: >90% accuracy - {'PASSED' if target_met else 'FAILED'}",
                "=" * 60,
            ]
        )

        if result.errors:
            lines.append("")
            lines.append("Errors:")
            for error in result.errors:
                lines.append(f"  - {error}")

        report = "\n".join(lines)

        if output_path:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w") as f:
                f.write(report)
            logger.info("Report written to %s", output_path)

        return report


def load_ground_truth(path: Path) -> dict[str, dict[str, str]]:
    """Load ground truth labels from a JSON or CSV file.

    JSON format: ``{"doc_id": {"field": "value", ...}, ...}``
    CSV format: rows with a ``document`` column and field value columns.

    Args:
        path: Path to the ground truth file.

    Returns:
        Mapping of document id to field-value pairs.

    Raises:
        ValueError: If the file format is not supported.
    """
    if path.suffix == ".json":
        with open(path) as f:
            return json.load(f)

    if path.suffix == ".csv":
        gt: dict[str, dict[str, str]] = {}
        with open(path, newline="") as f:
            reader = csv.DictReader(f)
            for row in reader:
                doc_id = row.pop("document")
                gt[doc_id] = {k: v for k, v in row.items() if v}
        return gt

    raise ValueError(f"Unsupported ground truth format: {path.suffix}")
