"""End-to-end tests for the extraction pipeline."""

import logging
from decimal import Decimal
from pathlib import Path

import pytest

from receipt_extraction.consolidation.consolidator import ConsolidatedResult
from receipt_extraction.normalization.text_normalizer import TextQuality
from receipt_extraction.pipeline import ExtractionPipeline
from receipt_extraction.structure.document_structure import DocumentFormat
from receipt_extraction.utils.config import AppConfig, StrategyConfig, ValidationConfig


@pytest.fixture
def app_config(config_dir: Path) -> AppConfig:
    rules_path = str(config_dir / "validation_rules.yaml")
    return AppConfig(validation=ValidationConfig(rules_path=rules_path))


@pytest.fixture
def pipeline(app_config: AppConfig) -> ExtractionPipeline:
    return ExtractionPipeline(app_config)


class TestExtractionPipeline:
    """Tests for the ExtractionPipeline class."""

    def test_clean_receipt(
        self, pipeline: ExtractionPipeline, home_depot_text: str
    ) -> None:
        run = pipeline.process(home_depot_text)

        assert run.processed.quality == TextQuality.EXCELLENT
        assert run.structure.format == DocumentFormat.RECEIPT
        assert len(run.strategy_results) == 4

        consolidated = run.consolidated
        assert consolidated.vendor == "Home Depot"
        assert consolidated.total == Decimal("21.60")
        assert consolidated.subtotal == Decimal("20.00")
        assert consolidated.tax == Decimal("1.60")
        assert consolidated.date == "2024-12-25"
        assert consolidated.validation_passed
        assert consolidated.overall_confidence == pytest.approx(2.65 / 3)

        assert run.validation is not None
        passed = {r.rule_name for r in run.validation.results if r.is_valid}
        assert {"sum", "tax_rate", "line_item_sum"} <= passed
        assert run.validation.needs_manual_review is False

    def test_stage_timings(
        self, pipeline: ExtractionPipeline, home_depot_text: str
    ) -> None:
        run = pipeline.process(home_depot_text)
        assert set(run.timings) == {
            "normalization",
            "structure",
            "strategies",
            "consolidation",
            "validation",
        }
        assert all(ms >= 0 for ms in run.timings.values())
        assert run.processing_time_ms >= 0

    def test_noisy_receipt(self, pipeline: ExtractionPipeline, noisy_text: str) -> None:
        consolidated = pipeline.extract(noisy_text)
        assert consolidated.vendor == "Home Depot"
        assert consolidated.total == Decimal("21.60")
        assert consolidated.date == "2024-12-25"

    def test_ocr_error_example(self, pipeline: ExtractionPipeline) -> None:
        run = pipeline.process("TOTAI : $12.3O")
        assert run.processed.cleaned == "TOTAL: $12.30"
        assert run.consolidated.total == Decimal("12.30")
        assert run.consolidated.vendor is None
        assert run.consolidated.overall_confidence == pytest.approx(0.9)
        assert run.consolidated.validation_passed is False

    def test_symbol_noise(
        self, pipeline: ExtractionPipeline, symbol_noise: str
    ) -> None:
        run = pipeline.process(symbol_noise)
        assert run.processed.quality == TextQuality.POOR
        assert run.strategy_results == []
        assert run.consolidated == ConsolidatedResult()

    def test_empty_text(self, pipeline: ExtractionPipeline) -> None:
        run = pipeline.process("")
        assert run.consolidated == ConsolidatedResult()
        assert run.structure.sections == []
        assert run.structure.format == DocumentFormat.UNKNOWN
        assert run.validation is None
        assert set(run.timings) == {"normalization"}

    def test_rejects_non_string(self, pipeline: ExtractionPipeline) -> None:
        with pytest.raises(TypeError):
            pipeline.process(None)  # type: ignore[arg-type]

    def test_reusable_across_documents(
        self, pipeline: ExtractionPipeline, home_depot_text: str, noisy_text: str
    ) -> None:
        first = pipeline.extract(home_depot_text)
        pipeline.extract(noisy_text)
        assert pipeline.extract(home_depot_text) == first

    def test_parallel_config(
        self, app_config: AppConfig, home_depot_text: str
    ) -> None:
        sequential = ExtractionPipeline(app_config).extract(home_depot_text)
        parallel_config = app_config.model_copy(
            update={"strategies": StrategyConfig(parallel=True)}
        )
        parallel = ExtractionPipeline(parallel_config).extract(home_depot_text)
        assert parallel == sequential

    def test_from_config_file(self, config_dir: Path, home_depot_text: str) -> None:
        pipeline = ExtractionPipeline.from_config_file(config_dir / "config.yaml")
        assert pipeline.engine.min_confidence == 0.2
        assert pipeline.extract(home_depot_text).vendor == "Home Depot"

    def test_from_config_file_applies_log_level(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("log_level: DEBUG\n")
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        root.handlers.clear()
        try:
            ExtractionPipeline.from_config_file(config_file, configure_logging=True)
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_from_config_file_leaves_logging_alone(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("log_level: DEBUG\n")
        root = logging.getLogger()
        level = root.level
        ExtractionPipeline.from_config_file(config_file)
        assert root.level == level

    def test_to_record(
        self, pipeline: ExtractionPipeline, home_depot_text: str
    ) -> None:
        record = pipeline.process(home_depot_text).to_record()
        assert record.vendor == "Home Depot"
        assert record.total == 21.6
        assert record.validation
        assert record.needs_manual_review is False
        assert set(record.field_confidences) == {"vendor", "total", "date"}

    def test_high_value_line_items(self, pipeline: ExtractionPipeline) -> None:
        consolidated = pipeline.extract(
            "ACME SUPPLY CO\nLAPTOP $1,299.99\nMOUSE $25.00\n"
            "SUBTOTAL $1,324.99\nTAX $105.99\nTOTAL $1,430.98"
        )
        assert consolidated.line_items is not None
        assert [item.description for item in consolidated.line_items] == [
            "LAPTOP",
            "MOUSE",
        ]
        assert consolidated.total == Decimal("1430.98")
