"""End-to-end receipt extraction pipeline.

raw OCR text -> normalization -> structure analysis -> strategies ->
consolidation -> validation report.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path

from receipt_extraction.consolidation.consolidator import (
    ConsolidatedResult,
    ResultConsolidator,
)
from receipt_extraction.extraction.engine import StrategyEngine
from receipt_extraction.extraction.results import ExtractionResult
from receipt_extraction.normalization.text_normalizer import (
    ProcessedText,
    TextNormalizer,
)
from receipt_extraction.schemas import ExtractionRecord
from receipt_extraction.structure.document_structure import (
    DocumentFormat,
    DocumentLayout,
    DocumentStructure,
    DocumentStructureAnalyzer,
)
from receipt_extraction.utils.config import (
    AppConfig,
    TextProcessingOptions,
    load_config,
)
from receipt_extraction.utils.logger import get_logger, setup_logging
from receipt_extraction.validation.rules_engine import RulesEngine, ValidationReport

logger = get_logger(__name__)


@dataclass
class PipelineResult:
    """Every intermediate product of one pipeline run.

    ``timings`` holds milliseconds per stage.
    """

    processed: ProcessedText
    structure: DocumentStructure
    strategy_results: list[ExtractionResult]
    consolidated: ConsolidatedResult
    validation: ValidationReport | None
    timings: dict[str, float] = field(default_factory=dict)
    processing_time_ms: float = 0.0

    def to_record(self) -> ExtractionRecord:
        """Serializable record of the consolidated result and its report."""
        return ExtractionRecord.from_result(self.consolidated, self.validation)


class ExtractionPipeline:
    """Runs the full extraction chain for one OCR text at a time.

    Holds no per-document state, so one instance can serve many documents.

    Args:
        config: Application configuration. Defaults to built-in defaults.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or AppConfig()
        self.normalizer = TextNormalizer()
        self.analyzer = DocumentStructureAnalyzer()
        self.engine = StrategyEngine.from_config(self.config.strategies)
        self.consolidator = ResultConsolidator(
            validation_threshold=self.config.consolidation.validation_threshold
        )
        self.rules_engine = RulesEngine(
            Path(self.config.validation.rules_path), self.config.validation
        )

    @classmethod
    def from_config_file(
        cls, path: Path, configure_logging: bool = False
    ) -> "ExtractionPipeline":
        """Build a pipeline from a YAML config file.

        Args:
            path: Path to the YAML configuration file.
            configure_logging: Also apply the file's ``log_level`` through
                ``setup_logging``, for callers that own the process.

        Returns:
            Pipeline configured from the file.
        """
        config = load_config(Path(path))
        if configure_logging:
            setup_logging(config.log_level)
        return cls(config)

    def process(
        self, text: str, options: TextProcessingOptions | None = None
    ) -> PipelineResult:
        """Run every stage and keep the intermediate results.

        Args:
            text: Raw OCR output.
            options: Normalizer switches. Defaults to the configured ones.

        Returns:
            Pipeline result with stage timings.

        Raises:
            TypeError: If ``text`` is not a string.
        """
        if not isinstance(text, str):
            raise TypeError(f"text must be str, not {type(text).__name__}")

        options = options or self.config.text_processing
        timings: dict[str, float] = {}
        start = time.perf_counter()

        stage = time.perf_counter()
        processed = self.normalizer.normalize(text, options)
        timings["normalization"] = (time.perf_counter() - stage) * 1000

        if not processed.cleaned:
            logger.warning("Empty OCR text, skipping extraction")
            structure = DocumentStructure(
                sections=[],
                format=DocumentFormat.UNKNOWN,
                layout=DocumentLayout.LINEAR,
                confidence=0.0,
            )
            return PipelineResult(
                processed=processed,
                structure=structure,
                strategy_results=[],
                consolidated=ConsolidatedResult(),
                validation=None,
                timings=timings,
                processing_time_ms=(time.perf_counter() - start) * 1000,
            )

        stage = time.perf_counter()
        structure = self.analyzer.analyze(processed.cleaned)
        timings["structure"] = (time.perf_counter() - stage) * 1000

        stage = time.perf_counter()
        strategy_results = self.engine.run(structure, processed)
        timings["strategies"] = (time.perf_counter() - stage) * 1000

        stage = time.perf_counter()
        consolidated = self.consolidator.consolidate(strategy_results)
        timings["consolidation"] = (time.perf_counter() - stage) * 1000

        stage = time.perf_counter()
        report = self.rules_engine.validate(consolidated, structure.format)
        timings["validation"] = (time.perf_counter() - stage) * 1000

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            "Processed document in %.1f ms: vendor=%s total=%s confidence=%.3f",
            elapsed,
            consolidated.vendor,
            consolidated.total,
            consolidated.overall_confidence,
        )
        return PipelineResult(
            processed=processed,
            structure=structure,
            strategy_results=strategy_results,
            consolidated=consolidated,
            validation=report,
            timings=timings,
            processing_time_ms=elapsed,
        )

    def extract(
        self, text: str, options: TextProcessingOptions | None = None
    ) -> ConsolidatedResult:
        """Run the pipeline and return only the consolidated record."""
        return self.process(text, options).consolidated
