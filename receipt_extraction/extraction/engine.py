"""Runs the applicable extraction strategies over one document."""

from concurrent.futures import ThreadPoolExecutor

from receipt_extraction.extraction.results import ExtractionResult
from receipt_extraction.extraction.strategies import (
    ExtractionStrategy,
    default_strategies,
)
from receipt_extraction.normalization.text_normalizer import ProcessedText
from receipt_extraction.structure.document_structure import DocumentStructure
from receipt_extraction.utils.config import StrategyConfig
from receipt_extraction.utils.logger import get_logger

logger = get_logger(__name__)


class StrategyEngine:
    """Holds an ordered set of strategies and collects their results.

    Strategies are evaluated in descending priority. Results at or below
    ``min_confidence`` are discarded. With ``parallel`` the applicable
    strategies run on a thread pool; the returned list is identical to a
    sequential run.

    Args:
        strategies: Strategies to run. Defaults to the standard four.
        min_confidence: Results must score strictly above this.
        parallel: Run applicable strategies concurrently.
        max_workers: Thread pool size when ``parallel`` is set.
    """

    def __init__(
        self,
        strategies: list[ExtractionStrategy] | None = None,
        min_confidence: float = 0.2,
        parallel: bool = False,
        max_workers: int = 4,
    ) -> None:
        chosen = strategies if strategies is not None else default_strategies()
        self.strategies = sorted(chosen, key=lambda s: s.priority, reverse=True)
        self.min_confidence = min_confidence
        self.parallel = parallel
        self.max_workers = max_workers

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "StrategyEngine":
        return cls(
            strategies=default_strategies(config.math_tolerance),
            min_confidence=config.min_confidence,
            parallel=config.parallel,
            max_workers=config.max_workers,
        )

    def run(
        self, structure: DocumentStructure, processed: ProcessedText
    ) -> list[ExtractionResult]:
        """Run every applicable strategy on the document.

        Args:
            structure: Output of the structure analyzer.
            processed: Output of the text normalizer.

        Returns:
            Results above the confidence threshold, in priority order.
        """
        applicable = [
            s for s in self.strategies if s.is_applicable(structure, processed)
        ]
        logger.debug(
            "Applicable strategies: %s", ", ".join(s.name for s in applicable)
        )

        if self.parallel and len(applicable) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(
                    executor.map(lambda s: s.extract(structure, processed), applicable)
                )
        else:
            results = [s.extract(structure, processed) for s in applicable]

        kept = []
        for result in results:
            logger.debug(
                "Strategy %s scored %.3f", result.strategy, result.confidence
            )
            if result.confidence > self.min_confidence:
                kept.append(result)

        logger.info(
            "Strategy engine: %d applicable, %d kept", len(applicable), len(kept)
        )
        return kept
