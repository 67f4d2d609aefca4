"""Confidence aggregation rules shared by the engine and the consolidator.

Which fields count toward a confidence and how ties are broken decide the
final record, so the arithmetic lives here rather than inline.
"""

from receipt_extraction.extraction.results import ExtractionResult

HEURISTIC_DISCOUNT = 0.7
HEURISTIC_FLOOR = 0.3


def strategy_confidence(result: ExtractionResult) -> float:
    """Mean confidence over the populated ``vendor``, ``total``, ``date`` and
    ``line_items`` fields of a result.

    Line items contribute their mean confidence as a single factor. Subtotal
    and tax do not count.

    Args:
        result: Strategy output whose ``confidence`` may not be set yet.

    Returns:
        Mean confidence, or ``0.0`` when none of the fields is populated.
    """
    factors: list[float] = []

    if result.vendor:
        factors.append(result.vendor.confidence)
    if result.total:
        factors.append(result.total.confidence)
    if result.date:
        factors.append(result.date.confidence)
    if result.line_items:
        factors.append(
            sum(item.confidence for item in result.line_items) / len(result.line_items)
        )

    return sum(factors) / len(factors) if factors else 0.0


def discounted_confidence(
    confidence: float,
    factor: float = HEURISTIC_DISCOUNT,
    floor: float = HEURISTIC_FLOOR,
) -> float:
    """Scale down a fallback strategy's confidence, keeping a floor.

    A zero confidence means nothing was found and stays zero, so an empty
    fallback result never clears the engine's threshold.
    """
    if confidence <= 0:
        return 0.0
    return max(confidence * factor, floor)


def overall_confidence(*confidences: float | None) -> float:
    """Mean of the confidences that are set; ``0.0`` if none are."""
    present = [c for c in confidences if c is not None and c > 0]
    return sum(present) / len(present) if present else 0.0


def rank_key(result: ExtractionResult) -> tuple[float, int]:
    """Sort key putting the most trustworthy result first.

    Higher confidence wins; equal confidences fall back to strategy
    priority. Use with ``sorted(results, key=rank_key)``.
    """
    return (-result.confidence, -result.priority)
