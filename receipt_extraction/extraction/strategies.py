"""Independent field-extraction strategies.

Each strategy is a stateless object with a name, a priority, an
applicability check and an ``extract`` method. Strategies only read the
normalized text and the document structure and return a fresh
``ExtractionResult``, so they can run in any order or concurrently.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import replace
from decimal import Decimal

from receipt_extraction.extraction.dates import first_date
from receipt_extraction.extraction.results import (
    AmountField,
    AmountFields,
    DateField,
    ExtractionResult,
    LineItem,
    VendorField,
)
from receipt_extraction.extraction.scoring import (
    discounted_confidence,
    strategy_confidence,
)
from receipt_extraction.extraction.vendors import fuzzy_find_vendor, match_known_vendor
from receipt_extraction.normalization.text_normalizer import ProcessedText
from receipt_extraction.structure.document_structure import (
    DocumentStructure,
    SectionKind,
)
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.money import (
    amount_after_keyword,
    find_money_tokens,
    parse_amount,
    parse_amounts,
)

logger = get_logger(__name__)


class ExtractionStrategy(ABC):
    """Base interface for extraction strategies."""

    name: str = ""
    priority: int = 0

    @abstractmethod
    def is_applicable(self, structure: DocumentStructure, text: ProcessedText) -> bool:
        """Return True if this strategy should run on the document."""

    @abstractmethod
    def extract(
        self, structure: DocumentStructure, text: ProcessedText
    ) -> ExtractionResult:
        """Extract whatever fields this strategy can find."""

    def _empty_result(self) -> ExtractionResult:
        return ExtractionResult(strategy=self.name, priority=self.priority)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


# Totals-section keywords, checked in this order for each line.
_TOTALS_RULES: list[tuple[re.Pattern[str], str, float]] = [
    (re.compile(r"^sub[ -]?total\b", re.IGNORECASE), "subtotal", 0.90),
    (re.compile(r"^(?:[a-z]+\s+)?tax\b", re.IGNORECASE), "tax", 0.88),
    (re.compile(r"^(?:amount|balance)\s+due\b", re.IGNORECASE), "total", 0.92),
    (
        re.compile(
            r"^(?:grand\s+)?total\b(?!\s+(?:savings|items?|qty|discount))",
            re.IGNORECASE,
        ),
        "total",
        0.95,
    ),
]

_PRICE = r"\$?(\d{1,3}(?:,\d{3})+\.\d{2}|\d{1,6}\.\d{2})"

# (pattern, confidence); groups are looked up by name.
_ITEM_RULES: list[tuple[re.Pattern[str], float]] = [
    (
        re.compile(
            rf"^(?P<desc>.+?)\s+(?P<qty>\d{{1,3}})\s*[@xX]\s*(?P<unit>{_PRICE})"
            rf"\s+(?P<total>{_PRICE})$"
        ),
        0.8,
    ),
    (re.compile(rf"^(?P<desc>.+?)\s+(?P<qty>\d{{1,3}})\s+(?P<total>{_PRICE})$"), 0.8),
    (re.compile(rf"^(?P<desc>.+?)\s+(?P<unit>{_PRICE})\s+(?P<total>{_PRICE})$"), 0.75),
    (
        re.compile(
            rf"^(?P<qty>\d{{1,3}})\s+(?P<desc>[A-Za-z].*?)\s+(?P<total>{_PRICE})$"
        ),
        0.75,
    ),
    (re.compile(rf"^(?P<desc>.+?)\s+(?P<total>{_PRICE})$"), 0.7),
]

_CAPS_LINE = re.compile(r"^[A-Z][A-Z\s&'-]+$")


def _parse_line_item(line: str) -> LineItem | None:
    for pattern, confidence in _ITEM_RULES:
        match = pattern.match(line)
        if not match:
            continue
        groups = match.groupdict()
        total = parse_amount(groups["total"])
        if total is None:
            continue
        unit = parse_amount(groups["unit"]) if groups.get("unit") else None
        quantity = int(groups["qty"]) if groups.get("qty") else None
        if quantity is None and unit is not None:
            ratio = total / unit
            if ratio == ratio.to_integral_value():
                quantity = int(ratio)
        return LineItem(
            description=groups["desc"].strip(),
            confidence=confidence,
            quantity=quantity,
            unit_price=unit,
            total_price=total,
        )
    return None


class StructureAwareStrategy(ExtractionStrategy):
    """Reads fields straight out of the detected sections.

    Amounts come from the totals section, the vendor from the header and
    line items from the items section.
    """

    name = "structure_aware"
    priority = 90

    def __init__(self, min_structure_confidence: float = 0.6) -> None:
        self.min_structure_confidence = min_structure_confidence

    def is_applicable(self, structure: DocumentStructure, text: ProcessedText) -> bool:
        return (
            structure.confidence > self.min_structure_confidence
            and len(structure.sections) >= 2
        )

    def extract(
        self, structure: DocumentStructure, text: ProcessedText
    ) -> ExtractionResult:
        result = self._empty_result()

        totals = structure.find(SectionKind.TOTALS)
        if totals:
            result = replace(result, amounts=self.extract_totals(totals.lines))

        header = structure.find(SectionKind.HEADER)
        if header:
            result = replace(result, vendor=self.extract_vendor(header.lines))

        items = structure.find(SectionKind.ITEMS)
        if items:
            result = replace(result, line_items=self.extract_items(items.lines))

        return replace(result, confidence=strategy_confidence(result))

    def extract_totals(self, lines: list[str]) -> AmountFields | None:
        """Classify each totals line as subtotal, tax or total.

        For each field the highest-confidence hit is kept; on a tie the
        earlier line wins.
        """
        found: dict[str, AmountField] = {}
        for line in lines:
            for pattern, field_name, confidence in _TOTALS_RULES:
                match = pattern.search(line)
                if not match:
                    continue
                value = amount_after_keyword(line, match.end())
                if value is not None:
                    current = found.get(field_name)
                    if current is None or confidence > current.confidence:
                        found[field_name] = AmountField(
                            value, confidence, "structure_aware_totals"
                        )
                break

        if not found:
            return None
        return AmountFields(**found)

    def extract_vendor(self, lines: list[str]) -> VendorField | None:
        """Resolve the vendor from header lines.

        Known vendors win; otherwise the first all-caps header line is used
        with a lower confidence.
        """
        for line in lines:
            known = match_known_vendor(line)
            if known:
                return VendorField(
                    known.name, known.confidence, "structure_aware_header", line
                )

        first = lines[0] if lines else ""
        if len(first) > 3 and _CAPS_LINE.match(first):
            return VendorField(first, 0.6, "structure_aware_header_fallback", first)
        return None

    def extract_items(self, lines: list[str]) -> list[LineItem] | None:
        items = [item for item in map(_parse_line_item, lines) if item is not None]
        return items or None


_TOTAL_KEYWORD = re.compile(
    r"(?<!sub\s)(?<!sub-)\b(?:(?:grand\s+)?total|amount\s+due|balance\s+due)\b"
    r"(?!\s+(?:savings|items?|qty|discount|tax))",
    re.IGNORECASE,
)
_SUBTOTAL_KEYWORD = re.compile(r"\bsub[ -]?total\b", re.IGNORECASE)
_TAX_KEYWORD = re.compile(r"\btax\b", re.IGNORECASE)


class ContextualPatternStrategy(ExtractionStrategy):
    """Keyword-amount patterns over every line, ignoring structure.

    Also resolves the vendor by fuzzy matching against known vendors and
    takes the first valid date in the text.
    """

    name = "contextual_pattern"
    priority = 80

    def is_applicable(self, structure: DocumentStructure, text: ProcessedText) -> bool:
        return True

    def extract(
        self, structure: DocumentStructure, text: ProcessedText
    ) -> ExtractionResult:
        result = replace(
            self._empty_result(),
            amounts=self.extract_amounts(text.lines),
            vendor=self.extract_vendor(text.lines),
            date=self.extract_date(text.cleaned),
        )
        return replace(result, confidence=strategy_confidence(result))

    def extract_amounts(self, lines: list[str]) -> AmountFields | None:
        """Scan lines for keyword amounts. Later lines override earlier ones."""
        found: dict[str, AmountField] = {}

        for line in lines:
            subtotal = _SUBTOTAL_KEYWORD.search(line)
            if subtotal:
                value = amount_after_keyword(line, subtotal.end())
                if value is not None:
                    found["subtotal"] = AmountField(
                        value, 0.85, "contextual_pattern_subtotal"
                    )
                continue

            total = _TOTAL_KEYWORD.search(line)
            if total:
                value = amount_after_keyword(line, total.end())
                if value is not None:
                    found["total"] = AmountField(value, 0.9, "contextual_pattern_total")
                continue

            tax = _TAX_KEYWORD.search(line)
            if tax:
                value = amount_after_keyword(line, tax.end())
                if value is not None:
                    found["tax"] = AmountField(value, 0.85, "contextual_pattern_tax")

        if not found:
            return None
        return AmountFields(**found)

    def extract_vendor(self, lines: list[str]) -> VendorField | None:
        match = fuzzy_find_vendor(lines)
        if match is None:
            return None
        return VendorField(match.name, 0.8, f"contextual_{match.method}", match.raw)

    def extract_date(self, cleaned: str) -> DateField | None:
        match = first_date(cleaned)
        if match is None:
            return None
        return DateField(match.iso, 0.8, "contextual_pattern", match.format)


class MathematicalStrategy(ExtractionStrategy):
    """Finds the subtotal + tax = total triple among the document's amounts.

    Args:
        tolerance: Largest accepted difference between ``subtotal + tax``
            and ``total``.
        max_values: Only the largest this many amounts are searched.
    """

    name = "mathematical"
    priority = 70

    def __init__(
        self, tolerance: Decimal = Decimal("0.02"), max_values: int = 40
    ) -> None:
        self.tolerance = Decimal(str(tolerance))
        self.max_values = max_values

    def is_applicable(self, structure: DocumentStructure, text: ProcessedText) -> bool:
        return len(find_money_tokens(text.cleaned)) >= 3

    def extract(
        self, structure: DocumentStructure, text: ProcessedText
    ) -> ExtractionResult:
        values = parse_amounts(find_money_tokens(text.cleaned))
        amounts = self.solve(values)
        result = replace(self._empty_result(), amounts=amounts)
        return replace(result, confidence=strategy_confidence(result))

    def solve(self, values: list[Decimal]) -> AmountFields | None:
        """Search descending triples ``(total, subtotal, tax)``.

        Args:
            values: Parsed amounts in any order.

        Returns:
            The first consistent triple, otherwise the largest value as a
            low-confidence total; ``None`` for fewer than three values.
        """
        if len(values) < 3:
            return None

        ordered = sorted(values, reverse=True)[: self.max_values]
        for i, total in enumerate(ordered):
            for j in range(i + 1, len(ordered)):
                subtotal = ordered[j]
                for k in range(j + 1, len(ordered)):
                    tax = ordered[k]
                    if abs(subtotal + tax - total) <= self.tolerance:
                        logger.debug(
                            "Mathematical match: %s + %s = %s", subtotal, tax, total
                        )
                        return AmountFields(
                            total=AmountField(total, 0.9, "mathematical_validation"),
                            subtotal=AmountField(
                                subtotal, 0.85, "mathematical_validation"
                            ),
                            tax=AmountField(tax, 0.85, "mathematical_validation"),
                        )

        return AmountFields(total=AmountField(ordered[0], 0.6, "mathematical_largest"))


_DATE_LIKE = re.compile(r"\d{1,4}[/\-.]\d{1,2}[/\-.]\d{2,4}")
_TOTALS_WORD = re.compile(r"\b(?:sub[ -]?total|total|tax|balance)\b", re.IGNORECASE)


def is_trivial_line(line: str) -> bool:
    """True for lines that cannot be a vendor name."""
    if len(line) <= 3 or sum(ch.isalpha() for ch in line) < 2:
        return True
    if _DATE_LIKE.search(line) or find_money_tokens(line):
        return True
    return bool(_TOTALS_WORD.search(line))


class HeuristicStrategy(ExtractionStrategy):
    """Last-resort guesses: largest amount as total, first real line as vendor.

    Its confidence is discounted since neither guess uses any context.
    """

    name = "heuristic"
    priority = 60

    def is_applicable(self, structure: DocumentStructure, text: ProcessedText) -> bool:
        return True

    def extract(
        self, structure: DocumentStructure, text: ProcessedText
    ) -> ExtractionResult:
        result = self._empty_result()

        values = parse_amounts(find_money_tokens(text.cleaned))
        if values:
            total = AmountField(max(values), 0.5, "heuristic_largest")
            result = replace(result, amounts=AmountFields(total=total))

        vendor_line = next(
            (line for line in text.lines[:5] if not is_trivial_line(line)), None
        )
        if vendor_line:
            result = replace(
                result,
                vendor=VendorField(
                    vendor_line, 0.4, "heuristic_first_line", vendor_line
                ),
            )

        return replace(
            result, confidence=discounted_confidence(strategy_confidence(result))
        )


def default_strategies(math_tolerance: float = 0.02) -> list[ExtractionStrategy]:
    """Build the standard strategy set in priority order."""
    return [
        StructureAwareStrategy(),
        ContextualPatternStrategy(),
        MathematicalStrategy(tolerance=Decimal(str(math_tolerance))),
        HeuristicStrategy(),
    ]
