"""Document structure analysis for normalized OCR text.

Segments receipt/invoice lines into ordered semantic sections (header, items,
totals, payment, footer) and classifies the document format and layout.
Each detector is a pure function over the line list and a start index, so
every section type can be exercised on its own.
"""

import re
from dataclasses import dataclass
from enum import StrEnum

from receipt_extraction.utils.logger import get_logger

logger = get_logger(__name__)


class SectionKind(StrEnum):
    """Semantic role of a run of lines."""

    HEADER = "header"
    VENDOR = "vendor"
    ITEMS = "items"
    TOTALS = "totals"
    PAYMENT = "payment"
    FOOTER = "footer"
    UNKNOWN = "unknown"


class DocumentFormat(StrEnum):
    """Overall document type."""

    RECEIPT = "receipt"
    INVOICE = "invoice"
    STATEMENT = "statement"
    BILL = "bill"
    UNKNOWN = "unknown"


class DocumentLayout(StrEnum):
    """How content is arranged on the page."""

    COLUMNAR = "columnar"
    LINEAR = "linear"
    TABULAR = "tabular"
    MIXED = "mixed"


@dataclass(frozen=True)
class LineSpan:
    """An inclusive range of line indices claimed by a detector."""

    start: int
    end: int
    confidence: float


@dataclass(frozen=True)
class Section:
    """A contiguous run of lines with a semantic role.

    ``end_line`` is inclusive.
    """

    kind: SectionKind
    content: str
    lines: list[str]
    start_line: int
    end_line: int
    confidence: float


@dataclass(frozen=True)
class DocumentStructure:
    """Ordered sections plus format and layout classification."""

    sections: list[Section]
    format: DocumentFormat
    layout: DocumentLayout
    confidence: float

    def find(self, kind: SectionKind) -> Section | None:
        """Return the first section of ``kind``, if any."""
        return next((s for s in self.sections if s.kind == kind), None)

    @property
    def line_count(self) -> int:
        return self.sections[-1].end_line + 1 if self.sections else 0


HEADER_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^(?:THE\s+)?[A-Z][A-Z\s&'.-]{2,40}$"),
    re.compile(r"\b(?:STORE|LOCATION|BRANCH)\s*#?\s*\d+", re.IGNORECASE),
    re.compile(r"\b\d{3,5}\s+[A-Z][A-Za-z\s]{5,30}"),
    re.compile(r"^[A-Z\s]{10,40}$"),
]
_AMOUNT = r"(?:\d{1,3}(?:,\d{3})+|\d{1,6})\.\d{2}"
HEADER_STOP = re.compile(rf"\${_AMOUNT}|\btotal\b|\bsubtotal\b", re.IGNORECASE)

_DESC = r"[A-Za-z0-9][A-Za-z0-9 \-'\"/&.#]"
ITEM_PATTERNS: list[re.Pattern[str]] = [
    re.compile(rf"^{_DESC}{{2,50}} +\d{{1,3}} +\$?{_AMOUNT}$"),
    re.compile(rf"^{_DESC}{{3,50}} +\$?{_AMOUNT}$"),
    re.compile(
        rf"^\d{{1,3}} +[A-Za-z][A-Za-z0-9 \-'\"/&.#]{{2,40}} +\$?{_AMOUNT}$"
    ),
]
DOLLAR_AMOUNT = re.compile(rf"\${_AMOUNT}")
TOTALS_KEYWORD = re.compile(
    r"\b(?:sub[ -]?total|total|tax|amount\s+due|balance)\b", re.IGNORECASE
)
TOTALS_LINE = re.compile(
    r"\b(?:sub[ -]?total|total|tax|amount\s+(?:due|paid)|balance|payment)\b"
    r"[^\n$\d]{0,25}\$?\d{1,6}(?:,\d{3})*\.\d{2}",
    re.IGNORECASE,
)
PAYMENT_METHOD = re.compile(
    r"payment\s*method|card\s*#|\*{4}|\bvisa\b|\bmastercard\b|\bamex\b"
    r"|\bdiscover\b|\bcash\b|\bcredit\b|\bdebit\b|\bcheck\b|gift\s*card"
    r"|approval\s*code|auth\s*code|\btransaction\b",
    re.IGNORECASE,
)
TOTALS_END = re.compile(
    r"payment\s*method|card\s*#|\*{4}|\bvisa\b|\bmastercard\b|\bamex\b"
    r"|\bdiscover\b|thank\s*you",
    re.IGNORECASE,
)
FOOTER_KEYWORDS = re.compile(
    r"thank\s*you|return\s*policy|store\s*info|come\s*again|visit\s*us|survey",
    re.IGNORECASE,
)
AMOUNT_DUE = re.compile(r"amount\s+due|balance\s+due|due\s+date", re.IGNORECASE)
TABULAR_LINE = re.compile(r"\w+ {3,}\$?\d{1,6}(?:\.\d{1,2})?\s*$")
COLUMN_GAP = re.compile(r" {2,}")


def _is_item_line(line: str) -> bool:
    if any(p.search(line) for p in ITEM_PATTERNS):
        return True
    return len(DOLLAR_AMOUNT.findall(line)) >= 2


def detect_header_section(lines: list[str]) -> LineSpan | None:
    """Find vendor/address lines at the top of the document.

    Scans at most the first five lines and stops at the first line that
    carries a price or a total keyword.

    Args:
        lines: Non-empty document lines.

    Returns:
        Span ``[0, last matching line]``, or ``None`` if nothing matched.
    """
    header_end = -1
    confidence = 0.0

    for i, line in enumerate(lines[:5]):
        if HEADER_STOP.search(line):
            break
        if any(p.search(line) for p in HEADER_PATTERNS):
            header_end = i
            confidence += 0.3

    if header_end < 0:
        return None
    return LineSpan(0, header_end, min(confidence, 0.95))


def detect_items_section(lines: list[str], start: int) -> LineSpan | None:
    """Find the run of line items starting at ``start``.

    Short lines (under five characters) inside a run are tolerated. The run
    ends at the first totals keyword or the first other non-item line.

    Args:
        lines: Non-empty document lines.
        start: First line index available to this detector.

    Returns:
        Span of the item run, or ``None`` if no item line was found.
    """
    item_start = -1
    item_end = -1
    count = 0

    for i in range(start, len(lines)):
        line = lines[i]
        if TOTALS_KEYWORD.search(line):
            break
        if _is_item_line(line):
            if item_start < 0:
                item_start = i
            item_end = i
            count += 1
        elif item_start >= 0 and len(line) < 5:
            continue
        elif item_start >= 0:
            break

    if count == 0:
        return None
    return LineSpan(item_start, item_end, min(0.7 + 0.1 * count, 0.95))


def detect_totals_section(lines: list[str], start: int) -> LineSpan | None:
    """Find the subtotal/tax/total block starting at ``start``.

    The block ends when payment details begin.

    Args:
        lines: Non-empty document lines.
        start: First line index available to this detector.

    Returns:
        Span of the totals block, or ``None`` if no totals line was found.
    """
    totals_start = -1
    totals_end = -1
    count = 0

    for i in range(start, len(lines)):
        line = lines[i]
        if TOTALS_LINE.search(line):
            if totals_start < 0:
                totals_start = i
            totals_end = i
            count += 1
        elif totals_start >= 0 and TOTALS_END.search(line):
            break

    if count == 0:
        return None
    return LineSpan(totals_start, totals_end, min(0.8 + 0.05 * count, 0.95))


def detect_payment_section(lines: list[str], start: int) -> LineSpan | None:
    """Find payment-method lines (card brands, cash, approval codes).

    Args:
        lines: Non-empty document lines.
        start: First line index available to this detector.

    Returns:
        Span from the first to the last payment line, or ``None``.
    """
    matches = [i for i in range(start, len(lines)) if PAYMENT_METHOD.search(lines[i])]
    if not matches:
        return None
    return LineSpan(matches[0], matches[-1], 0.8)


def classify_unclaimed(
    lines: list[str], claimed: set[int]
) -> list[tuple[SectionKind, LineSpan]]:
    """Label every unclaimed line as footer or unknown.

    A line is footer when it matches a footer keyword, or when it sits in
    the last 20% of the document and carries at least one letter or digit.
    Neighbouring lines with the same label are merged into one span.

    Args:
        lines: Non-empty document lines.
        claimed: Indices already owned by another section.

    Returns:
        ``(kind, span)`` pairs in line order.
    """
    footer_from = len(lines) * 0.8
    spans: list[tuple[SectionKind, LineSpan]] = []

    for i, line in enumerate(lines):
        if i in claimed:
            continue
        positional = i >= footer_from and any(c.isalnum() for c in line)
        is_footer = positional or FOOTER_KEYWORDS.search(line)
        kind = SectionKind.FOOTER if is_footer else SectionKind.UNKNOWN
        if spans and spans[-1][0] == kind and spans[-1][1].end == i - 1:
            previous = spans[-1][1]
            spans[-1] = (kind, LineSpan(previous.start, i, 0.6))
        else:
            spans.append((kind, LineSpan(i, i, 0.6)))

    return spans


def classify_format(sections: list[Section]) -> DocumentFormat:
    """Infer the document format from which sections are present."""
    kinds = [s.kind for s in sections]
    has_header = SectionKind.HEADER in kinds
    has_items = SectionKind.ITEMS in kinds
    has_totals = SectionKind.TOTALS in kinds

    if has_header and has_items and has_totals:
        return DocumentFormat.RECEIPT
    if has_totals and (has_header or has_items):
        return DocumentFormat.INVOICE
    if kinds.count(SectionKind.ITEMS) > 1:
        return DocumentFormat.STATEMENT
    if has_totals:
        totals = next(s for s in sections if s.kind == SectionKind.TOTALS)
        if AMOUNT_DUE.search(totals.content):
            return DocumentFormat.BILL
    return DocumentFormat.UNKNOWN


def classify_layout(lines: list[str]) -> DocumentLayout:
    """Infer the layout from column gaps and right-aligned amounts.

    Column gaps only survive normalization when formatting is preserved;
    otherwise every document reads as linear.
    """
    if not lines:
        return DocumentLayout.LINEAR

    tabular = sum(1 for line in lines if TABULAR_LINE.search(line))
    columnar = sum(1 for line in lines if len(COLUMN_GAP.split(line)) >= 3)
    tabular_ratio = tabular / len(lines)
    columnar_ratio = columnar / len(lines)

    if tabular_ratio > 0.3:
        return DocumentLayout.TABULAR
    if columnar_ratio > 0.2:
        return DocumentLayout.COLUMNAR
    if tabular_ratio > 0.15 and columnar_ratio > 0.1:
        return DocumentLayout.MIXED
    return DocumentLayout.LINEAR


class DocumentStructureAnalyzer:
    """Segments normalized OCR text into semantic sections.

    Detectors run in a fixed order (header, items, totals, payment); each
    only sees lines after the last span claimed so far. Whatever remains
    becomes footer or unknown, so the sections always partition the lines.
    """

    def analyze(self, cleaned_text: str) -> DocumentStructure:
        """Analyze normalized text and return its structure.

        Args:
            cleaned_text: Output of the text normalizer.

        Returns:
            Sections sorted by start line, with format, layout and mean
            section confidence.
        """
        lines = [line.strip() for line in cleaned_text.split("\n") if line.strip()]
        spans: list[tuple[SectionKind, LineSpan]] = []

        header = detect_header_section(lines)
        if header:
            spans.append((SectionKind.HEADER, header))

        detectors = [
            (SectionKind.ITEMS, detect_items_section),
            (SectionKind.TOTALS, detect_totals_section),
            (SectionKind.PAYMENT, detect_payment_section),
        ]
        for kind, detect in detectors:
            cursor = spans[-1][1].end + 1 if spans else 0
            span = detect(lines, cursor)
            if span:
                spans.append((kind, span))

        claimed = {i for _, span in spans for i in range(span.start, span.end + 1)}
        spans.extend(classify_unclaimed(lines, claimed))
        spans.sort(key=lambda pair: pair[1].start)

        sections = [
            Section(
                kind=kind,
                content="\n".join(lines[span.start : span.end + 1]),
                lines=lines[span.start : span.end + 1],
                start_line=span.start,
                end_line=span.end,
                confidence=span.confidence,
            )
            for kind, span in spans
        ]

        doc_format = classify_format(sections)
        layout = classify_layout(lines)
        confidence = (
            sum(s.confidence for s in sections) / len(sections) if sections else 0.0
        )

        logger.info(
            "Document structure: %s with %s layout, %d sections (confidence=%.3f)",
            doc_format,
            layout,
            len(sections),
            confidence,
        )
        return DocumentStructure(
            sections=sections,
            format=doc_format,
            layout=layout,
            confidence=confidence,
        )
