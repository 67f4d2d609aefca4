"""OCR text normalization.

Cleans raw OCR output in six fixed stages (table fixes, spacing repair,
context-gated digit/letter disambiguation, word-level fixes, format
normalization and whitespace cleanup), logs every substitution it makes and
grades the quality of the resulting text.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from receipt_extraction.utils.config import TextProcessingOptions
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.money import MONEY_PATTERN

from .corrections import (
    AGGRESSIVE_PRICE_CONFUSABLES,
    DIGIT_IN_WORD_FIXES,
    FORMAT_FIXES,
    GLYPH_FIXES,
    PRICE_CONFUSABLES,
    RECEIPT_VOCABULARY,
    SPACED_KEYWORDS,
    SPACING_FIXES,
    UNAMBIGUOUS_FIXES,
    WORD_ONLY_FIXES,
    CorrectionKind,
    CorrectionRule,
)

logger = get_logger(__name__)

DATE_TOKEN_PATTERN = re.compile(r"\b\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}\b")
TOTALS_KEYWORD_PATTERN = re.compile(r"total|subtotal|tax", re.IGNORECASE)
GIBBERISH_PATTERN = re.compile(r"[^a-zA-Z0-9\s$.\-/(),:#%&'*]")

_WORD_PATTERN = re.compile(r"[A-Za-z]{2,30}")
_EMBEDDED_PRICE_PATTERN = re.compile(r"(?<![\w$.])[\dO]{1,6}\.[\dO]{2}(?![\w.])")
_TIME_PATTERN = re.compile(
    r"\b(\d{1,2}):(\d{2})[ \t]*([AaPp])\.?[Mm]\.?(?![A-Za-z])"
)
_SPACE_RUN = re.compile(r" {2,}")
_SPACE_BEFORE_COLON = re.compile(r"(?<=\S) +:")
_BLANK_LINE_RUN = re.compile(r"\n{3,}")


class TextQuality(StrEnum):
    """Coarse grade of OCR text quality."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass(frozen=True)
class Correction:
    """A single substitution applied during normalization."""

    original: str
    corrected: str
    kind: CorrectionKind
    confidence: float


@dataclass(frozen=True)
class ProcessedText:
    """Normalized OCR text with its correction log and quality grade."""

    original: str
    cleaned: str
    lines: list[str]
    corrections: list[Correction] = field(default_factory=list)
    quality: TextQuality = TextQuality.POOR


def _match_case(source: str, replacement: str) -> str:
    """Render ``replacement`` in the letter case of ``source``."""
    if source.isupper():
        return replacement.upper()
    if source.islower():
        return replacement.lower()
    if source[:1].isupper():
        return replacement.capitalize()
    return replacement


def _substitute(
    text: str,
    pattern: re.Pattern[str],
    render: Callable[[re.Match[str]], str],
    kind: CorrectionKind,
    confidence: float,
    corrections: list[Correction],
) -> str:
    """Replace every match of ``pattern`` and log one correction per change.

    ``render`` returns the replacement for a match; returning the match text
    unchanged leaves it untouched and unlogged.
    """

    def _replace(match: re.Match[str]) -> str:
        original = match.group(0)
        corrected = render(match)
        if corrected != original:
            corrections.append(Correction(original, corrected, kind, confidence))
        return corrected

    return pattern.sub(_replace, text)


def clean_whitespace(text: str, preserve_columns: bool = False) -> str:
    """Normalize line endings and spacing.

    Tabs become spaces, CR/CRLF become LF, runs of spaces collapse (interior
    column gaps are kept when ``preserve_columns``), spaces before ``:`` are
    dropped, line edges are stripped and runs of blank lines collapse to one.

    Args:
        text: Text to clean.
        preserve_columns: Keep interior runs of spaces intact.

    Returns:
        Cleaned text with no leading or trailing whitespace.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\f", "\n").replace("\v", "\n")
    text = text.replace("\t", " ").replace("\xa0", " ")

    lines: list[str] = []
    for line in text.split("\n"):
        line = line.strip()
        if not preserve_columns:
            line = _SPACE_RUN.sub(" ", line)
        lines.append(_SPACE_BEFORE_COLON.sub(":", line))

    return _BLANK_LINE_RUN.sub("\n\n", "\n".join(lines)).strip()


class TextNormalizer:
    """Cleans raw OCR text and records every correction it applies.

    The normalizer holds no state between calls; one instance can serve any
    number of documents.
    """

    def __init__(self) -> None:
        self._unambiguous = [
            (re.compile(re.escape(wrong)), right, kind, conf)
            for wrong, right, kind, conf in UNAMBIGUOUS_FIXES
        ]
        self._spaced = [
            (re.compile(r"\b" + r"[ \t]*".join(word) + r"\b", re.IGNORECASE), word)
            for word in SPACED_KEYWORDS
        ]
        self._spacing = self._compile(SPACING_FIXES)
        self._digit_in_word = self._compile(DIGIT_IN_WORD_FIXES)
        self._format = self._compile(FORMAT_FIXES)
        self._word_level = [
            (re.compile(rf"\b{re.escape(wrong)}\b", re.IGNORECASE), right, conf)
            for wrong, right, _, conf in UNAMBIGUOUS_FIXES
        ] + [
            (re.compile(rf"\b{re.escape(wrong)}\b"), right, conf)
            for wrong, right, _, conf in WORD_ONLY_FIXES
        ]
        self._price_patterns = {
            False: self._price_pattern(PRICE_CONFUSABLES),
            True: self._price_pattern(AGGRESSIVE_PRICE_CONFUSABLES),
        }

    @staticmethod
    def _compile(
        rules: list[CorrectionRule],
    ) -> list[tuple[re.Pattern[str], str, CorrectionKind, float]]:
        return [(re.compile(p), repl, kind, conf) for p, repl, kind, conf in rules]

    @staticmethod
    def _price_pattern(confusables: dict[str, str]) -> re.Pattern[str]:
        chars = re.escape("".join(confusables))
        return re.compile(
            rf"\$[\d{chars}][\d{chars},]{{0,8}}(?:\.[\d{chars}]{{2}})?(?![A-Za-z\d])"
        )

    def normalize(
        self, text: str, options: TextProcessingOptions | None = None
    ) -> ProcessedText:
        """Run the full normalization pipeline on raw OCR text.

        Args:
            text: Raw OCR output.
            options: Normalization switches; defaults when omitted.

        Returns:
            Processed text with its correction log and quality grade.

        Raises:
            TypeError: If ``text`` is not a string.
        """
        if not isinstance(text, str):
            raise TypeError(f"OCR text must be a string, got {type(text).__name__}")

        opts = options or TextProcessingOptions()
        corrections: list[Correction] = []
        processed = text

        if opts.fix_common_ocr_errors:
            processed = self._fix_character_errors(processed, corrections)
        if opts.normalize_spacing:
            processed = self._fix_spacing(processed, corrections)
        processed = self._fix_contextual_errors(
            processed, corrections, opts.aggressive
        )
        if opts.normalize_spacing:
            # Repaired glyphs can expose new "$ 0" and "0 %" gaps.
            processed = self._fix_symbol_spacing(processed, corrections)
        if opts.fix_common_ocr_errors:
            processed = self._fix_word_errors(processed, corrections)
        if not opts.preserve_formatting:
            processed = self._normalize_formatting(processed, corrections)
        processed = clean_whitespace(
            processed, preserve_columns=opts.preserve_formatting
        )

        lines = [line.strip() for line in processed.split("\n") if line.strip()]
        quality = assess_quality(processed, lines, corrections)

        logger.info(
            "Normalized OCR text: %d corrections, %d lines, quality %s",
            len(corrections),
            len(lines),
            quality,
        )
        return ProcessedText(
            original=text,
            cleaned=processed,
            lines=lines,
            corrections=corrections,
            quality=quality,
        )

    def _fix_character_errors(self, text: str, corrections: list[Correction]) -> str:
        """Stage 1: unambiguous multi-character fixes and glyph ligatures."""
        for pattern, right, kind, conf in self._unambiguous:
            text = _substitute(
                text, pattern, lambda m, r=right: r, kind, conf, corrections
            )

        def _repair_glyphs(match: re.Match[str]) -> str:
            word = match.group(0)
            candidate = word
            for wrong, right, _, _ in GLYPH_FIXES:
                candidate = candidate.replace(wrong, right)
            if candidate != word and candidate.upper() in RECEIPT_VOCABULARY:
                return candidate
            return word

        return _substitute(
            text,
            _WORD_PATTERN,
            _repair_glyphs,
            CorrectionKind.CHARACTER,
            0.8,
            corrections,
        )

    def _fix_spacing(self, text: str, corrections: list[Correction]) -> str:
        """Stage 2: spaced-out keywords and currency/percent spacing."""

        def _join(match: re.Match[str], word: str) -> str:
            raw = match.group(0)
            return word if any(c in " \t" for c in raw) else raw

        for pattern, word in self._spaced:
            text = _substitute(
                text,
                pattern,
                lambda m, w=word: _join(m, w),
                CorrectionKind.SPACING,
                0.9,
                corrections,
            )
        return self._fix_symbol_spacing(text, corrections)

    def _fix_symbol_spacing(self, text: str, corrections: list[Correction]) -> str:
        for pattern, repl, kind, conf in self._spacing:
            text = _substitute(
                text, pattern, lambda m, r=repl: r, kind, conf, corrections
            )
        return text

    def _fix_contextual_errors(
        self, text: str, corrections: list[Correction], aggressive: bool
    ) -> str:
        """Stage 3: single-character fixes, only where context proves them.

        Letters inside a ``$`` price token become digits (only ``O`` unless
        ``aggressive``); ``O`` inside a bare ``d.dd`` price becomes ``0``;
        ``1`` becomes a letter only inside whitelisted keywords.
        """
        confusables = AGGRESSIVE_PRICE_CONFUSABLES if aggressive else PRICE_CONFUSABLES
        table = str.maketrans(confusables)

        def _repair_dollar_price(match: re.Match[str]) -> str:
            token = match.group(0)
            if not any(c.isdigit() for c in token):
                return token
            return token.translate(table)

        def _repair_bare_price(match: re.Match[str]) -> str:
            token = match.group(0)
            if not any(c.isdigit() for c in token):
                return token
            return token.replace("O", "0")

        text = _substitute(
            text,
            self._price_patterns[aggressive],
            _repair_dollar_price,
            CorrectionKind.CHARACTER,
            0.95,
            corrections,
        )
        text = _substitute(
            text,
            _EMBEDDED_PRICE_PATTERN,
            _repair_bare_price,
            CorrectionKind.CHARACTER,
            0.9,
            corrections,
        )
        for pattern, right, kind, conf in self._digit_in_word:
            text = _substitute(
                text, pattern, lambda m, r=right: r, kind, conf, corrections
            )
        return text

    def _fix_word_errors(self, text: str, corrections: list[Correction]) -> str:
        """Stage 4: the correction table again, anchored to word boundaries."""
        for pattern, right, conf in self._word_level:
            text = _substitute(
                text,
                pattern,
                lambda m, r=right: _match_case(m.group(0), r),
                CorrectionKind.WORD,
                conf,
                corrections,
            )
        return text

    def _normalize_formatting(self, text: str, corrections: list[Correction]) -> str:
        """Stage 5: currency affixes, date delimiters and time formats."""
        for pattern, repl, kind, conf in self._format:
            text = _substitute(
                text, pattern, lambda m, r=repl: m.expand(r), kind, conf, corrections
            )

        def _format_time(match: re.Match[str]) -> str:
            hours, minutes, meridiem = match.groups()
            return f"{hours}:{minutes} {meridiem.upper()}M"

        return _substitute(
            text, _TIME_PATTERN, _format_time, CorrectionKind.FORMAT, 0.9, corrections
        )


def assess_quality(
    text: str, lines: list[str], corrections: list[Correction]
) -> TextQuality:
    """Grade normalized text from structural cues and correction density.

    Args:
        text: Cleaned text.
        lines: Non-empty lines of ``text``.
        corrections: Corrections applied while cleaning.

    Returns:
        Quality grade; empty text is always ``POOR``.
    """
    total_chars = len(text)
    if total_chars == 0:
        return TextQuality.POOR

    correction_ratio = len(corrections) / max(total_chars / 100, 1)
    gibberish_ratio = len(GIBBERISH_PATTERN.findall(text)) / total_chars

    score = 0.5
    if MONEY_PATTERN.search(text):
        score += 0.1
    if DATE_TOKEN_PATTERN.search(text):
        score += 0.1
    if any(TOTALS_KEYWORD_PATTERN.search(line) for line in lines):
        score += 0.2
    if correction_ratio < 0.05:
        score += 0.2

    if gibberish_ratio > 0.1:
        score -= 0.3
    if correction_ratio > 0.2:
        score -= 0.2
    if len(lines) < 3:
        score -= 0.1

    score = round(max(0.0, min(1.0, score)), 2)
    logger.debug(
        "Quality score %.2f (corrections ratio %.3f, gibberish ratio %.3f)",
        score,
        correction_ratio,
        gibberish_ratio,
    )

    if score >= 0.8:
        return TextQuality.EXCELLENT
    if score >= 0.6:
        return TextQuality.GOOD
    if score >= 0.4:
        return TextQuality.FAIR
    return TextQuality.POOR
