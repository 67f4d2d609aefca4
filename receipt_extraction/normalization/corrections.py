"""OCR correction tables used by the text normalizer.

Each table is an ordered list of ``(pattern, replacement, kind, confidence)``
tuples. The tables are disjoint: unambiguous multi-character fixes are safe
anywhere, while single-character confusions (O/0, l/1, S/5) only appear in the
context-gated tables, whose patterns carry the numeric or word context that
proves the substitution is safe.
"""

from enum import StrEnum


class CorrectionKind(StrEnum):
    """Category of a recorded text correction."""

    CHARACTER = "character"
    SPACING = "spacing"
    FORMAT = "format"
    WORD = "word"


CorrectionRule = tuple[str, str, CorrectionKind, float]

# Plain substrings, case-sensitive. Longer variants first so that SUBTOTAI is
# logged as one fix rather than as TOTAI inside it.
UNAMBIGUOUS_FIXES: list[CorrectionRule] = [
    ("SUBTOTAI", "SUBTOTAL", CorrectionKind.CHARACTER, 0.8),
    ("TOTAI", "TOTAL", CorrectionKind.CHARACTER, 0.8),
    ("TOTRL", "TOTAL", CorrectionKind.CHARACTER, 0.8),
    ("TOIAL", "TOTAL", CorrectionKind.CHARACTER, 0.8),
    ("SAIES", "SALES", CorrectionKind.CHARACTER, 0.8),
    ("SEIES", "SALES", CorrectionKind.CHARACTER, 0.8),
    ("PAYHENT", "PAYMENT", CorrectionKind.CHARACTER, 0.8),
    ("METHOO", "METHOD", CorrectionKind.CHARACTER, 0.8),
    ("HETHOC", "METHOD", CorrectionKind.CHARACTER, 0.8),
]

# Only safe as whole words: "TAK" is a substring of "STEAK".
WORD_ONLY_FIXES: list[CorrectionRule] = [
    ("SEALES", "SALES", CorrectionKind.WORD, 0.9),
    ("TAKS", "TAX", CorrectionKind.WORD, 0.9),
    ("TAXX", "TAX", CorrectionKind.WORD, 0.9),
    ("TAK", "TAX", CorrectionKind.WORD, 0.9),
]

# Glyph ligatures misread by OCR. Applied to a word only when the repaired
# word is in RECEIPT_VOCABULARY.
GLYPH_FIXES: list[CorrectionRule] = [
    ("rn", "m", CorrectionKind.CHARACTER, 0.8),
    ("RN", "M", CorrectionKind.CHARACTER, 0.8),
    ("vv", "w", CorrectionKind.CHARACTER, 0.8),
    ("VV", "W", CorrectionKind.CHARACTER, 0.8),
    ("ii", "ll", CorrectionKind.CHARACTER, 0.8),
]

RECEIPT_VOCABULARY: frozenset[str] = frozenset(
    {
        "ACCOUNT",
        "AMOUNT",
        "APPROVAL",
        "BALANCE",
        "BILL",
        "CASHIER",
        "CHANGE",
        "COMPANY",
        "CUSTOMER",
        "DISCOUNT",
        "HOME",
        "ITEM",
        "ITEMS",
        "MARKET",
        "MASTERCARD",
        "MEMBER",
        "MERCHANDISE",
        "MERCHANT",
        "METHOD",
        "NUMBER",
        "PAYMENT",
        "SMALL",
        "STORE",
        "SUM",
        "TERMINAL",
        "TIME",
        "TOTAL",
        "WALMART",
        "WAY",
        "WELCOME",
        "WHOLESALE",
    }
)

# Letters of these keywords may be split by spaces or tabs ("T O T A L").
# SUBTOTAL precedes TOTAL so the longer word is repaired in one piece.
SPACED_KEYWORDS: list[str] = [
    "SUBTOTAL",
    "CASHIER",
    "RECEIPT",
    "PAYMENT",
    "METHOD",
    "TOTAL",
    "SALES",
    "TAX",
]

SPACING_FIXES: list[CorrectionRule] = [
    (r"\$[ \t]+(?=\d)", "$", CorrectionKind.SPACING, 0.9),
    (r"(?<=\d)[ \t]+%", "%", CorrectionKind.SPACING, 0.9),
]

# 1-for-letter errors, only inside these known words.
DIGIT_IN_WORD_FIXES: list[CorrectionRule] = [
    (r"\bSUBTOTA1\b", "SUBTOTAL", CorrectionKind.CHARACTER, 0.85),
    (r"\bTOTA1\b", "TOTAL", CorrectionKind.CHARACTER, 0.85),
    (r"\bTO1AL\b", "TOTAL", CorrectionKind.CHARACTER, 0.85),
    (r"\bSA1ES\b", "SALES", CorrectionKind.CHARACTER, 0.85),
    (r"\bCASH1ER\b", "CASHIER", CorrectionKind.CHARACTER, 0.85),
    (r"\b1TEMS\b", "ITEMS", CorrectionKind.CHARACTER, 0.85),
    (r"\b1TEM\b", "ITEM", CorrectionKind.CHARACTER, 0.85),
]

# Letter-to-digit maps applied inside price tokens.
PRICE_CONFUSABLES: dict[str, str] = {"O": "0"}
AGGRESSIVE_PRICE_CONFUSABLES: dict[str, str] = {
    "O": "0",
    "o": "0",
    "l": "1",
    "I": "1",
    "S": "5",
    "B": "8",
}

FORMAT_FIXES: list[CorrectionRule] = [
    (r"\bUSD[ \t]*\$[ \t]*(?=\d)", "$", CorrectionKind.FORMAT, 0.95),
    (r"\$[ \t]*USD[ \t]*(?=\d)", "$", CorrectionKind.FORMAT, 0.95),
    (r"(\$[\d,]{1,9}\.\d{2})[ \t]*USD\b", r"\1", CorrectionKind.FORMAT, 0.95),
    (
        r"(?<![\w$.,])((?:\d{1,3}(?:,\d{3})+|\d{1,6})\.\d{2})[ \t]*USD\b",
        r"$\1",
        CorrectionKind.FORMAT,
        0.9,
    ),
    (
        r"\b(\d{1,2})([-.])(\d{1,2})\2(\d{2,4})\b",
        r"\1/\3/\4",
        CorrectionKind.FORMAT,
        0.9,
    ),
]
