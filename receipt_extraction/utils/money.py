"""Monetary token helpers shared by the normalizer, analyzer and strategies.

Amounts are kept as ``Decimal`` end to end; only the JSON output schema
converts them to floats.
"""

import re
from decimal import Decimal, InvalidOperation

MAX_AMOUNT = Decimal("999999")
CENT = Decimal("0.01")

# "$1,234.56", "12.30", "$12". Bare integers are not money.
MONEY_PATTERN = re.compile(
    r"(?<![\d.,])\$?(?:\d{1,3}(?:,\d{3})+|\d{1,6})\.\d{2}(?![\d.])"
    r"|(?<![\w.])\$\d{1,6}(?![\d.,])"
)


def find_money_tokens(text: str) -> list[str]:
    """Return every monetary-looking token in reading order.

    Tokens immediately followed by ``%`` are rates, not amounts, and are
    skipped.
    """
    return [
        m.group(0)
        for m in MONEY_PATTERN.finditer(text)
        if not text.startswith("%", m.end())
    ]


def parse_amount(token: str) -> Decimal | None:
    """Parse a monetary token into a bounded positive ``Decimal``.

    Args:
        token: Raw token such as ``"$1,234.56"``.

    Returns:
        The amount, or ``None`` when it is unparseable or outside
        ``(0, 999999)``.
    """
    cleaned = token.replace("$", "").replace(",", "").strip()
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0 or value >= MAX_AMOUNT:
        return None
    return value


def parse_amounts(tokens: list[str]) -> list[Decimal]:
    """Parse tokens, dropping anything out of range."""
    values = (parse_amount(t) for t in tokens)
    return [v for v in values if v is not None]


def amount_after_keyword(line: str, start: int) -> Decimal | None:
    """Return the first amount on ``line`` at or after ``start``.

    Used for ``KEYWORD ... $12.34`` lines; percentages such as the
    ``8.25%`` in ``TAX 8.25% $1.60`` are skipped.

    Args:
        line: A single line of normalized text.
        start: Offset where the keyword match ended.

    Returns:
        Parsed amount, or ``None`` if the line has no usable amount.
    """
    for match in MONEY_PATTERN.finditer(line, start):
        if line.startswith("%", match.end()):
            continue
        value = parse_amount(match.group(0))
        if value is not None:
            return value
    return None
