"""Date token detection for receipt text."""

import re
from dataclasses import dataclass
from datetime import date

MONTHS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}
_MONTH_NAME = (
    r"(Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?"
    r"|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)\.?"
)

NUMERIC_DATE = re.compile(
    r"(?<![\d/.\-])(\d{1,2})([/\-])(\d{1,2})\2(\d{4}|\d{2})(?![\d/])"
)
ISO_DATE = re.compile(r"(?<![\d/\-])(\d{4})-(\d{1,2})-(\d{1,2})(?![\d\-])")
MONTH_FIRST_DATE = re.compile(
    rf"\b{_MONTH_NAME}\s+(\d{{1,2}}),?\s+(\d{{4}})\b", re.IGNORECASE
)
DAY_FIRST_DATE = re.compile(
    rf"\b(\d{{1,2}})\s+{_MONTH_NAME}\s+(\d{{4}})\b", re.IGNORECASE
)

MIN_YEAR = 1900
MAX_YEAR = 2100
TWO_DIGIT_PIVOT = 30


@dataclass(frozen=True)
class DateMatch:
    """A calendar-valid date found in text.

    ``format`` names the layout of ``raw``, e.g. ``MM/DD/YYYY``.
    """

    iso: str
    raw: str
    position: int
    format: str


def expand_year(year: int) -> int:
    """Map a two-digit year onto 20xx (00 to 30) or 19xx (31 to 99)."""
    if year >= 100:
        return year
    return 2000 + year if year <= TWO_DIGIT_PIVOT else 1900 + year


def _to_iso(year: int, month: int, day: int) -> str | None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _numeric_matches(text: str) -> list[DateMatch]:
    matches = []
    for m in NUMERIC_DATE.finditer(text):
        first, sep, second, year_token = m.group(1), m.group(2), m.group(3), m.group(4)
        year = expand_year(int(year_token))
        year_fmt = "YYYY" if len(year_token) == 4 else "YY"

        iso = _to_iso(year, int(first), int(second))
        layout = f"MM{sep}DD{sep}{year_fmt}"
        if iso is None and int(first) > 12:
            iso = _to_iso(year, int(second), int(first))
            layout = f"DD{sep}MM{sep}{year_fmt}"
        if iso:
            matches.append(DateMatch(iso, m.group(0), m.start(), layout))
    return matches


def find_dates(text: str) -> list[DateMatch]:
    """Return every valid date in ``text`` ordered by position.

    Numeric dates are read month-first; when the month field exceeds 12
    the day-first reading is tried instead. Impossible calendar dates are
    dropped.

    Args:
        text: Normalized document text.

    Returns:
        Date matches in reading order.
    """
    found = _numeric_matches(text)

    for m in ISO_DATE.finditer(text):
        iso = _to_iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if iso:
            found.append(DateMatch(iso, m.group(0), m.start(), "YYYY-MM-DD"))

    for m in MONTH_FIRST_DATE.finditer(text):
        month = MONTHS[m.group(1)[:3].lower()]
        iso = _to_iso(int(m.group(3)), month, int(m.group(2)))
        if iso:
            found.append(DateMatch(iso, m.group(0), m.start(), "Month DD, YYYY"))

    for m in DAY_FIRST_DATE.finditer(text):
        month = MONTHS[m.group(2)[:3].lower()]
        iso = _to_iso(int(m.group(3)), month, int(m.group(1)))
        if iso:
            found.append(DateMatch(iso, m.group(0), m.start(), "DD Month YYYY"))

    found.sort(key=lambda d: d.position)
    return found


def first_date(text: str) -> DateMatch | None:
    """Return the earliest valid date in ``text``, if any."""
    dates = find_dates(text)
    return dates[0] if dates else None
