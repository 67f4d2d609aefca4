"""Known-vendor knowledge: name patterns, OCR-error aliases and slogans."""

import difflib
import re
from dataclasses import dataclass, field


@dataclass(frozen=True)
class KnownVendor:
    """A retailer the engine can name with high confidence."""

    name: str
    pattern: re.Pattern[str]
    confidence: float
    aliases: tuple[str, ...] = ()
    slogans: tuple[str, ...] = ()


@dataclass(frozen=True)
class VendorMatch:
    name: str
    confidence: float
    raw: str
    method: str = field(default="pattern")


KNOWN_VENDORS: list[KnownVendor] = [
    KnownVendor(
        "Home Depot",
        re.compile(r"\b(?:the\s+)?home\s*depot\b", re.IGNORECASE),
        0.95,
        aliases=(
            "THE HOME DEPOT",
            "HOME DEPOT",
            "HOMEDEPOT",
            "HOME DEPO",
            "HOME DEP0T",
            "OME DEPOT",
            "HOM DEPOT",
            "HONE DEPOT",
            "H0ME DEPOT",
        ),
        slogans=(
            "HOW DOERS GET MORE DONE",
            "MORE SAVING. MORE DOING",
            "DOERS GET MORE DONE",
        ),
    ),
    KnownVendor(
        "Lowes",
        re.compile(r"\blowe'?s\b", re.IGNORECASE),
        0.95,
        aliases=("LOWES", "LOWE'S", "LOWE S", "L0WES"),
    ),
    KnownVendor(
        "Walmart",
        re.compile(r"\bwal[\s-]?mart\b", re.IGNORECASE),
        0.95,
        aliases=("WALMART", "WAL-MART", "WAL MART", "WALM4RT"),
        slogans=("SAVE MONEY. LIVE BETTER", "ALWAYS LOW PRICES", "EVERYDAY LOW PRICES"),
    ),
    KnownVendor(
        "Target",
        re.compile(r"\btarget\b", re.IGNORECASE),
        0.85,
        aliases=("TARGET", "TARG3T"),
        slogans=("EXPECT MORE. PAY LESS",),
    ),
    KnownVendor(
        "Costco",
        re.compile(r"\bcostco\b", re.IGNORECASE),
        0.95,
        aliases=("COSTCO", "COSTCO WHOLESALE", "C0STCO"),
    ),
    KnownVendor(
        "CVS",
        re.compile(r"\bcvs\b", re.IGNORECASE),
        0.9,
        aliases=("CVS", "CVS PHARMACY"),
    ),
    KnownVendor(
        "Walgreens",
        re.compile(r"\bwalgreens?\b", re.IGNORECASE),
        0.9,
        aliases=("WALGREENS", "WALGREEN"),
    ),
]

FUZZY_THRESHOLD = 0.8
MIN_FUZZY_LENGTH = 5
FUZZY_SCAN_LINES = 10

_NON_VENDOR_CHARS = re.compile(r"[^\w\s'.-]")
_SPACES = re.compile(r"\s+")


def normalize_vendor_text(text: str) -> str:
    """Upper-case ``text`` and reduce punctuation and spacing noise."""
    return _SPACES.sub(" ", _NON_VENDOR_CHARS.sub(" ", text.upper())).strip()


def similarity(a: str, b: str) -> float:
    """Similarity ratio in ``[0, 1]`` between two vendor strings."""
    left, right = normalize_vendor_text(a), normalize_vendor_text(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    return difflib.SequenceMatcher(None, left, right).ratio()


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<![A-Z0-9]){re.escape(phrase)}(?![A-Z0-9])", text) is not None


def match_known_vendor(line: str) -> VendorMatch | None:
    """Match a single header line against the known-vendor patterns.

    Args:
        line: One line of normalized text.

    Returns:
        The first matching vendor with its configured confidence, or
        ``None``.
    """
    for vendor in KNOWN_VENDORS:
        if vendor.pattern.search(line):
            return VendorMatch(vendor.name, vendor.confidence, line)
    return None


def fuzzy_find_vendor(lines: list[str]) -> VendorMatch | None:
    """Find a known vendor in the top of a document despite OCR noise.

    Tries, in order: an alias appearing in one of the first lines, a
    slogan anywhere in the text, then the closest alias by similarity.

    Args:
        lines: Non-empty lines of normalized text.

    Returns:
        Vendor match with ``method`` set to ``alias``, ``slogan`` or
        ``similarity``; ``None`` when nothing is close enough.
    """
    top = lines[:FUZZY_SCAN_LINES]

    for line in top:
        normalized = normalize_vendor_text(line)
        for vendor in KNOWN_VENDORS:
            if any(_contains_phrase(normalized, alias) for alias in vendor.aliases):
                return VendorMatch(vendor.name, 1.0, line, "alias")

    full_text = _SPACES.sub(" ", " ".join(lines).upper())
    for vendor in KNOWN_VENDORS:
        for slogan in vendor.slogans:
            if slogan in full_text:
                return VendorMatch(vendor.name, 1.0, slogan, "slogan")

    best: VendorMatch | None = None
    for line in top:
        if len(line) < MIN_FUZZY_LENGTH or len(line) > 40:
            continue
        for vendor in KNOWN_VENDORS:
            for alias in vendor.aliases:
                if len(alias) < MIN_FUZZY_LENGTH:
                    continue
                score = similarity(line, alias)
                if score < FUZZY_THRESHOLD:
                    continue
                if best is None or score > best.confidence:
                    best = VendorMatch(vendor.name, score, line, "similarity")
    return best
