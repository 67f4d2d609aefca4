"""Tests for known-vendor matching."""

import pytest

from receipt_extraction.extraction.vendors import (
    KNOWN_VENDORS,
    fuzzy_find_vendor,
    match_known_vendor,
    normalize_vendor_text,
    similarity,
)


class TestSimilarity:
    """Tests for vendor string similarity."""

    def test_normalization(self) -> None:
        assert normalize_vendor_text("  Home   Depot! ") == "HOME DEPOT"

    def test_identical_after_normalization(self) -> None:
        assert similarity("Home  Depot!", "HOME DEPOT") == 1.0

    def test_empty_strings(self) -> None:
        assert similarity("", "HOME DEPOT") == 0.0
        assert similarity("***", "HOME DEPOT") == 0.0

    def test_single_substitution(self) -> None:
        assert similarity("COSTCQ WHOLESALE", "COSTCO WHOLESALE") == pytest.approx(
            30 / 32
        )


class TestMatchKnownVendor:
    """Tests for exact vendor pattern matching."""

    @pytest.mark.parametrize(
        ("line", "name"),
        [
            ("THE HOME DEPOT", "Home Depot"),
            ("WAL-MART SUPERCENTER", "Walmart"),
            ("Lowe's Home Improvement", "Lowes"),
            ("CVS/pharmacy", "CVS"),
        ],
    )
    def test_known(self, line: str, name: str) -> None:
        match = match_known_vendor(line)
        assert match is not None
        assert match.name == name
        assert match.raw == line
        assert match.method == "pattern"

    def test_confidence_from_table(self) -> None:
        match = match_known_vendor("TARGET STORE T-1234")
        assert match is not None
        assert match.confidence == 0.85

    def test_unknown(self) -> None:
        assert match_known_vendor("ACME HARDWARE") is None

    def test_every_vendor_matches_its_name(self) -> None:
        for vendor in KNOWN_VENDORS:
            assert vendor.pattern.search(vendor.aliases[0])


class TestFuzzyFindVendor:
    """Tests for OCR-tolerant vendor lookup."""

    def test_alias_in_top_lines(self) -> None:
        match = fuzzy_find_vendor(["RECEIPT", "H0ME DEPOT", "STORE 42"])
        assert match is not None
        assert match.name == "Home Depot"
        assert match.method == "alias"
        assert match.confidence == 1.0
        assert match.raw == "H0ME DEPOT"

    def test_alias_beyond_scan_window_ignored(self) -> None:
        lines = [f"LINE {i}" for i in range(10)] + ["WALMART"]
        match = fuzzy_find_vendor(lines)
        assert match is None

    def test_slogan(self) -> None:
        match = fuzzy_find_vendor(["STORE 42", "SAVE MONEY. LIVE BETTER"])
        assert match is not None
        assert match.name == "Walmart"
        assert match.method == "slogan"

    def test_similarity_fallback(self) -> None:
        match = fuzzy_find_vendor(["COSTCQ WHOLESALE", "MEMBER 111"])
        assert match is not None
        assert match.name == "Costco"
        assert match.method == "similarity"
        assert match.confidence == pytest.approx(30 / 32)

    def test_no_vendor(self) -> None:
        assert fuzzy_find_vendor(["ACME HARDWARE", "TOTAL $5.00"]) is None
        assert fuzzy_find_vendor([]) is None
