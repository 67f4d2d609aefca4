"""Shared test fixtures for the receipt extraction test suite."""

from pathlib import Path

import pytest

from receipt_extraction.normalization.text_normalizer import (
    ProcessedText,
    TextNormalizer,
)
from receipt_extraction.structure.document_structure import (
    DocumentStructure,
    DocumentStructureAnalyzer,
)

HOME_DEPOT_RECEIPT = """THE HOME DEPOT
STORE #1234
2455 PACES FERRY RD
ATLANTA GA 30339
HAMMER 1 $12.99
2X4 LUMBER $7.01
SUBTOTAL $20.00
SALES TAX $1.60
TOTAL $21.60
VISA ****1234
12/25/2024 10:30 AM
THANK YOU FOR SHOPPING
"""

NOISY_RECEIPT = """THE  HOME  DEPOT\r
STORE #1234\t\t
\r
\r
\r
HAMMER 1 $12.99
2X4 LUMBER $7.O1
SUBTOTAI   $2O.00
SEALES TAK $1.60
T O T A L : $21.6O
VISA ****1234
12-25-2024 10:30pm
"""

SYMBOL_NOISE = "^^^^ ~~~~ |||| {{}}"


@pytest.fixture
def home_depot_text() -> str:
    """A clean Home Depot receipt whose amounts add up."""
    return HOME_DEPOT_RECEIPT


@pytest.fixture
def noisy_text() -> str:
    """The Home Depot receipt with typical OCR errors."""
    return NOISY_RECEIPT


@pytest.fixture
def symbol_noise() -> str:
    return SYMBOL_NOISE


@pytest.fixture
def normalizer() -> TextNormalizer:
    return TextNormalizer()


@pytest.fixture
def home_depot_processed(
    normalizer: TextNormalizer, home_depot_text: str
) -> ProcessedText:
    return normalizer.normalize(home_depot_text)


@pytest.fixture
def home_depot_structure(home_depot_processed: ProcessedText) -> DocumentStructure:
    return DocumentStructureAnalyzer().analyze(home_depot_processed.cleaned)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
