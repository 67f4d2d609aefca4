"""Configuration management for the receipt extraction engine.

Loads and validates YAML configuration with sensible defaults for text
normalization, strategy execution, consolidation and validation.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class TextProcessingOptions(BaseModel):
    """Per-call switches for the OCR text normalizer."""

    aggressive: bool = True
    preserve_formatting: bool = False
    fix_common_ocr_errors: bool = True
    normalize_spacing: bool = True


class StrategyConfig(BaseModel):
    """Configuration for the extraction strategy engine."""

    min_confidence: float = Field(default=0.2, ge=0.0, le=1.0)
    parallel: bool = False
    max_workers: int = Field(default=4, ge=1)
    math_tolerance: float = Field(default=0.02, ge=0.0)


class ConsolidationConfig(BaseModel):
    """Configuration for merging strategy results."""

    validation_threshold: float = Field(default=0.5, ge=0.0, le=1.0)


class ValidationConfig(BaseModel):
    """Configuration for the cross-field validation rules engine."""

    rules_path: str = "configs/validation_rules.yaml"
    max_tax_rate: float = 0.15
    max_total: float = 100000.0
    max_age_days: int = 1825
    review_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    max_failures: int = Field(default=2, ge=0)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    text_processing: TextProcessingOptions = Field(
        default_factory=TextProcessingOptions
    )
    strategies: StrategyConfig = Field(default_factory=StrategyConfig)
    consolidation: ConsolidationConfig = Field(default_factory=ConsolidationConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if not path.exists():
        logger.info("No config file found at %s, using defaults", path)
        return AppConfig()

    logger.info("Loading configuration from %s", path)
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    return AppConfig(**raw)
