"""Configuration for extraction thresholds and merge policy.

All confidence gates live here rather than in the extractors, because
the same document template is scanned on devices whose OCR engines
report confidence on different scales. A deployment picks its gates
through a YAML file.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class SpatialConfig(BaseModel):
    """Geometry limits for label/value pairing."""

    vertical_tolerance: float = Field(default=0.5, ge=0.0, le=1.0)
    max_horizontal_distance: float = 500.0
    max_vertical_distance: float = 100.0


class LayoutConfig(BaseModel):
    """Line-to-region assignment settings."""

    containment_threshold: float = Field(default=0.3, gt=0.0, le=1.0)
    target_regions: list[str] = Field(default_factory=lambda: ["table", "text"])


class InvoiceConfig(BaseModel):
    """Confidence gates and search windows for invoice extraction."""

    invoice_number_min_confidence: float = 0.9
    min_confidence: float = 0.9
    amount_min_confidence: float = 0.7
    anchor_window: int = 4
    period_window: int = 3
    min_amount: int = 1
    max_amount: int = 10_000_000


class QuotationConfig(BaseModel):
    """Pixel tolerances and heuristics for quotation extraction."""

    row_tolerance: float = 30.0
    date_label_tolerance: float = 50.0
    product_row_factor: float = 1.2
    totals_row_factor: float = 1.5
    min_total: int = 100
    tax_ceiling: int = 10_000


class MergeConfig(BaseModel):
    """Thresholds for creating and updating persisted records."""

    create_threshold: float = Field(default=0.60, ge=0.0, le=1.0)
    update_threshold: float = Field(default=0.60, ge=0.0, le=1.0)


class AppConfig(BaseModel):
    """Top-level configuration."""

    spatial: SpatialConfig = Field(default_factory=SpatialConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    invoice: InvoiceConfig = Field(default_factory=InvoiceConfig)
    quotation: QuotationConfig = Field(default_factory=QuotationConfig)
    merge: MergeConfig = Field(default_factory=MergeConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration. A missing file yields
        the defaults.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
