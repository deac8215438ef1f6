"""Entry points used by the capture/UI layer.

Each extraction function is total: collaborator errors and unmatched
text produce empty or invalid records, never exceptions.
"""

from pathlib import Path

from scanrecords.extraction.invoice_extractor import InvoiceExtractor, InvoiceInfo
from scanrecords.extraction.quotation_extractor import QuotationExtractor, QuotationInfo
from scanrecords.extraction.spatial_extractor import SpatialExtractor
from scanrecords.ocr.models import LayoutResult, OcrResult
from scanrecords.session.merge import Info, MergeOutcome, RecordStore
from scanrecords.session.scanner import ScanSession
from scanrecords.utils.config import AppConfig, load_config
from scanrecords.utils.logger import setup_logging


def configure(path: Path | None = None) -> AppConfig:
    """Load the deployment config and set up logging at its level."""
    config = load_config(path)
    setup_logging(config.log_level)
    return config


def extract_invoice(ocr: OcrResult, config: AppConfig | None = None) -> InvoiceInfo:
    config = config or AppConfig()
    return InvoiceExtractor(config.invoice).extract(ocr)


def extract_multiple_invoices(
    ocr: OcrResult, config: AppConfig | None = None
) -> list[InvoiceInfo]:
    config = config or AppConfig()
    return InvoiceExtractor(config.invoice).extract_multiple(ocr)


def extract_quotation(
    ocr: OcrResult,
    layout: LayoutResult | None = None,
    config: AppConfig | None = None,
) -> QuotationInfo:
    config = config or AppConfig()
    extractor = QuotationExtractor(config.quotation, SpatialExtractor(config.spatial))
    return extractor.extract(ocr, layout)


def merge_observation(store: RecordStore, info: Info) -> MergeOutcome:
    """Create or update the record for ``info`` in ``store``."""
    return store.merge_observation(info)


def clear_session(store: RecordStore) -> RecordStore:
    """Empty the store and return it."""
    store.clear()
    return store


def invoice_session(config: AppConfig | None = None) -> ScanSession:
    """A scan session wired to the invoice extractor."""
    config = config or AppConfig()
    extractor = InvoiceExtractor(config.invoice)
    return ScanSession(
        lambda ocr, _layout: extractor.extract(ocr), RecordStore(config.merge)
    )


def quotation_session(config: AppConfig | None = None) -> ScanSession:
    """A scan session wired to the quotation extractor."""
    config = config or AppConfig()
    extractor = QuotationExtractor(config.quotation, SpatialExtractor(config.spatial))
    return ScanSession(extractor.extract, RecordStore(config.merge))
