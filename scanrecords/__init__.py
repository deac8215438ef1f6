"""Scanned Document Records.

Turns noisy, spatially scattered OCR output into invoice and quotation
records, and keeps a deduplicated, confidence-merged record set alive
across repeated scans of the same physical document.
"""

from scanrecords.pipeline import (
    clear_session,
    configure,
    extract_invoice,
    extract_multiple_invoices,
    extract_quotation,
    invoice_session,
    merge_observation,
    quotation_session,
)

__all__ = [
    "clear_session",
    "configure",
    "extract_invoice",
    "extract_multiple_invoices",
    "extract_quotation",
    "invoice_session",
    "merge_observation",
    "quotation_session",
]
