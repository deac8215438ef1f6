"""Persisted record types kept for the lifetime of a scanning session.

Records are immutable values; the store swaps in a new value on every
accepted merge, so a record's identifier can never be reassigned.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime

from scanrecords.extraction.invoice_extractor import InvoiceInfo
from scanrecords.extraction.quotation_extractor import QuotationInfo, QuotationItem

_NON_DIGITS = re.compile(r"[^0-9]")


def dedupe_key(identifier: str) -> str:
    """Canonical store key: the identifier's digits only.

    Full-width digits are folded to ASCII first, so both OCR readings of
    a number share one key.

    >>> dedupe_key("AB-12345678") == dedupe_key("AB 12345678") == "12345678"
    True
    """
    return _NON_DIGITS.sub("", unicodedata.normalize("NFKC", identifier))


@dataclass(frozen=True)
class ScannedInvoice:
    """An invoice accumulated over one or more observations."""

    invoice_number: str
    period: str | None = None
    store_name: str | None = None
    amount: int | None = None
    date: str | None = None
    time: str | None = None
    random_code: str | None = None
    confidence: float = 0.0
    scanned_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_info(cls, info: InvoiceInfo) -> "ScannedInvoice":
        if info.invoice_number is None:
            raise ValueError("cannot persist an invoice without a number")
        return cls(
            invoice_number=info.invoice_number,
            period=info.period,
            store_name=info.store_name,
            amount=info.amount,
            date=info.date,
            time=info.time,
            random_code=info.random_code,
            confidence=info.confidence,
        )

    @property
    def key(self) -> str:
        return dedupe_key(self.invoice_number)

    @property
    def group_key(self) -> str:
        """Grouping label for listing invoices by period."""
        return self.period or "Unknown"

    @property
    def display_amount(self) -> str:
        return f"${self.amount}" if self.amount is not None else "-"


@dataclass(frozen=True)
class ScannedQuotation:
    """A quotation accumulated over one or more observations."""

    quotation_number: str
    quotation_date: str | None = None
    customer_name: str | None = None
    order_number: str | None = None
    items: tuple[QuotationItem, ...] = ()
    subtotal: int | None = None
    tax: int | None = None
    total: int | None = None
    confidence: float = 0.0
    scanned_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_info(cls, info: QuotationInfo) -> "ScannedQuotation":
        if not info.quotation_number:
            raise ValueError("cannot persist a quotation without a number")
        return cls(
            quotation_number=info.quotation_number,
            quotation_date=info.quotation_date,
            customer_name=info.customer_name,
            order_number=info.order_number,
            items=tuple(info.items),
            subtotal=info.subtotal,
            tax=info.tax,
            total=info.total,
            confidence=info.confidence,
        )

    @property
    def key(self) -> str:
        return dedupe_key(self.quotation_number)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def display_total(self) -> str:
        return f"${self.total}" if self.total is not None else "N/A"
