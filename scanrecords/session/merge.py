"""Create-or-update policy for records seen across repeated scans.

The policy is a pair of pure functions, :func:`merge_invoice` and
:func:`merge_quotation`, taking the current record (or ``None``) and a
fresh observation and returning the next record state, or ``None`` when
the observation is rejected. :class:`RecordStore` is the thin keyed
wrapper that serializes merges.

Update rules, applied only when the observation clears the update
threshold:

* empty scalar fields are filled from the observation;
* the item list is replaced wholesale when the store has none, or the
  observation is more confident and has at least as many items;
* totals are replaced when the store has none, or the observation is
  more confident;
* stored confidence only ever goes up.
"""

import threading
from dataclasses import replace
from enum import StrEnum
from typing import TypeVar

from scanrecords.extraction.invoice_extractor import InvoiceInfo
from scanrecords.extraction.quotation_extractor import QuotationInfo
from scanrecords.utils.config import MergeConfig
from scanrecords.utils.logger import get_logger

from .records import ScannedInvoice, ScannedQuotation, dedupe_key

logger = get_logger(__name__)

Info = InvoiceInfo | QuotationInfo
Record = ScannedInvoice | ScannedQuotation
T = TypeVar("T")


class MergeOutcome(StrEnum):
    """What a merge did to the store."""

    CREATED = "created"
    UPDATED = "updated"
    REJECTED = "rejected"
    INVALID = "invalid"


def _fill(current: T | None, incoming: T | None) -> T | None:
    return incoming if current is None and incoming is not None else current


def merge_invoice(
    existing: ScannedInvoice | None, info: InvoiceInfo, config: MergeConfig
) -> ScannedInvoice | None:
    """Next state of an invoice record, or ``None`` if ``info`` is rejected."""
    if not info.is_valid:
        return None

    if existing is None:
        if info.confidence < config.create_threshold:
            return None
        return ScannedInvoice.from_info(info)

    if info.confidence < config.update_threshold:
        return None

    higher = info.confidence > existing.confidence
    changes: dict = {
        "period": _fill(existing.period, info.period),
        "store_name": _fill(existing.store_name, info.store_name),
        "date": _fill(existing.date, info.date),
        "time": _fill(existing.time, info.time),
        "random_code": _fill(existing.random_code, info.random_code),
    }
    if info.amount is not None and (existing.amount is None or higher):
        changes["amount"] = info.amount
    if higher:
        changes["confidence"] = info.confidence
    return replace(existing, **changes)


def merge_quotation(
    existing: ScannedQuotation | None, info: QuotationInfo, config: MergeConfig
) -> ScannedQuotation | None:
    """Next state of a quotation record, or ``None`` if ``info`` is rejected."""
    if not info.is_valid:
        return None

    if existing is None:
        if info.confidence < config.create_threshold:
            return None
        return ScannedQuotation.from_info(info)

    if info.confidence < config.update_threshold:
        return None

    higher = info.confidence > existing.confidence
    changes: dict = {
        "quotation_date": _fill(existing.quotation_date, info.quotation_date),
        "customer_name": _fill(existing.customer_name, info.customer_name),
        "order_number": _fill(existing.order_number, info.order_number),
    }
    if info.items and (
        not existing.items or (higher and len(info.items) >= len(existing.items))
    ):
        changes["items"] = tuple(info.items)
    if info.total is not None and (existing.total is None or higher):
        changes["subtotal"] = info.subtotal
        changes["tax"] = info.tax
        changes["total"] = info.total
    if higher:
        changes["confidence"] = info.confidence
    return replace(existing, **changes)


def merge(existing: Record | None, info: Info, config: MergeConfig) -> Record | None:
    """Dispatch to the merge policy for the observation's record type."""
    if isinstance(info, InvoiceInfo):
        if existing is not None and not isinstance(existing, ScannedInvoice):
            return None
        return merge_invoice(existing, info, config)
    if existing is not None and not isinstance(existing, ScannedQuotation):
        return None
    return merge_quotation(existing, info, config)


class RecordStore:
    """In-memory record set keyed by dedupe key.

    Merges run inside a lock because each decision reads the stored
    confidence and item count it is about to overwrite.

    Args:
        config: Create and update thresholds.
    """

    def __init__(self, config: MergeConfig | None = None) -> None:
        self.config = config or MergeConfig()
        self._records: dict[str, Record] = {}
        self._lock = threading.Lock()

    def merge_observation(self, info: Info) -> MergeOutcome:
        """Create or update the record for ``info``.

        Returns:
            The outcome. Rejected and invalid observations leave the
            store untouched.
        """
        identifier = info.identifier
        key = dedupe_key(identifier) if identifier else ""
        if not info.is_valid or not key:
            logger.debug("Ignoring invalid observation (identifier=%r)", identifier)
            return MergeOutcome.INVALID

        with self._lock:
            existing = self._records.get(key)
            merged = merge(existing, info, self.config)
            if merged is None:
                logger.debug(
                    "Rejected observation for %s (confidence=%.2f)", key, info.confidence
                )
                return MergeOutcome.REJECTED
            self._records[key] = merged

        if existing is None:
            logger.info("Created record %s (confidence=%.2f)", identifier, info.confidence)
            return MergeOutcome.CREATED
        logger.debug("Updated record %s (confidence=%.2f)", key, merged.confidence)
        return MergeOutcome.UPDATED

    def get(self, key: str) -> Record | None:
        return self._records.get(key)

    def records(self) -> list[Record]:
        with self._lock:
            return list(self._records.values())

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
        logger.info("Cleared record store")

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records
