"""Field extraction for Taiwanese electronic-invoice printouts.

The printed layout is::

    店家名稱              <- store name
    電子發票證明聯        <- anchor
    114年09-10月          <- period
    AB-12345678           <- invoice number
    2025-09-12 14:03:11   <- date, time
    隨機碼 1234           <- random code
    ...
    總計 $1,234           <- amount

Each field has its own finder. A finder that fails leaves its field
empty; it never blocks the others. Field values are only kept when the
source line's OCR confidence clears the configured gate.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from scanrecords.ocr.models import BoundingBox, OcrResult, TextLine
from scanrecords.utils.config import InvoiceConfig
from scanrecords.utils.logger import get_logger

logger = get_logger(__name__)

ANCHOR_PATTERN = re.compile(r"電子發票證明聯")
INVOICE_NUMBER_PATTERN = re.compile(r"\b([A-Z]{2})-?(\d{8})\b", re.ASCII | re.IGNORECASE)

PERIOD_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"1\d{2}\s*年\s*\d{1,2}\s*-\s*\d{1,2}\s*月"),
    re.compile(r"1\d{2}\s*年\s*\d{1,2}\s*月"),
]

# Priority order: the first pattern with an in-range match wins.
AMOUNT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"總\s*[計计]\s*[:：]?\s*\$?\s*([\d,]+)"),
    re.compile(r"合\s*[計计]\s*[:：]?\s*\$?\s*([\d,]+)"),
    re.compile(r"應付\s*[:：]?\s*\$?\s*([\d,]+)"),
    re.compile(r"金額\s*[:：]?\s*\$?\s*([\d,]+)"),
    re.compile(r"NT\$\s*([\d,]+)"),
]

FULL_DATE_PATTERN = re.compile(r"(\d{4})[-/](\d{1,2})[-/]\d{1,2}")
DATE_PATTERN = re.compile(r"(\d{4}[-/]\d{1,2}[-/]\d{1,2})")
TIME_PATTERN = re.compile(r"(\d{1,2}:\d{2}(?::\d{2})?)")
RANDOM_CODE_PATTERN = re.compile(r"隨機碼\s*[:：]?\s*(\d{4})")

STORE_NAME_BLOCKLIST = ("統一編號", "營業人", "電子發票", "證明聯")


@dataclass(frozen=True)
class FieldHit:
    """A finder result: value, source box and source confidence."""

    value: str
    bbox: BoundingBox
    score: float


@dataclass
class InvoiceInfo:
    """Invoice fields read from a single observation.

    Scores are kept even when the field value was gated out, so callers
    can tell "not found" from "found but not trusted".
    """

    invoice_number: str | None = None
    period: str | None = None
    store_name: str | None = None
    amount: int | None = None
    date: str | None = None
    time: str | None = None
    random_code: str | None = None

    invoice_number_box: BoundingBox | None = None
    amount_box: BoundingBox | None = None
    invoice_number_score: float | None = None
    period_score: float | None = None
    store_name_score: float | None = None
    amount_score: float | None = None
    date_score: float | None = None

    confidence: float = 0.0
    number_min_confidence: float = 0.9

    @property
    def has_high_confidence(self) -> bool:
        return (
            self.invoice_number_score is None
            or self.invoice_number_score >= self.number_min_confidence
        )

    @property
    def is_valid(self) -> bool:
        return self.invoice_number is not None and self.has_high_confidence

    @property
    def identifier(self) -> str | None:
        return self.invoice_number

    @property
    def display_amount(self) -> str:
        return f"${self.amount}" if self.amount is not None else ""

    def __str__(self) -> str:
        parts = [
            p
            for p in (self.invoice_number, self.period, self.display_amount, self.store_name)
            if p
        ]
        return " | ".join(parts)


def infer_period(year: int, month: int) -> str | None:
    """Map a Gregorian date to its bi-monthly invoice period.

    >>> infer_period(2025, 7)
    '114年07-08月'
    """
    tw_year = year - 1911
    if tw_year < 100 or tw_year > 200 or not 1 <= month <= 12:
        return None
    start = ((month - 1) // 2) * 2 + 1
    return f"{tw_year}年{start:02d}-{start + 1:02d}月"


def is_valid_store_name(text: str) -> bool:
    if len(text) < 2 or text.isdigit():
        return False
    if any(pattern.search(text) for pattern in AMOUNT_PATTERNS):
        return False
    return not any(marker in text for marker in STORE_NAME_BLOCKLIST)


def find_anchor(lines: list[TextLine]) -> int:
    """Index of the first anchor line, or -1."""
    for i, line in enumerate(lines):
        if ANCHOR_PATTERN.search(line.text):
            return i
    return -1


class InvoiceExtractor:
    """Extracts :class:`InvoiceInfo` records from OCR results.

    Args:
        config: Confidence gates and search windows.
    """

    def __init__(self, config: InvoiceConfig | None = None) -> None:
        self.config = config or InvoiceConfig()

    def extract(self, ocr: OcrResult) -> InvoiceInfo:
        """Extract one invoice from a full OCR result."""
        if ocr.has_error:
            logger.warning("OCR error, treating frame as empty: %s", ocr.error)
            return self._empty()
        return self.extract_lines(ocr.lines)

    def extract_lines(
        self, lines: list[TextLine], preceding: list[TextLine] | None = None
    ) -> InvoiceInfo:
        """Extract one invoice from an ordered list of lines.

        Args:
            lines: The invoice's own lines.
            preceding: Lines printed just above ``lines``, searched for
                the store name only, nearest first.
        """
        if not lines:
            return self._empty()

        cfg = self.config
        anchor = find_anchor(lines)

        number = self._find_invoice_number(lines, anchor)
        period = self._find_period(lines, anchor)
        store = self._find_first_store_name(
            reversed(preceding or [])
        ) or self._find_store_name(lines, anchor)
        amount = self._find_amount(lines)
        date = self._find_first(lines, DATE_PATTERN)
        time = self._find_first(lines, TIME_PATTERN)
        random_code = self._find_first(lines, RANDOM_CODE_PATTERN)

        period_ok = period is not None and period.score >= cfg.min_confidence
        store_ok = store is not None and store.score >= cfg.min_confidence
        date_ok = date is not None and date.score >= cfg.min_confidence
        amount_ok = amount is not None and amount.score >= cfg.amount_min_confidence

        accepted = [
            hit.score
            for hit, ok in (
                (number, number is not None),
                (period, period_ok),
                (store, store_ok),
                (amount, amount_ok),
                (date, date_ok),
            )
            if ok
        ]
        confidence = sum(accepted) / len(accepted) if accepted else 0.0

        if number is not None:
            logger.debug(
                "Invoice %s (%.2f): period=%s%s amount=%s%s store=%s%s date=%s%s",
                number.value,
                number.score,
                period.value if period else None,
                "" if period_ok else " [skip]",
                amount.value if amount else None,
                "" if amount_ok else " [skip]",
                store.value if store else None,
                "" if store_ok else " [skip]",
                date.value if date else None,
                "" if date_ok else " [skip]",
            )

        return InvoiceInfo(
            invoice_number=number.value if number else None,
            invoice_number_box=number.bbox if number else None,
            invoice_number_score=number.score if number else None,
            period=period.value if period_ok else None,
            period_score=period.score if period else None,
            store_name=store.value if store_ok else None,
            store_name_score=store.score if store else None,
            amount=int(amount.value) if amount_ok else None,
            amount_box=amount.bbox if amount_ok else None,
            amount_score=amount.score if amount else None,
            date=date.value if date_ok else None,
            date_score=date.score if date else None,
            time=time.value if time else None,
            random_code=random_code.value if random_code else None,
            confidence=confidence,
            number_min_confidence=cfg.invoice_number_min_confidence,
        )

    def extract_multiple(self, ocr: OcrResult) -> list[InvoiceInfo]:
        """Extract every invoice from a frame showing several of them.

        The line stream is split at each anchor. The two lines above an
        anchor may be the tail of the previous invoice, so they are only
        searched for the store name. Only valid invoices are returned.
        """
        if ocr.has_error:
            logger.warning("OCR error, no invoices extracted: %s", ocr.error)
            return []
        lines = ocr.lines
        if not lines:
            return []

        anchors = [i for i, line in enumerate(lines) if ANCHOR_PATTERN.search(line.text)]
        if not anchors:
            single = self.extract_lines(lines)
            return [single] if single.is_valid else []

        invoices: list[InvoiceInfo] = []
        for i, start in enumerate(anchors):
            end = anchors[i + 1] if i + 1 < len(anchors) else len(lines)
            info = self.extract_lines(lines[start:end], lines[max(start - 2, 0) : start])
            if info.is_valid:
                invoices.append(info)

        logger.info("Found %d valid invoice(s) across %d anchors", len(invoices), len(anchors))
        return invoices

    def _empty(self) -> InvoiceInfo:
        return InvoiceInfo(number_min_confidence=self.config.invoice_number_min_confidence)

    def _find_invoice_number(self, lines: list[TextLine], anchor: int) -> FieldHit | None:
        window = lines[anchor : anchor + self.config.anchor_window] if anchor >= 0 else []
        for line in [*window, *lines]:
            match = INVOICE_NUMBER_PATTERN.search(line.text)
            if match:
                number = f"{match.group(1).upper()}-{match.group(2)}"
                return FieldHit(number, line.bbox, line.confidence)
        return None

    def _find_period(self, lines: list[TextLine], anchor: int) -> FieldHit | None:
        if anchor >= 0:
            near = lines[anchor : anchor + self.config.period_window]
            hit = self._find_explicit_period(near) or self._find_explicit_period(lines)
        else:
            hit = self._find_explicit_period(lines)
        if hit is not None:
            return hit

        for line in lines:
            match = FULL_DATE_PATTERN.search(line.text)
            if match:
                inferred = infer_period(int(match.group(1)), int(match.group(2)))
                if inferred is not None:
                    return FieldHit(inferred, line.bbox, line.confidence)
        return None

    @staticmethod
    def _find_explicit_period(lines: list[TextLine]) -> FieldHit | None:
        for line in lines:
            for pattern in PERIOD_PATTERNS:
                match = pattern.search(line.text)
                if match:
                    return FieldHit(match.group(0), line.bbox, line.confidence)
        return None

    @classmethod
    def _find_store_name(cls, lines: list[TextLine], anchor: int) -> FieldHit | None:
        candidates = lines[:anchor] if anchor > 0 else []
        return cls._find_first_store_name([*candidates, *lines[:3]])

    @staticmethod
    def _find_first_store_name(lines: Iterable[TextLine]) -> FieldHit | None:
        for line in lines:
            text = line.text.strip()
            if is_valid_store_name(text):
                return FieldHit(text, line.bbox, line.confidence)
        return None

    def _find_amount(self, lines: list[TextLine]) -> FieldHit | None:
        for pattern in AMOUNT_PATTERNS:
            for line in lines:
                match = pattern.search(line.text)
                if not match:
                    continue
                digits = match.group(1).replace(",", "")
                if not digits.isdigit():
                    continue
                amount = int(digits)
                if self.config.min_amount <= amount <= self.config.max_amount:
                    return FieldHit(str(amount), line.bbox, line.confidence)
        return None

    @staticmethod
    def _find_first(lines: list[TextLine], pattern: re.Pattern[str]) -> FieldHit | None:
        for line in lines:
            match = pattern.search(line.text)
            if match:
                return FieldHit(match.group(1), line.bbox, line.confidence)
        return None
