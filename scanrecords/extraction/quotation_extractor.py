"""Quotation / delivery-note extraction from OCR lines plus layout regions.

Header fields are located by label position. Line items are only read
when the layout detector found a table: product lines are detected by
shape, then each product's visual row is clustered and its cells are
classified as price, quantity, unit or spec. Totals are reconciled from
labelled values, preferring the bottom-most occurrence of each label.
"""

import re
from dataclasses import dataclass, field

from scanrecords.ocr.models import BoundingBox, LayoutResult, OcrResult, TextLine
from scanrecords.utils.config import QuotationConfig
from scanrecords.utils.logger import get_logger

from .spatial_extractor import LabelPattern, SpatialExtractor, find_right_of

logger = get_logger(__name__)

NUMBER_LABELS = ("出貨單號", "報價單號", "訂單號")
DATE_LABELS = ("出貨日期", "報價日期", "日期")
CUSTOMER_LABEL = LabelPattern("CUSTOMER", ("客戶名稱", "客戶"))

NUMBER_CANDIDATE_PATTERNS = (
    re.compile(r"[A-Z]{2}-?\d{8,12}"),
    re.compile(r"\d{8,12}"),
)
NUMBER_FALLBACK_PATTERN = re.compile(r"[A-Z]{2}-\d{10}")
DATE_PATTERN = re.compile(r"(\d{4})[/-](\d{1,2})[/-](\d{1,2})")
ORDER_NUMBER_PATTERN = re.compile(r"PO-\d{8}-\d{3}")

HEADER_KEYWORDS = (
    "品名", "規格", "數量", "單位", "單價", "金額", "項次", "次", "項",
    "小計", "總計", "稅", "合計", "營業",
)
CJK_PATTERN = re.compile(r"[\u4e00-\u9fff]")
CODE_PATTERN = re.compile(r"[A-Z0-9]")
DIGITS_PATTERN = re.compile(r"^\d+$")
QUANTITY_PATTERN = re.compile(r"^\d{1,4}$")
UNIT_PATTERN = re.compile(r"^[片個組件台套塊顆]$")
NUMBER_TOKEN_PATTERN = re.compile(r"\$?([\d,]+)")
DOLLAR_VALUE_PATTERN = re.compile(r"\$(\d{1,3}(?:,\d{3})*|\d+)")
CURRENCY_MARKS = ("$", "＄")


@dataclass(frozen=True)
class QuotationItem:
    """One line item read from the items table."""

    index: int
    name: str
    spec: str
    quantity: int
    unit: str
    unit_price: int
    amount: int
    bbox: BoundingBox | None = None

    def __str__(self) -> str:
        return f"{self.name} x{self.quantity} = ${self.amount}"


@dataclass
class QuotationInfo:
    """Quotation fields read from a single observation."""

    quotation_number: str | None = None
    quotation_date: str | None = None
    customer_name: str | None = None
    order_number: str | None = None
    items: list[QuotationItem] = field(default_factory=list)
    subtotal: int | None = None
    tax: int | None = None
    total: int | None = None
    quotation_number_box: BoundingBox | None = None
    table_box: BoundingBox | None = None
    confidence: float = 0.0

    @property
    def is_valid(self) -> bool:
        return bool(self.quotation_number)

    @property
    def identifier(self) -> str | None:
        return self.quotation_number

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def display_total(self) -> str:
        return f"${self.total}" if self.total is not None else "N/A"


@dataclass
class Totals:
    subtotal: int | None = None
    tax: int | None = None
    total: int | None = None


def parse_int(token: str) -> int | None:
    """Parse a comma-grouped integer, ``None`` when nothing numeric remains."""
    digits = token.replace(",", "")
    return int(digits) if digits.isdigit() else None


def is_currency(text: str) -> bool:
    return any(mark in text for mark in CURRENCY_MARKS)


def resolve_prices(prices: list[int], quantity: int) -> tuple[int, int]:
    """Split a row's price candidates into ``(unit_price, amount)``.

    The largest value is the line amount and the runner-up the unit
    price. With a single value the unit price is derived from quantity.
    """
    ordered = sorted(prices)
    if len(ordered) >= 2:
        return ordered[-2], ordered[-1]
    if len(ordered) == 1:
        amount = ordered[0]
        unit_price = round(amount / quantity) if quantity > 0 else 0
        return unit_price, amount
    return 0, 0


def _compact(text: str) -> str:
    return text.replace(" ", "")


class QuotationExtractor:
    """Extracts :class:`QuotationInfo` from OCR and optional layout results.

    Args:
        config: Pixel tolerances and total heuristics.
        spatial: Spatial extractor used for label/value lookups.
    """

    def __init__(
        self,
        config: QuotationConfig | None = None,
        spatial: SpatialExtractor | None = None,
    ) -> None:
        self.config = config or QuotationConfig()
        self.spatial = spatial or SpatialExtractor()

    def extract(self, ocr: OcrResult, layout: LayoutResult | None = None) -> QuotationInfo:
        """Extract a quotation from one observation.

        Args:
            ocr: Recognition output.
            layout: Layout-detector output. Items are only read when it
                contains a table.

        Returns:
            Extracted fields, with ``confidence`` the mean line confidence.
        """
        if ocr.has_error:
            logger.warning("OCR error, treating frame as empty: %s", ocr.error)
            return QuotationInfo()
        lines = ocr.lines
        if not lines:
            return QuotationInfo()

        confidence = sum(line.confidence for line in lines) / len(lines)
        number = self._find_quotation_number(lines)
        table_box = self._find_table_box(layout)
        items = self._extract_items(lines, table_box)
        totals = self._extract_totals(lines)

        info = QuotationInfo(
            quotation_number=number[0] if number else None,
            quotation_number_box=number[1] if number else None,
            quotation_date=self._find_date(lines),
            customer_name=self._find_customer(lines),
            order_number=self._find_order_number(lines),
            items=items,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
            table_box=table_box,
            confidence=confidence,
        )
        logger.info(
            "Quotation %s: %d item(s), total=%s, confidence=%.2f",
            info.quotation_number,
            info.item_count,
            info.total,
            confidence,
        )
        return info

    def _find_quotation_number(
        self, lines: list[TextLine]
    ) -> tuple[str, BoundingBox] | None:
        label = next(
            (ln for ln in lines if any(k in _compact(ln.text) for k in NUMBER_LABELS)),
            None,
        )
        if label is None:
            for line in lines:
                match = NUMBER_FALLBACK_PATTERN.search(line.text)
                if match:
                    return match.group(0), line.bbox
            return None

        date_label = next(
            (
                ln
                for ln in lines
                if any(k in _compact(ln.text) for k in DATE_LABELS)
                and abs(ln.bbox.y1 - label.bbox.y1) < self.config.date_label_tolerance
            ),
            None,
        )
        right_limit = date_label.bbox.x1 if date_label is not None else float("inf")

        for line in lines:
            if abs(line.bbox.center_y - label.bbox.center_y) > self.config.row_tolerance:
                continue
            if not label.bbox.x2 < line.bbox.x1 < right_limit:
                continue
            cleaned = _compact(line.text)
            if any(p.search(cleaned) for p in NUMBER_CANDIDATE_PATTERNS):
                return cleaned, line.bbox

        logger.debug("Number label %r found but no value beside it", label.text)
        return None

    @staticmethod
    def _find_date(lines: list[TextLine]) -> str | None:
        for line in lines:
            match = DATE_PATTERN.search(line.text)
            if match:
                return match.group(0)
        return None

    def _find_customer(self, lines: list[TextLine]) -> str | None:
        for line in lines:
            if not any(k in _compact(line.text) for k in CUSTOMER_LABEL.triggers):
                continue
            value = find_right_of(line, lines, CUSTOMER_LABEL, self.spatial.config)
            if value is not None:
                return value.text.strip()
        return None

    @staticmethod
    def _find_order_number(lines: list[TextLine]) -> str | None:
        for line in lines:
            match = ORDER_NUMBER_PATTERN.search(line.text)
            if match:
                return match.group(0)
        return None

    @staticmethod
    def _find_table_box(layout: LayoutResult | None) -> BoundingBox | None:
        if layout is None or layout.has_error:
            return None
        tables = [d for d in layout.detections if d.class_label.lower() == "table"]
        if not tables:
            return None
        return max(tables, key=lambda d: d.bbox.area).bbox

    def _extract_items(
        self, lines: list[TextLine], table_box: BoundingBox | None
    ) -> list[QuotationItem]:
        if table_box is None:
            logger.debug("No table region, skipping item extraction")
            return []

        table_lines = [
            ln for ln in lines if table_box.contains_point(ln.bbox.center_x, ln.bbox.center_y)
        ]
        products = sorted(
            (ln for ln in table_lines if self._is_product_line(ln.text.strip())),
            key=lambda ln: ln.bbox.y1,
        )
        logger.debug(
            "Table has %d of %d lines, %d product line(s)",
            len(table_lines),
            len(lines),
            len(products),
        )

        items: list[QuotationItem] = []
        for product in products:
            item = self._read_row(product, table_lines, len(items) + 1)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def _is_product_line(text: str) -> bool:
        for keyword in HEADER_KEYWORDS:
            if text == keyword or (len(text) <= 4 and keyword in text):
                return False
        if text.startswith(CURRENCY_MARKS) or DIGITS_PATTERN.match(text):
            return False
        if len(text) <= 2:
            return False
        return bool(CJK_PATTERN.search(text) and CODE_PATTERN.search(text) and len(text) > 5)

    def _read_row(
        self, product: TextLine, table_lines: list[TextLine], index: int
    ) -> QuotationItem | None:
        tolerance = product.bbox.height * self.config.product_row_factor
        row = sorted(
            (
                ln
                for ln in table_lines
                if ln is not product
                and abs(ln.bbox.center_y - product.bbox.center_y) < tolerance
            ),
            key=lambda ln: ln.bbox.x1,
        )

        name = product.text.strip()
        spec = ""
        unit = ""
        quantity = 0
        prices: list[int] = []

        for cell in row:
            text = cell.text.strip()
            if text == name:
                continue

            if is_currency(text):
                match = NUMBER_TOKEN_PATTERN.search(text)
                value = parse_int(match.group(1)) if match else None
                if value:
                    prices.append(value)
                    continue

            if QUANTITY_PATTERN.match(text) and quantity == 0:
                value = int(text)
                if value > 0:
                    quantity = value
                    continue

            if not unit and UNIT_PATTERN.match(text):
                unit = text
                continue

            if (
                not spec
                and len(text) > 1
                and not DIGITS_PATTERN.match(text)
                and not text.startswith(CURRENCY_MARKS)
            ):
                spec = text

        unit_price, amount = resolve_prices(prices, quantity)
        logger.debug(
            "Row %d: %s qty=%d unit_price=%d amount=%d", index, name, quantity, unit_price, amount
        )
        if not name or amount <= 0:
            return None
        return QuotationItem(
            index=index,
            name=name,
            spec=spec,
            quantity=quantity,
            unit=unit,
            unit_price=unit_price,
            amount=amount,
            bbox=product.bbox,
        )

    def _extract_totals(self, lines: list[TextLine]) -> Totals:
        ordered = sorted(lines, key=lambda ln: ln.bbox.y1)
        candidates: dict[str, list[tuple[int, float]]] = {
            "subtotal": [],
            "tax": [],
            "total": [],
        }
        min_total = self.config.min_total

        for line in ordered:
            text = _compact(line.text)
            if "總計" in text or "合計" in text:
                category = "total"
            elif "小計" in text:
                category = "subtotal"
            elif "稅額" in text or "營業稅" in text:
                category = "tax"
            else:
                continue

            price = self._find_price_in_row(line, ordered)
            if price is None:
                continue
            if category != "tax" and price <= min_total:
                continue
            candidates[category].append((price, line.bbox.y1))
            logger.debug("%s candidate %d from %r", category, price, line.text)

        totals = Totals(
            subtotal=_bottom_most(candidates["subtotal"]),
            total=_bottom_most(candidates["total"]),
        )

        if totals.subtotal is not None:
            ceiling = totals.subtotal
        elif totals.total is not None:
            ceiling = totals.total
        else:
            ceiling = self.config.tax_ceiling
        totals.tax = _bottom_most([c for c in candidates["tax"] if c[0] < ceiling])

        if totals.total is None and totals.subtotal is not None:
            totals.total = totals.subtotal + (totals.tax or 0)
            logger.debug("Derived total %d from subtotal and tax", totals.total)

        if totals.total is None:
            totals.total = self._largest_dollar_value(lines)

        return totals

    def _find_price_in_row(self, label: TextLine, lines: list[TextLine]) -> int | None:
        tolerance = label.bbox.height * self.config.totals_row_factor
        best: tuple[float, int] | None = None

        for line in lines:
            if line is label:
                continue
            if abs(line.bbox.center_y - label.bbox.center_y) > tolerance:
                continue
            if line.bbox.x1 <= label.bbox.x2:
                continue
            match = NUMBER_TOKEN_PATTERN.search(line.text)
            price = parse_int(match.group(1)) if match else None
            if not price:
                continue
            gap = line.bbox.x1 - label.bbox.x2
            if best is None or gap < best[0]:
                best = (gap, price)

        if best is not None:
            return best[1]

        match = NUMBER_TOKEN_PATTERN.search(label.text)
        price = parse_int(match.group(1)) if match else None
        if price is not None and price > self.config.min_total:
            return price
        return None

    @staticmethod
    def _largest_dollar_value(lines: list[TextLine]) -> int | None:
        largest = 0
        for line in lines:
            match = DOLLAR_VALUE_PATTERN.search(line.text)
            if match:
                largest = max(largest, parse_int(match.group(1)) or 0)
        if largest > 0:
            logger.debug("Fallback total from largest $ value: %d", largest)
            return largest
        return None


def _bottom_most(candidates: list[tuple[int, float]]) -> int | None:
    """Value of the candidate with the greatest Y, first seen on ties."""
    if not candidates:
        return None
    best = candidates[0]
    for candidate in candidates[1:]:
        if candidate[1] > best[1]:
            best = candidate
    return best[0]
