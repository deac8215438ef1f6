"""Tests for quotation header, item and totals extraction."""

import pytest

from scanrecords import extract_quotation
from scanrecords.extraction.quotation_extractor import (
    QuotationExtractor,
    QuotationInfo,
    parse_int,
    resolve_prices,
)
from scanrecords.ocr.models import BoundingBox, DetectionBox, LayoutResult, OcrResult, TextLine
from scanrecords.session.merge import MergeOutcome, RecordStore


def _line(text: str, x1: float, y1: float, x2: float, y2: float, conf: float = 0.9) -> TextLine:
    return TextLine(text=text, bbox=BoundingBox(x1, y1, x2, y2), confidence=conf)


def _table(x1: float, y1: float, x2: float, y2: float) -> DetectionBox:
    return DetectionBox("Table", BoundingBox(x1, y1, x2, y2), 0.9)


class TestResolvePrices:
    """Tests for splitting row prices into unit price and amount."""

    @pytest.mark.parametrize(
        "prices,quantity,expected",
        [
            ([120, 1200], 10, (120, 1200)),
            ([1200, 5, 120], 10, (120, 1200)),
            ([250], 5, (50, 250)),
            ([100], 0, (0, 100)),
            ([], 3, (0, 0)),
        ],
    )
    def test_resolve(self, prices: list[int], quantity: int, expected: tuple[int, int]) -> None:
        assert resolve_prices(prices, quantity) == expected

    def test_parse_int(self) -> None:
        assert parse_int("1,450") == 1450
        assert parse_int(",") is None


class TestQuotationExtractor:
    """Tests for the QuotationExtractor class."""

    def setup_method(self) -> None:
        self.extractor = QuotationExtractor()

    def test_full_page(self, quotation_ocr: OcrResult, quotation_layout: LayoutResult) -> None:
        info = self.extractor.extract(quotation_ocr, quotation_layout)

        assert info.quotation_number == "QT-2024010001"
        assert info.quotation_date == "2024/01/15"
        assert info.customer_name == "大同電子股份有限公司"
        assert info.order_number == "PO-20240115-001"
        assert info.subtotal == 1450
        assert info.tax == 73
        assert info.total == 1523
        assert info.table_box == BoundingBox(10, 190, 620, 320)
        assert info.confidence == pytest.approx(0.95)
        assert info.is_valid

    def test_items(self, quotation_ocr: OcrResult, quotation_layout: LayoutResult) -> None:
        items = self.extractor.extract(quotation_ocr, quotation_layout).items

        assert len(items) == 2
        first, second = items
        assert (first.index, first.name, first.spec) == (1, "電路板 PCB-2024A", "雙層板")
        assert (first.quantity, first.unit) == (10, "片")
        assert (first.unit_price, first.amount) == (120, 1200)
        assert (second.index, second.name, second.spec) == (2, "電容器 CAP-100uF", "")
        assert (second.quantity, second.unit) == (5, "個")
        assert (second.unit_price, second.amount) == (50, 250)

    def test_no_layout_means_no_items(self, quotation_ocr: OcrResult) -> None:
        info = self.extractor.extract(quotation_ocr)
        assert info.items == []
        assert info.quotation_number == "QT-2024010001"
        assert info.total == 1523

    def test_layout_without_table(self, quotation_ocr: OcrResult) -> None:
        layout = LayoutResult(detections=[DetectionBox("Title", BoundingBox(290, 10, 390, 60), 0.9)])
        info = self.extractor.extract(quotation_ocr, layout)
        assert info.items == []
        assert info.table_box is None

    def test_largest_table_used(self, quotation_ocr: OcrResult) -> None:
        layout = LayoutResult(detections=[_table(10, 230, 200, 270), _table(10, 190, 620, 320)])
        info = self.extractor.extract(quotation_ocr, layout)
        assert info.table_box == BoundingBox(10, 190, 620, 320)
        assert info.item_count == 2

    def test_fallback_number_without_label(self) -> None:
        ocr = OcrResult(lines=[_line("No. QT-2024010001", 0, 0, 180, 20)])
        assert self.extractor.extract(ocr).quotation_number == "QT-2024010001"

    def test_full_width_number_is_storable(self) -> None:
        lines = [_line("報價單號:", 20, 100, 110, 120), _line("QT-２０２４０１０００１", 130, 100, 270, 120)]
        info = self.extractor.extract(OcrResult(lines=lines))
        assert info.quotation_number == "QT-２０２４０１０００１"
        assert RecordStore().merge_observation(info) == MergeOutcome.CREATED

    def test_number_left_of_date_label(self) -> None:
        lines = [
            _line("出貨單號", 0, 0, 80, 20),
            _line("出貨日期", 200, 0, 280, 20),
            _line("20240115", 300, 0, 380, 20),
        ]
        assert self.extractor.extract(OcrResult(lines=lines)).quotation_number is None

    def test_derived_total(self) -> None:
        lines = [
            _line("小計", 400, 100, 440, 120),
            _line("$1,000", 500, 100, 560, 120),
            _line("稅額", 400, 140, 440, 160),
            _line("$50", 500, 140, 530, 160),
        ]
        info = self.extractor.extract(OcrResult(lines=lines))
        assert (info.subtotal, info.tax, info.total) == (1000, 50, 1050)

    def test_bottom_most_total_wins(self) -> None:
        lines = [
            _line("總計", 400, 100, 440, 120),
            _line("$500", 500, 100, 540, 120),
            _line("總計", 400, 400, 440, 420),
            _line("$900", 500, 400, 540, 420),
        ]
        assert self.extractor.extract(OcrResult(lines=lines)).total == 900

    def test_tax_not_below_subtotal_dropped(self) -> None:
        lines = [
            _line("小計", 400, 100, 440, 120),
            _line("$1,000", 500, 100, 560, 120),
            _line("營業稅", 400, 140, 460, 160),
            _line("$5,000", 500, 140, 560, 160),
        ]
        info = self.extractor.extract(OcrResult(lines=lines))
        assert info.tax is None
        assert info.total == 1000

    @pytest.mark.parametrize("tax_text,expected", [("$50", 50), ("$1,000", None), ("$2,000", None)])
    def test_tax_bounded_by_total_without_subtotal(
        self, tax_text: str, expected: int | None
    ) -> None:
        lines = [
            _line("總計", 400, 100, 440, 120),
            _line("$1,000", 500, 100, 560, 120),
            _line("稅額", 400, 140, 440, 160),
            _line(tax_text, 500, 140, 560, 160),
        ]
        info = self.extractor.extract(OcrResult(lines=lines))
        assert info.total == 1000
        assert info.tax == expected

    @pytest.mark.parametrize("tax_text,expected", [("$9,999", 9999), ("$10,000", None)])
    def test_tax_ceiling_without_subtotal_or_total(
        self, tax_text: str, expected: int | None
    ) -> None:
        lines = [_line("營業稅", 400, 140, 460, 160), _line(tax_text, 500, 140, 570, 160)]
        info = self.extractor.extract(OcrResult(lines=lines))
        assert info.subtotal is None
        assert info.tax == expected

    def test_amount_embedded_in_label_line(self) -> None:
        lines = [_line("合計 $2,000", 400, 100, 520, 120)]
        assert self.extractor.extract(OcrResult(lines=lines)).total == 2000

    def test_fallback_to_largest_dollar_value(self) -> None:
        lines = [_line("$30", 0, 0, 30, 20), _line("$4,500", 0, 40, 60, 60)]
        assert self.extractor.extract(OcrResult(lines=lines)).total == 4500

    def test_ocr_error(self) -> None:
        info = self.extractor.extract(OcrResult(error="timeout"))
        assert not info.is_valid
        assert info.items == []

    def test_display_total(self) -> None:
        assert QuotationInfo().display_total == "N/A"
        assert QuotationInfo(total=1523).display_total == "$1523"


class TestExtractQuotation:
    """Tests for the package-level quotation function."""

    def test_extract_quotation(
        self, quotation_ocr: OcrResult, quotation_layout: LayoutResult
    ) -> None:
        info = extract_quotation(quotation_ocr, quotation_layout)
        assert info.identifier == "QT-2024010001"
        assert info.item_count == 2
