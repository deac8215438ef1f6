"""Shared test fixtures for the scanrecords test suite."""

from pathlib import Path

import pytest

from scanrecords.ocr.models import BoundingBox, DetectionBox, LayoutResult, OcrResult, TextLine


def _make_line(
    text: str,
    x1: float = 0,
    y1: float = 0,
    x2: float | None = None,
    y2: float | None = None,
    confidence: float = 0.95,
) -> TextLine:
    """Create a test TextLine; width defaults to 10px per character."""
    if x2 is None:
        x2 = x1 + 10 * max(len(text), 1)
    if y2 is None:
        y2 = y1 + 20
    return TextLine(text=text, bbox=BoundingBox(x1, y1, x2, y2), confidence=confidence)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"


@pytest.fixture
def invoice_ocr() -> OcrResult:
    """A single printed e-invoice, one field per line."""
    lines = [
        _make_line("美麗商店", 100, 0, confidence=0.95),
        _make_line("電子發票證明聯", 80, 40, confidence=0.99),
        _make_line("114年09-10月", 90, 80, confidence=0.92),
        _make_line("AB-12345678", 90, 120, confidence=0.95),
        _make_line("總計 $1,234", 90, 300, confidence=0.90),
    ]
    return OcrResult(lines=lines, image_width=400, image_height=600)


@pytest.fixture
def quotation_ocr() -> OcrResult:
    """A quotation page with header fields, a two-row items table and totals."""
    lines = [
        _make_line("報價單", 300, 20, 380, 50),
        _make_line("報價單號:", 20, 100, 110, 120),
        _make_line("QT-2024010001", 130, 100, 270, 120),
        _make_line("報價日期:", 400, 100, 490, 120),
        _make_line("2024/01/15", 500, 100, 600, 120),
        _make_line("客戶名稱:", 20, 140, 110, 160),
        _make_line("大同電子股份有限公司", 130, 140, 330, 160),
        _make_line("PO-20240115-001", 400, 140, 550, 160),
        # items table header
        _make_line("品名", 20, 200, 60, 220),
        _make_line("數量", 300, 200, 340, 220),
        _make_line("單價", 400, 200, 440, 220),
        _make_line("金額", 500, 200, 540, 220),
        # row 1
        _make_line("電路板 PCB-2024A", 20, 240, 180, 260),
        _make_line("雙層板", 200, 240, 260, 260),
        _make_line("10", 300, 240, 320, 260),
        _make_line("片", 350, 240, 360, 260),
        _make_line("$120", 400, 240, 440, 260),
        _make_line("$1,200", 500, 240, 560, 260),
        # row 2
        _make_line("電容器 CAP-100uF", 20, 280, 180, 300),
        _make_line("5", 300, 280, 310, 300),
        _make_line("個", 350, 280, 360, 300),
        _make_line("$250", 500, 280, 540, 300),
        # totals
        _make_line("小計", 400, 360, 440, 380),
        _make_line("$1,450", 500, 360, 560, 380),
        _make_line("營業稅", 400, 400, 460, 420),
        _make_line("$73", 500, 400, 530, 420),
        _make_line("總計", 400, 440, 440, 460),
        _make_line("$1,523", 500, 440, 560, 460),
    ]
    return OcrResult(lines=lines, image_width=640, image_height=500)


@pytest.fixture
def quotation_layout() -> LayoutResult:
    """Layout with a small title region and the main items table."""
    return LayoutResult(
        detections=[
            DetectionBox("Title", BoundingBox(290, 10, 390, 60), 0.9),
            DetectionBox("Table", BoundingBox(10, 190, 620, 320), 0.95),
        ],
        image_width=640,
        image_height=500,
    )
