"""Tests for OCR primitives, collaborator payloads and layout routing."""

import numpy as np
import pytest

from scanrecords.extraction.spatial_extractor import LabelPattern
from scanrecords.ocr.layout_analyzer import LayoutRouter, containment_matrix
from scanrecords.ocr.models import (
    BoundingBox,
    DetectionBox,
    LayoutResult,
    OcrResult,
    TextLine,
)
from scanrecords.ocr.schemas import LayoutPayload, OcrPayload
from scanrecords.utils.config import LayoutConfig


def _line(text: str, x1: float, y1: float, x2: float, y2: float, conf: float = 0.9) -> TextLine:
    return TextLine(text=text, bbox=BoundingBox(x1, y1, x2, y2), confidence=conf)


def _detection(label: str, x1: float, y1: float, x2: float, y2: float) -> DetectionBox:
    return DetectionBox(class_label=label, bbox=BoundingBox(x1, y1, x2, y2), score=0.9)


class TestBoundingBox:
    """Tests for the BoundingBox geometry helpers."""

    def test_dimensions(self) -> None:
        box = BoundingBox(10, 20, 110, 70)
        assert box.width == 100
        assert box.height == 50
        assert box.center_x == 60
        assert box.center_y == 45
        assert box.area == 5000

    def test_intersection(self) -> None:
        a = BoundingBox(0, 0, 10, 10)
        b = BoundingBox(5, 5, 20, 20)
        assert a.intersection(b) == BoundingBox(5, 5, 10, 10)

    def test_touching_boxes_do_not_intersect(self) -> None:
        a = BoundingBox(0, 0, 10, 10)
        b = BoundingBox(10, 0, 20, 10)
        assert a.intersection(b) is None
        assert not a.overlaps(b)

    def test_contains_point(self) -> None:
        box = BoundingBox(0, 0, 10, 10)
        assert box.contains_point(10, 5)
        assert not box.contains_point(11, 5)


class TestOcrResult:
    """Tests for the OcrResult helpers."""

    def test_full_text(self) -> None:
        ocr = OcrResult(lines=[_line("a", 0, 0, 1, 1), _line("b", 0, 2, 1, 3)])
        assert ocr.full_text == "a\nb"

    def test_find_text_case_insensitive(self) -> None:
        ocr = OcrResult(lines=[_line("Total $5", 0, 0, 80, 20)])
        assert len(ocr.find_text("total")) == 1
        assert ocr.find_text("total", case_sensitive=True) == []

    def test_find_text_precise_prefers_words(self) -> None:
        word = _line("Total", 0, 0, 50, 20)
        ocr = OcrResult(lines=[_line("Total $5", 0, 0, 80, 20)], words=[word])
        assert ocr.find_text_precise("total") == [word]

    def test_find_text_precise_falls_back_to_lines(self) -> None:
        line = _line("Total $5", 0, 0, 80, 20)
        ocr = OcrResult(lines=[line], words=[_line("Total", 0, 0, 50, 20)])
        assert ocr.find_text_precise("$5") == [line]


class TestPayloads:
    """Tests for parsing collaborator JSON."""

    def test_ocr_payload_to_result(self) -> None:
        payload = {
            "results": [{"x1": 1, "y1": 2, "x2": 30, "y2": 12, "score": 0.93, "text": "總計 $100"}],
            "words": [],
            "count": 1,
            "inference_time_ms": 42,
            "image_width": 640,
            "image_height": 480,
        }
        result = OcrPayload.model_validate(payload).to_result()
        assert not result.has_error
        assert result.lines[0].text == "總計 $100"
        assert result.lines[0].bbox == BoundingBox(1, 2, 30, 12)
        assert result.lines[0].confidence == pytest.approx(0.93)
        assert result.inference_time_ms == 42

    def test_ocr_payload_error_yields_empty_result(self) -> None:
        result = OcrPayload.model_validate({"error": "model not loaded"}).to_result()
        assert result.has_error
        assert result.error == "model not loaded"
        assert result.lines == []

    def test_layout_payload_to_result(self) -> None:
        payload = {
            "detections": [
                {"x1": 0, "y1": 0, "x2": 100, "y2": 50, "score": 0.8, "class_id": 3, "class_name": "Table"}
            ],
            "image_width": 640,
            "image_height": 480,
        }
        result = LayoutPayload.model_validate(payload).to_result()
        assert result.detections[0].class_label == "Table"
        assert result.detections[0].class_id == 3

    def test_layout_payload_error(self) -> None:
        result = LayoutPayload.model_validate({"error": "boom"}).to_result()
        assert result.has_error
        assert result.detections == []


class TestContainmentMatrix:
    """Tests for the vectorized containment ratio."""

    def test_ratios(self) -> None:
        lines = [BoundingBox(0, 0, 10, 10), BoundingBox(90, 0, 110, 10)]
        regions = [BoundingBox(0, 0, 100, 100)]
        ratio = containment_matrix(lines, regions)
        assert ratio.shape == (2, 1)
        assert ratio[0, 0] == pytest.approx(1.0)
        assert ratio[1, 0] == pytest.approx(0.5)

    def test_zero_area_line(self) -> None:
        ratio = containment_matrix([BoundingBox(5, 5, 5, 5)], [BoundingBox(0, 0, 10, 10)])
        assert np.all(ratio == 0.0)


class TestLayoutRouter:
    """Tests for the LayoutRouter class."""

    def setup_method(self) -> None:
        self.router = LayoutRouter()

    def test_assign_by_containment(self) -> None:
        inside = _line("inside", 10, 10, 50, 20)
        outside = _line("outside", 300, 300, 350, 320)
        regions = self.router.assign([_detection("Text", 0, 0, 100, 100)], [inside, outside])
        assert regions[0].lines == [inside]

    def test_threshold_boundary(self) -> None:
        # 30 of 100 px inside the region: exactly the default threshold
        line = _line("edge", 70, 0, 170, 10)
        regions = self.router.assign([_detection("Text", 0, 0, 100, 100)], [line])
        assert regions[0].lines == [line]

    def test_below_threshold_not_assigned(self) -> None:
        line = _line("edge", 80, 0, 180, 10)
        regions = self.router.assign([_detection("Text", 0, 0, 100, 100)], [line])
        assert regions[0].lines == []

    def test_line_joins_first_region_only(self) -> None:
        line = _line("shared", 10, 10, 50, 20)
        regions = self.router.assign(
            [_detection("Table", 0, 0, 100, 100), _detection("Text", 0, 0, 200, 200)],
            [line],
        )
        assert regions[0].lines == [line]
        assert regions[1].lines == []

    def test_detector_order_kept(self) -> None:
        regions = self.router.assign(
            [_detection("Text", 0, 0, 10, 10), _detection("Table", 0, 0, 500, 500)], []
        )
        assert [r.class_label for r in regions] == ["Text", "Table"]

    def test_is_target_case_insensitive(self) -> None:
        regions = self.router.assign(
            [_detection("Table", 0, 0, 10, 10), _detection("Figure", 0, 0, 10, 10)], []
        )
        assert self.router.is_target(regions[0])
        assert not self.router.is_target(regions[1])

    def test_extract_restricted_to_target_regions(self) -> None:
        phone = LabelPattern("PHONE", ("電話",))
        lines = [
            _line("電話", 10, 10, 50, 30),
            _line("02-2345-6789", 60, 10, 180, 30),
            _line("電話", 10, 310, 50, 330),
            _line("0912-345-678", 60, 310, 180, 330),
        ]
        layout = LayoutResult(
            detections=[_detection("Text", 0, 0, 200, 100), _detection("Figure", 0, 300, 200, 400)],
            inference_time_ms=5,
        )
        ocr = OcrResult(lines=lines, inference_time_ms=7)

        result = self.router.extract(layout, ocr, [phone])

        assert len(result.regions) == 2
        assert [e.value for e in result.entities] == ["02-2345-6789"]
        assert result.total_time_ms == 12
        assert len(result.regions_of("figure")[0].lines) == 2

    def test_custom_targets(self) -> None:
        router = LayoutRouter(LayoutConfig(target_regions=["Figure"]))
        regions = router.assign([_detection("figure", 0, 0, 10, 10)], [])
        assert router.is_target(regions[0])

    def test_extract_with_ocr_error(self) -> None:
        result = self.router.extract(LayoutResult(), OcrResult(error="failed"))
        assert result.regions == []
        assert result.entities == []
