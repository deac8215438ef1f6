"""Pydantic schemas for the JSON emitted by the OCR and layout collaborators."""

from pydantic import BaseModel, Field

from scanrecords.utils.logger import get_logger

from .models import BoundingBox, DetectionBox, LayoutResult, OcrResult, TextLine

logger = get_logger(__name__)


class TextLinePayload(BaseModel):
    """One recognized line or word."""

    x1: float
    y1: float
    x2: float
    y2: float
    score: float = Field(ge=0.0, le=1.0)
    text: str

    def to_line(self) -> TextLine:
        return TextLine(
            text=self.text,
            bbox=BoundingBox(self.x1, self.y1, self.x2, self.y2),
            confidence=self.score,
        )


class OcrPayload(BaseModel):
    """Full recognition payload for one frame."""

    results: list[TextLinePayload] = Field(default_factory=list)
    words: list[TextLinePayload] = Field(default_factory=list)
    count: int = 0
    inference_time_ms: int = 0
    image_width: int = 0
    image_height: int = 0
    error: str | None = None

    def to_result(self) -> OcrResult:
        """Convert to an :class:`OcrResult`, dropping lines on error."""
        if self.error is not None:
            logger.warning("OCR collaborator reported an error: %s", self.error)
            return OcrResult(error=self.error)
        return OcrResult(
            lines=[r.to_line() for r in self.results],
            words=[w.to_line() for w in self.words],
            image_width=self.image_width,
            image_height=self.image_height,
            inference_time_ms=self.inference_time_ms,
        )


class DetectionPayload(BaseModel):
    """One layout detection."""

    x1: float
    y1: float
    x2: float
    y2: float
    score: float
    class_id: int = -1
    class_name: str


class LayoutPayload(BaseModel):
    """Full layout-detection payload for one frame."""

    detections: list[DetectionPayload] = Field(default_factory=list)
    count: int = 0
    inference_time_ms: int = 0
    image_width: int = 0
    image_height: int = 0
    error: str | None = None

    def to_result(self) -> LayoutResult:
        if self.error is not None:
            logger.warning("Layout collaborator reported an error: %s", self.error)
            return LayoutResult(error=self.error)
        return LayoutResult(
            detections=[
                DetectionBox(
                    class_label=d.class_name,
                    bbox=BoundingBox(d.x1, d.y1, d.x2, d.y2),
                    score=d.score,
                    class_id=d.class_id,
                )
                for d in self.detections
            ],
            image_width=self.image_width,
            image_height=self.image_height,
            inference_time_ms=self.inference_time_ms,
        )
