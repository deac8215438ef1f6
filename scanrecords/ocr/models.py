"""Geometry and text primitives produced by the OCR and layout collaborators.

Boxes are axis-aligned, in image-pixel space, stored as corner
coordinates ``(x1, y1, x2, y2)``.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box for a detected element."""

    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center_x(self) -> float:
        return (self.x1 + self.x2) / 2

    @property
    def center_y(self) -> float:
        return (self.y1 + self.y2) / 2

    @property
    def area(self) -> float:
        return max(self.width, 0.0) * max(self.height, 0.0)

    def intersection(self, other: "BoundingBox") -> "BoundingBox | None":
        """Return the overlapping rectangle, or ``None`` if it is empty."""
        x1 = max(self.x1, other.x1)
        y1 = max(self.y1, other.y1)
        x2 = min(self.x2, other.x2)
        y2 = min(self.y2, other.y2)
        if x2 <= x1 or y2 <= y1:
            return None
        return BoundingBox(x1, y1, x2, y2)

    def overlaps(self, other: "BoundingBox") -> bool:
        """True when the two boxes overlap on both axes."""
        return (
            self.x1 < other.x2
            and self.x2 > other.x1
            and self.y1 < other.y2
            and self.y2 > other.y1
        )

    def contains_point(self, x: float, y: float) -> bool:
        return self.x1 <= x <= self.x2 and self.y1 <= y <= self.y2


@dataclass(frozen=True)
class TextLine:
    """A recognized line (or word) of text with position and confidence."""

    text: str
    bbox: BoundingBox
    confidence: float

    def contains(self, search_text: str, case_sensitive: bool = False) -> bool:
        if case_sensitive:
            return search_text in self.text
        return search_text.lower() in self.text.lower()


@dataclass(frozen=True)
class DetectionBox:
    """A single layout-detector output region."""

    class_label: str
    bbox: BoundingBox
    score: float
    class_id: int = -1


@dataclass
class LayoutRegion:
    """A layout region with the OCR lines assigned to it."""

    class_label: str
    bbox: BoundingBox
    confidence: float
    lines: list[TextLine] = field(default_factory=list)


@dataclass
class OcrResult:
    """Recognition output for one captured frame.

    ``error`` carries a pass-through failure message from the OCR
    engine. Results with an error have no lines.
    """

    lines: list[TextLine] = field(default_factory=list)
    words: list[TextLine] = field(default_factory=list)
    image_width: int = 0
    image_height: int = 0
    inference_time_ms: int = 0
    error: str | None = None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def full_text(self) -> str:
        return "\n".join(line.text for line in self.lines)

    def find_text(self, search_text: str, case_sensitive: bool = False) -> list[TextLine]:
        """Return all lines containing ``search_text``."""
        return [
            line for line in self.lines if line.contains(search_text, case_sensitive)
        ]

    def find_text_precise(
        self, search_text: str, case_sensitive: bool = False
    ) -> list[TextLine]:
        """Match at word level for tighter boxes, falling back to lines."""
        matches = [w for w in self.words if w.contains(search_text, case_sensitive)]
        if matches:
            return matches
        return self.find_text(search_text, case_sensitive)


@dataclass
class LayoutResult:
    """Layout-detector output for one captured frame."""

    detections: list[DetectionBox] = field(default_factory=list)
    image_width: int = 0
    image_height: int = 0
    inference_time_ms: int = 0
    error: str | None = None

    @property
    def has_error(self) -> bool:
        return self.error is not None
