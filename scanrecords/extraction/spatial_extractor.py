"""Label/value pairing by geometric position.

A :class:`LabelPattern` names a field, lists the trigger substrings that
identify its label line, and says where the value sits relative to the
label. The extractor finds every label occurrence and pairs it with the
nearest acceptable line in that direction.
"""

from dataclasses import dataclass, field
from enum import StrEnum

from scanrecords.ocr.models import TextLine
from scanrecords.utils.config import SpatialConfig
from scanrecords.utils.logger import get_logger

logger = get_logger(__name__)


class SpatialDirection(StrEnum):
    """Where to look for a value relative to its label."""

    RIGHT = "right"
    BELOW = "below"
    RIGHT_THEN_BELOW = "right_then_below"


@dataclass(frozen=True)
class LabelPattern:
    """Immutable label vocabulary plus search direction."""

    name: str
    triggers: tuple[str, ...]
    direction: SpatialDirection = SpatialDirection.RIGHT


@dataclass(frozen=True)
class SpatialEntity:
    """A label line paired with its value line."""

    label_name: str
    label_text: str
    value: str
    label_line: TextLine
    value_line: TextLine

    def __str__(self) -> str:
        return f"{self.label_name}: {self.value}"


@dataclass
class SpatialResult:
    """Spatial entities, also grouped by label name."""

    entities: list[SpatialEntity] = field(default_factory=list)

    def of_label(self, name: str) -> list[SpatialEntity]:
        return [e for e in self.entities if e.label_name == name]

    @property
    def by_label(self) -> dict[str, list[SpatialEntity]]:
        grouped: dict[str, list[SpatialEntity]] = {}
        for entity in self.entities:
            grouped.setdefault(entity.label_name, []).append(entity)
        return grouped

    @property
    def count(self) -> int:
        return len(self.entities)


NAME = LabelPattern(
    "NAME",
    ("姓名", "收件人", "客戶", "名稱", "聯絡人", "name", "recipient"),
    SpatialDirection.RIGHT_THEN_BELOW,
)
PHONE = LabelPattern("PHONE", ("電話", "手機", "聯絡電話", "tel", "phone", "mobile"))
EMAIL = LabelPattern("EMAIL", ("信箱", "郵件", "email", "e-mail", "mail"))
ADDRESS = LabelPattern(
    "ADDRESS", ("地址", "住址", "送貨地址", "address"), SpatialDirection.RIGHT_THEN_BELOW
)
DATE = LabelPattern("DATE", ("日期", "發票日期", "交易日期", "date"))
AMOUNT = LabelPattern(
    "AMOUNT", ("金額", "總計", "合計", "應付", "小計", "total", "amount", "subtotal")
)
INVOICE_NO = LabelPattern(
    "INVOICE_NO", ("發票號碼", "統一編號", "編號", "invoice", "no.", "number")
)
COMPANY = LabelPattern(
    "COMPANY", ("公司", "商店", "店名", "company", "store"), SpatialDirection.RIGHT_THEN_BELOW
)

DEFAULT_PATTERNS: tuple[LabelPattern, ...] = (
    NAME,
    PHONE,
    EMAIL,
    ADDRESS,
    DATE,
    AMOUNT,
    INVOICE_NO,
    COMPANY,
)


def matches_label(pattern: LabelPattern, text: str) -> bool:
    """Case-insensitive containment test against the pattern's triggers."""
    lowered = text.lower().strip()
    return any(trigger.lower() in lowered for trigger in pattern.triggers)


def is_same_row(a: TextLine, b: TextLine, tolerance: float) -> bool:
    """True when vertical overlap covers ``tolerance`` of the shorter line."""
    min_height = min(a.bbox.height, b.bbox.height)
    overlap = min(a.bbox.y2, b.bbox.y2) - max(a.bbox.y1, b.bbox.y1)
    return overlap >= min_height * tolerance


def has_horizontal_overlap(label: TextLine, candidate: TextLine) -> bool:
    """True when the candidate falls in the column band under the label."""
    width = label.bbox.width
    return (
        candidate.bbox.x1 < label.bbox.center_x + width
        and candidate.bbox.x2 > label.bbox.x1 - width * 0.5
    )


def _acceptable(pattern: LabelPattern, candidate: TextLine) -> bool:
    return bool(candidate.text.strip()) and not matches_label(pattern, candidate.text)


def find_right_of(
    label: TextLine,
    lines: list[TextLine],
    pattern: LabelPattern,
    config: SpatialConfig,
) -> TextLine | None:
    """Nearest acceptable line on the same row, right of the label."""
    best: TextLine | None = None
    best_gap = float("inf")

    for line in lines:
        if line is label or line.bbox.x1 <= label.bbox.x2:
            continue
        if not is_same_row(label, line, config.vertical_tolerance):
            continue
        gap = line.bbox.x1 - label.bbox.x2
        if gap >= config.max_horizontal_distance:
            continue
        if not _acceptable(pattern, line):
            continue
        if gap < best_gap:
            best_gap = gap
            best = line

    return best


def find_below(
    label: TextLine,
    lines: list[TextLine],
    pattern: LabelPattern,
    config: SpatialConfig,
) -> TextLine | None:
    """Nearest acceptable line under the label's column band."""
    best: TextLine | None = None
    best_gap = float("inf")

    for line in lines:
        if line is label or line.bbox.y1 <= label.bbox.y2:
            continue
        if not has_horizontal_overlap(label, line):
            continue
        gap = line.bbox.y1 - label.bbox.y2
        if gap >= config.max_vertical_distance:
            continue
        if not _acceptable(pattern, line):
            continue
        if gap < best_gap:
            best_gap = gap
            best = line

    return best


def find_value(
    label: TextLine,
    lines: list[TextLine],
    pattern: LabelPattern,
    config: SpatialConfig,
) -> TextLine | None:
    if pattern.direction == SpatialDirection.RIGHT:
        return find_right_of(label, lines, pattern, config)
    if pattern.direction == SpatialDirection.BELOW:
        return find_below(label, lines, pattern, config)
    return find_right_of(label, lines, pattern, config) or find_below(
        label, lines, pattern, config
    )


class SpatialExtractor:
    """Finds label lines and pairs each with its value line.

    Args:
        config: Geometry limits. Defaults to :class:`SpatialConfig`.
        patterns: Label vocabulary used when ``extract`` gets none.
    """

    def __init__(
        self,
        config: SpatialConfig | None = None,
        patterns: tuple[LabelPattern, ...] | list[LabelPattern] = DEFAULT_PATTERNS,
    ) -> None:
        self.config = config or SpatialConfig()
        self.patterns = tuple(patterns)

    def extract(
        self,
        lines: list[TextLine],
        patterns: tuple[LabelPattern, ...] | list[LabelPattern] | None = None,
    ) -> SpatialResult:
        """Pair every label occurrence with its value.

        Args:
            lines: OCR lines to search.
            patterns: Label patterns to use instead of the defaults.

        Returns:
            One entity per label occurrence that found a value.
        """
        entities: list[SpatialEntity] = []
        active = self.patterns if patterns is None else tuple(patterns)

        for pattern in active:
            for line in lines:
                if not matches_label(pattern, line.text):
                    continue
                value_line = find_value(line, lines, pattern, self.config)
                if value_line is None:
                    continue
                entities.append(
                    SpatialEntity(
                        label_name=pattern.name,
                        label_text=line.text,
                        value=value_line.text.strip(),
                        label_line=line,
                        value_line=value_line,
                    )
                )

        logger.debug("Spatial extraction paired %d label(s)", len(entities))
        return SpatialResult(entities=entities)
