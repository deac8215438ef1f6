"""Regex-based tagging of typed entities inside individual OCR lines.

Each entity type owns an ordered list of patterns. All patterns of every
enabled type are applied to every line; the order only affects scan
sequence. Patterns are compiled with ``re.ASCII`` so that ``\\b`` treats
CJK characters as separators, which is what lets ``日期2024-01-15`` match.
"""

import re
from dataclasses import dataclass, field
from enum import StrEnum

from scanrecords.ocr.models import BoundingBox, TextLine
from scanrecords.utils.logger import get_logger

logger = get_logger(__name__)


class EntityType(StrEnum):
    """Entity categories recognized by :class:`EntityExtractor`."""

    DATE = "date"
    TIME = "time"
    PHONE_MOBILE = "phone_mobile"
    PHONE_LANDLINE = "phone_landline"
    EMAIL = "email"
    CURRENCY_AMOUNT = "currency_amount"
    PERCENTAGE = "percentage"
    URL = "url"
    IP_ADDRESS = "ip_address"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS: dict[EntityType, str] = {
    EntityType.DATE: "DATE",
    EntityType.TIME: "TIME",
    EntityType.PHONE_MOBILE: "MOBILE",
    EntityType.PHONE_LANDLINE: "LANDLINE",
    EntityType.EMAIL: "EMAIL",
    EntityType.CURRENCY_AMOUNT: "AMOUNT",
    EntityType.PERCENTAGE: "PERCENT",
    EntityType.URL: "URL",
    EntityType.IP_ADDRESS: "IP",
}


def _compile(*patterns: str) -> list[re.Pattern[str]]:
    return [re.compile(p, re.ASCII) for p in patterns]


_IPV4 = r"(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)"

PATTERNS: dict[EntityType, list[re.Pattern[str]]] = {
    EntityType.DATE: _compile(
        r"\b\d{4}[-/.]\d{1,2}[-/.]\d{1,2}\b",
        r"\b\d{4}年\d{1,2}月\d{1,2}日",
        r"\b\d{1,2}[-/]\d{1,2}[-/]\d{4}\b",
        r"\b\d{1,2}[-/]\d{1,2}[-/]\d{2}\b",
        r"(?<![\d年])\d{1,2}月\d{1,2}日",
    ),
    EntityType.TIME: _compile(
        r"\b(?:[01]?\d|2[0-3]):[0-5]\d(?::[0-5]\d)?\b",
        r"\b(?:1[0-2]|0?[1-9]):[0-5]\d\s*[APap][Mm]\b",
        r"[上下]午\d{1,2}[點时]\d{0,2}分?",
    ),
    EntityType.PHONE_MOBILE: _compile(
        r"\b09\d{2}[-\s]?\d{3}[-\s]?\d{3}\b",
        r"\+886[-\s]?9\d{2}[-\s]?\d{3}[-\s]?\d{3}\b",
    ),
    EntityType.PHONE_LANDLINE: _compile(
        r"\(0[2-8]\)[-\s]?\d{4}[-\s]?\d{4}\b",
        r"\b0[2-8][-\s]?\d{4}[-\s]?\d{4}\b",
        r"\b0[3-8][-\s]?\d{3,4}[-\s]?\d{4}\b",
    ),
    EntityType.EMAIL: _compile(
        r"\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b",
    ),
    EntityType.CURRENCY_AMOUNT: _compile(
        r"NT\$?\s?[\d,]+\.?\d*",
        r"NTD\s?[\d,]+\.?\d*",
        r"\$[\d,]+\.?\d*",
        r"¥[\d,]+\.?\d*",
        r"[\d,]+\.?\d*\s?元",
        r"(?:USD|EUR|JPY|GBP|CNY)\s?[\d,]+\.?\d*",
    ),
    EntityType.PERCENTAGE: _compile(
        r"\b\d+\.?\d*\s?%",
        r"百分之[零一二三四五六七八九十百]+",
    ),
    EntityType.URL: _compile(
        r"https?://[^\s<>\"{}|\\^`\[\]]+",
        r"\bwww\.[^\s<>\"{}|\\^`\[\]]+",
    ),
    EntityType.IP_ADDRESS: _compile(
        rf"\b{_IPV4}\b",
        rf"\b{_IPV4}:\d{{1,5}}\b",
    ),
}


@dataclass(frozen=True)
class ExtractedEntity:
    """An entity match with a box sliced out of its source line."""

    entity_type: EntityType
    value: str
    source_line: TextLine
    bbox: BoundingBox

    def __str__(self) -> str:
        return f"{self.entity_type.label}: {self.value}"


@dataclass
class EntityResult:
    """Deduplicated entities, also grouped by type."""

    entities: list[ExtractedEntity] = field(default_factory=list)

    def of_type(self, entity_type: EntityType) -> list[ExtractedEntity]:
        return [e for e in self.entities if e.entity_type == entity_type]

    @property
    def by_type(self) -> dict[EntityType, list[ExtractedEntity]]:
        grouped: dict[EntityType, list[ExtractedEntity]] = {}
        for entity in self.entities:
            grouped.setdefault(entity.entity_type, []).append(entity)
        return grouped

    @property
    def count(self) -> int:
        return len(self.entities)


class EntityExtractor:
    """Applies the per-type pattern table to OCR lines.

    Args:
        patterns: Pattern table override, mainly for tests. Defaults to
            :data:`PATTERNS`.
    """

    def __init__(
        self, patterns: dict[EntityType, list[re.Pattern[str]]] | None = None
    ) -> None:
        self.patterns = patterns if patterns is not None else PATTERNS

    def extract(
        self,
        lines: list[TextLine],
        enabled_types: list[EntityType] | None = None,
    ) -> EntityResult:
        """Extract entities from lines.

        Args:
            lines: OCR lines to scan.
            enabled_types: Types to extract. ``None`` or empty means all.

        Returns:
            Entities with same-type, same-value, overlapping duplicates
            removed.
        """
        types = enabled_types or list(EntityType)
        entities: list[ExtractedEntity] = []

        for line in lines:
            for entity_type in types:
                for pattern in self.patterns.get(entity_type, []):
                    entities.extend(_matches_in_line(line, entity_type, pattern))

        unique = _remove_duplicates(entities)
        logger.debug(
            "Entity extraction found %d entities (%d before dedupe)",
            len(unique),
            len(entities),
        )
        return EntityResult(entities=unique)


def _matches_in_line(
    line: TextLine, entity_type: EntityType, pattern: re.Pattern[str]
) -> list[ExtractedEntity]:
    text = line.text
    if not text:
        return []
    char_width = line.bbox.width / len(text)

    found: list[ExtractedEntity] = []
    for match in pattern.finditer(text):
        found.append(
            ExtractedEntity(
                entity_type=entity_type,
                value=match.group(0),
                source_line=line,
                bbox=BoundingBox(
                    line.bbox.x1 + match.start() * char_width,
                    line.bbox.y1,
                    line.bbox.x1 + match.end() * char_width,
                    line.bbox.y2,
                ),
            )
        )
    return found


def _remove_duplicates(entities: list[ExtractedEntity]) -> list[ExtractedEntity]:
    unique: list[ExtractedEntity] = []
    for entity in entities:
        duplicate = any(
            kept.entity_type == entity.entity_type
            and kept.value == entity.value
            and kept.bbox.overlaps(entity.bbox)
            for kept in unique
        )
        if not duplicate:
            unique.append(entity)
    return unique
