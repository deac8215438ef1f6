"""Assignment of OCR lines to layout-detector regions.

A line belongs to a region when enough of its own area lies inside the
region box. Each line joins at most one region: the first in detector
order that passes the containment test. Extraction then runs only over
regions whose class is in the configured target set.
"""

from dataclasses import dataclass, field

import numpy as np

from scanrecords.extraction.spatial_extractor import (
    LabelPattern,
    SpatialEntity,
    SpatialExtractor,
)
from scanrecords.utils.config import LayoutConfig
from scanrecords.utils.logger import get_logger

from .models import BoundingBox, DetectionBox, LayoutRegion, LayoutResult, OcrResult, TextLine

logger = get_logger(__name__)


@dataclass
class LayoutExtraction:
    """Regions with their members plus the entities found in target regions."""

    regions: list[LayoutRegion] = field(default_factory=list)
    entities: list[SpatialEntity] = field(default_factory=list)
    layout_time_ms: int = 0
    ocr_time_ms: int = 0

    @property
    def total_time_ms(self) -> int:
        return self.layout_time_ms + self.ocr_time_ms

    @property
    def by_label(self) -> dict[str, list[SpatialEntity]]:
        grouped: dict[str, list[SpatialEntity]] = {}
        for entity in self.entities:
            grouped.setdefault(entity.label_name, []).append(entity)
        return grouped

    def regions_of(self, class_label: str) -> list[LayoutRegion]:
        wanted = class_label.lower()
        return [r for r in self.regions if r.class_label.lower() == wanted]


def _as_array(boxes: list[BoundingBox]) -> np.ndarray:
    return np.array([[b.x1, b.y1, b.x2, b.y2] for b in boxes], dtype=float).reshape(-1, 4)


def containment_matrix(
    line_boxes: list[BoundingBox], region_boxes: list[BoundingBox]
) -> np.ndarray:
    """Intersection area over line area, shaped ``(lines, regions)``.

    Zero-area lines get a ratio of 0 for every region.
    """
    lines = _as_array(line_boxes)[:, None, :]
    regions = _as_array(region_boxes)[None, :, :]

    widths = np.minimum(lines[..., 2], regions[..., 2]) - np.maximum(
        lines[..., 0], regions[..., 0]
    )
    heights = np.minimum(lines[..., 3], regions[..., 3]) - np.maximum(
        lines[..., 1], regions[..., 1]
    )
    intersection = np.clip(widths, 0, None) * np.clip(heights, 0, None)

    line_area = np.clip(lines[..., 2] - lines[..., 0], 0, None) * np.clip(
        lines[..., 3] - lines[..., 1], 0, None
    )
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(line_area > 0, intersection / line_area, 0.0)
    return ratio


class LayoutRouter:
    """Routes OCR lines into layout regions and runs region-scoped extraction.

    Args:
        config: Containment threshold and target region classes.
        spatial: Spatial extractor used inside target regions.
    """

    def __init__(
        self,
        config: LayoutConfig | None = None,
        spatial: SpatialExtractor | None = None,
    ) -> None:
        self.config = config or LayoutConfig()
        self.spatial = spatial or SpatialExtractor()
        self._targets = {label.lower() for label in self.config.target_regions}

    def assign(
        self, detections: list[DetectionBox], lines: list[TextLine]
    ) -> list[LayoutRegion]:
        """Build one region per detection, in detector order, with members.

        Args:
            detections: Layout detections, never re-sorted.
            lines: OCR lines to distribute.

        Returns:
            Regions whose ``lines`` hold the lines assigned to them.
        """
        regions = [
            LayoutRegion(class_label=d.class_label, bbox=d.bbox, confidence=d.score)
            for d in detections
        ]
        if not regions or not lines:
            return regions

        ratio = containment_matrix(
            [line.bbox for line in lines], [region.bbox for region in regions]
        )
        passes = ratio >= self.config.containment_threshold

        for line_idx, line in enumerate(lines):
            hits = np.flatnonzero(passes[line_idx])
            if hits.size:
                regions[int(hits[0])].lines.append(line)

        assigned = int(passes.any(axis=1).sum())
        logger.debug(
            "Assigned %d of %d lines to %d regions", assigned, len(lines), len(regions)
        )
        return regions

    def is_target(self, region: LayoutRegion) -> bool:
        return region.class_label.lower() in self._targets

    def extract(
        self,
        layout: LayoutResult,
        ocr: OcrResult,
        patterns: list[LabelPattern] | None = None,
    ) -> LayoutExtraction:
        """Pair labels with values inside target regions only.

        Args:
            layout: Layout-detector output.
            ocr: Recognition output for the same frame.
            patterns: Label patterns, defaults to the spatial extractor's.

        Returns:
            All regions (for display) and the entities from target regions.
        """
        if layout.has_error or ocr.has_error:
            logger.warning(
                "Skipping layout extraction: layout error=%s, ocr error=%s",
                layout.error,
                ocr.error,
            )
            return LayoutExtraction(
                layout_time_ms=layout.inference_time_ms,
                ocr_time_ms=ocr.inference_time_ms,
            )

        regions = self.assign(layout.detections, ocr.lines)
        entities: list[SpatialEntity] = []
        for region in regions:
            if not self.is_target(region) or not region.lines:
                continue
            entities.extend(self.spatial.extract(region.lines, patterns).entities)

        logger.info(
            "Layout extraction: %d regions, %d entities", len(regions), len(entities)
        )
        return LayoutExtraction(
            regions=regions,
            entities=entities,
            layout_time_ms=layout.inference_time_ms,
            ocr_time_ms=ocr.inference_time_ms,
        )
