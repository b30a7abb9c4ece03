"""Classify a loaded document viewer into an extraction strategy."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from config import ExtractionSettings
from models import ViewerType
from scrapers.viewers import scripts
from scrapers.viewers.browser import ViewerPage
from scrapers.viewers.errors import DetectionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewerProbe:
    """Counts returned by scripts.STRUCTURE_PROBE."""

    page_images: int = 0
    image_text_pages: int = 0
    text_layers: int = 0
    marked_content: int = 0
    has_viewer_root: bool = False
    has_iframe: bool = False

    @classmethod
    def from_js(cls, data: dict | None) -> "ViewerProbe":
        data = data or {}
        return cls(
            page_images=int(data.get("page_images") or 0),
            image_text_pages=int(data.get("image_text_pages") or 0),
            text_layers=int(data.get("text_layers") or 0),
            marked_content=int(data.get("marked_content") or 0),
            has_viewer_root=bool(data.get("has_viewer_root")),
            has_iframe=bool(data.get("has_iframe")),
        )


def classify(probe: ViewerProbe, min_marked_fragments: int = 10) -> ViewerType | None:
    """
    Pick a strategy from a structure probe, first match wins:

    1. page images each paired with a text layer  -> IMAGE_TEXT_LAYER
    2. PDF.js viewer root with marked content     -> MARKED_CONTENT
    3. text layers but no marked content          -> TEXT_LAYER
    4. embedded viewer iframe                     -> LAZY_IFRAME
    """
    if probe.image_text_pages > 0 and probe.page_images > 0:
        return ViewerType.IMAGE_TEXT_LAYER
    if probe.has_viewer_root and probe.marked_content >= min_marked_fragments:
        return ViewerType.MARKED_CONTENT
    if probe.text_layers > 0 and probe.marked_content < min_marked_fragments:
        return ViewerType.TEXT_LAYER
    if probe.has_iframe:
        return ViewerType.LAZY_IFRAME
    return None


class ViewerDetector:
    def __init__(self, settings: ExtractionSettings | None = None):
        self.settings = settings or ExtractionSettings()

    def prepare(self, viewer: ViewerPage) -> None:
        """Switch the viewer to plain-text mode when it offers one."""
        if viewer.exists(scripts.TEXT_MODE_BUTTON):
            logger.debug("[detector] Switching viewer to plain text mode")
            viewer.click(scripts.TEXT_MODE_BUTTON)
            viewer.wait(self.settings.text_mode_settle_ms)

    def detect(self, viewer: ViewerPage) -> ViewerType:
        """Prepare, probe once, classify. Raises DetectionError."""
        self.prepare(viewer)
        probe = ViewerProbe.from_js(viewer.evaluate(scripts.STRUCTURE_PROBE))
        viewer_type = classify(probe, self.settings.marked_content_min_fragments)
        if viewer_type is None:
            raise DetectionError(f"unrecognized viewer structure: {probe}")
        logger.debug(f"[detector] {viewer_type.value} ({probe})")
        return viewer_type
