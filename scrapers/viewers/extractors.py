"""
Page text extraction strategies.

All strategies share one contract: extract(viewer) -> PageExtraction.
They never raise; timeouts, missing structure and unexpected script errors
come back as a PageExtraction with error_kind set. Pages are returned in
increasing page-number order, and blank pages (< MIN_PAGE_CHARS after
strip) are left out.

Strategies:
1. ImageTextLayerStrategy: WebLink image viewer with a text layer per page.
   Small documents are walked page by page through the page-jump box;
   large ones are cut into sections, each entered by a jump and walked
   with the next-page button.
2. MarkedContentStrategy: PDF.js with marked-content spans. One extraction
   pass, plus a single scroll-to-load retry if too few pages rendered.
3. LazyIframeStrategy: PDF.js inside #pdfViewerIFrame that only renders
   pages near the viewport. Small documents are stepped with the "next"
   control; large ones are scrolled in passes and read in bulk.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from config import ExtractionSettings
from models import PAGE_MARKER, ErrorKind, ViewerType
from scrapers.viewers import scripts
from scrapers.viewers.browser import ViewerPage
from scrapers.viewers.errors import ViewerError

logger = logging.getLogger(__name__)

RE_PAGE_COUNT = re.compile(r"(?:of|/)\s*(\d+)", re.IGNORECASE)
RE_TRAILING_INT = re.compile(r"(\d+)\s*$")
# Page numbers, line numbers and similar gutter noise
RE_NUMERIC_ONLY = re.compile(r"^[\d\s.,:;/()\-]+$")


@dataclass
class PageText:
    number: int
    text: str


@dataclass
class PageExtraction:
    strategy: ViewerType
    pages: list[PageText] = field(default_factory=list)
    total_pages: Optional[int] = None
    degraded: bool = False
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.error_kind is None and bool(self.pages)

    @property
    def coverage(self) -> float:
        if not self.total_pages:
            return 1.0 if self.pages else 0.0
        return len(self.pages) / self.total_pages

    def as_text(self) -> str:
        """Page-delimited text, one '--- PAGE N ---' marker per page."""
        return "\n\n".join(
            f"{PAGE_MARKER.format(number=p.number)}\n{p.text}" for p in self.pages
        )


def parse_page_count(text: str | int | None) -> int | None:
    """'Page 1 of 37' -> 37, '1 / 37' -> 37, '37' -> 37."""
    if text is None:
        return None
    if isinstance(text, int):
        return text if text > 0 else None
    text = str(text).strip()
    m = RE_PAGE_COUNT.search(text) or RE_TRAILING_INT.search(text)
    if not m:
        return None
    count = int(m.group(1))
    return count if count > 0 else None


def join_fragments(fragments: Iterable[str]) -> str:
    """Join marked-content fragments, dropping numeric-only ones."""
    kept = [f.strip() for f in fragments if f and f.strip() and not RE_NUMERIC_ONLY.match(f.strip())]
    return " ".join(" ".join(kept).split())


class ExtractionStrategy:
    """Base class: error containment and blank-page filtering."""

    viewer_type: ViewerType

    def __init__(self, settings: ExtractionSettings | None = None):
        self.settings = settings or ExtractionSettings()

    def extract(self, viewer: ViewerPage) -> PageExtraction:
        try:
            outcome = self._extract(viewer)
        except ViewerError as e:
            logger.warning(f"[{self.viewer_type.value}] {e.kind.value}: {e}")
            return PageExtraction(self.viewer_type, error_kind=e.kind, message=str(e))
        except Exception as e:
            logger.error(f"[{self.viewer_type.value}] extraction failed: {e}", exc_info=True)
            return PageExtraction(
                self.viewer_type, error_kind=ErrorKind.EXTRACTION, message=str(e)
            )

        if not outcome.pages:
            outcome.error_kind = ErrorKind.NO_CONTENT
            outcome.message = outcome.message or "no page text recovered"
        return outcome

    def _extract(self, viewer: ViewerPage) -> PageExtraction:
        raise NotImplementedError

    def _keep(self, pages: dict[int, str], number: int, text: str | None) -> bool:
        text = (text or "").strip()
        if len(text) < self.settings.min_page_chars:
            return False
        pages.setdefault(number, text)
        return True

    def _absorb_fragments(self, pages: dict[int, str], rendered: list[dict] | None) -> int:
        """Add rendered pages not already collected; returns how many were new."""
        added = 0
        for entry in rendered or []:
            try:
                number = int(entry.get("number"))
            except (TypeError, ValueError):
                continue
            if number in pages:
                continue
            if self._keep(pages, number, join_fragments(entry.get("fragments") or [])):
                added += 1
        return added

    def _finish(self, pages: dict[int, str], total: int | None) -> PageExtraction:
        if total:
            pages = {n: t for n, t in pages.items() if 1 <= n <= total}
        result = PageExtraction(
            self.viewer_type,
            pages=[PageText(n, pages[n]) for n in sorted(pages)],
            total_pages=total or None,
        )
        if total and result.coverage < self.settings.success_floor:
            result.degraded = True
            result.message = f"{len(result.pages)}/{total} pages recovered"
        return result


# ============================================================
# Image + text layer
# ============================================================


class ImageTextLayerStrategy(ExtractionStrategy):
    viewer_type = ViewerType.IMAGE_TEXT_LAYER

    def _extract(self, viewer: ViewerPage) -> PageExtraction:
        total = parse_page_count(viewer.evaluate(scripts.PAGE_COUNT_TEXT))
        if total is None:
            logger.warning(f"[{self.viewer_type.value}] page count not found, reading current page only")
            total = 1

        pages: dict[int, str] = {}
        if total <= self.settings.small_document_max_pages:
            for n in range(1, total + 1):
                self._jump(viewer, n)
                self._keep(pages, n, viewer.evaluate(scripts.PAGE_TEXT_LAYER, n))
            return self._finish(pages, total)

        sections = min(self.settings.max_sections, total)
        size = math.ceil(total / sections)
        logger.info(
            f"[{self.viewer_type.value}] {total} pages, reading in {math.ceil(total / size)} sections"
        )
        processed = 0
        for start in range(1, total + 1, size):
            end = min(start + size - 1, total)
            self._jump(viewer, start)
            for n in range(start, end + 1):
                self._keep(pages, n, viewer.evaluate(scripts.PAGE_TEXT_LAYER, n))
                processed += 1
                if processed % self.settings.progress_log_every_pages == 0:
                    logger.info(
                        f"[{self.viewer_type.value}] {processed}/{total} pages read, "
                        f"{len(pages)} with text"
                    )
                if n < end:
                    viewer.evaluate(scripts.IMAGE_NEXT_PAGE)
                    viewer.wait(self.settings.page_step_wait_ms)
        return self._finish(pages, total)

    def _jump(self, viewer: ViewerPage, page: int) -> None:
        if not viewer.exists(scripts.PAGE_JUMP_INPUT):
            if page == 1:
                return
            raise ViewerError(f"no page-jump control to reach page {page}")
        viewer.fill(scripts.PAGE_JUMP_INPUT, str(page))
        viewer.press(scripts.PAGE_JUMP_INPUT, "Enter")
        viewer.wait(self.settings.page_jump_wait_ms)


class TextLayerStrategy(ImageTextLayerStrategy):
    """Same page walk, for viewers that render only the text layer."""

    viewer_type = ViewerType.TEXT_LAYER


# ============================================================
# Marked content (PDF.js)
# ============================================================


class MarkedContentStrategy(ExtractionStrategy):
    viewer_type = ViewerType.MARKED_CONTENT

    def _extract(self, viewer: ViewerPage) -> PageExtraction:
        total = parse_page_count(viewer.evaluate(scripts.PDFJS_PAGE_COUNT))
        pages: dict[int, str] = {}
        self._absorb_fragments(pages, viewer.evaluate(scripts.MARKED_CONTENT_FRAGMENTS, False))

        expected = total or len(pages)
        if expected and len(pages) < self.settings.success_floor * expected:
            logger.info(
                f"[{self.viewer_type.value}] {len(pages)}/{expected} pages rendered, "
                f"scrolling to trigger lazy loading"
            )
            viewer.evaluate(scripts.SCROLL_TO_FRACTION, 1.0)
            viewer.wait(self.settings.lazy_load_wait_ms)
            viewer.evaluate(scripts.SCROLL_TO_FRACTION, 0.0)
            viewer.wait(self.settings.lazy_load_wait_ms)
            added = self._absorb_fragments(
                pages, viewer.evaluate(scripts.MARKED_CONTENT_FRAGMENTS, False)
            )
            logger.info(f"[{self.viewer_type.value}] lazy-load pass added {added} pages")

        return self._finish(pages, total)


# ============================================================
# Lazy-loading iframe (PDF.js inside #pdfViewerIFrame)
# ============================================================


class LazyIframeStrategy(ExtractionStrategy):
    viewer_type = ViewerType.LAZY_IFRAME

    def _extract(self, viewer: ViewerPage) -> PageExtraction:
        frame = viewer.frame(scripts.IFRAME_SELECTOR)
        if frame is None:
            raise ViewerError("viewer iframe has no document")
        frame.wait_for_function(
            scripts.PDFJS_READY, self.settings.structure_timeout_ms, polling_ms=2000
        )

        total = parse_page_count(frame.evaluate(scripts.PDFJS_PAGE_COUNT)) or 0
        pages: dict[int, str] = {}

        if total <= self.settings.small_document_max_pages:
            steps = max(total, 1)
            for step in range(steps):
                self._absorb_fragments(pages, frame.evaluate(scripts.MARKED_CONTENT_FRAGMENTS, True))
                if step == steps - 1:
                    break
                if not frame.evaluate(scripts.PDFJS_NEXT_PAGE):
                    logger.info(f"[{self.viewer_type.value}] next control unavailable after step {step + 1}")
                    break
                frame.wait(self.settings.next_click_wait_ms)
        else:
            passes = min(
                self.settings.max_scroll_passes,
                max(2, math.ceil(total / self.settings.pages_per_scroll_pass)),
            )
            logger.info(f"[{self.viewer_type.value}] {total} pages, {passes} scroll passes")
            for i in range(1, passes + 1):
                frame.evaluate(scripts.SCROLL_TO_FRACTION, i / passes)
                frame.wait(self.settings.scroll_settle_ms)
            self._absorb_fragments(pages, frame.evaluate(scripts.MARKED_CONTENT_FRAGMENTS, True))

        result = self._finish(pages, total or None)
        if total:
            logger.info(
                f"[{self.viewer_type.value}] loaded {len(result.pages)}/{total} pages "
                f"({result.coverage:.0%})"
            )
        return result


def default_strategies(settings: ExtractionSettings | None = None) -> dict[ViewerType, ExtractionStrategy]:
    settings = settings or ExtractionSettings()
    return {
        ViewerType.IMAGE_TEXT_LAYER: ImageTextLayerStrategy(settings),
        ViewerType.TEXT_LAYER: TextLayerStrategy(settings),
        ViewerType.MARKED_CONTENT: MarkedContentStrategy(settings),
        ViewerType.LAZY_IFRAME: LazyIframeStrategy(settings),
    }
