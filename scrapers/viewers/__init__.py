"""
Document viewer automation: detection and page text extraction.

detect() picks a strategy for a loaded viewer; each strategy's extract()
returns page-numbered text without raising.
"""
from __future__ import annotations

from scrapers.viewers.detector import ViewerDetector, ViewerProbe, classify
from scrapers.viewers.errors import DetectionError, NavigationError, ViewerError, ViewerTimeout
from scrapers.viewers.extractors import (
    ExtractionStrategy,
    ImageTextLayerStrategy,
    LazyIframeStrategy,
    MarkedContentStrategy,
    PageExtraction,
    PageText,
    TextLayerStrategy,
    default_strategies,
)

__all__ = [
    "DetectionError",
    "ExtractionStrategy",
    "ImageTextLayerStrategy",
    "LazyIframeStrategy",
    "MarkedContentStrategy",
    "NavigationError",
    "PageExtraction",
    "PageText",
    "TextLayerStrategy",
    "ViewerDetector",
    "ViewerError",
    "ViewerProbe",
    "ViewerTimeout",
    "classify",
    "default_strategies",
]
