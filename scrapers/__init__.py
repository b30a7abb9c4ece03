"""
PUC case scrapers package.

- puc_listing: listing scan, filed-date lookup, Case Files enumeration
- viewers: document viewer detection and page text extraction
- extraction_pool: bounded-parallel extraction of a case's documents
- progress: shared progress tracker and periodic reporter
"""
from __future__ import annotations

from scrapers.extraction_pool import ExtractionPool, partition
from scrapers.progress import ProgressReporter, ProgressTracker
from scrapers.puc_listing import ListingScanner

__all__ = [
    "ExtractionPool",
    "ListingScanner",
    "ProgressReporter",
    "ProgressTracker",
    "partition",
]
