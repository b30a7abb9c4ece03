"""
Tunable thresholds for scanning, extraction, chunking and ranking.

Every heuristic number the pipeline relies on lives here under a name.
Module-level defaults can be overridden through PUC_* environment
variables; components take one of the frozen settings objects below so
tests can pass tuned copies (e.g. zero wait times) via dataclasses.replace.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from models import CaseStatus, UtilityType


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


# ============================================================
# Source site
# ============================================================

PUC_BASE_URL = os.environ.get("PUC_BASE_URL", "https://puc.idaho.gov")

# (utility, status) -> listing view. util=1 electric, util=4 natural gas.
LISTING_VIEWS: dict[tuple[UtilityType, CaseStatus], str] = {
    (UtilityType.ELECTRIC, CaseStatus.OPEN): f"{PUC_BASE_URL}/case?util=1&closed=0",
    (UtilityType.ELECTRIC, CaseStatus.CLOSED): f"{PUC_BASE_URL}/case?util=1&closed=1",
    (UtilityType.NATURAL_GAS, CaseStatus.OPEN): f"{PUC_BASE_URL}/case?util=4&closed=0",
    (UtilityType.NATURAL_GAS, CaseStatus.CLOSED): f"{PUC_BASE_URL}/case?util=4&closed=1",
}

# Consecutive out-of-range filed dates before a listing view is abandoned.
# Listings are assumed newest-first; 0 disables the early stop.
MISS_THRESHOLD = _env_int("PUC_MISS_THRESHOLD", 5)

# Upper bound on "next page" links followed per listing view
MAX_LISTING_PAGES = _env_int("PUC_MAX_LISTING_PAGES", 50)

REQUEST_DELAY = _env_float("PUC_REQUEST_DELAY", 1.0)
REQUEST_TIMEOUT = _env_int("PUC_REQUEST_TIMEOUT", 30)

OUTPUT_DIR = os.environ.get("PUC_OUTPUT_DIR", "output")

# Case Files sections worth extracting
TARGET_SECTIONS = ("Company", "Staff", "Direct Testimony", "Testimony")

# Boilerplate attachments that appear on many unrelated cases
GENERIC_DOCUMENTS = frozenset(
    name.upper()
    for name in (
        "Final_Order_No_35474.pdf",
        "SKM_C36822080116150.pdf",
        "Incorporation_by_Reference_Rules_PDF_MAY2024.pdf",
    )
)

# ============================================================
# Extraction
# ============================================================

# Documents up to this many pages are walked page by page
SMALL_DOCUMENT_MAX_PAGES = _env_int("PUC_SMALL_DOCUMENT_MAX_PAGES", 50)

# Larger documents are split into at most this many jump-to sections
MAX_SECTIONS = _env_int("PUC_MAX_SECTIONS", 10)

# Log an extraction progress line every N pages on large documents
PROGRESS_LOG_EVERY_PAGES = 25

# Page text shorter than this (after strip) counts as blank
MIN_PAGE_CHARS = 10

# Fraction of expected pages below which a lazy-load retry runs and,
# if still short, the result is flagged degraded
SUCCESS_FLOOR = 0.8

# Marked-content fragments required before a page counts as the marked-content viewer
MARKED_CONTENT_MIN_FRAGMENTS = 10

NAVIGATION_TIMEOUT_MS = _env_int("PUC_NAVIGATION_TIMEOUT_MS", 60_000)
STRUCTURE_TIMEOUT_MS = _env_int("PUC_STRUCTURE_TIMEOUT_MS", 30_000)
VIEWER_SETTLE_MS = 3_000
TEXT_MODE_SETTLE_MS = 3_000
PAGE_JUMP_WAIT_MS = 1_500
PAGE_STEP_WAIT_MS = 500
NEXT_CLICK_WAIT_MS = 2_000
LAZY_LOAD_WAIT_MS = 3_000
SCROLL_SETTLE_MS = 1_500

# Pages covered per scroll pass on large lazy-loading documents
PAGES_PER_SCROLL_PASS = 10
MAX_SCROLL_PASSES = 40

DEFAULT_WORKERS = _env_int("PUC_WORKERS", 3)
WORKER_STAGGER_SECONDS = _env_float("PUC_WORKER_STAGGER_SECONDS", 2.0)
PROGRESS_INTERVAL_SECONDS = _env_float("PUC_PROGRESS_INTERVAL_SECONDS", 5.0)

# ============================================================
# Chunking
# ============================================================

CHUNK_SIZE = 1500
CHUNK_OVERLAP = 200
MIN_CHUNK_SIZE = 300
# Sentence/paragraph breaks are searched in the last 30% of the window
BREAK_WINDOW = 0.3
MAX_CHUNKS_PER_DOCUMENT = 1000
MAX_DOCUMENT_CHARS = 5_000_000

# ============================================================
# Ranking
# ============================================================

DEFAULT_MAX_RESULTS = 10
MAX_RESULTS_CAP = 50
DOMAIN_TERM_BONUS = 5.0
APPENDIX_PENALTY = 0.1
DIRECT_TESTIMONY_BOOST = 2.0
EARLY_PAGE_LIMIT = 15
EARLY_PAGE_BOOST = 1.25
LATE_PAGE_START = 100
LATE_PAGE_PENALTY = 0.7


# ============================================================
# Settings objects
# ============================================================


@dataclass(frozen=True)
class ScanSettings:
    listing_views: dict = field(default_factory=lambda: dict(LISTING_VIEWS))
    miss_threshold: int = MISS_THRESHOLD
    max_listing_pages: int = MAX_LISTING_PAGES
    request_delay: float = REQUEST_DELAY
    request_timeout: int = REQUEST_TIMEOUT
    target_sections: tuple[str, ...] = TARGET_SECTIONS
    generic_documents: frozenset = GENERIC_DOCUMENTS


@dataclass(frozen=True)
class ExtractionSettings:
    small_document_max_pages: int = SMALL_DOCUMENT_MAX_PAGES
    max_sections: int = MAX_SECTIONS
    progress_log_every_pages: int = PROGRESS_LOG_EVERY_PAGES
    min_page_chars: int = MIN_PAGE_CHARS
    success_floor: float = SUCCESS_FLOOR
    marked_content_min_fragments: int = MARKED_CONTENT_MIN_FRAGMENTS
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS
    structure_timeout_ms: int = STRUCTURE_TIMEOUT_MS
    viewer_settle_ms: int = VIEWER_SETTLE_MS
    text_mode_settle_ms: int = TEXT_MODE_SETTLE_MS
    page_jump_wait_ms: int = PAGE_JUMP_WAIT_MS
    page_step_wait_ms: int = PAGE_STEP_WAIT_MS
    next_click_wait_ms: int = NEXT_CLICK_WAIT_MS
    lazy_load_wait_ms: int = LAZY_LOAD_WAIT_MS
    scroll_settle_ms: int = SCROLL_SETTLE_MS
    pages_per_scroll_pass: int = PAGES_PER_SCROLL_PASS
    max_scroll_passes: int = MAX_SCROLL_PASSES
    worker_stagger_seconds: float = WORKER_STAGGER_SECONDS
    progress_interval_seconds: float = PROGRESS_INTERVAL_SECONDS
    headless: bool = True


@dataclass(frozen=True)
class ChunkingSettings:
    chunk_size: int = CHUNK_SIZE
    chunk_overlap: int = CHUNK_OVERLAP
    min_chunk_size: int = MIN_CHUNK_SIZE
    break_window: float = BREAK_WINDOW
    max_chunks_per_document: int = MAX_CHUNKS_PER_DOCUMENT
    max_document_chars: int = MAX_DOCUMENT_CHARS

    def __post_init__(self) -> None:
        if self.chunk_overlap >= self.chunk_size * (1 - self.break_window):
            raise ValueError("chunk_overlap must be smaller than the shortest window")
        if self.min_chunk_size > self.chunk_size:
            raise ValueError("min_chunk_size must not exceed chunk_size")


@dataclass(frozen=True)
class SearchSettings:
    default_max_results: int = DEFAULT_MAX_RESULTS
    max_results_cap: int = MAX_RESULTS_CAP
    domain_term_bonus: float = DOMAIN_TERM_BONUS
    appendix_penalty: float = APPENDIX_PENALTY
    direct_testimony_boost: float = DIRECT_TESTIMONY_BOOST
    early_page_limit: int = EARLY_PAGE_LIMIT
    early_page_boost: float = EARLY_PAGE_BOOST
    late_page_start: int = LATE_PAGE_START
    late_page_penalty: float = LATE_PAGE_PENALTY
