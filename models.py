"""
Unified schema for PUC case research.

Every stage of the pipeline hands the next one objects from this module:
the listing scanner produces Case and DocumentRef, the extraction pool
produces ExtractionResult (and FailureRecord on failure), the chunk indexer
produces Chunk, and the relevance search produces SearchResult.

All models are immutable once built.
"""

from __future__ import annotations

import hashlib
import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================
# Enumerations
# ============================================================


class UtilityType(str, Enum):
    ELECTRIC = "electric"
    NATURAL_GAS = "natural_gas"

    @property
    def label(self) -> str:
        return "Electric" if self is UtilityType.ELECTRIC else "Natural Gas"


class CaseStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ViewerType(str, Enum):
    """Extraction strategy selected by the viewer detector."""

    IMAGE_TEXT_LAYER = "image_text_layer"
    MARKED_CONTENT = "marked_content"
    TEXT_LAYER = "text_layer"  # textual variant of IMAGE_TEXT_LAYER
    LAZY_IFRAME = "lazy_iframe"


class ErrorKind(str, Enum):
    TIMEOUT = "timeout"
    NAVIGATION = "navigation"
    NO_CONTENT = "no_content"
    DETECTION = "detection"
    EXTRACTION = "extraction"
    WORKER_CRASHED = "worker_crashed"
    INDEXING = "indexing"


# ============================================================
# Patterns and helpers
# ============================================================

# Case numbers as published on the listing pages: IPC-E-24-01, AVU-G-23-05
CASE_NUMBER_PATTERN = re.compile(r"\b[A-Z]{2,4}-[A-Z]-\d{2}-\d{2}\b")

# Page delimiter written into page-delimited text
PAGE_MARKER = "--- PAGE {number} ---"
PAGE_MARKER_PATTERN = re.compile(r"^--- PAGE (\d+) ---$", re.MULTILINE)

_US_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
_ISO_DATE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")


def parse_filed_date(value: str | date | None) -> date | None:
    """
    Parse a filed date as shown on the PUC site.

    Accepts M/D/YYYY (the site's format), YYYY-MM-DD, or a date object.
    Returns None for empty or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None

    m = _US_DATE.search(text)
    if m:
        try:
            return date(int(m.group(3)), int(m.group(1)), int(m.group(2)))
        except ValueError:
            return None
    m = _ISO_DATE.search(text)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None
    return None


def sanitize_document_name(name: str) -> str:
    """
    Make a document display name safe for use as a file name.

    '01/02/2024 SMITH DI.PDF' -> '01_02_2024_SMITH_DI'
    """
    stem = re.sub(r"\.pdf$", "", name.strip(), flags=re.IGNORECASE)
    stem = re.sub(r"[^A-Za-z0-9._-]+", "_", stem)
    return stem.strip("._") or "document"


def make_chunk_id(
    case_number: str,
    document_name: str,
    page_number: int | None,
    chunk_index: int,
    content: str,
) -> str:
    """Deterministic chunk ID derived from its source and content."""
    digest = hashlib.sha1(
        f"{case_number}|{document_name}|{page_number}|{chunk_index}|{content}".encode("utf-8")
    ).hexdigest()[:16]
    return f"{case_number}_{digest}"


# ============================================================
# Discovery
# ============================================================


class Case(BaseModel):
    """One regulatory case row from a PUC listing page."""

    model_config = ConfigDict(frozen=True)

    case_number: str = Field(
        ..., description="PUC case number, e.g. 'IPC-E-24-07'"
    )
    company: str = Field(..., description="Utility company named in the listing")
    description: str = Field("", description="Case description from the listing")
    listing_url: str = Field(..., description="Absolute URL of the case detail page")
    utility_type: UtilityType
    status: CaseStatus
    date_filed: Optional[date] = Field(
        None, description="Filed date from the case detail page"
    )

    @field_validator("case_number")
    @classmethod
    def validate_case_number(cls, v: str) -> str:
        v = v.strip()
        if not CASE_NUMBER_PATTERN.fullmatch(v):
            raise ValueError(f"case_number does not look like a PUC case number: {v!r}")
        return v


class DocumentRef(BaseModel):
    """A document listed in a case's "Case Files" block."""

    model_config = ConfigDict(frozen=True)

    case_number: str
    viewer_url: str = Field(..., description="URL of the hosted document viewer")
    display_name: str = Field(..., description="File name as shown in the case index")
    section: str = Field("", description="Case Files section, e.g. 'Company', 'Staff'")
    viewer_type: Optional[ViewerType] = Field(
        None, description="Set once the viewer has been classified"
    )
    company: str = ""
    utility_type: Optional[UtilityType] = None
    case_status: Optional[CaseStatus] = None
    file_date: Optional[str] = Field(None, description="Date shown next to the file (MM/DD/YYYY)")

    @property
    def artifact_name(self) -> str:
        return sanitize_document_name(self.display_name)


# ============================================================
# Extraction
# ============================================================


class ExtractionResult(BaseModel):
    """Outcome of extracting one document; failures are results too."""

    model_config = ConfigDict(frozen=True)

    document: DocumentRef
    success: bool
    pages_extracted: int = 0
    total_pages: Optional[int] = None
    raw_text: str = Field("", description="Page-delimited text ('--- PAGE N ---' markers)")
    degraded: bool = Field(
        False, description="Success below the expected-page floor"
    )
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    worker_id: Optional[int] = None
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def check_failure_kind(self) -> "ExtractionResult":
        if not self.success and self.error_kind is None:
            raise ValueError("failed ExtractionResult requires an error_kind")
        return self


class FailureRecord(BaseModel):
    """One line of the run's failure log."""

    case_number: str
    document_name: str
    document_url: str
    error_kind: ErrorKind
    message: str = ""
    worker_id: Optional[int] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_result(cls, result: ExtractionResult) -> "FailureRecord":
        return cls(
            case_number=result.document.case_number,
            document_name=result.document.display_name,
            document_url=result.document.viewer_url,
            error_kind=result.error_kind or ErrorKind.EXTRACTION,
            message=result.error_message or "",
            worker_id=result.worker_id,
            timestamp=result.extracted_at,
        )


# ============================================================
# Indexing
# ============================================================


class FinancialFigure(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    context: str = ""
    position: int = 0


class Entities(BaseModel):
    model_config = ConfigDict(frozen=True)

    companies: list[str] = Field(default_factory=list)
    people: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    regulations: list[str] = Field(default_factory=list)


class ChunkMetadata(BaseModel):
    """Structured tags attached to a chunk by the document facts annotator."""

    model_config = ConfigDict(frozen=True)

    witness: Optional[str] = None
    section: Optional[str] = None
    topic: str = "general_testimony"
    is_appendix: bool = False
    is_direct_testimony: bool = False
    is_financial_data: bool = False
    is_table_data: bool = False
    financial_amounts: list[FinancialFigure] = Field(default_factory=list)
    financial_percentages: list[FinancialFigure] = Field(default_factory=list)
    testimony_format: str = "narrative"
    key_quotes: list[str] = Field(default_factory=list)
    entities: Entities = Field(default_factory=Entities)
    search_terms: list[str] = Field(default_factory=list)
    word_count: int = 0

    @property
    def amount_values(self) -> list[str]:
        return [f.value for f in self.financial_amounts]

    @property
    def percentage_values(self) -> list[str]:
        return [f.value for f in self.financial_percentages]


class Chunk(BaseModel):
    """A passage of one document page, traceable to (case, document, page)."""

    model_config = ConfigDict(frozen=True)

    id: str
    document: DocumentRef
    page_number: Optional[int] = Field(
        None, description="None when the source text had no page delimiters"
    )
    chunk_index: int = Field(..., ge=0, description="Monotonic within (document, page)")
    char_start: int = Field(0, ge=0, description="Offset of content within the page text")
    char_end: int = Field(0, ge=0)
    content: str
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)

    @property
    def case_number(self) -> str:
        return self.document.case_number

    @property
    def company(self) -> str:
        return self.document.company


# ============================================================
# Search
# ============================================================


class Citation(BaseModel):
    """Where a retrieved passage came from, built only from chunk fields."""

    model_config = ConfigDict(frozen=True)

    case_number: str
    company: str
    document_name: str
    page_number: Optional[int] = None
    document_url: str
    witness: Optional[str] = None
    utility_type: Optional[str] = None
    case_status: Optional[str] = None
    source: str = "Idaho Public Utilities Commission"

    @property
    def short_format(self) -> str:
        page = f", p. {self.page_number}" if self.page_number is not None else ""
        return f"{self.case_number}, {self.document_name}{page}"

    @property
    def long_format(self) -> str:
        parts = [self.company, f"Case {self.case_number}", self.document_name]
        if self.witness:
            parts.append(f"testimony of {self.witness}")
        if self.page_number is not None:
            parts.append(f"page {self.page_number}")
        return ", ".join(parts) + f" ({self.source})"


class SearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    score: float
    matched_terms: list[str] = Field(default_factory=list)
    citation: Citation


# ============================================================
# Run bookkeeping
# ============================================================


class ResearchRequest(BaseModel):
    """What the job layer asks for."""

    query: str = Field(..., min_length=1)
    utility_types: list[UtilityType] = Field(
        default_factory=lambda: [UtilityType.ELECTRIC, UtilityType.NATURAL_GAS]
    )
    start_date: date
    end_date: date
    workers: int = Field(3, ge=1)

    @field_validator("query")
    @classmethod
    def strip_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query must not be blank")
        return v

    @model_validator(mode="after")
    def check_range(self) -> "ResearchRequest":
        if self.start_date > self.end_date:
            raise ValueError(
                f"start_date {self.start_date} is after end_date {self.end_date}"
            )
        return self


class ProgressSnapshot(BaseModel):
    percent: float = 0.0
    extracted: int = 0
    failed: int = 0
    total: int = 0
    docs_per_minute: float = 0.0
    eta_seconds: Optional[float] = None
    active_workers: int = 0
    current_case: Optional[str] = None
    elapsed_seconds: float = 0.0


class RunSummary(BaseModel):
    cases_found: int = 0
    documents_found: int = 0
    documents_extracted: int = 0
    documents_failed: int = 0
    chunks_indexed: int = 0
    elapsed_seconds: float = 0.0
