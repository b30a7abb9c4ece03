"""Split page-delimited case document text into overlapping chunks.

Units (in order of preference):
1. Page-based: one unit per '--- PAGE N ---' section, so chunks never span pages
2. Whole text: a single page-less unit when no page markers exist

Within a unit:
- Shorter than chunk_size -> one chunk
- Otherwise a sliding window of chunk_size, ending at the last paragraph or
  sentence break inside the final 30% of the window (else the last
  whitespace there, else a hard cut). The next window starts chunk_overlap
  characters before the previous end, moved forward to a word start.
- A tail that would be shorter than min_chunk_size is folded into the
  preceding chunk.

Spans are exact slices of the unit text: span[i].text[: span[i+1].start -
span[i].start] concatenated with the last span reproduces the unit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from models import PAGE_MARKER_PATTERN

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"[.!?][\"')\]]?(?=\s)")
_WHITESPACE = re.compile(r"\s")


@dataclass(frozen=True)
class TextSpan:
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class PageUnit:
    page_number: int | None
    text: str


def normalize_page_text(text: str) -> str:
    """Collapse viewer whitespace noise: runs of spaces/tabs, 3+ newlines."""
    text = text.replace("\r\n", "\n").replace("\xa0", " ")
    text = re.sub(r"[ \t]{2,}", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def split_pages(raw_text: str) -> list[PageUnit]:
    """Cut page-delimited text into page units; no markers -> one page-less unit."""
    if not raw_text or not raw_text.strip():
        return []

    markers = list(PAGE_MARKER_PATTERN.finditer(raw_text))
    if not markers:
        return [PageUnit(None, raw_text.strip())]

    units: list[PageUnit] = []
    preamble = raw_text[: markers[0].start()].strip()
    if preamble:
        units.append(PageUnit(None, preamble))

    for i, m in enumerate(markers):
        end = markers[i + 1].start() if i + 1 < len(markers) else len(raw_text)
        body = raw_text[m.end() : end].strip()
        if body:
            units.append(PageUnit(int(m.group(1)), body))
    return units


def _find_break(text: str, start: int, end: int, break_window: float) -> int:
    """Best end offset for the window [start, end) of a longer text."""
    lo = start + int((end - start) * (1 - break_window))
    # One extra char so punctuation right at the window edge can match
    region = text[lo : min(end + 1, len(text))]

    best = -1
    for m in _PARAGRAPH_BREAK.finditer(region):
        if lo + m.start() <= end:
            best = max(best, lo + m.start())
    for m in _SENTENCE_BREAK.finditer(region):
        if lo + m.end() <= end:
            best = max(best, lo + m.end())
    if best > start:
        return best

    for m in _WHITESPACE.finditer(text, lo, end):
        best = m.start()
    if best > start:
        return best
    return end


def _next_start(text: str, end: int, overlap: int) -> int:
    s = max(end - overlap, 0)
    m = _WHITESPACE.search(text, s, end)
    return m.start() + 1 if m else s


def split_text(
    text: str,
    chunk_size: int = 1500,
    chunk_overlap: int = 200,
    min_chunk_size: int = 300,
    break_window: float = 0.3,
    max_chunks: int | None = None,
) -> list[TextSpan]:
    """Sliding-window split of one unit of text.

    Args:
        text: Unit text (one page, or a whole page-less document).
        chunk_size: Window length in characters.
        chunk_overlap: Characters shared by consecutive chunks.
        min_chunk_size: Shortest allowed trailing chunk; shorter tails merge back.
        break_window: Fraction of the window, at its end, searched for breaks.
        max_chunks: Stop after this many spans (None = no limit).

    Returns:
        Spans in order. Every span but the last is between
        chunk_size * (1 - break_window) and chunk_size characters long.
    """
    shortest = int(chunk_size * (1 - break_window))
    if chunk_overlap >= shortest:
        raise ValueError("chunk_overlap must be smaller than the shortest window")
    if min_chunk_size > shortest:
        raise ValueError("min_chunk_size must fit inside the shortest window")

    if not text or not text.strip():
        return []
    n = len(text)
    if n <= chunk_size:
        return [TextSpan(0, n, text)]

    spans: list[TextSpan] = []
    start = 0
    while start < n:
        if max_chunks is not None and len(spans) >= max_chunks:
            break
        end = start + chunk_size
        if end >= n:
            end = n
        else:
            end = _find_break(text, start, end, break_window)
            if n - _next_start(text, end, chunk_overlap) < min_chunk_size:
                end = n
        spans.append(TextSpan(start, end, text[start:end]))
        if end >= n:
            break
        start = _next_start(text, end, chunk_overlap)
    return spans
