"""Tests for search_stack.chunker: page-aware sliding-window splitting."""

import pytest

from search_stack.chunker import normalize_page_text, split_pages, split_text


def _testimony(sentences: int) -> str:
    parts = []
    for i in range(sentences):
        parts.append(
            f"Q. Please describe adjustment number {i} to the test year revenue requirement. "
            f"A. The Company removed incentive compensation of ${i},250 from operating expenses."
        )
        if i % 4 == 3:
            parts.append("\n\n")
        else:
            parts.append(" ")
    return "".join(parts).strip()


def _reassemble(spans) -> str:
    pieces = [a.text[: b.start - a.start] for a, b in zip(spans, spans[1:])]
    return "".join(pieces) + spans[-1].text


class TestSplitPages:
    def test_page_markers(self):
        raw = "--- PAGE 1 ---\nFirst page.\n\n--- PAGE 2 ---\n\n--- PAGE 3 ---\nThird page."
        units = split_pages(raw)
        assert [(u.page_number, u.text) for u in units] == [(1, "First page."), (3, "Third page.")]

    def test_no_markers_is_one_pageless_unit(self):
        units = split_pages("  Plain text without markers.  ")
        assert [(u.page_number, u.text) for u in units] == [(None, "Plain text without markers.")]

    def test_preamble_before_first_marker(self):
        units = split_pages("Cover sheet\n--- PAGE 1 ---\nBody")
        assert [u.page_number for u in units] == [None, 1]

    def test_empty(self):
        assert split_pages("") == []
        assert split_pages("   \n ") == []


class TestSplitText:
    def test_short_text_is_one_chunk(self):
        spans = split_text("A short page.", chunk_size=1500)
        assert len(spans) == 1
        assert (spans[0].start, spans[0].end, spans[0].text) == (0, 13, "A short page.")

    def test_blank_text_has_no_chunks(self):
        assert split_text("   ") == []

    def test_non_final_chunk_lengths_within_bounds(self):
        text = _testimony(60)
        spans = split_text(text, chunk_size=1500, chunk_overlap=200, min_chunk_size=300)
        assert len(spans) > 3
        for span in spans[:-1]:
            assert 1050 <= len(span.text) <= 1500
            assert 300 <= len(span.text) <= 1500 + 200
        assert len(spans[-1].text) >= 300

    def test_chunks_reconstruct_the_page(self):
        text = _testimony(45)
        spans = split_text(text)
        assert _reassemble(spans) == text
        for span in spans:
            assert text[span.start : span.end] == span.text

    def test_consecutive_chunks_overlap(self):
        spans = split_text(_testimony(50), chunk_size=1500, chunk_overlap=200)
        for a, b in zip(spans, spans[1:]):
            assert a.start < b.start <= a.end
            assert 0 < a.end - b.start <= 200

    def test_breaks_at_sentence_end(self):
        spans = split_text(_testimony(40))
        for span in spans[:-1]:
            assert span.text.rstrip()[-1] in ".!?"

    def test_hard_cut_without_whitespace(self):
        text = "x" * 4000
        spans = split_text(text, chunk_size=1500, chunk_overlap=200, min_chunk_size=300)
        assert [len(s.text) for s in spans] == [1500, 1500, 1400]
        assert _reassemble(spans) == text

    def test_short_tail_is_folded_into_previous_chunk(self):
        text = "y" * 1460 + " " + "z" * 59
        spans = split_text(text, chunk_size=1500, chunk_overlap=200, min_chunk_size=300)
        assert len(spans) == 1
        assert spans[0].text == text

    def test_max_chunks(self):
        spans = split_text(_testimony(80), max_chunks=2)
        assert len(spans) == 2

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"chunk_size": 500, "chunk_overlap": 400},
            {"chunk_size": 500, "chunk_overlap": 50, "min_chunk_size": 400},
        ],
    )
    def test_rejects_inconsistent_sizes(self, kwargs):
        with pytest.raises(ValueError):
            split_text("text " * 200, **kwargs)


def test_normalize_page_text():
    raw = "Line one   with  gaps\r\n\n\n\n  Line two\xa0end  "
    assert normalize_page_text(raw) == "Line one with gaps\n\nLine two end"
