"""Tests for search_stack.document_facts and the chunk indexer built on it."""
from __future__ import annotations

import dataclasses

from config import ChunkingSettings
from models import DocumentRef, ErrorKind, ExtractionResult, UtilityType
from search_stack.document_facts import (
    DocumentFacts,
    annotate_chunk,
    build_document_facts,
    categorize,
    extract_entities,
    extract_financial,
    find_witness,
    is_appendix,
    key_quotes,
)
from search_stack.indexer import TRUNCATION_MARKER, ChunkIndexer, corpus_stats


def _doc(name: str = "SMITH DI.PDF", section: str = "Company") -> DocumentRef:
    return DocumentRef(
        case_number="IPC-E-24-07",
        viewer_url="https://docs.test/WebLink/DocView.aspx?id=12",
        display_name=name,
        section=section,
        company="Idaho Power Company",
        utility_type=UtilityType.ELECTRIC,
    )


def _result(raw_text: str, doc: DocumentRef | None = None) -> ExtractionResult:
    return ExtractionResult(document=doc or _doc(), success=True, pages_extracted=1, raw_text=raw_text)


THREE_PAGES = (
    "--- PAGE 1 ---\n"
    "BEFORE THE IDAHO PUBLIC UTILITIES COMMISSION\n"
    "DIRECT TESTIMONY OF JANE SMITH FOR IDAHO POWER COMPANY\n\n"
    "--- PAGE 2 ---\n"
    "Q. What revenue increase does the Company request?\n"
    "A. The Company requests an annual revenue increase of $1,200,000, "
    "based on a return on equity of 10.5%.\n\n"
    "--- PAGE 3 ---\n"
    "Q. Does this conclude your testimony?\nA. Yes, it does. Jane Smith, Di 3"
)


# ── financial figures ──────────────────────────────────────


def test_three_page_document_financial_figures():
    chunks = ChunkIndexer().index(_result(THREE_PAGES))

    assert [c.page_number for c in chunks] == [1, 2, 3]
    page2 = chunks[1].metadata
    assert "$1,200,000" in page2.amount_values
    assert "10.5%" in page2.percentage_values
    assert page2.is_financial_data
    assert "revenue increase" in page2.financial_amounts[0].context
    assert chunks[0].metadata.financial_amounts == []


def test_dollar_amounts_do_not_swallow_punctuation():
    amounts, percentages = extract_financial(
        "Costs rose to $45.6 million, then $3,000. Equity was 52 percent and debt 48%."
    )
    assert [a.value for a in amounts] == ["$45.6 million", "$3,000"]
    assert [p.value for p in percentages] == ["52 percent", "48%"]


# ── document facts ─────────────────────────────────────────


def test_witness_from_header_footer_and_file_name():
    assert find_witness("DIRECT TESTIMONY OF JANE SMITH FOR IDAHO POWER") == "Jane Smith"
    assert find_witness("some text  Robert Jones, Di 14") == "Robert Jones"
    assert find_witness("", "BLACKBURN DI.PDF") == "Blackburn"
    assert find_witness("", "COMPANY DIRECT.PDF") is None
    assert find_witness("no witness here", "APPLICATION.PDF") is None


def test_build_document_facts_once_per_document():
    facts = build_document_facts(_doc(), THREE_PAGES)
    assert facts.witness == "Jane Smith"
    assert facts.is_direct_testimony
    assert not facts.name_is_appendix

    exhibit = build_document_facts(_doc("Exhibit 3 Workpapers.pdf"), "Workpapers")
    assert exhibit.name_is_appendix
    assert exhibit.witness is None


def test_categorize():
    assert categorize("The authorized return on equity should be 10%.") == "rate_of_return"
    assert categorize("Staff recommends an ROE of 9.4") == "rate_of_return"
    assert categorize("The revenue requirement is overstated") == "revenue_requirement"
    assert categorize("Customer notice schedule") == "general_testimony"


def test_is_appendix_signals():
    plain = DocumentFacts()
    assert is_appendix("See Appendix B for workpapers.", plain)
    assert is_appendix("Exhibit No. 4\nCapital structure", plain)
    assert is_appendix("anything", DocumentFacts(name_is_appendix=True))
    assert not is_appendix("The Company exhibits strong growth.", plain)


def test_key_quotes_prefer_figures_and_query_terms():
    text = (
        "The weather was pleasant during the hearing. "
        "The Commission approved a rate of return of 7.2%. "
        "The Company requests recovery of $15,000,000 in wildfire costs. "
        "Staff agrees."
    )
    quotes = key_quotes(text, ["wildfire"])
    assert quotes[0].startswith("The Company requests recovery")
    assert len(quotes) == 2
    assert not any("weather" in q for q in quotes)


def test_entities():
    ents = extract_entities(
        "Mr. John Doe of Idaho Power Company testified in Case No. IPC-E-24-07 in Boise, Idaho."
    )
    assert "Idaho Power Company" in ents.companies
    assert "Mr. John Doe" in ents.people
    assert "Idaho" in ents.locations
    assert "Case No. IPC-E-24-07" in ents.regulations


def test_annotate_chunk_flags():
    facts = DocumentFacts(witness="Jane Smith", topic="rate_of_return", is_direct_testimony=True)
    meta = annotate_chunk(
        "Q. What capital structure do you propose?\nA. Table No. 2 shows 50% equity.",
        facts,
    )
    assert meta.witness == "Jane Smith"
    assert meta.testimony_format == "qa_testimony"
    assert meta.is_table_data
    assert meta.is_direct_testimony
    assert meta.topic == "rate_of_return"
    assert {"financial_data", "qa_testimony", "direct_testimony"} <= set(meta.search_terms)
    assert meta.word_count == 14


# ── indexer ────────────────────────────────────────────────


def test_indexer_skips_failures_and_empty_text():
    indexer = ChunkIndexer()
    failed = ExtractionResult(document=_doc(), success=False, error_kind=ErrorKind.TIMEOUT)
    assert indexer.index(failed) == []
    assert indexer.index(_result("   ")) == []
    assert indexer.stats.as_dict() == {
        "processed": 0,
        "skipped": 2,
        "errors": 1,
        "truncated": 0,
        "total_chunks": 0,
    }


def test_indexer_chunk_ids_and_indices():
    long_page = "The Company proposes new rates. " * 120
    raw = f"--- PAGE 4 ---\n{long_page}\n\n--- PAGE 5 ---\nShort closing page text."
    chunks = ChunkIndexer().index(_result(raw))

    page4 = [c for c in chunks if c.page_number == 4]
    assert len(page4) > 1
    assert [c.chunk_index for c in page4] == list(range(len(page4)))
    assert [c.chunk_index for c in chunks if c.page_number == 5] == [0]
    assert len({c.id for c in chunks}) == len(chunks)
    assert all(c.id.startswith("IPC-E-24-07_") for c in chunks)
    # same input, same ids
    assert [c.id for c in ChunkIndexer().index(_result(raw))] == [c.id for c in chunks]


def test_indexer_caps_chunks_and_truncates():
    settings = dataclasses.replace(ChunkingSettings(), max_chunks_per_document=3, max_document_chars=20_000)
    indexer = ChunkIndexer(settings)
    raw = "--- PAGE 1 ---\n" + ("Rate base grows every year. " * 2000)

    chunks = indexer.index(_result(raw))

    assert len(chunks) == 3
    assert indexer.stats.truncated == 1
    assert TRUNCATION_MARKER.strip() not in chunks[-1].content


def test_text_without_page_markers_is_pageless():
    chunks = ChunkIndexer().index(_result("Plain extracted text about depreciation rates."))
    assert [(c.page_number, c.chunk_index) for c in chunks] == [(None, 0)]


def test_corpus_stats():
    chunks = ChunkIndexer().index(_result(THREE_PAGES))
    stats = corpus_stats(chunks)
    assert stats["overview"]["total_chunks"] == 3
    assert stats["overview"]["total_cases"] == 1
    assert stats["distribution"]["by_utility_type"] == {"electric": 3}
    assert corpus_stats([])["overview"]["total_chunks"] == 0
