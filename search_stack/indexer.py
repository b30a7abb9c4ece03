"""
Turn ExtractionResults into annotated chunks.

    indexer = ChunkIndexer()
    chunks = indexer.index_all(results)
    indexer.stats.as_dict()   # processed / skipped / errors / truncated / total_chunks

Failed extractions and empty text are skipped and counted, never raised.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Iterable, Sequence

from config import ChunkingSettings
from models import Chunk, ExtractionResult, make_chunk_id
from search_stack.chunker import normalize_page_text, split_pages, split_text
from search_stack.document_facts import annotate_chunk, build_document_facts

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n[TRUNCATED - DOCUMENT TOO LARGE]"


@dataclass
class IndexingStats:
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    truncated: int = 0
    total_chunks: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class ChunkIndexer:
    def __init__(
        self,
        settings: ChunkingSettings | None = None,
        query_terms: Sequence[str] = (),
    ):
        self.settings = settings or ChunkingSettings()
        self.query_terms = list(query_terms)
        self.stats = IndexingStats()

    def index(self, result: ExtractionResult) -> list[Chunk]:
        doc = result.document
        label = f"[index] {doc.case_number}/{doc.display_name}"
        if not result.success:
            self.stats.skipped += 1
            return []

        text = result.raw_text or ""
        if not text.strip():
            logger.warning(f"{label}: empty text, skipped")
            self.stats.skipped += 1
            self.stats.errors += 1
            return []

        if len(text) > self.settings.max_document_chars:
            logger.warning(f"{label}: {len(text)} chars, truncating")
            text = text[: self.settings.max_document_chars] + TRUNCATION_MARKER
            self.stats.truncated += 1

        units = split_pages(text)
        if not units:
            logger.warning(f"{label}: no page content, skipped")
            self.stats.skipped += 1
            self.stats.errors += 1
            return []

        facts = build_document_facts(doc, text)
        s = self.settings
        budget = s.max_chunks_per_document
        next_index: dict[int | None, int] = {}
        chunks: list[Chunk] = []

        for unit in units:
            if budget <= 0:
                logger.warning(f"{label}: chunk cap {s.max_chunks_per_document} reached")
                break
            page_text = normalize_page_text(unit.text)
            spans = split_text(
                page_text,
                chunk_size=s.chunk_size,
                chunk_overlap=s.chunk_overlap,
                min_chunk_size=s.min_chunk_size,
                break_window=s.break_window,
                max_chunks=budget,
            )
            for span in spans:
                idx = next_index.get(unit.page_number, 0)
                next_index[unit.page_number] = idx + 1
                chunks.append(
                    Chunk(
                        id=make_chunk_id(doc.case_number, doc.display_name, unit.page_number, idx, span.text),
                        document=doc,
                        page_number=unit.page_number,
                        chunk_index=idx,
                        char_start=span.start,
                        char_end=span.end,
                        content=span.text,
                        metadata=annotate_chunk(span.text, facts, self.query_terms),
                    )
                )
            budget -= len(spans)

        self.stats.processed += 1
        self.stats.total_chunks += len(chunks)
        logger.info(f"{label}: {len(chunks)} chunks from {len(units)} pages")
        return chunks

    def index_all(self, results: Iterable[ExtractionResult]) -> list[Chunk]:
        chunks: list[Chunk] = []
        for result in results:
            chunks.extend(self.index(result))
        return chunks


def corpus_stats(chunks: Sequence[Chunk]) -> dict:
    """Overview, content-length and distribution figures for a chunk set."""
    if not chunks:
        return {"overview": {"total_chunks": 0}, "content": {}, "distribution": {}}

    lengths = [len(c.content) for c in chunks]

    def _count(values) -> dict:
        return dict(Counter(v for v in values if v is not None).most_common())

    return {
        "overview": {
            "total_chunks": len(chunks),
            "total_documents": len({(c.case_number, c.document.display_name) for c in chunks}),
            "total_cases": len({c.case_number for c in chunks}),
            "total_companies": len({c.company for c in chunks}),
        },
        "content": {
            "average_chunk_length": round(sum(lengths) / len(lengths)),
            "min_chunk_length": min(lengths),
            "max_chunk_length": max(lengths),
            "total_characters": sum(lengths),
        },
        "distribution": {
            "by_utility_type": _count(
                c.document.utility_type.value if c.document.utility_type else None for c in chunks
            ),
            "by_section": _count(c.document.section or None for c in chunks),
            "by_case_status": _count(
                c.document.case_status.value if c.document.case_status else None for c in chunks
            ),
            "by_company": _count(c.company or None for c in chunks),
            "by_topic": _count(c.metadata.topic for c in chunks),
        },
    }
