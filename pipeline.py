"""
Research Pipeline
=================

Orchestrates one research run end to end:

    scan listings -> enumerate case files -> extract (worker pool) -> index -> search

Architecture:
- ListingScanner yields matched, in-range Cases (early stop per view)
- Each case's DocumentRefs are extracted by an ExtractionPool of W browser workers
- Successful extractions are written to the ArtifactStore and chunked
- Failures become FailureRecords; nothing aborts the run
- Output: RunSummary + chunks + failure log, and a search() entry point

Outputs (write_outputs):
    {output}/runs/{run_id}/summary.json
    {output}/runs/{run_id}/chunks.json
    {output}/runs/{run_id}/failures.jsonl
    {output}/artifacts/...            (ArtifactStore)
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence

from artifact_store import ArtifactStore
from base_scraper import SiteClient
from case_matcher import query_terms
from config import ChunkingSettings, ExtractionSettings, ScanSettings, SearchSettings
from models import (
    Case,
    Chunk,
    DocumentRef,
    ExtractionResult,
    FailureRecord,
    ProgressSnapshot,
    ResearchRequest,
    RunSummary,
    SearchResult,
)
from scrapers.extraction_pool import ExtractionPool
from scrapers.progress import ProgressReporter
from scrapers.puc_listing import ListingScanner
from search_stack.indexer import ChunkIndexer, corpus_stats
from search_stack.relevance import RelevanceSearchEngine

logger = logging.getLogger(__name__)


# ============================================================
# Run outcome
# ============================================================


@dataclass
class ResearchOutcome:
    summary: RunSummary
    cases: list[Case] = field(default_factory=list)
    documents: list[DocumentRef] = field(default_factory=list)
    chunks: list[Chunk] = field(default_factory=list)
    failures: list[FailureRecord] = field(default_factory=list)
    indexing: dict = field(default_factory=dict)
    search_settings: Optional[SearchSettings] = None

    def search(
        self,
        query_text: str = "",
        max_results: int | None = None,
        terms: Sequence[str] | None = None,
    ) -> list[SearchResult]:
        engine = RelevanceSearchEngine(self.chunks, self.search_settings)
        return engine.search(query_text, max_results=max_results, terms=terms)


# ============================================================
# Main pipeline
# ============================================================


def run_research(
    request: ResearchRequest,
    *,
    client: SiteClient | None = None,
    scanner: ListingScanner | None = None,
    pool: ExtractionPool | None = None,
    indexer: ChunkIndexer | None = None,
    store: ArtifactStore | None = None,
    scan_settings: ScanSettings | None = None,
    extraction_settings: ExtractionSettings | None = None,
    chunking_settings: ChunkingSettings | None = None,
    search_settings: SearchSettings | None = None,
    on_progress: Callable[[ProgressSnapshot], None] | None = None,
) -> ResearchOutcome:
    """
    Run scan, extraction and indexing for one request.

    A run that finds nothing returns an empty outcome, not an error.
    Per-document failures are collected in outcome.failures.
    """
    started = time.time()
    extraction_settings = extraction_settings or ExtractionSettings()
    if scanner is None:
        scan_settings = scan_settings or ScanSettings()
        client = client or SiteClient(
            request_delay=scan_settings.request_delay, timeout=scan_settings.request_timeout
        )
        scanner = ListingScanner(client, scan_settings)
    pool = pool or ExtractionPool(extraction_settings)
    indexer = indexer or ChunkIndexer(chunking_settings, query_terms=query_terms(request.query))
    tracker = pool.tracker

    logger.info(
        f"Research run: query={request.query!r} utilities="
        f"{[u.value for u in request.utility_types]} "
        f"range={request.start_date}..{request.end_date} workers={request.workers}"
    )

    cases = list(
        scanner.scan(request.query, request.utility_types, request.start_date, request.end_date)
    )
    outcome = ResearchOutcome(summary=RunSummary(), cases=cases, search_settings=search_settings)
    if not cases:
        logger.info("No matching cases in range")
        outcome.summary = RunSummary(elapsed_seconds=round(time.time() - started, 2))
        return outcome

    work: list[tuple[Case, list[DocumentRef]]] = []
    for case in cases:
        docs = scanner.documents_for(case)
        tracker.add_expected(len(docs), case.case_number)
        outcome.documents.extend(docs)
        work.append((case, docs))
    logger.info(f"{len(cases)} cases, {len(outcome.documents)} documents to extract")

    tracker.start()
    extracted = 0
    reporter = (
        ProgressReporter(tracker, on_progress, extraction_settings.progress_interval_seconds)
        if on_progress
        else nullcontext()
    )
    with reporter:
        for case, docs in work:
            if not docs:
                continue
            for result in pool.run(case.case_number, docs, request.workers):
                if not result.success:
                    outcome.failures.append(FailureRecord.from_result(result))
                    continue
                extracted += 1
                if store is not None:
                    _save_artifact(store, result)
                outcome.chunks.extend(indexer.index(result))

    outcome.indexing = indexer.stats.as_dict()
    outcome.summary = RunSummary(
        cases_found=len(cases),
        documents_found=len(outcome.documents),
        documents_extracted=extracted,
        documents_failed=len(outcome.failures),
        chunks_indexed=len(outcome.chunks),
        elapsed_seconds=round(time.time() - started, 2),
    )
    logger.info(
        f"Research run complete. Cases: {len(cases)}, "
        f"Extracted: {extracted}/{len(outcome.documents)}, "
        f"Failed: {len(outcome.failures)}, Chunks: {len(outcome.chunks)}, "
        f"Time: {outcome.summary.elapsed_seconds:.1f}s"
    )
    return outcome


def _save_artifact(store: ArtifactStore, result: ExtractionResult) -> None:
    try:
        store.save(result)
    except OSError as e:
        logger.error(
            f"[store] Could not persist {result.document.case_number}/"
            f"{result.document.display_name}: {e}"
        )


def reindex_artifacts(
    store: ArtifactStore,
    chunking_settings: ChunkingSettings | None = None,
    query: str = "",
    search_settings: SearchSettings | None = None,
) -> ResearchOutcome:
    """Chunk previously stored artifacts without touching the site."""
    started = time.time()
    indexer = ChunkIndexer(chunking_settings, query_terms=query_terms(query) if query else ())
    results = list(store.iter_results())
    chunks = indexer.index_all(results)
    cases = {r.document.case_number for r in results}
    logger.info(f"Re-indexed {len(results)} artifacts into {len(chunks)} chunks")
    return ResearchOutcome(
        summary=RunSummary(
            cases_found=len(cases),
            documents_found=len(results),
            documents_extracted=len(results),
            chunks_indexed=len(chunks),
            elapsed_seconds=round(time.time() - started, 2),
        ),
        documents=[r.document for r in results],
        chunks=chunks,
        indexing=indexer.stats.as_dict(),
        search_settings=search_settings,
    )


# ============================================================
# Output
# ============================================================


def make_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def write_outputs(outcome: ResearchOutcome, output_dir: Path, run_id: str | None = None) -> Path:
    """Write summary, chunks and failure log for a run; returns the run directory."""
    run_dir = Path(output_dir) / "runs" / (run_id or make_run_id())
    run_dir.mkdir(parents=True, exist_ok=True)

    summary = {
        "summary": outcome.summary.model_dump(),
        "indexing": outcome.indexing,
        "corpus": corpus_stats(outcome.chunks),
        "cases": [c.model_dump(mode="json") for c in outcome.cases],
    }
    (run_dir / "summary.json").write_text(json.dumps(summary, indent=2, ensure_ascii=False), encoding="utf-8")

    with open(run_dir / "chunks.json", "w", encoding="utf-8") as f:
        json.dump([c.model_dump(mode="json") for c in outcome.chunks], f, ensure_ascii=False)

    with open(run_dir / "failures.jsonl", "w", encoding="utf-8") as f:
        for failure in outcome.failures:
            f.write(failure.model_dump_json() + "\n")

    logger.info(f"Run output written to {run_dir}")
    return run_dir
