#!/usr/bin/env python3
"""
Run a PUC case research job and persist its outputs.

Scans the Idaho PUC case listings for the query, extracts every target
document of each matching case through the hosted viewers, indexes the
text into chunks and optionally runs a relevance search over them.

Usage:
    python3 run_research.py "rate case" --start 2024-01-01 --end 2024-12-31
    python3 run_research.py "rate case" --utilities electric --workers 4
    python3 run_research.py "rate case" --start 2024-01-01 --search "return on equity"
    python3 run_research.py --from-artifacts --search "cost of capital"
    python3 run_research.py --list-views

Extracted text lands in output/artifacts/{case}/{document}.txt (write-once);
each run writes summary.json, chunks.json and failures.jsonl under
output/runs/{run_id}/. The summary (and search results) are printed as JSON.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

from pydantic import ValidationError

from artifact_store import ArtifactStore
from config import DEFAULT_WORKERS, OUTPUT_DIR, ExtractionSettings, ScanSettings
from models import ProgressSnapshot, ResearchRequest, UtilityType
from pipeline import ResearchOutcome, reindex_artifacts, run_research, write_outputs
from search_stack.citations import citation_dict

logger = logging.getLogger("run_research")


def _parse_utilities(value: str) -> list[UtilityType]:
    try:
        return [UtilityType(v.strip()) for v in value.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"utilities must be a comma-separated subset of "
            f"{[u.value for u in UtilityType]}: {value!r}"
        )


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def _log_progress(snapshot: ProgressSnapshot) -> None:
    eta = f"{snapshot.eta_seconds:.0f}s" if snapshot.eta_seconds is not None else "?"
    logger.info(
        f"Progress: {snapshot.percent:.0f}% ({snapshot.extracted} ok, {snapshot.failed} failed "
        f"of {snapshot.total}), {snapshot.docs_per_minute:.1f} docs/min, ETA {eta}, "
        f"workers {snapshot.active_workers}, case {snapshot.current_case or '-'}"
    )


def _search_payload(outcome: ResearchOutcome, query: str, max_results: int | None) -> list[dict]:
    return [
        {
            "score": r.score,
            "matched_terms": r.matched_terms,
            "citation": citation_dict(r.citation),
            "content": r.chunk.content,
            "financial_amounts": r.chunk.metadata.amount_values,
            "financial_percentages": r.chunk.metadata.percentage_values,
        }
        for r in outcome.search(query, max_results=max_results)
    ]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="PUC case research: scan, extract, index, search")
    parser.add_argument("query", nargs="?", help="Keywords matched against company/description")
    parser.add_argument(
        "--utilities",
        type=_parse_utilities,
        default=[UtilityType.ELECTRIC, UtilityType.NATURAL_GAS],
        help="Comma-separated: electric,natural_gas (default: both)",
    )
    parser.add_argument("--start", type=_parse_date, help="Earliest filed date (YYYY-MM-DD)")
    parser.add_argument("--end", type=_parse_date, help="Latest filed date (default: today)")
    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help="Browser workers per case")
    parser.add_argument("--output", type=str, default=OUTPUT_DIR, help="Output directory")
    parser.add_argument("--search", type=str, help="Run a relevance search over the indexed chunks")
    parser.add_argument("--max-results", type=int, help="Search results to return")
    parser.add_argument(
        "--from-artifacts",
        action="store_true",
        help="Skip crawling; index text already in the artifact store",
    )
    parser.add_argument("--list-views", action="store_true", help="List listing views and exit")
    parser.add_argument("--headed", action="store_true", help="Show the browser windows")
    parser.add_argument("-v", "--verbose", action="store_true")

    args = parser.parse_args(argv)

    if args.list_views:
        for (utility, status), url in ScanSettings().listing_views.items():
            print(f"{utility.value:12} {status.value:7} {url}")
        return 0

    if not args.from_artifacts:
        if not args.query:
            parser.error("the following argument is required: query (unless --from-artifacts or --list-views is used)")
        if not args.start:
            parser.error("--start is required for a research run")

    Path("logs").mkdir(exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("logs/research.log"),
        ],
    )

    # Suppress noisy third-party loggers
    for noisy in ("urllib3", "playwright", "asyncio", "charset_normalizer"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    output_dir = Path(args.output)
    store = ArtifactStore(output_dir / "artifacts")

    if args.from_artifacts:
        outcome = reindex_artifacts(store, query=args.search or "")
    else:
        try:
            request = ResearchRequest(
                query=args.query,
                utility_types=args.utilities,
                start_date=args.start,
                end_date=args.end or date.today(),
                workers=args.workers,
            )
        except ValidationError as e:
            parser.error(str(e))

        settings = ExtractionSettings(headless=not args.headed)
        outcome = run_research(
            request,
            store=store,
            extraction_settings=settings,
            on_progress=_log_progress,
        )

    run_dir = write_outputs(outcome, output_dir)

    payload: dict = {"summary": outcome.summary.model_dump(), "run_dir": str(run_dir)}
    if outcome.failures:
        payload["failures"] = len(outcome.failures)
    if args.search:
        payload["results"] = _search_payload(outcome, args.search, args.max_results)
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
