"""
Bounded-parallel document extraction for one case.

The case's documents are cut into at most W contiguous partitions of
ceil(n / W) documents. Each partition runs on its own thread with its own
browser session; workers start staggered so the viewer host does not see
W simultaneous cold starts. Inside a worker documents run serially:

    open viewer -> detect type -> extract pages -> ExtractionResult

Every document yields exactly one ExtractionResult. Viewer-level failures
(timeouts, navigation, unknown viewer, empty text) become failed results;
if a worker dies outright, the documents it had not finished are recorded
as worker_crashed. Nothing raises out of run().
"""
from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, ContextManager, Mapping, Sequence

from config import ExtractionSettings
from models import DocumentRef, ErrorKind, ExtractionResult, ViewerType
from scrapers.progress import ProgressTracker
from scrapers.viewers.browser import BrowserSession
from scrapers.viewers.detector import ViewerDetector
from scrapers.viewers.errors import ViewerError
from scrapers.viewers.extractors import ExtractionStrategy, default_strategies

logger = logging.getLogger(__name__)

SessionFactory = Callable[[int], ContextManager]


def partition(documents: Sequence[DocumentRef], workers: int) -> list[list[DocumentRef]]:
    """Split into at most `workers` contiguous chunks of ceil(n / workers)."""
    if not documents:
        return []
    size = math.ceil(len(documents) / max(workers, 1))
    return [list(documents[i : i + size]) for i in range(0, len(documents), size)]


class ExtractionPool:
    """
    Runs extraction for a case's documents on a thread pool.

    Args:
        settings: Extraction thresholds (stagger delay, timeouts, ...).
        session_factory: worker_id -> context manager yielding an object
            with open(url) -> ViewerPage. Defaults to a Playwright BrowserSession.
        detector: Viewer classifier.
        strategies: ViewerType -> ExtractionStrategy.
        tracker: Shared progress tracker.
        sleep: Used for the start stagger.
    """

    def __init__(
        self,
        settings: ExtractionSettings | None = None,
        session_factory: SessionFactory | None = None,
        detector: ViewerDetector | None = None,
        strategies: Mapping[ViewerType, ExtractionStrategy] | None = None,
        tracker: ProgressTracker | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or ExtractionSettings()
        self.session_factory = session_factory or (
            lambda worker_id: BrowserSession(self.settings, worker_id)
        )
        self.detector = detector or ViewerDetector(self.settings)
        self.strategies = dict(strategies or default_strategies(self.settings))
        self.tracker = tracker or ProgressTracker()
        self._sleep = sleep

    def run(
        self,
        case_number: str,
        documents: Sequence[DocumentRef],
        workers: int,
    ) -> list[ExtractionResult]:
        """Extract all documents; results come back in input order."""
        chunks = partition(documents, workers)
        if not chunks:
            return []

        self.tracker.start_case(case_number)
        logger.info(
            f"[{case_number}] Extracting {len(documents)} documents "
            f"with {len(chunks)} workers"
        )

        by_worker: dict[int, list[ExtractionResult]] = {}
        with ThreadPoolExecutor(max_workers=len(chunks), thread_name_prefix="extract") as executor:
            futures = {
                executor.submit(self._worker, worker_id, chunk): worker_id
                for worker_id, chunk in enumerate(chunks, start=1)
            }
            for future in as_completed(futures):
                by_worker[futures[future]] = future.result()

        # Partitions are contiguous, so worker order is input order
        results = [r for worker_id in sorted(by_worker) for r in by_worker[worker_id]]

        ok = sum(1 for r in results if r.success)
        logger.info(f"[{case_number}] Extraction done: {ok}/{len(results)} succeeded")
        return results

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _worker(self, worker_id: int, chunk: list[DocumentRef]) -> list[ExtractionResult]:
        delay = (worker_id - 1) * self.settings.worker_stagger_seconds
        if delay > 0:
            self._sleep(delay)

        results: list[ExtractionResult] = []
        self.tracker.worker_started()
        try:
            with self.session_factory(worker_id) as session:
                for doc in chunk:
                    result = self.extract_document(session, doc, worker_id)
                    results.append(result)
                    self.tracker.document_finished(doc.case_number, result.success)
        except Exception as e:
            logger.error(f"[worker-{worker_id}] crashed: {e}", exc_info=True)
            for doc in chunk[len(results):]:
                results.append(
                    self._failure(doc, ErrorKind.WORKER_CRASHED, f"worker crashed: {e}", worker_id)
                )
                self.tracker.document_finished(doc.case_number, False)
        finally:
            self.tracker.worker_finished()
        return results

    def extract_document(self, session, doc: DocumentRef, worker_id: int) -> ExtractionResult:
        """Open, classify and extract one document; viewer failures become results."""
        label = f"[worker-{worker_id}] {doc.case_number}/{doc.display_name}"
        try:
            viewer = session.open(doc.viewer_url)
            if doc.viewer_type is not None:
                self.detector.prepare(viewer)
                viewer_type = doc.viewer_type
            else:
                viewer_type = self.detector.detect(viewer)
        except ViewerError as e:
            logger.warning(f"{label}: {e.kind.value}: {e}")
            return self._failure(doc, e.kind, str(e), worker_id)

        doc = doc.model_copy(update={"viewer_type": viewer_type})
        strategy = self.strategies.get(viewer_type)
        if strategy is None:
            return self._failure(
                doc, ErrorKind.DETECTION, f"no strategy for {viewer_type.value}", worker_id
            )

        outcome = strategy.extract(viewer)
        if not outcome.success:
            logger.warning(f"{label}: {outcome.error_kind.value}: {outcome.message}")
            return self._failure(
                doc, outcome.error_kind or ErrorKind.EXTRACTION, outcome.message, worker_id
            )

        if outcome.degraded:
            logger.warning(f"{label}: degraded extraction ({outcome.message})")
        else:
            logger.info(f"{label}: {len(outcome.pages)} pages via {viewer_type.value}")

        return ExtractionResult(
            document=doc,
            success=True,
            pages_extracted=len(outcome.pages),
            total_pages=outcome.total_pages,
            raw_text=outcome.as_text(),
            degraded=outcome.degraded,
            error_message=outcome.message or None,
            worker_id=worker_id,
        )

    @staticmethod
    def _failure(
        doc: DocumentRef, kind: ErrorKind, message: str, worker_id: int
    ) -> ExtractionResult:
        return ExtractionResult(
            document=doc,
            success=False,
            error_kind=kind,
            error_message=message,
            worker_id=worker_id,
        )
