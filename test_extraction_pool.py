"""Tests for scrapers.extraction_pool: partitioning, failure isolation, ordering."""
from __future__ import annotations

import dataclasses
import threading

from conftest import FakeSession, FakeViewer, image_viewer, text_page
from models import DocumentRef, ErrorKind, ViewerType
from scrapers.extraction_pool import ExtractionPool, partition
from scrapers.progress import ProgressTracker
from scrapers.viewers import scripts
from scrapers.viewers.errors import NavigationError


def _doc(i: int, **kwargs) -> DocumentRef:
    return DocumentRef(
        case_number="IPC-E-24-07",
        viewer_url=f"https://viewer.test/doc/{i}",
        display_name=f"DOC{i} DI.PDF",
        section="Company",
        **kwargs,
    )


def _pool(viewers: dict, settings, sleeps: list | None = None, tracker=None) -> ExtractionPool:
    record = sleeps.append if sleeps is not None else (lambda s: None)
    return ExtractionPool(
        settings,
        session_factory=lambda worker_id: FakeSession(viewers),
        tracker=tracker,
        sleep=record,
    )


def test_partition_sizes():
    docs = [_doc(i) for i in range(7)]
    assert [len(p) for p in partition(docs, 3)] == [3, 3, 1]
    assert [len(p) for p in partition(docs[:2], 5)] == [1, 1]
    assert partition([], 3) == []
    assert [d.display_name for p in partition(docs, 3) for d in p] == [d.display_name for d in docs]


def test_run_isolates_unknown_viewer_and_keeps_input_order(fast_settings):
    docs = [_doc(i) for i in range(4)]
    viewers = {d.viewer_url: image_viewer({1: text_page(i)}) for i, d in enumerate(docs)}
    viewers[docs[2].viewer_url] = FakeViewer(probe={})
    tracker = ProgressTracker()

    results = _pool(viewers, fast_settings, tracker=tracker).run("IPC-E-24-07", docs, workers=2)

    assert [r.document.viewer_url for r in results] == [d.viewer_url for d in docs]
    assert [r.success for r in results] == [True, True, False, True]
    assert results[2].error_kind is ErrorKind.DETECTION
    assert results[0].document.viewer_type is ViewerType.IMAGE_TEXT_LAYER
    assert results[0].raw_text.startswith("--- PAGE 1 ---\n")
    snap = tracker.snapshot()
    assert (snap.extracted, snap.failed, snap.active_workers) == (3, 1, 0)
    assert tracker.case_progress("IPC-E-24-07")[0] == 4


def test_workers_start_staggered(fast_settings):
    settings = dataclasses.replace(fast_settings, worker_stagger_seconds=2.0)
    docs = [_doc(i) for i in range(3)]
    viewers = {d.viewer_url: image_viewer({1: text_page(1)}) for d in docs}
    sleeps: list[float] = []

    _pool(viewers, settings, sleeps).run("IPC-E-24-07", docs, workers=3)

    assert sorted(sleeps) == [2.0, 4.0]


def test_navigation_error_becomes_failed_result(fast_settings):
    doc = _doc(1)
    viewers = {doc.viewer_url: NavigationError("navigation returned HTTP 404")}
    [result] = _pool(viewers, fast_settings).run("IPC-E-24-07", [doc], workers=1)

    assert not result.success
    assert result.error_kind is ErrorKind.NAVIGATION
    assert result.worker_id == 1


def test_crashed_worker_marks_remaining_documents(fast_settings):
    docs = [_doc(i) for i in range(3)]
    viewers = {
        docs[0].viewer_url: image_viewer({1: text_page(1)}),
        docs[1].viewer_url: RuntimeError("browser process exited"),
        docs[2].viewer_url: image_viewer({1: text_page(2)}),
    }
    results = _pool(viewers, fast_settings).run("IPC-E-24-07", docs, workers=1)

    assert len(results) == 3
    assert results[0].success
    assert [r.error_kind for r in results[1:]] == [ErrorKind.WORKER_CRASHED] * 2
    assert "browser process exited" in results[1].error_message


def test_session_start_failure_fails_whole_partition(fast_settings):
    class BrokenSession(FakeSession):
        def __enter__(self):
            raise RuntimeError("chromium not installed")

    docs = [_doc(i) for i in range(2)]
    pool = ExtractionPool(
        fast_settings,
        session_factory=lambda worker_id: BrokenSession({}),
        sleep=lambda s: None,
    )
    results = pool.run("IPC-E-24-07", docs, workers=1)
    assert [r.error_kind for r in results] == [ErrorKind.WORKER_CRASHED] * 2
    assert pool.tracker.snapshot().failed == 2


def test_cached_viewer_type_skips_detection(fast_settings):
    doc = _doc(1, viewer_type=ViewerType.IMAGE_TEXT_LAYER)
    viewer = image_viewer({1: text_page(1)})
    viewer.probe = {}
    viewer.selectors.add(scripts.TEXT_MODE_BUTTON)

    [result] = _pool({doc.viewer_url: viewer}, fast_settings).run("IPC-E-24-07", [doc], workers=1)

    assert result.success
    assert scripts.STRUCTURE_PROBE not in viewer.scripts_called()
    assert viewer.clicks == [scripts.TEXT_MODE_BUTTON]


def test_each_worker_gets_its_own_session(fast_settings):
    docs = [_doc(i) for i in range(4)]
    viewers = {d.viewer_url: image_viewer({1: text_page(1)}) for d in docs}
    sessions: dict[int, FakeSession] = {}
    lock = threading.Lock()

    def factory(worker_id):
        with lock:
            sessions[worker_id] = FakeSession(viewers)
        return sessions[worker_id]

    pool = ExtractionPool(fast_settings, session_factory=factory, sleep=lambda s: None)
    pool.run("IPC-E-24-07", docs, workers=2)

    assert sorted(sessions) == [1, 2]
    assert sessions[1].opened == [docs[0].viewer_url, docs[1].viewer_url]
    assert sessions[2].opened == [docs[2].viewer_url, docs[3].viewer_url]


def test_empty_document_list_returns_nothing(fast_settings):
    assert _pool({}, fast_settings).run("IPC-E-24-07", [], workers=3) == []
