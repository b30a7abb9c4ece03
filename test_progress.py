from __future__ import annotations

import threading

from scrapers.progress import ProgressReporter, ProgressTracker


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_snapshot_rate_and_eta():
    clock = _Clock()
    tracker = ProgressTracker(clock=clock)
    tracker.add_expected(4, "IPC-E-24-07")
    tracker.start_case("IPC-E-24-07")
    tracker.worker_started()

    clock.now += 60
    tracker.document_finished("IPC-E-24-07", True)
    tracker.document_finished("IPC-E-24-07", False)

    snap = tracker.snapshot()
    assert snap.percent == 50.0
    assert (snap.extracted, snap.failed, snap.total) == (1, 1, 4)
    assert snap.docs_per_minute == 2.0
    assert snap.eta_seconds == 60.0
    assert snap.active_workers == 1
    assert snap.current_case == "IPC-E-24-07"
    assert tracker.case_progress("IPC-E-24-07") == (2, 4)


def test_eta_unknown_before_first_document_and_zero_when_done():
    clock = _Clock()
    tracker = ProgressTracker(clock=clock)
    tracker.add_expected(1)
    clock.now += 5
    assert tracker.snapshot().eta_seconds is None

    tracker.document_finished("AVU-G-23-05", True)
    snap = tracker.snapshot()
    assert snap.eta_seconds == 0.0
    assert snap.percent == 100.0


def test_clock_starts_with_first_case_not_at_construction():
    clock = _Clock()
    tracker = ProgressTracker(clock=clock)
    tracker.add_expected(2, "IPC-E-24-07")
    clock.now += 300  # discovery time before extraction begins
    assert tracker.snapshot().elapsed_seconds == 0.0

    tracker.start_case("IPC-E-24-07")
    clock.now += 60
    tracker.document_finished("IPC-E-24-07", True)

    snap = tracker.snapshot()
    assert snap.elapsed_seconds == 60.0
    assert snap.docs_per_minute == 1.0
    assert snap.eta_seconds == 60.0


def test_explicit_start_keeps_first_start_time():
    clock = _Clock()
    tracker = ProgressTracker(clock=clock)
    clock.now += 100
    tracker.start()
    clock.now += 30
    tracker.start()
    tracker.start_case("AVU-G-23-05")
    clock.now += 30
    assert tracker.snapshot().elapsed_seconds == 60.0


def test_worker_count_never_negative():
    tracker = ProgressTracker()
    tracker.worker_finished()
    assert tracker.snapshot().active_workers == 0
    assert tracker.case_progress("unknown") == (0, 0)


def test_concurrent_updates_are_not_lost():
    tracker = ProgressTracker()
    tracker.add_expected(800)

    def work():
        for _ in range(200):
            tracker.document_finished("IPC-E-24-07", True)

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert tracker.snapshot().extracted == 800
    assert tracker.case_progress("IPC-E-24-07")[0] == 800


def test_reporter_emits_final_snapshot_on_stop():
    tracker = ProgressTracker()
    tracker.add_expected(2)
    seen = []

    with ProgressReporter(tracker, seen.append, interval=60.0):
        tracker.document_finished("IPC-E-24-07", True)
        tracker.document_finished("IPC-E-24-07", True)

    assert seen
    assert seen[-1].extracted == 2
    assert seen[-1].percent == 100.0


def test_reporter_survives_callback_errors():
    tracker = ProgressTracker()
    calls = []

    def callback(snapshot):
        calls.append(snapshot)
        raise ValueError("consumer went away")

    reporter = ProgressReporter(tracker, callback, interval=0.01)
    reporter.start()
    threading.Event().wait(0.2)
    reporter.stop()

    assert len(calls) >= 2
