"""
Aggregate progress across extraction workers.

ProgressTracker is the only mutable state shared between worker threads;
every read and write goes through its lock. ProgressReporter pushes a
snapshot to a callback on a fixed interval from a daemon thread, so the
job layer sees steady updates no matter how bursty the workers are.

Usage:
    tracker = ProgressTracker()
    tracker.add_expected(len(docs))
    with ProgressReporter(tracker, callback, interval=5.0):
        pool.run(case, docs, workers=3)
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from models import ProgressSnapshot

logger = logging.getLogger(__name__)


@dataclass
class _CaseProgress:
    total: int = 0
    done: int = 0


@dataclass
class _TrackerState:
    total: int = 0
    extracted: int = 0
    failed: int = 0
    active_workers: int = 0
    current_case: Optional[str] = None
    cases: dict = field(default_factory=dict)


class ProgressTracker:
    """Thread-safe counters for documents, workers and cases."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._state = _TrackerState()
        self._started_at: Optional[float] = None

    def start(self) -> None:
        """Start the elapsed-time clock; later calls keep the first start."""
        with self._lock:
            if self._started_at is None:
                self._started_at = self._clock()

    def add_expected(self, count: int, case_number: str | None = None) -> None:
        with self._lock:
            self._state.total += count
            if case_number is not None:
                self._state.cases.setdefault(case_number, _CaseProgress()).total += count

    def start_case(self, case_number: str) -> None:
        with self._lock:
            if self._started_at is None:
                self._started_at = self._clock()
            self._state.current_case = case_number
            self._state.cases.setdefault(case_number, _CaseProgress())

    def worker_started(self) -> None:
        with self._lock:
            self._state.active_workers += 1

    def worker_finished(self) -> None:
        with self._lock:
            self._state.active_workers = max(0, self._state.active_workers - 1)

    def document_finished(self, case_number: str, success: bool) -> None:
        with self._lock:
            if success:
                self._state.extracted += 1
            else:
                self._state.failed += 1
            self._state.cases.setdefault(case_number, _CaseProgress()).done += 1

    def case_progress(self, case_number: str) -> tuple[int, int]:
        """(done, total) for one case."""
        with self._lock:
            cp = self._state.cases.get(case_number)
            return (cp.done, cp.total) if cp else (0, 0)

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            s = self._state
            if self._started_at is None:
                elapsed = 0.0
            else:
                elapsed = max(self._clock() - self._started_at, 0.0)
            processed = s.extracted + s.failed
            percent = (processed / s.total * 100) if s.total else 0.0
            rate = (processed / elapsed * 60) if elapsed > 0 else 0.0
            remaining = max(s.total - processed, 0)
            if remaining == 0:
                eta = 0.0
            elif rate > 0:
                eta = remaining / rate * 60
            else:
                eta = None
            return ProgressSnapshot(
                percent=round(percent, 1),
                extracted=s.extracted,
                failed=s.failed,
                total=s.total,
                docs_per_minute=round(rate, 2),
                eta_seconds=round(eta, 1) if eta is not None else None,
                active_workers=s.active_workers,
                current_case=s.current_case,
                elapsed_seconds=round(elapsed, 1),
            )


class ProgressReporter:
    """Calls callback(tracker.snapshot()) every `interval` seconds until stopped."""

    def __init__(
        self,
        tracker: ProgressTracker,
        callback: Callable[[ProgressSnapshot], None],
        interval: float = 5.0,
    ):
        self.tracker = tracker
        self.callback = callback
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> "ProgressReporter":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> None:
        self._thread = threading.Thread(target=self._loop, name="progress-reporter", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)
            self._thread = None
        # Final snapshot so the consumer sees the end state
        self._emit()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self._emit()

    def _emit(self) -> None:
        try:
            self.callback(self.tracker.snapshot())
        except Exception as e:
            logger.warning(f"[progress] callback failed: {e}")
