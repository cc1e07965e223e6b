"""Tests for the crash loop classification."""

import pytest

from clustermgr.supervisor.crash import CrashLoopDetector, ExitClass
from clustermgr.supervisor.worker import WorkerHandle, WorkerState


def _ready_worker(started_at):
    worker = WorkerHandle(1, 100)
    worker.transition(WorkerState.READY)
    worker.started_at = started_at
    return worker


@pytest.mark.unit
class TestCrashLoopDetector:
    """Test too_soon vs unexpected."""

    def test_exit_within_grace_is_too_soon(self):
        detector = CrashLoopDetector(grace=5.0)
        assert detector.classify(_ready_worker(100.0), 104.9) == ExitClass.TOO_SOON

    def test_exit_after_grace_is_unexpected(self):
        detector = CrashLoopDetector(grace=5.0)
        assert detector.classify(_ready_worker(100.0), 105.0) == ExitClass.UNEXPECTED
        assert detector.classify(_ready_worker(100.0), 500.0) == ExitClass.UNEXPECTED

    def test_never_ready_is_too_soon(self):
        detector = CrashLoopDetector(grace=5.0)
        assert detector.classify(WorkerHandle(1, 100), 10_000.0) == ExitClass.TOO_SOON
