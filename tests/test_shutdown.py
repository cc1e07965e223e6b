"""Tests for graceful-then-forced worker shutdown."""

import pytest

from clustermgr.supervisor.shutdown import ShutdownCoordinator
from clustermgr.supervisor.timers import TimerTable
from clustermgr.supervisor.worker import WorkerHandle, WorkerState
from tests.conftest import FakeClock, FakeSpawner


@pytest.fixture
def clock():
    return FakeClock(0.0)


@pytest.fixture
def fake_spawner():
    return FakeSpawner()


@pytest.fixture
def coordinator(clock, fake_spawner):
    return ShutdownCoordinator(fake_spawner, TimerTable(clock), force_kill_grace=10.0)


def _ready_worker(worker_id=1):
    worker = WorkerHandle(worker_id, 500 + worker_id)
    worker.transition(WorkerState.READY)
    return worker


@pytest.mark.unit
class TestShutdownCoordinator:
    """Test request_shutdown and the force-kill timer."""

    def test_request_marks_worker_and_sends_stop(self, coordinator, fake_spawner):
        worker = _ready_worker()
        coordinator.request_shutdown(worker)

        assert worker.clean_shutdown is True
        assert worker.state == WorkerState.SHUTTING_DOWN
        assert fake_spawner.stopped == [1]
        assert coordinator.has_pending_kill(worker)

    def test_force_kill_fires_exactly_once(self, coordinator, fake_spawner, clock):
        worker = _ready_worker()
        coordinator.request_shutdown(worker)

        clock.advance(9.999)
        coordinator.timers.run_due()
        assert fake_spawner.killed == []

        clock.advance(0.002)
        coordinator.timers.run_due()
        assert fake_spawner.killed == [1]

        clock.advance(100)
        coordinator.timers.run_due()
        assert fake_spawner.killed == [1]

    def test_cancelled_timer_never_kills(self, coordinator, fake_spawner, clock):
        worker = _ready_worker()
        coordinator.request_shutdown(worker)

        assert coordinator.cancel(worker) is True
        assert coordinator.cancel(worker) is False
        clock.advance(60)
        coordinator.timers.run_due()
        assert fake_spawner.killed == []

    def test_dead_worker_is_not_killed(self, coordinator, fake_spawner, clock):
        worker = _ready_worker()
        coordinator.request_shutdown(worker)
        worker.transition(WorkerState.DEAD)

        clock.advance(60)
        coordinator.timers.run_due()
        assert fake_spawner.killed == []

    def test_repeated_request_keeps_a_single_timer(self, coordinator, fake_spawner, clock):
        worker = _ready_worker()
        coordinator.request_shutdown(worker)
        clock.advance(5)
        coordinator.request_shutdown(worker)

        assert fake_spawner.stopped == [1]
        assert len(coordinator.timers) == 1

        clock.advance(60)
        coordinator.timers.run_due()
        assert fake_spawner.killed == [1]

    def test_request_on_dead_worker_is_ignored(self, coordinator, fake_spawner):
        worker = _ready_worker()
        worker.transition(WorkerState.DEAD)
        coordinator.request_shutdown(worker)

        assert fake_spawner.stopped == []
        assert len(coordinator.timers) == 0

    def test_spawning_worker_can_be_shut_down(self, coordinator, fake_spawner):
        worker = WorkerHandle(3, 503)
        coordinator.request_shutdown(worker)
        assert worker.state == WorkerState.SHUTTING_DOWN
        assert fake_spawner.stopped == [3]
