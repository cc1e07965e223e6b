"""
Pytest configuration and shared fixtures.

The supervisor core is driven without real processes: a fake clock stands
in for time.monotonic, a fake spawner hands out worker handles and records
the signals it was asked to send, and a recording notifier captures alerts.
"""

from pathlib import Path
from typing import List, Tuple

import pytest

from clustermgr.config import Config
from clustermgr.errors import SpawnRefused
from clustermgr.supervisor.supervisor import PoolSupervisor
from clustermgr.supervisor.worker import WorkerHandle, WorkerState


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSpawner:
    def __init__(self) -> None:
        self.next_id = 1
        self.spawned: List[int] = []
        self.stopped: List[int] = []
        self.killed: List[int] = []
        self.refuse = False

    def spawn(self) -> WorkerHandle:
        if self.refuse:
            raise SpawnRefused("/vanished")
        handle = WorkerHandle(self.next_id, 1000 + self.next_id)
        self.spawned.append(self.next_id)
        self.next_id += 1
        return handle

    def stop(self, handle: WorkerHandle) -> bool:
        self.stopped.append(handle.id)
        return True

    def kill(self, handle: WorkerHandle) -> bool:
        self.killed.append(handle.id)
        return True


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []

    def send(self, subject: str, body: str) -> None:
        self.sent.append((subject, body))

    @property
    def subjects(self) -> List[str]:
        return [subject for subject, _ in self.sent]


@pytest.fixture
def exec_file(tmp_path) -> Path:
    path = tmp_path / "worker.py"
    path.write_text("print('LISTENING 127.0.0.1:0')\n")
    return path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1000.0)


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_supervisor(exec_file, clock, spawner, notifier):
    """Builds a PoolSupervisor over the fakes; keyword arguments become config overrides."""

    def factory(**overrides) -> PoolSupervisor:
        options = {
            "exec": exec_file,
            "workers": 3,
            "wait_before_shutdown": 5000,
            "wait_before_force_quit": 10000,
        }
        options.update(overrides)
        return PoolSupervisor(Config(**options), spawner=spawner, notifier=notifier, clock=clock)

    return factory


def mark_all_ready(supervisor: PoolSupervisor) -> None:
    """Delivers a ready event for every worker still spawning."""
    for worker in supervisor.workers():
        if worker.state == WorkerState.SPAWNING:
            supervisor.on_ready(worker.id, ("127.0.0.1", 8000 + worker.id))


def advance(supervisor: PoolSupervisor, clock: FakeClock, seconds: float) -> None:
    """Moves the fake clock forward and runs every timer that became due."""
    clock.advance(seconds)
    supervisor.timers.run_due()
