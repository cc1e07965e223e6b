import enum
from typing import Any, Dict, Optional, Tuple


class WorkerState(str, enum.Enum):
    SPAWNING = "spawning"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"
    DEAD = "dead"


# Allowed forward edges of the per-worker state machine.
_TRANSITIONS = {
    WorkerState.SPAWNING: {WorkerState.READY, WorkerState.SHUTTING_DOWN, WorkerState.DEAD},
    WorkerState.READY: {WorkerState.SHUTTING_DOWN, WorkerState.DEAD},
    WorkerState.SHUTTING_DOWN: {WorkerState.DEAD},
    WorkerState.DEAD: set(),
}

LIVE_STATES = frozenset({WorkerState.SPAWNING, WorkerState.READY})


class WorkerHandle:
    """
    The supervisor's view of one worker process.

    Handles are owned by the PoolSupervisor. Other components receive the
    handle itself and never copy its identity.
    """

    def __init__(self, worker_id: int, pid: Optional[int] = None) -> None:
        self._id = worker_id
        self.pid = pid
        self.state = WorkerState.SPAWNING
        self.started_at: Optional[float] = None
        self.address: Optional[Tuple[str, int]] = None
        self.clean_shutdown = False
        self.exit_code: Optional[int] = None

    @property
    def id(self) -> int:
        return self._id

    @property
    def is_live(self) -> bool:
        """True while the worker counts towards the pool size."""
        return self.state in LIVE_STATES

    def transition(self, new_state: WorkerState) -> None:
        """
        Moves the worker to `new_state`.

        :raises ValueError: If the edge is not part of the state machine.
        """
        if new_state == self.state:
            return
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Worker {self._id}: illegal transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    def snapshot(self, now: Optional[float] = None) -> Dict[str, Any]:
        uptime = None
        if now is not None and self.started_at is not None:
            uptime = round(now - self.started_at, 3)
        return {
            "id": self._id,
            "pid": self.pid,
            "state": self.state.value,
            "address": f"{self.address[0]}:{self.address[1]}" if self.address else None,
            "uptime": uptime,
        }

    def __repr__(self) -> str:
        return f"<WorkerHandle id={self._id} pid={self.pid} state={self.state.value}>"
