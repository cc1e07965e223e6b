"""
Messages consumed by the supervisor's control loop.

Operator commands and worker lifecycle events travel through the same
queue, so the loop handles exactly one of them at a time.
"""
import enum
from typing import NamedTuple, Optional, Tuple


class Command(str, enum.Enum):
    RELOAD = "reload"
    STATUS = "status"
    ENSURE_CAPACITY = "ensure-capacity"
    TERMINATE = "terminate"


class WorkerReady(NamedTuple):
    worker_id: int
    address: Tuple[str, int]


class WorkerExited(NamedTuple):
    worker_id: int
    exit_code: Optional[int]
