import enum

from clustermgr.supervisor.worker import WorkerHandle


class ExitClass(str, enum.Enum):
    TOO_SOON = "too_soon"
    UNEXPECTED = "unexpected"


class CrashLoopDetector:
    """
    Classifies unrequested worker exits.

    A worker that dies before it has been up for the grace period never
    proved it was stable, which usually means a bad release. Such exits are
    `TOO_SOON`; the supervisor holds off on replacing it or retiring any
    more old workers until an operator acts. Workers that never reported
    ready fall in the same class.
    """

    def __init__(self, grace: float) -> None:
        self.grace = grace

    def classify(self, worker: WorkerHandle, now: float) -> ExitClass:
        if worker.started_at is None or now - worker.started_at < self.grace:
            return ExitClass.TOO_SOON
        return ExitClass.UNEXPECTED
