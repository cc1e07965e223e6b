import logging
from typing import TYPE_CHECKING, Callable

from clustermgr.supervisor.timers import TimerTable
from clustermgr.supervisor.worker import WorkerHandle, WorkerState

if TYPE_CHECKING:
    from clustermgr.supervisor.spawner import ProcessSpawner

log = logging.getLogger(__name__)

FORCE_KILL = "force-kill"


class ShutdownCoordinator:
    """
    Graceful-then-forced termination of single workers.

    A shutdown request sends the graceful stop signal and arms one force-kill
    timer for the worker. If the worker is still not dead when the timer
    fires it is killed; if it exits first the supervisor cancels the timer.
    """

    def __init__(self, spawner: "ProcessSpawner", timers: TimerTable, force_kill_grace: float,
                 describe_pool: Callable[[], str] = lambda: "") -> None:
        self.spawner = spawner
        self.timers = timers
        self.force_kill_grace = force_kill_grace
        self.describe_pool = describe_pool

    def request_shutdown(self, worker: WorkerHandle) -> None:
        """
        Asks `worker` to stop and arms its force-kill timer.

        Repeating the request re-logs and re-arms the single timer; the
        graceful signal is sent only once.
        """
        if worker.state == WorkerState.DEAD:
            log.debug(f"Worker {worker.id} is already dead, ignoring shutdown request.")
            return

        worker.clean_shutdown = True
        if worker.state != WorkerState.SHUTTING_DOWN:
            worker.transition(WorkerState.SHUTTING_DOWN)
            self.spawner.stop(worker)
            log.info(f"Worker {worker.id} ({worker.pid}) has been asked to shutdown")
        else:
            log.info(f"Worker {worker.id} ({worker.pid}) is already shutting down")

        self.timers.call_later(self.force_kill_grace, (FORCE_KILL, worker.id), lambda: self._force_kill(worker))

    def _force_kill(self, worker: WorkerHandle) -> None:
        log.debug(f"Force-kill timer fired for worker {worker.id} (state={worker.state.value}, pid={worker.pid})")
        if worker.state == WorkerState.DEAD:
            return
        log.warning(f"Forcing worker {worker.id} ({worker.pid}) to die")
        self.spawner.kill(worker)
        log.info(self.describe_pool())

    def cancel(self, worker: WorkerHandle) -> bool:
        """Disarms the force-kill timer of `worker`. Safe to call more than once."""
        return self.timers.cancel((FORCE_KILL, worker.id))

    def has_pending_kill(self, worker: WorkerHandle) -> bool:
        return self.timers.is_pending((FORCE_KILL, worker.id))
