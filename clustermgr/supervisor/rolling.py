import logging
from typing import TYPE_CHECKING, List

from clustermgr.supervisor.worker import WorkerHandle

if TYPE_CHECKING:
    from clustermgr.supervisor.supervisor import PoolSupervisor

log = logging.getLogger(__name__)

RETIRE = "retire"


class RollingRestartController:
    """
    Replaces every worker with a fresh one without losing capacity.

    A reload spawns one new worker per pool slot and queues one old worker
    for each of them. Old workers are only retired after a new worker has
    been ready for the grace period, one per new worker, so capacity never
    drops below the target while a good release rolls out. The queue is a
    stack: each retirement pops the most recently queued old worker.
    """

    def __init__(self, supervisor: "PoolSupervisor") -> None:
        self.supervisor = supervisor
        self.shutdown_queue: List[WorkerHandle] = []

    def rolling_restart(self) -> int:
        """
        Starts a rolling restart.

        :return: The number of new workers spawned.
        """
        sup = self.supervisor
        log.info("Rolling restart request received")
        if not sup.exec_available():
            message = f"File {sup.config.exec} does not exist. Won't restart."
            log.error(message, extra={"force": True})
            sup.notify(message)
            return 0

        sup.notify("Rolling restart of instances")
        # Workers already waiting for retirement keep their place in the queue.
        old_workers = [w for w in sup.workers() if w.is_live and not self.is_queued(w)]
        spawned = 0
        for _ in range(sup.config.workers):
            log.info("Spawning new process...")
            if sup.fork() is not None:
                spawned += 1
            if old_workers:
                self.shutdown_queue.append(old_workers.pop())

        for worker in old_workers:
            log.info(f"Removing excess worker: {worker.id}")
            sup.shutdown.request_shutdown(worker)
        return spawned

    def on_worker_ready(self, worker: WorkerHandle) -> None:
        """Arms the retirement timer that `worker` will trigger once it has proven stable."""
        self.supervisor.timers.call_later(
            self.supervisor.grace, (RETIRE, worker.id), lambda: self._retire_one(worker)
        )

    def _retire_one(self, new_worker: WorkerHandle) -> None:
        if not self.shutdown_queue:
            return
        old_worker = self.shutdown_queue.pop()
        log.info(
            f"New worker[{new_worker.id}] has been up for {self.supervisor.config.wait_before_shutdown}ms. "
            f"Asking worker[{old_worker.id}] to shutdown"
        )
        self.supervisor.shutdown.request_shutdown(old_worker)

    def cancel_retirement(self, worker: WorkerHandle) -> bool:
        """Cancels the retirement that was waiting on `worker` becoming stable."""
        return self.supervisor.timers.cancel((RETIRE, worker.id))

    def is_queued(self, worker: WorkerHandle) -> bool:
        return any(queued is worker for queued in self.shutdown_queue)

    def discard(self, worker: WorkerHandle) -> bool:
        """Removes `worker` from the shutdown queue. Returns True if it was queued."""
        before = len(self.shutdown_queue)
        self.shutdown_queue = [queued for queued in self.shutdown_queue if queued is not worker]
        return len(self.shutdown_queue) != before

    def clear(self) -> None:
        self.shutdown_queue.clear()
