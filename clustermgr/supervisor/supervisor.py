import os
import time
import queue
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import clustermgr.settings as default_settings
from clustermgr.config import Config
from clustermgr.errors import SpawnRefused
from clustermgr.notify import Notifier
from clustermgr.supervisor.crash import CrashLoopDetector, ExitClass
from clustermgr.supervisor.events import Command, WorkerExited, WorkerReady
from clustermgr.supervisor.rolling import RollingRestartController
from clustermgr.supervisor.shutdown import ShutdownCoordinator
from clustermgr.supervisor.spawner import ProcessSpawner
from clustermgr.supervisor.timers import TimerTable
from clustermgr.supervisor.worker import WorkerHandle, WorkerState

log = logging.getLogger(__name__)

FORCE_EXIT = ("force-exit", None)


class PoolSupervisor:
    """
    Owns the worker pool and is the only thing that mutates it.

    Commands and lifecycle events are consumed one at a time from `inbox`
    by the control loop (`run`), and delayed actions run from the same loop
    through `timers`. None of the pool state is shared with other threads.
    """

    def __init__(self, config: Config, spawner: Optional[ProcessSpawner] = None,
                 notifier: Optional[Notifier] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.config = config
        self.clock = clock
        self.inbox: "queue.Queue[Any]" = queue.Queue(maxsize=default_settings.INBOX_SIZE)
        self.timers = TimerTable(clock)
        self.spawner = spawner or ProcessSpawner(
            config.exec,
            self.post_event,
            args=config.args,
            env=config.env,
            silent=config.silent,
            python_executable=config.python_executable,
        )
        self.notifier = notifier or Notifier(config.notify, config.sendmail_path)

        # Timeouts are configured in ms; the timer table works in seconds.
        self.grace = config.wait_before_shutdown / 1000.0
        self.shutdown = ShutdownCoordinator(
            self.spawner, self.timers, config.wait_before_force_quit / 1000.0, self.running_workers_msg
        )
        self.crash_detector = CrashLoopDetector(self.grace)
        self.rolling = RollingRestartController(self)

        self._pool: Dict[int, WorkerHandle] = {}
        self.terminating = False
        self.stopped = threading.Event()

    #* --- Pool Queries ---
    def workers(self) -> List[WorkerHandle]:
        """All tracked workers, ordered by id."""
        return [self._pool[worker_id] for worker_id in sorted(self._pool)]

    def get(self, worker_id: int) -> Optional[WorkerHandle]:
        return self._pool.get(worker_id)

    def live_count(self) -> int:
        return sum(1 for worker in self._pool.values() if worker.is_live)

    def exec_available(self) -> bool:
        return self.config.exec_exists()

    def status(self) -> Dict[str, Any]:
        """A snapshot of the pool: worker count and one entry per worker."""
        now = self.clock()
        return {
            "count": len(self._pool),
            "target": self.config.workers,
            "workers": [worker.snapshot(now) for worker in self.workers()],
        }

    def running_workers_msg(self) -> str:
        msg = f"Currently {len(self._pool)} running\n"
        for worker in self.workers():
            msg += f"\tWorker[{worker.id}]: {worker.pid} ({worker.state.value})\n"
        return msg

    def notify(self, subject: str) -> None:
        self.notifier.send(subject, self.running_workers_msg())

    #* --- Pool Operations ---
    def fork(self) -> Optional[WorkerHandle]:
        """
        Spawns one worker and adds it to the pool.

        The executable is checked first; if it is gone the spawn is refused,
        logged and notified, and None is returned.
        """
        try:
            if not self.exec_available():
                raise SpawnRefused(self.config.exec)
            worker = self.spawner.spawn()
        except SpawnRefused as e:
            log.error(str(e), extra={"force": True})
            self.notify(str(e))
            return None
        except OSError as e:
            log.error(f"Failed to start worker from '{self.config.exec}': {e}", exc_info=True)
            self.notify(f"Failed to start worker: {e}")
            return None

        self._pool[worker.id] = worker
        log.info(f"Worker {worker.id} spawned with PID: {worker.pid}")
        return worker

    def start(self) -> None:
        """Spawns the initial pool."""
        log.info(f"Master process PID is {os.getpid()}")
        for _ in range(self.config.workers):
            self.fork()
        log.info(self.running_workers_msg())

    def ensure_capacity(self) -> int:
        """
        Tops the pool up to the configured size.

        :return: The number of workers spawned.
        """
        if self.terminating:
            log.warning("Ignoring capacity request while terminating.")
            return 0
        live = self.live_count()
        log.info(f"Workers running: {live} - Max Workers: {self.config.workers}")
        spawned = 0
        if live < self.config.workers:
            log.info(f"Starting {self.config.workers - live} worker(s)")
            for _ in range(self.config.workers - live):
                if self.fork() is not None:
                    spawned += 1
        log.info(self.running_workers_msg())
        return spawned

    def rolling_restart(self) -> int:
        if self.terminating:
            log.warning("Ignoring reload request while terminating.")
            return 0
        return self.rolling.rolling_restart()

    def terminate_all(self) -> None:
        """Asks every worker to shut down; the loop stops once they are all gone."""
        log.info("Termination request received")
        if not self.terminating:
            self.notify("Shutting down all worker instances")
            self.terminating = True
            self.timers.call_later(self.config.force_exit_timeout / 1000.0, FORCE_EXIT, self._force_exit)
        self.rolling.clear()
        for worker in self.workers():
            self.shutdown.request_shutdown(worker)
        self._check_terminated()

    def _force_exit(self) -> None:
        log.warning(f"Force exit timeout elapsed with {len(self._pool)} worker(s) still tracked.")
        log.info(self.running_workers_msg())
        self.stopped.set()

    def _check_terminated(self) -> None:
        if self.terminating and not self._pool:
            log.info("All workers have exited.")
            self.timers.cancel(FORCE_EXIT)
            self.stopped.set()

    #* --- Lifecycle Events ---
    def on_ready(self, worker_id: int, address: Tuple[str, int]) -> None:
        worker = self._pool.get(worker_id)
        if worker is None:
            log.debug(f"Ready event for unknown worker {worker_id}, ignoring.")
            return
        if worker.state != WorkerState.SPAWNING:
            log.debug(f"Worker {worker_id} reported ready while {worker.state.value}, ignoring.")
            return

        worker.transition(WorkerState.READY)
        worker.started_at = self.clock()
        worker.address = address
        log.info(f"Worker {worker.id} ({worker.pid}) {address[0]}:{address[1]}")
        self.rolling.on_worker_ready(worker)

    def on_exit(self, worker_id: int, exit_code: Optional[int]) -> None:
        worker = self._pool.get(worker_id)
        if worker is None:
            log.debug(f"Exit event for unknown worker {worker_id}, ignoring.")
            return

        worker.exit_code = exit_code
        top_up = False
        if worker.clean_shutdown:
            self.shutdown.cancel(worker)
            log.info(f"Worker {worker.id} ({worker.pid}) terminated ({exit_code}).")
        elif self.terminating:
            log.warning(f"Worker[{worker.id}] exited ({exit_code}) during termination.")
        elif self.rolling.discard(worker):
            message = f"Worker[{worker.id}] died while waiting to be replaced"
            log.warning(message)
            self.notify(message)
            # Its replacement may itself have died, so refill only up to the pool size.
            top_up = self.crash_detector.classify(worker, self.clock()) == ExitClass.UNEXPECTED
        else:
            self._handle_crash(worker)

        self._remove(worker)
        if top_up and self.live_count() < self.config.workers:
            self.fork()

    def _handle_crash(self, worker: WorkerHandle) -> None:
        if self.crash_detector.classify(worker, self.clock()) == ExitClass.TOO_SOON:
            message = f"Worker[{worker.id}] died too soon. No existing workers will be shutdown"
            log.warning(message)
            self.rolling.cancel_retirement(worker)
            self.notify(message)
        else:
            message = f"Worker[{worker.id}] died unexpectedly"
            self.notify(message)
            log.warning(message)
            self.fork()

    def _remove(self, worker: WorkerHandle) -> None:
        worker.transition(WorkerState.DEAD)
        self.shutdown.cancel(worker)
        self.rolling.cancel_retirement(worker)
        self.rolling.discard(worker)
        self._pool.pop(worker.id, None)
        self._check_terminated()

    #* --- Control Loop ---
    def submit(self, command: Command) -> bool:
        """
        Queues an operator command without blocking. Safe to call from a
        signal handler; returns False if the inbox is full.
        """
        try:
            self.inbox.put_nowait(command)
            return True
        except queue.Full:
            log.warning(f"Control inbox full, dropping '{command.value}' command.")
            return False

    def post_event(self, event: Any) -> None:
        """Queues a worker lifecycle event. Called from spawner threads."""
        self.inbox.put(event)

    def dispatch(self, item: Any) -> None:
        try:
            if isinstance(item, WorkerReady):
                self.on_ready(item.worker_id, item.address)
            elif isinstance(item, WorkerExited):
                self.on_exit(item.worker_id, item.exit_code)
            elif item == Command.RELOAD:
                self.rolling_restart()
            elif item == Command.STATUS:
                log.info(self.running_workers_msg(), extra={"force": True})
            elif item == Command.ENSURE_CAPACITY:
                self.ensure_capacity()
            elif item == Command.TERMINATE:
                self.terminate_all()
            else:
                log.warning(f"Unknown control message: {item!r}")
        except Exception as e:
            log.critical(f"Error while handling {item!r}: {e}", exc_info=True)

    def run_once(self, max_wait: float = 1.0) -> None:
        """Handles at most one queued message, then any timers that are due."""
        timeout = self.timers.seconds_until_next()
        timeout = max_wait if timeout is None else min(timeout, max_wait)
        try:
            item = self.inbox.get(timeout=timeout) if timeout > 0 else self.inbox.get_nowait()
        except queue.Empty:
            item = None
        if item is not None:
            self.dispatch(item)
        self.timers.run_due()

    def run(self, spawn_initial: bool = True) -> None:
        """
        Main control loop. Returns once termination has completed.

        :param spawn_initial: If True, the initial pool is spawned from the loop thread first.
        """
        log.info("Supervisor started. Monitoring worker processes.")
        try:
            if spawn_initial:
                self.start()
            while not self.stopped.is_set():
                self.run_once()
        finally:
            self.teardown()

    def teardown(self) -> None:
        self.rolling.clear()
        self.timers.cancel_matching(lambda key: True)
        log.info("Supervisor control loop stopped.")
