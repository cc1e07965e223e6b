import os
import sys
import psutil
import logging
import itertools
import threading
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import clustermgr.settings as default_settings
from clustermgr.errors import SpawnRefused
from clustermgr.supervisor.events import WorkerExited, WorkerReady
from clustermgr.supervisor.worker import WorkerHandle

log = logging.getLogger(__name__)

# How long the exit watcher waits for a worker's pipes to drain.
PIPE_DRAIN_TIMEOUT = 2.0


def parse_ready_line(line: str, prefix: str = default_settings.READY_LINE_PREFIX) -> Optional[Tuple[str, int]]:
    """
    Parses a readiness announcement such as ``LISTENING 127.0.0.1:8000``.

    :return: The (host, port) pair, or None if the line is not an announcement.
    """
    parts = line.split()
    if len(parts) != 2 or parts[0] != prefix:
        return None
    host, sep, port = parts[1].rpartition(":")
    if not sep or not port.isdigit():
        return None
    return host.strip("[]") or "0.0.0.0", int(port)


def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific creation flags for subprocess.Popen."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def _read_pipe(pipe, logger_name: str, level: int, line_handler: Optional[Callable[[str], bool]] = None,
               forward: bool = True) -> None:
    """Target function for reader threads. Reads and logs lines from a worker pipe."""
    proc_logger = logging.getLogger(logger_name)
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            if line_handler and line_handler(line):
                continue
            if forward:
                proc_logger.log(level, line)
    except (OSError, ValueError) as e:
        proc_logger.debug(f"Pipe reader for {logger_name} exited: {e}")
    finally:
        pipe.close()


class ProcessSpawner:
    """
    Starts worker processes and reports their lifecycle.

    Each spawned worker gets a reader thread per pipe and one exit watcher.
    A `WorkerReady` event is posted when the worker prints its readiness
    line, and a `WorkerExited` event once it has exited and its pipes have
    drained, so a worker's events always arrive in the order they happened.
    """

    def __init__(self, exec_path: Path, post: Callable[[Any], None], args: Sequence[str] = (),
                 env: Optional[Mapping[str, str]] = None, silent: bool = False,
                 python_executable: str = default_settings.PYTHON_EXECUTABLE) -> None:
        self.exec_path = Path(exec_path)
        self.post = post
        self.args = list(args)
        self.env = env
        self.silent = silent
        self.python_executable = python_executable
        self._ids = itertools.count(1)
        self._procs: Dict[int, psutil.Process] = {}

    def build_command(self) -> List[str]:
        """Returns the argv used to start one worker."""
        exec_str = str(self.exec_path.resolve())
        if self.exec_path.suffix == ".py" or not os.access(self.exec_path, os.X_OK):
            return [self.python_executable, exec_str, *self.args]
        return [exec_str, *self.args]

    def _build_env(self, worker_id: int) -> Dict[str, str]:
        env = dict(self.env if self.env is not None else os.environ)
        env[default_settings.WORKER_ID_ENV] = str(worker_id)
        env[default_settings.MASTER_PID_ENV] = str(os.getpid())
        env.setdefault("PYTHONUNBUFFERED", "1")
        return env

    def spawn(self) -> WorkerHandle:
        """
        Starts one worker process.

        :raises SpawnRefused: If the executable does not exist.
        :raises OSError: If the process could not be started.
        """
        if not self.exec_path.is_file():
            raise SpawnRefused(self.exec_path)

        worker_id = next(self._ids)
        p = subprocess.Popen(
            self.build_command(),
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL if self.silent else subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            cwd=str(self.exec_path.resolve().parent),
            env=self._build_env(worker_id),
            **_get_popen_creation_flags(),
        )
        handle = WorkerHandle(worker_id, p.pid)
        self._procs[worker_id] = psutil.Process(p.pid)
        self._watch(handle, p)
        log.debug(f"Worker {worker_id} started with PID: {p.pid}")
        return handle

    def _watch(self, handle: WorkerHandle, process: subprocess.Popen) -> None:
        worker_id = handle.id
        logger_name = f"proc.worker.{worker_id}"

        def on_line(line: str) -> bool:
            address = parse_ready_line(line)
            if address is None:
                return False
            self.post(WorkerReady(worker_id, address))
            return True

        readers = [threading.Thread(
            target=_read_pipe,
            args=(process.stdout, logger_name, logging.INFO, on_line, not self.silent),
            daemon=True,
            name=f"Worker{worker_id}StdoutThread",
        )]
        if process.stderr:
            readers.append(threading.Thread(
                target=_read_pipe,
                args=(process.stderr, logger_name, logging.ERROR),
                daemon=True,
                name=f"Worker{worker_id}StderrThread",
            ))
        for reader in readers:
            reader.start()

        def wait_for_exit() -> None:
            exit_code = process.wait()
            for reader in readers:
                reader.join(PIPE_DRAIN_TIMEOUT)
            self._procs.pop(worker_id, None)
            self.post(WorkerExited(worker_id, exit_code))

        threading.Thread(target=wait_for_exit, daemon=True, name=f"Worker{worker_id}ExitThread").start()

    def _signal(self, handle: WorkerHandle, action: str) -> bool:
        proc = self._procs.get(handle.id)
        if proc is None:
            return False
        try:
            getattr(proc, action)()
            return True
        except psutil.NoSuchProcess:
            log.debug(f"Worker {handle.id} (PID {handle.pid}) no longer exists, skipping {action}.")
            return False

    def stop(self, handle: WorkerHandle) -> bool:
        """Asks the worker to exit gracefully (SIGTERM)."""
        return self._signal(handle, "terminate")

    def kill(self, handle: WorkerHandle) -> bool:
        """Forcefully kills the worker (SIGKILL)."""
        return self._signal(handle, "kill")
