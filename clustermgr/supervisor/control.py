"""
The control surface of a running supervisor.

Inside the supervisor, OS signals are turned into commands on the control
loop's inbox. Outside it, the console uses `send_command` to deliver the
same signals to the PID recorded in the PID file.
"""
import signal
import psutil
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict

from clustermgr.supervisor import persistence
from clustermgr.supervisor.events import Command

if TYPE_CHECKING:
    from clustermgr.supervisor.supervisor import PoolSupervisor

log = logging.getLogger(__name__)


def _signals() -> Dict[int, Command]:
    mapping = {
        "SIGHUP": Command.RELOAD,
        "SIGUSR1": Command.STATUS,
        "SIGUSR2": Command.ENSURE_CAPACITY,
        "SIGTERM": Command.TERMINATE,
        "SIGINT": Command.TERMINATE,
    }
    # Not every platform has every signal.
    return {getattr(signal, name): command for name, command in mapping.items() if hasattr(signal, name)}


SIGNAL_COMMANDS = _signals()
COMMAND_SIGNALS = {command: signum for signum, command in SIGNAL_COMMANDS.items() if signum != getattr(signal, "SIGINT", None)}


class ControlSurface:
    """Routes reload, status, ensure-capacity and terminate to a PoolSupervisor."""

    def __init__(self, supervisor: "PoolSupervisor") -> None:
        self.supervisor = supervisor

    def install_signal_handlers(self) -> None:
        """Must be called from the main thread."""
        for signum in SIGNAL_COMMANDS:
            signal.signal(signum, self._handle_signal)
        log.debug(f"Installed handlers for {len(SIGNAL_COMMANDS)} control signals.")

    def _handle_signal(self, signum, frame) -> None:
        self.supervisor.submit(SIGNAL_COMMANDS[signum])

    def reload(self) -> bool:
        return self.supervisor.submit(Command.RELOAD)

    def status(self) -> bool:
        return self.supervisor.submit(Command.STATUS)

    def ensure_capacity(self) -> bool:
        return self.supervisor.submit(Command.ENSURE_CAPACITY)

    def terminate(self) -> bool:
        return self.supervisor.submit(Command.TERMINATE)


def send_command(pidfile: Path, command: Command) -> bool:
    """
    Delivers `command` to the supervisor recorded in `pidfile`.

    :return: True if the signal was sent, False if no supervisor is running.
    """
    pid = persistence.running_supervisor_pid(pidfile)
    if pid is None:
        log.error(f"No running supervisor found (PID file: '{pidfile}').")
        return False
    signum = COMMAND_SIGNALS.get(command)
    if signum is None:
        log.error(f"'{command.value}' is not supported on this platform.")
        return False
    try:
        psutil.Process(pid).send_signal(signum)
    except psutil.NoSuchProcess:
        log.error(f"Supervisor process {pid} no longer exists.")
        return False
    except psutil.AccessDenied as e:
        log.error(f"Not allowed to signal supervisor {pid}: {e}")
        return False
    log.info(f"Sent '{command.value}' to supervisor (PID {pid}).")
    return True
