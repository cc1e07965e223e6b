import os
import psutil
import logging
from pathlib import Path
from typing import Optional

from clustermgr.errors import PidfileWriteError

log = logging.getLogger(__name__)


def read_pid_file(pidfile: Path) -> Optional[int]:
    """
    Reads the supervisor PID from disk.

    :return: The PID if the file exists and is valid, else None.
    """
    try:
        return int(Path(pidfile).read_text().strip())
    except FileNotFoundError:
        return None
    except (ValueError, OSError) as e:
        log.warning(f"Ignoring unreadable PID file '{pidfile}': {e}")
        return None


def running_supervisor_pid(pidfile: Path) -> Optional[int]:
    """The PID recorded in `pidfile` if that process is still alive."""
    pid = read_pid_file(pidfile)
    if pid is not None and pid != os.getpid() and psutil.pid_exists(pid):
        return pid
    return None


def write_pid_file(pidfile: Path) -> None:
    """
    Atomically writes the current process PID to `pidfile`.

    :raises PidfileWriteError: If another supervisor owns the file or it cannot be written.
    """
    pidfile = Path(pidfile)
    other = running_supervisor_pid(pidfile)
    if other is not None:
        raise PidfileWriteError(f"Supervisor already running with PID {other} (see '{pidfile}').")

    temp_pid_path = pidfile.with_suffix(pidfile.suffix + ".tmp")
    try:
        temp_pid_path.write_text(str(os.getpid()))
        temp_pid_path.replace(pidfile)
    except OSError as e:
        raise PidfileWriteError(f"Failed to write PID file: {pidfile}: {e}") from e
    finally:
        temp_pid_path.unlink(missing_ok=True)
    log.debug(f"PID file written to '{pidfile}'.")


def remove_pid_file(pidfile: Path) -> None:
    """Removes `pidfile` if it still belongs to this process."""
    pidfile = Path(pidfile)
    if read_pid_file(pidfile) == os.getpid():
        pidfile.unlink(missing_ok=True)
        log.debug(f"Removed PID file '{pidfile}'.")
