"""
Exceptions raised by the cluster manager.

Only configuration and PID file failures are fatal to the supervisor itself.
Everything else is recovered locally and reported through the log and the
notifier.
"""


class ClusterError(Exception):
    """Base class for all cluster manager errors."""


class ConfigurationError(ClusterError):
    """The supervisor cannot start with the given configuration."""


class SpawnRefused(ClusterError):
    """A worker could not be spawned because the executable is unavailable."""

    def __init__(self, exec_path) -> None:
        super().__init__(f"File {exec_path} does not exist. Won't fork.")
        self.exec_path = exec_path


class PidfileWriteError(ClusterError):
    """The PID file could not be written, so single-instance cannot be guaranteed."""
