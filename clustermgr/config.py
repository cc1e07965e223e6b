import logging
from pathlib import Path
from typing import Any, Dict, Optional

import clustermgr.settings as default_settings
from clustermgr.errors import ConfigurationError

log = logging.getLogger(__name__)


class NotifyOptions:
    """Sender, recipient and subject prefix for operator mail."""

    def __init__(self, sender: str, recipient: str, subject_prefix: str = "cluster") -> None:
        self.sender = sender
        self.recipient = recipient
        self.subject_prefix = subject_prefix

    def __repr__(self) -> str:
        return f"NotifyOptions(from={self.sender!r}, to={self.recipient!r}, prefix={self.subject_prefix!r})"


class Config:
    """
    The effective supervisor configuration.

    It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Overrides from the environment / `.env` (applied inside settings.py).
    3. Explicit overrides passed to the constructor (command line).

    Values are exposed as lowercase attributes, e.g. `config.workers`.
    Timeouts are kept in milliseconds, matching the option names.
    """

    _OPTIONS = {
        "exec": "EXEC",
        "args": "EXEC_ARGS",
        "workers": "WORKERS",
        "wait_before_shutdown": "WAIT_BEFORE_SHUTDOWN",
        "wait_before_force_quit": "WAIT_BEFORE_FORCE_QUIT",
        "force_exit_timeout": "FORCE_EXIT_TIMEOUT",
        "pidfile": "PIDFILE",
        "verbose": "VERBOSE",
        "env": "ENV",
        "silent": "SILENT",
        "python_executable": "PYTHON_EXECUTABLE",
        "sendmail_path": "SENDMAIL_PATH",
    }

    def __init__(self, notify: Optional[NotifyOptions] = None, **overrides: Any) -> None:
        self._values: Dict[str, Any] = {}
        self._load_defaults()
        self._apply_overrides(overrides)

        if notify is None and default_settings.NOTIFY_FROM and default_settings.NOTIFY_TO:
            notify = NotifyOptions(
                default_settings.NOTIFY_FROM,
                default_settings.NOTIFY_TO,
                default_settings.NOTIFY_SUBJECT_PREFIX,
            )
        self._values["notify"] = notify
        self._validate()

    def __getattr__(self, name: str) -> Any:
        """Allows attribute access to options, raising an AttributeError if not found."""
        values = self.__dict__.get("_values", {})
        if name in values:
            return values[name]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

    def _load_defaults(self) -> None:
        for option, setting in self._OPTIONS.items():
            self._values[option] = getattr(default_settings, setting)
        self._values["args"] = list(self._values["args"])

    def _apply_overrides(self, overrides: Dict[str, Any]) -> None:
        for key, value in overrides.items():
            if key not in self._OPTIONS:
                raise ConfigurationError(f"Unknown option '{key}'.")
            if value is None:
                continue
            self._values[key] = value
            log.debug(f"Overridden option: {key} = {value}")

    def _validate(self) -> None:
        values = self._values
        # Defaults from the environment arrive as strings.
        for key in ("workers", "wait_before_shutdown", "wait_before_force_quit", "force_exit_timeout"):
            try:
                values[key] = int(values[key])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid value for '{key}': {values[key]!r}.") from e

        if values["workers"] < 1:
            raise ConfigurationError(f"'workers' must be at least 1, got {values['workers']}.")
        for key in ("wait_before_shutdown", "wait_before_force_quit", "force_exit_timeout"):
            if values[key] < 0:
                raise ConfigurationError(f"'{key}' must not be negative, got {values[key]}.")

        if not values["force_exit_timeout"]:
            values["force_exit_timeout"] = values["wait_before_force_quit"] + default_settings.FORCE_EXIT_MARGIN

        for key in ("exec", "pidfile", "sendmail_path"):
            if values[key] is not None and not isinstance(values[key], Path):
                values[key] = Path(values[key])

    def exec_exists(self) -> bool:
        """True when the configured worker executable is present on disk."""
        return self.exec is not None and self.exec.is_file()

    def as_dict(self) -> Dict[str, Any]:
        """Returns a copy of all effective options."""
        return dict(self._values)
