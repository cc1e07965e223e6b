import os
import logging
import threading
import setproctitle

import clustermgr.settings as default_settings
from clustermgr.config import Config
from clustermgr.errors import ConfigurationError, PidfileWriteError
from clustermgr.log.setup import setup_logging
from clustermgr.supervisor import persistence
from clustermgr.supervisor.control import ControlSurface
from clustermgr.supervisor.supervisor import PoolSupervisor

log = logging.getLogger(__name__)


def check_configuration(config: Config) -> None:
    """
    Validates that the supervisor may start with `config`.

    :raises ConfigurationError: When run inside a managed worker or the executable is missing.
    """
    if os.environ.get(default_settings.WORKER_ID_ENV):
        raise ConfigurationError("Attempting to run cluster inside a clustered process.")
    if not config.exec_exists():
        raise ConfigurationError(f"File {config.exec} does not exist.")


def run_supervisor(config: Config) -> int:
    """
    Runs a supervisor in the foreground until it is terminated.

    :param config: The effective configuration.
    :return: The process exit code.
    """
    setup_logging(config.verbose)
    try:
        check_configuration(config)
    except ConfigurationError as e:
        log.critical(str(e))
        return default_settings.EXIT_CONFIG_ERROR

    if config.pidfile is not None:
        try:
            persistence.write_pid_file(config.pidfile)
        except PidfileWriteError as e:
            log.critical(str(e))
            return default_settings.EXIT_PIDFILE_ERROR

    setproctitle.setproctitle(default_settings.PROCESS_TITLE)
    try:
        supervisor = PoolSupervisor(config)
        ControlSurface(supervisor).install_signal_handlers()

        # The control loop runs off the main thread so signal handlers,
        # which always run on the main thread, never contend with it.
        loop_thread = threading.Thread(target=supervisor.run, name="SupervisorLoopThread")
        loop_thread.start()
        while loop_thread.is_alive():
            loop_thread.join(0.5)
    finally:
        if config.pidfile is not None:
            persistence.remove_pid_file(config.pidfile)
    return default_settings.EXIT_OK
