import logging
from typing import List

import clustermgr.settings as default_settings
from clustermgr.console.handler import parse_pidfile_arg, parse_start_args, print_help
from clustermgr.errors import ConfigurationError
from clustermgr.supervisor.control import send_command
from clustermgr.supervisor.events import Command
from clustermgr.supervisor.startup import run_supervisor

log = logging.getLogger(__name__)

CONTROL_COMMANDS = {
    "reload": Command.RELOAD,
    "status": Command.STATUS,
    "scale": Command.ENSURE_CAPACITY,
    "stop": Command.TERMINATE,
}


def _start(args: List[str]) -> int:
    try:
        config = parse_start_args(args)
    except ConfigurationError as e:
        log.critical(str(e))
        return default_settings.EXIT_CONFIG_ERROR
    return run_supervisor(config)


def _control(command: Command, args: List[str]) -> int:
    pidfile = parse_pidfile_arg(args)
    if pidfile is None:
        log.error("No PID file given. Use '--pidfile PATH' or set CLUSTER_PIDFILE.")
        return 1
    return 0 if send_command(pidfile, command) else 1


def execute_command(command: str, args: List[str]) -> int:
    """
    Executes a single console command.

    :param command: The main command string (e.g., 'start', 'reload').
    :param args: A list of arguments for the command.
    :return: The process exit code.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    if command == "start":
        return _start(args)
    if command in CONTROL_COMMANDS:
        return _control(CONTROL_COMMANDS[command], args)
    if command == "help":
        print_help()
        return 0

    log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
    return 2
