import argparse
from pathlib import Path
from typing import List, Optional

import clustermgr.settings as default_settings
from clustermgr.config import Config, NotifyOptions
from clustermgr.errors import ConfigurationError


def build_start_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clustermgr start", description="Run a worker pool supervisor.")
    parser.add_argument("--exec", dest="exec", help="Path to the worker executable.")
    parser.add_argument("--workers", type=int, help="Target pool size.")
    parser.add_argument("--wait-before-shutdown", type=int, metavar="MS",
                        help="How long a new worker must be up before an old one is retired.")
    parser.add_argument("--wait-before-force-quit", type=int, metavar="MS",
                        help="How long a worker may take to exit before it is killed.")
    parser.add_argument("--force-exit-timeout", type=int, metavar="MS",
                        help="How long termination waits for workers before giving up.")
    parser.add_argument("--pidfile", help="Write the supervisor PID to this file.")
    parser.add_argument("--notify-from", help="Sender address for notifications.")
    parser.add_argument("--notify-to", help="Recipient address for notifications.")
    parser.add_argument("--notify-prefix", default=default_settings.NOTIFY_SUBJECT_PREFIX,
                        help="Subject prefix for notifications.")
    parser.add_argument("--verbose", action="store_true", default=None, help="Log non-critical messages.")
    parser.add_argument("--silent", action="store_true", default=None, help="Do not forward worker output.")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments passed to every worker (after --).")
    return parser


def parse_start_args(args: List[str]) -> Config:
    """
    Builds the supervisor configuration from 'start' command arguments.

    :raises ConfigurationError: If the options are invalid.
    """
    options = build_start_parser().parse_args(args)
    notify: Optional[NotifyOptions] = None
    if options.notify_from or options.notify_to:
        if not (options.notify_from and options.notify_to):
            raise ConfigurationError("Both --notify-from and --notify-to are required for notifications.")
        notify = NotifyOptions(options.notify_from, options.notify_to, options.notify_prefix)

    worker_args = options.args
    if worker_args and worker_args[0] == "--":
        worker_args = worker_args[1:]

    return Config(
        notify=notify,
        exec=options.exec,
        workers=options.workers,
        wait_before_shutdown=options.wait_before_shutdown,
        wait_before_force_quit=options.wait_before_force_quit,
        force_exit_timeout=options.force_exit_timeout,
        pidfile=options.pidfile,
        verbose=options.verbose,
        silent=options.silent,
        args=worker_args or None,
    )


def parse_pidfile_arg(args: List[str]) -> Optional[Path]:
    """Finds the PID file for control commands: '--pidfile PATH' or the configured default."""
    if "--pidfile" in args:
        index = args.index("--pidfile")
        if index + 1 < len(args):
            return Path(args[index + 1])
    return Path(default_settings.PIDFILE) if default_settings.PIDFILE else None


def print_help() -> None:
    """Prints the available commands."""
    print("\nAvailable Commands:")
    print("  start [options] [-- args]  - Run the supervisor in the foreground ('start --help' for options).")
    print("  reload [--pidfile PATH]    - Rolling restart of all workers (SIGHUP).")
    print("  status [--pidfile PATH]    - Log the current worker table (SIGUSR1).")
    print("  scale [--pidfile PATH]     - Start workers until the pool is at its target size (SIGUSR2).")
    print("  stop [--pidfile PATH]      - Shut down all workers and the supervisor (SIGTERM).")
    print("  help                       - Show this help message.")
    print("\nControl commands find the supervisor through its PID file (CLUSTER_PIDFILE by default).\n")
