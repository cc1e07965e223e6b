"""
This module contains the default configuration settings for the cluster manager.
Every value can be overridden from the environment (or a `.env` file), and
again from the command line when the supervisor is started.
"""

import os
import sys
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=False)


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't', 'yes', 'y')


#* --- Worker Executable ---
EXEC = os.getenv("CLUSTER_EXEC") or None
EXEC_ARGS = []

#* --- Python Executable Configuration ---
# Used to run worker scripts that are not marked executable (e.g. 'app.py').
PYTHON_EXECUTABLE = os.getenv("PYTHON_EXECUTABLE", sys.executable)

#* --- Pool Settings ---
# Kept as strings; Config converts and validates them.
WORKERS = os.getenv("CLUSTER_WORKERS", "2")
WAIT_BEFORE_SHUTDOWN = os.getenv("CLUSTER_WAIT_BEFORE_SHUTDOWN", "5000")     # ms
WAIT_BEFORE_FORCE_QUIT = os.getenv("CLUSTER_WAIT_BEFORE_FORCE_QUIT", "10000") # ms
# 0 means "wait_before_force_quit + FORCE_EXIT_MARGIN"
FORCE_EXIT_TIMEOUT = os.getenv("CLUSTER_FORCE_EXIT_TIMEOUT", "0")             # ms
FORCE_EXIT_MARGIN = 5000                                                          # ms

#* --- Worker Spawn Settings ---
ENV = None  # None means inherit the supervisor's environment
SILENT = _env_bool("CLUSTER_SILENT")
READY_LINE_PREFIX = "LISTENING"
WORKER_ID_ENV = "CLUSTER_WORKER_ID"
MASTER_PID_ENV = "CLUSTER_MASTER_PID"

#* --- Supervisor Settings ---
PIDFILE = os.getenv("CLUSTER_PIDFILE") or None
INBOX_SIZE = 256
PROCESS_TITLE = "ClusterManager - Supervisor"

#* --- Notifications ---
SENDMAIL_PATH = pathlib.Path(os.getenv("SENDMAIL_PATH", "/usr/lib/sendmail"))
SENDMAIL_TIMEOUT = 30  # seconds
NOTIFY_FROM = os.getenv("CLUSTER_NOTIFY_FROM") or None
NOTIFY_TO = os.getenv("CLUSTER_NOTIFY_TO") or None
NOTIFY_SUBJECT_PREFIX = os.getenv("CLUSTER_NOTIFY_SUBJECT_PREFIX", "cluster")

#* --- Logging ---
VERBOSE = _env_bool("CLUSTER_VERBOSE")

#* --- Exit Codes ---
EXIT_OK = 0
EXIT_PIDFILE_ERROR = 1
EXIT_CONFIG_ERROR = 65  # any ConfigurationError at start
