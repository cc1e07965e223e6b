"""
Helpers for worker programs run under the cluster manager.

A worker tells the supervisor it is serving by printing a readiness line
to stdout once its listener is bound:

    from clustermgr.worker import announce_listening
    server.bind(("127.0.0.1", 8000))
    announce_listening("127.0.0.1", 8000)
"""
import os
import sys
from typing import Optional

import clustermgr.settings as default_settings


def announce_listening(host: str, port: int, stream=None) -> None:
    """Writes the readiness line the supervisor waits for."""
    stream = stream or sys.stdout
    stream.write(f"{default_settings.READY_LINE_PREFIX} {host}:{port}\n")
    stream.flush()


def worker_id() -> Optional[int]:
    """The id the supervisor gave this process, or None when not supervised."""
    value = os.environ.get(default_settings.WORKER_ID_ENV)
    return int(value) if value else None


def is_supervised() -> bool:
    return worker_id() is not None
