import socket
import logging
import threading
import subprocess
from pathlib import Path
from email.message import EmailMessage
from typing import Optional

import clustermgr.settings as default_settings
from clustermgr.config import NotifyOptions

log = logging.getLogger(__name__)


class Notifier:
    """
    Best-effort operator alerts through the local sendmail binary.

    Sending is fire-and-forget: each message is handed to sendmail from a
    daemon thread and failures are only logged at debug level. The notifier
    is disabled when no options are configured or sendmail is missing.
    """

    def __init__(self, options: Optional[NotifyOptions], sendmail_path: Path = default_settings.SENDMAIL_PATH) -> None:
        self.options = options
        self.sendmail_path = Path(sendmail_path)
        self.hostname = socket.gethostname()
        self.enabled = options is not None and self.sendmail_path.exists()
        if options is not None and not self.enabled:
            log.warning(f"Notifications disabled: '{self.sendmail_path}' not found.")

    def build_message(self, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.options.sender
        message["To"] = self.options.recipient
        message["Subject"] = f"[{self.options.subject_prefix}][{self.hostname}] {subject}"
        message.set_content(body)
        return message

    def send(self, subject: str, body: str) -> None:
        """Queues a notification. Never raises."""
        if not self.enabled:
            return
        message = self.build_message(subject, body)
        threading.Thread(
            target=self._deliver,
            args=(message,),
            daemon=True,
            name="NotifierThread",
        ).start()

    def _deliver(self, message: EmailMessage) -> None:
        try:
            subprocess.run(
                [str(self.sendmail_path), "-t"],
                input=message.as_bytes(),
                capture_output=True,
                timeout=default_settings.SENDMAIL_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            log.debug(f"Notification '{message['Subject']}' was not sent: {e}")
