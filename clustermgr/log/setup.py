import logging
import sys


class VerbosityFilter(logging.Filter):
    """
    Lets everything through in verbose mode. Otherwise only warnings and
    above pass, plus worker output and records logged with
    ``extra={"force": True}``.
    """

    def __init__(self, verbose: bool = False) -> None:
        super().__init__()
        self.verbose = verbose

    def filter(self, record: logging.LogRecord) -> bool:
        if self.verbose or record.levelno >= logging.WARNING:
            return True
        if record.name.startswith('proc.'):
            return True
        return bool(getattr(record, "force", False))


class MainFormatter(logging.Formatter):
    """A custom formatter to handle regular logs and raw worker output."""

    def format(self, record):
        # Worker output is passed through untouched.
        if record.name.startswith('proc.'):
            return record.getMessage()

        # Temporarily change the format string for the superclass call.
        original_format = self._style._fmt
        self._style._fmt = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'
        formatted_message = super().format(record)
        self._style._fmt = original_format
        return formatted_message


def setup_logging(verbose: bool = False) -> VerbosityFilter:
    """
    Configures the root logger for the supervisor, clearing any previously
    configured handlers to prevent duplication.

    :param verbose: If True, non-critical messages are logged as well.
    :return: The installed filter, so verbosity can be toggled later.
    """
    root_logger = logging.getLogger()
    # Set root level to lowest; the filter decides what reaches the console.
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    verbosity = VerbosityFilter(verbose)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(MainFormatter())
    console_handler.addFilter(verbosity)
    root_logger.addHandler(console_handler)
    return verbosity
