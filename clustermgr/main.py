import sys
import logging

# Basic console logger for messages before the supervisor's own setup.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)-8s - [console] - %(message)s',
    stream=sys.stderr
)

from clustermgr.console import execute_command, print_help


def main() -> None:
    """The main entry point for the command console."""
    if len(sys.argv) < 2:
        print_help()
        sys.exit(2)

    command, args = sys.argv[1].lower(), sys.argv[2:]
    sys.exit(execute_command(command, args))


if __name__ == "__main__":
    main()
