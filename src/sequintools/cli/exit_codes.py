"""Standard exit codes for the sequintools CLI.

Following shell conventions:
- 0: Success
- 1: Runtime error (I/O, region, calibration policy, encoding)
- 2: Command line usage error
- 130: Terminated by SIGINT (128 + 2)
- 143: Terminated by SIGTERM (128 + 15)
"""

from sequintools.exceptions import ConfigurationError

EXIT_SUCCESS = 0
EXIT_ERROR = 1  # General/business logic error
EXIT_USAGE = 2  # Command line usage error
EXIT_SIGINT = 130  # 128 + SIGINT(2)
EXIT_SIGTERM = 143  # 128 + SIGTERM(15)


def exit_code_for(exc: BaseException) -> int:
    """Exit code reported for an exception that reached the CLI."""
    if isinstance(exc, KeyboardInterrupt):
        return EXIT_SIGINT
    if isinstance(exc, ConfigurationError):
        return EXIT_USAGE
    return EXIT_ERROR
