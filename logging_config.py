"""Logging setup shared by the sync loop and the debug tools."""

import logging
import logging.handlers
import sys
from typing import Optional


CONSOLE_FORMAT = "%(asctime)s %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("PIL", "urllib3", "phue")

_logging_initialized = False


def setup_logging(console_level: str = "INFO", log_file: Optional[str] = None, file_level: str = "DEBUG") -> None:
    """Configure the root logger once.

    Console output goes to stdout. When ``log_file`` is given, a rotating
    file handler (1MB, 5 backups) is added with a more detailed format.
    """
    global _logging_initialized
    if _logging_initialized:
        return

    level = getattr(logging, console_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {console_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=1 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(getattr(logging, file_level.upper()))
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_initialized = True
    root_logger.debug("Logging initialized - console: %s, file: %s", console_level, log_file or "-")
