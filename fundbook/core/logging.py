"""Logging setup shared by the web process and the celery worker.

Usage:
    from fundbook.core.logging import setup_logging
    setup_logging("web")
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_HANDLER_NAME = "fundbook-console"

# Loggers that chatter on every query
NOISY_LOGGERS = [
    "aiosqlite",
    "asyncio",
    "sqlalchemy.engine",
]


def setup_logging(
    process_name: str,
    level: str | int = logging.INFO,
    debug: bool = False,
) -> logging.Logger:
    """Configure the root logger with a single console handler.

    Args:
        process_name: Name of the process ("web" or "worker")
        level: Root log level name or number
        debug: Keep third-party loggers at the root level when True

    Returns:
        The logger named after the process
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Replace the handler of a previous call (app factory runs per test)
    for handler in list(root_logger.handlers):
        if handler.get_name() == CONSOLE_HANDLER_NAME:
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(CONSOLE_HANDLER_NAME)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if not debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(process_name)
