"""Logging setup for the document rendering service.

All service loggers live under the ``docrender`` namespace and follow the
configured ``log_level``. Third-party loggers such as asyncio are held at
WARNING so per-render lines stay readable.
"""

import logging
import sys

SERVICE_LOGGER = "docrender"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> None:
    """Send service logs to stdout at ``level``.

    The stdout handler is installed once, and only when nothing else (a
    server or test harness) has configured the root logger already. The
    service level is applied on every call.

    Args:
        level: Logging level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)
        root.setLevel(max(numeric_level, logging.WARNING))

    logging.getLogger(SERVICE_LOGGER).setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)
