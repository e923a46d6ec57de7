"""
Logging utilities for PLMXML ingestion.

Library modules use standard ``logging`` loggers obtained through
``get_logger()``. Parse-level progress goes through ``log()``, which writes
to the package logger and, additionally, to a thread-local log file so that
each parse can keep its own log without passing file handles around.

Usage:
    from plmxml_bom.utils.logging import log, set_log_file, close_log_file

    # At parse start
    set_log_file(open("PLMXMLViewer.log", "a", encoding="utf-8"))

    try:
        log("Starting PLMXML parsing process.")
        # ... parse ...
    finally:
        close_log_file()
"""

import logging
import threading
from datetime import datetime
from typing import Optional, TextIO

PACKAGE_LOGGER = "plmxml_bom"

_logger = logging.getLogger(PACKAGE_LOGGER)

# Thread-local storage for the per-parse log file
_thread_local = threading.local()


def get_logger(name: str) -> logging.Logger:
    """Return a logger for a module of this package."""
    return logging.getLogger(name)


def configure_logging(debug: bool = False) -> None:
    """
    Attach a console handler to the package logger.

    Intended for scripts; library code never calls this.

    Args:
        debug: Log element-level parser events as well
    """
    level = logging.DEBUG if debug else logging.INFO
    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        _logger.addHandler(handler)
    _logger.setLevel(level)


def log(message: str) -> None:
    """
    Log a message to the package logger and the thread-local log file.

    File lines are prefixed with a timestamp.

    Args:
        message: Message to log (newline automatically appended for file output)
    """
    _logger.info(message)
    log_file = getattr(_thread_local, "log_file", None)
    if log_file:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        try:
            log_file.write(f"[{timestamp}] {message}\n")
            log_file.flush()
        except (OSError, ValueError):
            # Closed or unwritable log file must not break the parse
            _logger.debug("Log file unavailable, dropping file output")


def set_log_file(log_file: Optional[TextIO]) -> None:
    """
    Set the log file for the current thread.

    Args:
        log_file: File object to write logs to, or None to disable file logging
    """
    _thread_local.log_file = log_file


def get_log_file() -> Optional[TextIO]:
    """Get the current thread's log file."""
    return getattr(_thread_local, "log_file", None)


def close_log_file() -> None:
    """
    Close and clear the thread-local log file if one is open.

    Safe to call multiple times; call it in a finally block.
    """
    log_file = getattr(_thread_local, "log_file", None)
    if log_file:
        set_log_file(None)  # Clear the reference first to prevent further writes
        try:
            log_file.close()
        except OSError:
            _logger.debug("Log file already closed")
