"""
Logging setup for ArtPrintWeb.

Every line carries the name of the thread that wrote it. Flask answers
requests on its own threads while all workflow coroutines run on the
single "Workflow" event-loop thread, so the bracketed name shows which side
a line came from.

Log Format:
    2026-10-19 10:15:30 [INFO    ] [MainThread] art_print_web.app - Starting application
    2026-10-19 10:15:31 [INFO    ] [Workflow] art_print_web.session.a1b2c3d4 - Artwork hosted

Usage:
    setup_logging(log_level=logging.DEBUG, enable_file_logging=False)
    logger = get_logger(__name__)
    session_logger = get_session_logger(session_id)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_NAMESPACE = "art_print_web"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class ThreadContextFilter(logging.Filter):
    """Stamps ``thread_name`` on each record; never drops anything."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.thread_name = threading.current_thread().name
        return True


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.addFilter(ThreadContextFilter())
    logger.addHandler(handler)


def _rotating(path: Path) -> RotatingFileHandler:
    return RotatingFileHandler(
        filename=path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )


def setup_logging(
    app_name: str = APP_NAMESPACE,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure the application logger tree.

    Console output is always on. With file logging enabled, two rotating
    files are written under ``log_dir``: everything at ``log_level`` and a
    separate ERROR-and-above log. Calling this again replaces the handlers.

    Args:
        app_name: Root of the logger tree (default: "art_print_web")
        log_level: Minimum level for console and main log file
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Whether to write log files

    Returns:
        The configured root application logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    _attach(logger, logging.StreamHandler(sys.stdout), log_level)

    if enable_file_logging:
        log_dir = log_dir or Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        _attach(logger, _rotating(log_dir / f"{app_name}.log"), log_level)
        _attach(logger, _rotating(log_dir / f"{app_name}_error.log"), logging.ERROR)
        logger.info(f"File logging enabled in {log_dir}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger under the application namespace, e.g. ``art_print_web.routes.ship``."""
    if not name.startswith(APP_NAMESPACE):
        name = f"{APP_NAMESPACE}.{name}"
    return logging.getLogger(name)


def get_session_logger(session_id: str) -> logging.Logger:
    """Logger for one wizard session, named by the first 8 characters of its id."""
    return logging.getLogger(f"{APP_NAMESPACE}.session.{session_id[:8]}")


def set_thread_name(name: str) -> None:
    """Rename the current thread (shows up in the [thread_name] field)."""
    threading.current_thread().name = name
