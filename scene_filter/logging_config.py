"""
Centralized logging configuration for Scene Filter.

Everything under the ``scene_filter`` namespace goes to stderr and to a
rotating log file in ~/.scenefilter/logs/. Debug mode adds a second,
more detailed file with line numbers, which is where detector signal
traces end up.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional


# Global flag to prevent duplicate initialization
_logging_initialized = False

LOGGER_NAMESPACE = "scene_filter"
LOG_DIR = Path.home() / ".scenefilter" / "logs"
LOG_FILE_NAME = "scenefilter.log"
DEBUG_LOG_FILE_NAME = "scenefilter_debug.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAIN_LOG_MAX_BYTES = 5 * 1024 * 1024
MAIN_LOG_BACKUPS = 3
DEBUG_LOG_MAX_BYTES = 10 * 1024 * 1024
DEBUG_LOG_BACKUPS = 2


def get_log_dir() -> Path:
    """Get the log directory, creating it if necessary."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    return LOG_DIR


def _rotating_handler(path: Path, level: int, fmt: str, max_bytes: int, backups: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    force: bool = False,
    debug_mode: bool = False,
) -> logging.Logger:
    """
    Configure logging for the scene_filter namespace.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Main log file path; defaults to ~/.scenefilter/logs/scenefilter.log
        console: Whether to log to stderr
        force: Reconfigure even if already initialized
        debug_mode: Log at DEBUG and also write the detailed debug log

    Returns:
        The namespace logger
    """
    global _logging_initialized

    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    if _logging_initialized and not force:
        return namespace_logger

    log_level = logging.DEBUG if debug_mode else getattr(logging, level.upper(), logging.INFO)
    namespace_logger.setLevel(log_level)
    namespace_logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        namespace_logger.addHandler(console_handler)

    log_path = Path(log_file).expanduser() if log_file else get_log_dir() / LOG_FILE_NAME
    namespace_logger.addHandler(
        _rotating_handler(log_path, log_level, LOG_FORMAT, MAIN_LOG_MAX_BYTES, MAIN_LOG_BACKUPS)
    )

    if debug_mode:
        namespace_logger.addHandler(_rotating_handler(
            get_log_dir() / DEBUG_LOG_FILE_NAME,
            logging.DEBUG,
            DEBUG_LOG_FORMAT,
            DEBUG_LOG_MAX_BYTES,
            DEBUG_LOG_BACKUPS,
        ))

    _logging_initialized = True
    namespace_logger.debug(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_path}")
    return namespace_logger


def get_log_file_path() -> Path:
    """Get the path to the main log file."""
    return LOG_DIR / LOG_FILE_NAME
