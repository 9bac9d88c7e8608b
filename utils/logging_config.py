"""
Logging configuration for the music sorter.

The console gets short level-prefixed lines; the optional rotating log file
keeps timestamps and logger names so a run's moves can be audited later.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

from utils.config_loader import LoggingConfig
from utils.exceptions import configuration_error

APP_LOGGER_NAME = 'music-sorter'

CONSOLE_FORMAT = '%(levelname)s: %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(
    logging_config: LoggingConfig,
    verbose: bool = False,
    console_output: bool = True,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure the root logger from the ``logging`` section of the config.

    Args:
        logging_config: Level, directory and file name of the log
        verbose: Force DEBUG regardless of the configured level
        console_output: Whether to log to stderr
        max_file_size: Maximum log file size in bytes before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The application logger

    Raises:
        MusicSorterError: CONFIGURATION_ERROR if the level is unknown or the
            log file cannot be opened
    """
    level = "DEBUG" if verbose else logging_config.level.upper()
    numeric_level = logging.getLevelName(level)
    if not isinstance(numeric_level, int):
        raise configuration_error(f"Invalid log level: {logging_config.level}")

    handlers = []
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handlers.append(console_handler)

    log_file = logging_config.log_file
    if log_file:
        handlers.append(_build_file_handler(log_file, max_file_size, backup_count))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)
    for handler in handlers:
        handler.setLevel(numeric_level)
        root_logger.addHandler(handler)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.debug(f"Logging initialized - Level: {level}")
    if log_file:
        app_logger.info(f"Log file: {log_file}")

    return app_logger


def _build_file_handler(log_file: Path, max_file_size: int, backup_count: int) -> logging.Handler:
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            filename=str(log_file),
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
    except OSError as e:
        raise configuration_error(f"Cannot open log file {log_file}: {e}") from e

    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def log_processing_progress(
    current: int,
    total: int,
    logger: logging.Logger,
    message_template: str = "Processed {current}/{total} files ({percentage:.1f}%)"
):
    """
    Log processing progress at appropriate intervals.

    Args:
        current: Current item count
        total: Total item count
        logger: Logger instance to use
        message_template: Template for progress message
    """
    if total == 0:
        return

    percentage = (current / total) * 100

    # Every 10% for small batches, 5% for medium, 1% for large
    if total <= 100:
        step = max(1, total // 10)
    elif total <= 1000:
        step = max(1, total // 20)
    else:
        step = max(1, total // 100)

    if current % step == 0 or current == total:
        logger.info(message_template.format(
            current=current, total=total, percentage=percentage
        ))


def configure_library_logging():
    """Configure logging for external libraries to reduce noise."""
    for lib_name in ('mutagen', 'yaml'):
        logging.getLogger(lib_name).setLevel(logging.WARNING)
