"""Structured logging infrastructure with verbosity levels and progress tracking."""

import copy
import logging
import logging.handlers
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'kibela_importer'


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with configurable verbosity levels.

    Args:
        verbosity: Verbosity level (<0=WARNING, 0=INFO, 1+=DEBUG)
        log_file: Optional path to log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit log level string, overrides verbosity

    Returns:
        Configured logger instance
    """
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    else:
        if verbosity >= 1:
            log_level = logging.DEBUG
        elif verbosity >= 0:
            log_level = logging.INFO
        else:
            log_level = logging.WARNING

    if log_format is None:
        log_format = '%(asctime)s - %(levelname)s - %(message)s'

    if date_format is None:
        date_format = '%Y-%m-%d %H:%M:%S'

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)

            logger.debug(f"Logging to file: {log_file}")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {str(e)}")

    return logger


class ProgressTracker:
    """Context manager counting entry outcomes and bytes read during a run."""

    def __init__(self, item_type: str = "entries", total_items: Optional[int] = None):
        """
        Initialize progress tracker.

        Args:
            item_type: Description of item type (e.g., "entries")
            total_items: Total number of items when known up front
        """
        self.item_type = item_type
        self.total_items = total_items
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.skipped_items = 0
        self.created_entities = 0
        self.bytes_read = 0
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(LOGGER_NAME)

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        elapsed = time.time() - self.start_time
        if self.failed_items > 0 and self.failed_items == self.processed_items:
            log_method = self.logger.error
        elif self.failed_items > 0:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        log_method(
            f"Processed {self.processed_items} {self.item_type} in {self._format_elapsed(elapsed)} "
            f"(imported={self.successful_items}, drafts={self.skipped_items}, failed={self.failed_items})"
        )

    def add_bytes(self, size: int) -> None:
        self.bytes_read += size

    def increment(self, success: bool = True, created: int = 0) -> None:
        """
        Record the outcome of one item.

        Args:
            success: Whether the item was processed successfully
            created: Number of destination entities created for the item
        """
        self.processed_items += 1
        self.created_entities += created

        if success:
            self.successful_items += 1
        else:
            self.failed_items += 1

    def skip(self) -> None:
        """Record an item that was intentionally not imported."""
        self.processed_items += 1
        self.skipped_items += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get current progress statistics."""
        if self.start_time is None:
            elapsed = 0.0
        else:
            elapsed = time.time() - self.start_time

        return {
            'processed': self.processed_items,
            'entries_succeeded': self.successful_items,
            'failed': self.failed_items,
            'skipped': self.skipped_items,
            'created': self.created_entities,
            'bytes': self.bytes_read,
            'elapsed_time': elapsed,
            'elapsed_time_formatted': self._format_elapsed(elapsed)
        }

    @staticmethod
    def _format_elapsed(seconds: float) -> str:
        """Format elapsed time in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes = int(seconds // 60)
        seconds = int(seconds % 60)

        if minutes < 60:
            return f"{minutes}m {seconds}s"

        hours = minutes // 60
        minutes = minutes % 60

        return f"{hours}h {minutes}m {seconds}s"


def log_section(title: str) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
    """
    logger = logging.getLogger(LOGGER_NAME)

    separator = "=" * 60
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)


def log_config(config: Dict[str, Any]) -> None:
    """
    Log sanitized configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)

    sanitized_config = _sanitize_config(config)

    kibela = sanitized_config.get('kibela', {})
    logger.debug(f"Kibela Team: {kibela.get('team', 'Not Set')}")
    logger.debug(f"Kibela Endpoint: {kibela.get('endpoint') or 'default'}")
    logger.debug("Token: ***REDACTED***" if kibela.get('token') else "Token: Not Set")

    migration = sanitized_config.get('migration', {})
    logger.debug(f"Apply: {migration.get('apply', False)}")
    logger.debug(f"Exported From: {migration.get('exported_from', 'Not Set')}")
    logger.debug(f"Private Groups: {migration.get('private_groups', False)}")
    logger.debug(f"Log Directory: {migration.get('log_directory', '.')}")

    advanced = sanitized_config.get('advanced', {})
    logger.debug(f"Request Timeout: {advanced.get('request_timeout', 30)}s")
    logger.debug(f"Max Retries: {advanced.get('max_retries', 3)}")
    logger.debug(f"Rate Limit: {advanced.get('rate_limit', 0)}s")
    logger.debug(f"Groups Page Size: {advanced.get('groups_page_size', 100)}")


def _sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a sanitized copy of configuration with sensitive fields masked.

    Args:
        config: Configuration dictionary

    Returns:
        Sanitized configuration copy
    """
    sanitized = copy.deepcopy(config)

    sensitive_fields = {
        'password', 'token', 'api_key', 'secret', 'access_token', 'auth_header'
    }

    def mask_sensitive(data: Any) -> Any:
        """Recursively mask sensitive fields."""
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                is_sensitive = any(sensitive in key.lower() for sensitive in sensitive_fields)

                if is_sensitive and isinstance(value, str):
                    masked[key] = "***REDACTED***"
                else:
                    masked[key] = mask_sensitive(value)

            return masked
        elif isinstance(data, list):
            return [mask_sensitive(item) for item in data]
        else:
            return data

    return mask_sensitive(sanitized)


__all__ = [
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config'
]
