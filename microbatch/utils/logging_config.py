"""
Logging configuration module with batch failure reporting
"""

import sys
import threading
import time
import traceback
from pathlib import Path
from typing import Any

from loguru import logger

from .config import BatcherConfig


class ErrorHandler:
    """Counts and logs errors raised inside the dispatch loop"""

    def __init__(self):
        self.error_counts = {}
        self.warning_counts = {}
        # Scheduler threads of several batchers may report at once
        self._lock = threading.Lock()

    def log_error(self, error: Exception, context: str = "", extra_data: dict[str, Any] | None = None) -> None:
        """
        Log error with context and optional extra data

        Args:
            error: Exception object
            context: Context where error occurred
            extra_data: Additional data to log
        """
        error_type = type(error).__name__

        with self._lock:
            self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        error_msg = f"[{error_type}] {error!s}"
        if context:
            error_msg = f"{context}: {error_msg}"

        logger.error(error_msg)

        cause = error.__cause__ or error
        stack = "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))
        logger.debug(f"Stack trace:\n{stack}")

        if extra_data:
            logger.debug(f"Extra data: {extra_data}")

    def log_warning(self, message: str, context: str = "", extra_data: dict[str, Any] | None = None) -> None:
        """
        Log warning with context

        Args:
            message: Warning message
            context: Context where warning occurred
            extra_data: Additional data to log
        """
        with self._lock:
            self.warning_counts["Warning"] = self.warning_counts.get("Warning", 0) + 1

        warning_msg = f"{context}: {message}" if context else message
        logger.warning(warning_msg)

        if extra_data:
            logger.debug(f"Warning data: {extra_data}")

    def get_error_summary(self) -> dict[str, Any]:
        """
        Get error summary statistics

        Returns:
            Error statistics
        """
        with self._lock:
            return {
                "error_counts": self.error_counts.copy(),
                "warning_counts": self.warning_counts.copy(),
                "total_errors": sum(self.error_counts.values()),
                "total_warnings": sum(self.warning_counts.values())
            }

    def reset_counts(self) -> None:
        """Reset error and warning counts"""
        with self._lock:
            self.error_counts.clear()
            self.warning_counts.clear()


# Global error handler instance
error_handler = ErrorHandler()


def setup_logging(
    config: BatcherConfig,
    log_file: Path | None = None,
    json_format: bool = False,
    max_file_size: str = "10 MB",
    retention: str = "1 week"
) -> None:
    """
    Setup logging configuration

    Args:
        config: Configuration object
        log_file: Path to log file (optional)
        json_format: Use JSON format for logs
        max_file_size: Maximum log file size
        retention: Log retention period
    """
    logger.remove()

    level = "DEBUG" if config.verbose else "INFO"

    if json_format:
        console_format = "{time} | {level} | {thread.name} | {name}:{function}:{line} | {message}"
    else:
        console_format = (
            "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
            "<magenta>{thread.name}</magenta> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=console_format,
        level=level,
        colorize=not json_format,
        serialize=json_format,
        backtrace=True,
        diagnose=config.verbose
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | {name}:{function}:{line} - {message}",
            level="DEBUG",  # Always debug level for files
            rotation=max_file_size,
            retention=retention,
            encoding="utf-8"
        )


def get_logger(name: str):
    """
    Get logger instance bound to a component name

    Args:
        name: Component name

    Returns:
        Logger instance
    """
    return logger.bind(component=name)


class OperationTimer:
    """Context manager for timing operations"""

    def __init__(self, operation_name: str, logger_instance=None):
        self.operation_name = operation_name
        self.logger = logger_instance or logger
        self.start_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting operation: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.debug(f"Operation {self.operation_name} completed in {self.duration:.3f}s")
        else:
            self.logger.error(f"Operation {self.operation_name} failed after {self.duration:.3f}s: {exc_val}")

        return False  # Don't suppress exceptions
