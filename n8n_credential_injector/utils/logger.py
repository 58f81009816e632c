"""
Console logging for the injector.

This module provides:
1. ContextAwareLogger, which renders `extra` as pipe-delimited key=value pairs
2. RunContextFilter, which stamps the batch run id on every record
"""

import logging
import sys
from typing import Optional, Union

from ..constants import LogLevel
from ..exceptions import get_correlation_id

_job_logger = None


class ContextAwareLogger:
    """
    Logger wrapper that formats extra attributes in message while preserving them.

    This ensures extras appear in console output even when a job runner
    overrides the formatters.
    """

    def __init__(self, logger):
        """Initialize with an existing logger."""
        self.logger = logger

    def _log_with_formatted_extra(self, level, msg, **kwargs):
        """
        Log with extra data formatted into the message.

        Args:
            level: Logging level method to use
            msg: Log message
            **kwargs: Additional arguments including 'extra' and 'exc_info'
        """
        extra = kwargs.pop("extra", {})

        if extra:
            extra_str = " | ".join([f"{k}={v}" for k, v in extra.items()])
            full_msg = f"{msg} | {extra_str}"
        else:
            full_msg = msg

        # LogRecord attributes cannot be overwritten through extra
        safe_extra = {k: v for k, v in extra.items() if k not in _RESERVED_ATTRS}

        log_method = getattr(self.logger, level)
        log_method(full_msg, extra=safe_extra, **kwargs)

    def set_level(self, level):
        """Set the logging level of the underlying logger."""
        self.logger.setLevel(level)

    def info(self, msg, **kwargs):
        """Log at INFO level with formatted extra."""
        self._log_with_formatted_extra("info", msg, **kwargs)

    def error(self, msg, **kwargs):
        """Log at ERROR level with formatted extra."""
        self._log_with_formatted_extra("error", msg, **kwargs)

    def warning(self, msg, **kwargs):
        """Log at WARNING level with formatted extra."""
        self._log_with_formatted_extra("warning", msg, **kwargs)

    def debug(self, msg, **kwargs):
        """Log at DEBUG level with formatted extra."""
        self._log_with_formatted_extra("debug", msg, **kwargs)

    def exception(self, msg, **kwargs):
        """Log exception with formatted extra."""
        self._log_with_formatted_extra("exception", msg, **kwargs)


_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys() | {"message", "asctime"}
)


class RunContextFilter(logging.Filter):
    """
    Logging filter that adds the current batch run id to log records.
    """

    def filter(self, record):
        """
        Add run_id to the log record if a run is in progress.

        Args:
            record: LogRecord to modify

        Returns:
            True to include the record in the log output
        """
        run_id = get_correlation_id()
        if run_id:
            record.run_id = run_id

        return True


def _coerce_level(log_level: Union[int, str, None]) -> int:
    if log_level is None:
        return logging.INFO
    if isinstance(log_level, str):
        return getattr(logging, log_level.upper(), logging.INFO)
    return log_level


def configure_logging(
    job_name: str,
    log_level: Optional[Union[int, str]] = LogLevel.INFO.value,
    log_format: str = "%(message)s",
) -> "ContextAwareLogger":
    """
    Configure console logging for a job.

    Args:
        job_name: Name of the job, used as the logger name suffix
        log_level: Logging level (default: INFO)
        log_format: Formatter pattern for the console handler

    Returns:
        The configured logger wrapped with ContextAwareLogger
    """
    global _job_logger

    level = _coerce_level(log_level)

    logger = logging.getLogger(f"job.{job_name}")
    logger.setLevel(level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format))
    console_handler.addFilter(RunContextFilter())
    logger.addHandler(console_handler)

    wrapped_logger = ContextAwareLogger(logger)

    wrapped_logger.debug(
        "Job logger configured",
        extra={"job_name": job_name, "log_level": logging.getLevelName(level)},
    )
    _job_logger = wrapped_logger
    return wrapped_logger


def get_logger(
    log_level: Optional[Union[int, str]] = None,
) -> "ContextAwareLogger":
    """
    Get the job logger.

    Falls back to a wrapped root logger when configure_logging() has not run,
    e.g. in tests or when the package is used as a library.

    Args:
        log_level: Optional log level to set on the fallback logger

    Returns:
        Logger instance
    """
    if _job_logger is not None:
        if log_level is not None:
            _job_logger.set_level(_coerce_level(log_level))
        return _job_logger

    logger = logging.getLogger()
    if log_level is not None:
        logger.setLevel(_coerce_level(log_level))

    return ContextAwareLogger(logger)


def reset_logging() -> None:
    """Forget the configured job logger."""
    global _job_logger
    _job_logger = None
