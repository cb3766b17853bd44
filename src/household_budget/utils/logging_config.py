"""Logging configuration for the household budget importer."""

import logging
import sys
import time
from pathlib import Path
from typing import Optional

DEFAULT_LOG_FILE = "household_budget.log"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Store credentials never reach the log
SECRET_FIELDS = {"password", "token", "api_key", "secret", "service_key", "anon_key", "store_key"}

# Household identifiers are shortened to a recognizable prefix
IDENTIFIER_FIELDS = {"tenant", "tenant_id", "payer"}


def mask_identifier(value: object, visible: int = 4) -> str:
    """Shorten an identifier to its first characters, e.g. ``'9f3a...'``."""
    text = str(value)
    if len(text) <= visible:
        return text
    return text[:visible] + "..."


def _mask_context(context: dict[str, object]) -> dict[str, object]:
    masked: dict[str, object] = {}
    for key, value in context.items():
        name = key.lower()
        if name in SECRET_FIELDS:
            masked[key] = "***"
        elif name in IDENTIFIER_FIELDS:
            masked[key] = mask_identifier(value)
        else:
            masked[key] = value
    return masked


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = DEFAULT_LOG_FILE,
    console_output: bool = True,
) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Log file path. None uses DEFAULT_LOG_FILE; an empty string
            disables file logging.
        console_output: Whether to also log to stderr.

    Returns:
        The ``household_budget`` logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("household_budget")
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_file is None:
        log_file = DEFAULT_LOG_FILE
    if log_file:
        file_handler = logging.FileHandler(Path(log_file), encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package logger.

    Args:
        name: Module name (typically __name__).

    Returns:
        Logger instance.
    """
    if name.startswith("household_budget"):
        return logging.getLogger(name)
    return logging.getLogger(f"household_budget.{name}")


class LogContext:
    """Logs the start, outcome and duration of one import step.

    Example:
        with LogContext(logger, "dedup", tenant=tenant_id, count=10) as step:
            ...
            step.set(skipped=3)
    """

    def __init__(self, logger: logging.Logger, operation: str, **context: object):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.results: dict[str, object] = {}
        self._started = 0.0

    def set(self, **results: object) -> None:
        """Attach result values logged when the step completes."""
        self.results.update(results)

    def __enter__(self) -> "LogContext":
        context_str = ", ".join(f"{k}={v}" for k, v in _mask_context(self.context).items())
        self.logger.debug(f"Starting {self.operation}: {context_str}")
        self._started = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> bool:
        elapsed_ms = (time.perf_counter() - self._started) * 1000
        if exc_type is not None:
            self.logger.error(
                f"Error in {self.operation} after {elapsed_ms:.0f} ms: {exc_type.__name__}: {exc_val}",
                exc_info=True,
            )
        else:
            results = _mask_context(self.results)
            result_str = "".join(f", {k}={v}" for k, v in results.items())
            self.logger.debug(f"Completed {self.operation} in {elapsed_ms:.0f} ms{result_str}")
        return False
