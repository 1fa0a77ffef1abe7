"""
Logging Utility for the Recurrence Tooling.

Provides structured JSON logging with an optional dry-run prefix.
"""

import json
import logging
import sys
from typing import Optional

from planner_recurrence.utils.dates import utcnow

DRY_RUN_PREFIX = "[DRY-RUN] "

# Summary separators
RULE = "=" * 60
THIN_RULE = "-" * 60


class StructuredLogger:
    """Structured logger for migration and refresh runs."""

    def __init__(self, name: str, dry_run: bool = False):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            dry_run: Prefix every message so previews are not mistaken for live effects
        """
        self.logger = logging.getLogger(name)
        self.dry_run = dry_run

    def _log_structured(self, level: int, message: str, exc_info: bool = False, **kwargs):
        """
        Log a structured message.

        Args:
            level: Logging level
            message: Log message
            **kwargs: Additional structured data
        """
        if self.logger.isEnabledFor(level):
            log_data = {
                "timestamp": utcnow().isoformat(),
                "level": logging.getLevelName(level),
                "message": f"{DRY_RUN_PREFIX if self.dry_run else ''}{message}",
                "service": self.logger.name,
            }
            if self.dry_run:
                log_data["dry_run"] = True
            log_data.update(kwargs)

            self.logger.log(level, json.dumps(log_data, default=str), exc_info=exc_info)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._log_structured(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._log_structured(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self._log_structured(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message."""
        self._log_structured(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log error message with traceback."""
        self._log_structured(logging.ERROR, message, exc_info=True, **kwargs)


def configure_logging(level: str = "INFO", stream=None) -> None:
    """Configure root logging for command-line runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=stream or sys.stderr,
    )


def get_logger(name: str, dry_run: Optional[bool] = False) -> StructuredLogger:
    """
    Get a structured logger.

    Args:
        name: Logger name
        dry_run: Whether messages belong to a dry run

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name, dry_run=bool(dry_run))
