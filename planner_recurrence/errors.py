"""
Recurrence Errors

Exception hierarchy shared by the recurrence core, the store adapter and the
migration CLI. Every error carries a machine-readable code, a human message
and optional details, so per-task failures can be logged and aggregated.
"""

from typing import Any, Dict, Optional


class RecurrenceError(Exception):
    """Base exception for recurrence errors"""
    code = "RECURRENCE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.code = code or self.code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidRecurrenceRuleError(RecurrenceError):
    """A recurrence rule violates its own invariants."""
    code = "INVALID_RULE"


class LegacyRecurrenceError(RecurrenceError):
    """A legacy embedded recurrence could not be parsed."""
    code = "INVALID_LEGACY_RECURRENCE"


class StoreError(RecurrenceError):
    """The document store rejected or failed an operation."""
    code = "STORE_ERROR"


class ConfigError(RecurrenceError):
    """Configuration or credentials are missing or invalid."""
    code = "CONFIG_ERROR"


class PatternNotFoundError(RecurrenceError):
    """A recurring pattern does not exist or was deleted."""
    code = "NOT_FOUND"


def create_error_response(error: RecurrenceError) -> Dict[str, Any]:
    """
    Create a standardized error payload for logs and reports

    Args:
        error: The RecurrenceError to convert

    Returns:
        Standardized error dictionary
    """
    return {
        "success": False,
        "error": {
            "code": error.code,
            "message": error.message,
            "details": error.details
        }
    }
