"""Error types raised by the recurring task engine."""
from typing import Any, Dict, Optional


class RecurrenceError(Exception):
    """Base class for recurrence engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses and sweep summaries."""
        data = {"error": type(self).__name__, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class InvalidArgument(RecurrenceError, ValueError):
    """Malformed date, repeat type or count. Never retried."""


class InvalidState(RecurrenceError):
    """The task is not in a state that allows the requested recurrence change."""


class TaskNotFound(RecurrenceError):
    """No task exists with the given id for the given user."""


class DuplicateKey(RecurrenceError):
    """An occurrence already exists for the same parent and calendar day."""


class PersistenceFailure(RecurrenceError):
    """The task repository failed to read or write."""
