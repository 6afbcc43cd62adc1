"""
Error types for Taskmate.

Backend implementations raise BackendError; the TaskManager translates those
into the operation-specific errors below so callers can show a message.
"""


class TaskmateError(Exception):
    """Base class for all Taskmate errors."""


class ParseError(TaskmateError, ValueError):
    """A stored due date could not be parsed."""


class ValidationError(TaskmateError, ValueError):
    """Input rejected before reaching the backend (empty title, oversized image, ...)."""


class BackendError(TaskmateError):
    """
    The backend rejected a request.

    Attributes:
        message: Message supplied by the backend (or a fallback)
        status_code: HTTP status code, when there is one
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CreationError(TaskmateError):
    """The task-creation function failed."""


class PersistenceError(TaskmateError):
    """A row or blob mutation was rejected."""


class NoImageError(TaskmateError):
    """Tried to remove an image from a task that has none."""
