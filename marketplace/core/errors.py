"""Error types raised by the scheduling core.

Routes translate these into HTTP responses; library callers can catch
``SchedulingError`` to handle every failure the core reports.
"""


class SchedulingError(Exception):
    """Base class for failures the caller can act on."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    """Malformed day, time, date, status or price input."""


class NotFoundError(SchedulingError):
    """A referenced service, user, window or appointment does not exist."""


class ConflictError(SchedulingError):
    """The slot is already booked or the appointment cannot change state."""


class StorageError(SchedulingError):
    """The database failed underneath an operation."""

    def __init__(self, operation: str, context: dict | None = None) -> None:
        self.operation = operation
        self.context = dict(context or {})
        details = ', '.join(f'{key}={value!r}' for key, value in self.context.items())
        message = f'Storage failure during {operation}'
        if details:
            message = f'{message} ({details})'
        super().__init__(message)
