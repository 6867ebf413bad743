"""Typed failures raised by the booking lifecycle subsystem.

Services raise these instead of HTTP errors; ``main.py`` maps each kind to a
status code with a single exception handler.
"""


class BookingDomainError(Exception):
    """Base class carrying a user-facing message and extra context"""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.kind, **self.context}


class ValidationError(BookingDomainError):
    """Malformed or business-rule-violating input"""

    kind = "validation_error"
    status_code = 400


class NotFoundError(BookingDomainError):
    kind = "not_found"
    status_code = 404


class ConflictError(BookingDomainError):
    """The request conflicts with the current state of the record"""

    kind = "conflict"
    status_code = 409
