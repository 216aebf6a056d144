"""
Domain exceptions.

Raised by the CRUD and service layers and translated to structured JSON
responses by the handlers in ``app.middleware.error_handler``.
"""
from fastapi import status


class CollegeConnectError(Exception):
    """Base class for errors that are reported to the client."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(CollegeConnectError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class AlreadySolvedError(CollegeConnectError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Challenge already solved"


class ValidationError(CollegeConnectError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class PermissionDeniedError(CollegeConnectError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class PersistenceError(CollegeConnectError):
    """A store write failed. The message shown to clients stays generic."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"


class RevisionConflictError(Exception):
    """A compare-and-swap write lost against a concurrent writer."""
