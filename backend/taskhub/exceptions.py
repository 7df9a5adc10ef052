"""TaskHub exceptions.

Every error a request handler can surface maps onto one of these. They carry
the HTTP status and the message rendered into the
``{"statusCode", "statusMessage", "data"}`` error body.
"""

from typing import Any, Optional


class TaskHubError(Exception):
    """Base exception for request-level errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, data: Any = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "statusCode": self.status_code,
            "statusMessage": self.message,
        }
        if self.data is not None:
            body["data"] = self.data
        return body


class Unauthenticated(TaskHubError):
    """No caller identity could be resolved from the request."""

    status_code = 401
    default_message = "Unauthorized - User not authenticated"


class NoStaffRecord(TaskHubError):
    """The caller's identity has no linked staff row."""

    status_code = 403
    default_message = "No staff record found for authenticated user"


class Forbidden(TaskHubError):
    """The caller's role does not permit the operation."""

    status_code = 403
    default_message = "Access denied"


class InvalidInput(TaskHubError):
    """Malformed or missing request input."""

    status_code = 400
    default_message = "Invalid input"


class NotFound(TaskHubError):
    """The requested row does not exist or is soft-deleted."""

    status_code = 404
    default_message = "Not found"


class DataAccessError(TaskHubError):
    """The data store failed while serving the request.

    Retryable: the request did no partial work the caller can observe.
    """

    status_code = 500
    retryable = True

    def __init__(self, operation: str, error: Exception | str):
        self.operation = operation
        super().__init__(
            message=f"Failed to {operation}",
            data={"message": str(error)},
        )
