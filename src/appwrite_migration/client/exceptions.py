"""Custom exceptions for Appwrite Bridge.

This module defines exception classes for handling the error conditions
that can occur while talking to the Appwrite REST API and while running
a migration between two projects.
"""


class AppwriteMigrationError(Exception):
    """Base exception for all Appwrite migration tool errors."""

    pass


class APIError(AppwriteMigrationError):
    """Base class for API-related errors."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with status code and response."""
        msg = self.message
        if self.status_code:
            msg = f"[{self.status_code}] {msg}"
        if self.response:
            msg = f"{msg}: {self.response}"
        return msg


class AuthenticationError(APIError):
    """Raised when the API key is rejected (401 Unauthorized)."""

    pass


class AuthorizationError(APIError):
    """Raised when the API key lacks a scope (403 Forbidden)."""

    pass


class NotFoundError(APIError):
    """Raised when a resource is not found (404 Not Found).

    This is the only lookup failure the engine treats as "absent, create it".
    """

    pass


class ConflictError(APIError):
    """Raised when a resource conflict occurs (409 Conflict).

    Appwrite returns this when a resource with the requested ID already exists.
    """

    pass


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (429 Too Many Requests)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
        retry_after: int | None = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
            retry_after: Seconds to wait before retrying (from Retry-After header)
        """
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


class NetworkError(AppwriteMigrationError):
    """Raised when network-related errors occur (timeouts, connection failures)."""

    pass


class ConfigurationError(AppwriteMigrationError):
    """Raised when configuration is invalid or missing."""

    pass


class StateError(AppwriteMigrationError):
    """Raised when state management errors occur."""

    pass


class CheckpointError(StateError):
    """Raised when checkpoint operations fail."""

    pass


class MigrationError(AppwriteMigrationError):
    """Raised when migration operations fail."""

    pass


class MigrationCancelledError(MigrationError):
    """Raised when the user requested a stop.

    Always propagates out of the executor; checkpoints are left in place.
    """

    def __init__(self, message: str = "Migration force stopped by user."):
        super().__init__(message)


class WorkerDeploymentError(MigrationError):
    """Raised when the cloud worker cannot be deployed or never becomes ready.

    Callers treat this as "cloud proxy unavailable" and fall back to local transfer.
    """

    pass


class WorkerExecutionError(MigrationError):
    """Raised when a cloud worker execution fails or reports ``success: false``."""

    pass


class TransferError(MigrationError):
    """Raised when a binary payload cannot be transferred to the destination."""

    pass
