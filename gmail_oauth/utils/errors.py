"""Exception hierarchy for the Gmail OAuth server.

Every error raised by the server's own code derives from ``GmailOAuthError``
so route handlers can turn any of them into a JSON error envelope. Each
class carries the HTTP status it maps to.
"""

from __future__ import annotations


class GmailOAuthError(Exception):
    """Base exception for all Gmail OAuth server errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
        status_code: HTTP status the error is reported with.
    """

    status_code = 500

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class AuthenticationError(GmailOAuthError):
    """Raised when a caller has no session or the provider rejects the token.

    Examples:
        - No authenticated caller in the HTTP session
        - OAuth authorization code is invalid or expired
        - User denied OAuth consent
        - Google answered 401 for the access token
    """

    status_code = 401


class TokenError(AuthenticationError):
    """Raised for token encryption, decryption, or refresh failures.

    Examples:
        - Session blob could not be decrypted
        - Token refresh failed due to revoked access
        - Access token is known to be expired and there is no refresh token
    """

    pass


class AuthorizationError(GmailOAuthError):
    """Raised when a token is valid but not allowed to touch a mailbox.

    Used by the delegated-access routes: a missing grant, a provider
    rejection, or a grant that could not be verified all fail closed here.
    """

    status_code = 401


class NotFoundError(GmailOAuthError):
    """Raised when a message, thread or stored credential does not exist."""

    status_code = 404


class PersistenceError(GmailOAuthError):
    """Raised when the credential file cannot be read or written.

    A missing file is never a persistence error; unreadable or corrupt
    content and filesystem failures are.
    """

    pass


class GmailAPIError(GmailOAuthError):
    """Exception raised for errors from Gmail API calls.

    This exception wraps errors returned by the Gmail API, providing
    structured access to error codes and response data.

    Attributes:
        api_status: HTTP status code from the API response.
        error_code: Gmail API-specific error code, if available.
    """

    def __init__(
        self,
        message: str,
        api_status: int | None = None,
        error_code: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the Gmail API error exception.

        Args:
            message: Human-readable error description.
            api_status: HTTP status code from the API response.
            error_code: Gmail API-specific error code, if available.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.api_status = api_status
        self.error_code = error_code


class ValidationError(GmailOAuthError):
    """Exception raised for input validation errors.

    This exception is raised when input data fails validation checks,
    such as invalid email addresses, malformed parameters, or missing
    required fields.

    Attributes:
        field: The name of the field that failed validation, if applicable.
    """

    status_code = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the validation error exception.

        Args:
            message: Human-readable error description.
            field: The name of the field that failed validation.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.field = field


__all__ = [
    "GmailOAuthError",
    "AuthenticationError",
    "TokenError",
    "AuthorizationError",
    "NotFoundError",
    "PersistenceError",
    "GmailAPIError",
    "ValidationError",
]
