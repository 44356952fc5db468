"""
Custom exception classes for the application.

Every exception carries the HTTP status it maps to at the request-handler
boundary and a message that is safe to show to end users.
"""

from typing import Any


class AppException(Exception):
    """Base exception for application errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            details: Additional error details (never sent to clients).
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class InvalidInputError(AppException):
    """Raised when request input is missing or malformed."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "INVALID_INPUT", details)


class InvalidCredentialsError(AppException):
    """Raised when an email/password pair does not authenticate.

    Subclasses record why, but all of them render the same message so a
    caller cannot tell an unknown email from a wrong password.
    """

    status_code = 401
    reason = "invalid_credentials"

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__("Invalid email or password", "INVALID_CREDENTIALS", details)


class UnknownAccountError(InvalidCredentialsError):
    reason = "account_not_found"


class ProfileMissingError(InvalidCredentialsError):
    reason = "profile_missing"


class NoSecretConfiguredError(InvalidCredentialsError):
    reason = "no_secret_configured"


class SecretMismatchError(InvalidCredentialsError):
    reason = "secret_mismatch"


class UnauthorizedError(AppException):
    """Raised when a bearer token is missing or fails verification."""

    status_code = 401

    def __init__(
        self,
        message: str = "Unauthorized",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "UNAUTHORIZED", details)


class NotFoundError(AppException):
    """Raised when a profile record does not exist."""

    status_code = 404

    def __init__(
        self,
        message: str = "User not found",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "NOT_FOUND", details)


class ConflictError(AppException):
    """Raised when registering an email that already has an account."""

    status_code = 400

    def __init__(
        self,
        message: str = "Email already registered",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "CONFLICT", details)


class PasswordResetError(AppException):
    """Raised when a password reset link cannot be produced."""

    status_code = 400

    def __init__(
        self,
        message: str = "Failed to send reset email",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "PASSWORD_RESET_FAILED", details)


class ProviderError(AppException):
    """Raised when the identity provider or document store call fails."""

    status_code = 500

    def __init__(
        self,
        message: str = "Identity provider request failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "PROVIDER_ERROR", details)


class ProviderConfigError(ProviderError):
    """Raised when the provider rejects the server's own credentials."""

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__("Server authentication error", details)
        self.code = "PROVIDER_CONFIG_ERROR"


class AuthenticationFailedError(AppException):
    """Generic failure of the login path (token mint, hash verification)."""

    status_code = 500

    def __init__(
        self,
        message: str = "Authentication failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "AUTHENTICATION_FAILED", details)
