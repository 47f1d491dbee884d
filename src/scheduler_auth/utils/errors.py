"""Custom exceptions for the scheduler auth subsystem.

This module provides structured error handling with specific exception types
for the failures callers must be able to tell apart. All exceptions inherit
from SchedulerAuthError.

Validation and transport failures (wrong password, expired token, network
down) are deliberately absent: they are logged and reported as ``None`` or
``False`` by the operations that encounter them.
"""
from typing import Optional


class SchedulerAuthError(Exception):
    """Base exception for all scheduler auth errors.

    Attributes:
        message: Human-readable error description.
        provider: Optional identity provider related to the error.
    """

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        self.message = message
        self.provider = provider
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message, optionally including the provider."""
        if self.provider:
            return f"{self.message} (provider: {self.provider})"
        return self.message


class ConfigurationError(SchedulerAuthError):
    """Raised when an OAuth provider is not configured."""
    pass


class AuthenticationCancelledError(SchedulerAuthError):
    """Raised when the user closes the sign-in popup before it completes."""

    def __init__(self, provider: Optional[str] = None) -> None:
        super().__init__("Authentication cancelled", provider)


class PopupBlockedError(SchedulerAuthError):
    """Raised when the sign-in popup could not be opened."""

    def __init__(self, provider: Optional[str] = None) -> None:
        super().__init__(
            "Popup blocked. Please allow popups for this site.", provider
        )


class AuthenticationFailedError(SchedulerAuthError):
    """Raised when the provider rejects the sign-in or the code exchange fails."""
    pass


class RefreshTokenMissingError(SchedulerAuthError):
    """Raised when a refresh is requested but no refresh token is stored."""

    def __init__(self, provider: Optional[str] = None) -> None:
        super().__init__("No refresh token available", provider)


class TokenRefreshError(AuthenticationFailedError):
    """Raised when the provider refuses to refresh an access token."""

    def __init__(self, provider: Optional[str] = None) -> None:
        super().__init__("Failed to refresh token", provider)


def format_error(action: str, error: Exception) -> str:
    """Format an error message consistently.

    Args:
        action: The action that failed (e.g., "Login", "Calendar connection").
        error: The exception that occurred.

    Returns:
        Formatted error string.
    """
    if isinstance(error, SchedulerAuthError):
        return f"{action} failed: {error.message}"
    return f"{action} failed: {str(error)}"
