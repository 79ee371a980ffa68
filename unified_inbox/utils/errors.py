"""
Centralized error hierarchy for the unified inbox.

This module provides a base exception class and specific error types
for different parts of the application, along with a helper for converting
technical errors to user-friendly messages.
"""
from typing import Any, Dict, Optional, Union


class InboxError(Exception):
    """
    Base exception class for all unified inbox errors.

    All application-specific exceptions inherit from this class so callers
    at the edge of the core can catch one type and turn it into UI state.
    """
    pass


class AuthenticationError(InboxError):
    """Raised when a provider rejects the access token; the account must be reconnected."""
    pass


class TokenRefreshError(AuthenticationError):
    """Raised when an OAuth token refresh fails."""
    pass


class OAuthError(InboxError):
    """Raised when the OAuth authorization flow fails."""
    pass


class TransportError(InboxError):
    """Raised when a network call fails before a response is received."""
    pass


class ProviderError(InboxError):
    """Raised when a provider API answers with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(InboxError):
    """Raised when the AI endpoint reports that the usage limit was reached."""

    def __init__(self, message: str, usage: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.usage = usage or {}


class HandoffError(InboxError):
    """Raised when the AI endpoint fails or returns an unusable answer."""
    pass


class HandoffTimeoutError(HandoffError):
    """Raised when the AI endpoint does not answer within the timeout."""
    pass


class AccountError(InboxError):
    """Raised when account selection or connection management fails."""
    pass


class FolderError(InboxError):
    """Raised when a canonical folder cannot be resolved."""
    pass


class StorageError(InboxError):
    """Raised when a persistence operation fails."""
    pass


class DecryptionError(StorageError):
    """Raised when stored secrets cannot be decrypted."""
    pass


class KnowledgeUploadError(InboxError):
    """Raised when a knowledge document is rejected."""
    pass


def is_reconnect_required(exc: BaseException) -> bool:
    """Return True when the error means the user has to reconnect the account."""
    return isinstance(exc, AuthenticationError)


def human_friendly_message(exc: Union[InboxError, Exception]) -> str:
    """
    Convert technical error exceptions to user-friendly messages.

    Args:
        exc: The exception to convert.

    Returns:
        A user-friendly error message string.
    """
    error_msg = str(exc) if str(exc) else ""

    if isinstance(exc, TokenRefreshError):
        return (
            "Your account session has expired and could not be renewed. "
            "Please reconnect this account."
        )
    if isinstance(exc, AuthenticationError):
        return "Your account access is no longer valid. Please reconnect this account."
    if isinstance(exc, OAuthError):
        return "The account connection could not be completed. Please try connecting again."
    if isinstance(exc, RateLimitError):
        return error_msg or "You have reached the usage limit. Please try again later."
    if isinstance(exc, HandoffTimeoutError):
        return "The assistant did not answer in time. Please try again."
    if isinstance(exc, HandoffError):
        return "The assistant could not process this request. Please try again."
    if isinstance(exc, TransportError):
        if "timeout" in error_msg.lower() or "timed out" in error_msg.lower():
            return "The mail server took too long to answer. Please try again."
        return "Could not reach the mail server. Please check your internet connection and retry."
    if isinstance(exc, ProviderError):
        if exc.status_code == 429:
            return "The mail service is throttling requests. Please wait a moment and retry."
        if exc.status_code is not None and exc.status_code >= 500:
            return "The mail service is temporarily unavailable. Please retry later."
        return "The mail service rejected the request. Please retry."
    if isinstance(exc, DecryptionError):
        return (
            "Stored account credentials could not be read. "
            "You may need to remove and reconnect your accounts."
        )
    if isinstance(exc, StorageError):
        return "Local data could not be saved or loaded."
    if isinstance(exc, KnowledgeUploadError):
        return error_msg or "This document cannot be uploaded."
    if isinstance(exc, AccountError):
        if "not found" in error_msg.lower():
            return "The requested account could not be found."
        return error_msg or "An account error occurred."
    if isinstance(exc, FolderError):
        return error_msg or "This folder is not available for the account."

    return "An unexpected error occurred. Please try again."
