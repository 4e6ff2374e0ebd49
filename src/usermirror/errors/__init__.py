"""Custom exception hierarchy for usermirror."""

from __future__ import annotations


class UserMirrorError(Exception):
    """Base class for all custom errors raised by usermirror."""


# --- 3-layer hierarchy ---

class DomainError(UserMirrorError):
    """Base class for domain-level errors."""


class InfrastructureError(UserMirrorError):
    """Base class for infrastructure-level errors."""


class ApplicationError(UserMirrorError):
    """Base class for application-level errors."""


# --- Domain errors ---

class UserNotFoundError(DomainError):
    """Raised when the requested user is not in the local store."""


# --- Infrastructure errors ---

class StoreError(InfrastructureError):
    """Raised when a persistent store operation fails."""


class ConnectionPoolExhausted(StoreError):
    """Raised when no connections are available in the pool."""


class RemoteFetchError(InfrastructureError):
    """Raised when the remote user directory cannot be fetched or parsed."""


# --- Application errors ---

class SyncError(ApplicationError):
    """Raised when a refresh could not replace the local mirror.

    ``cause`` holds the underlying :class:`RemoteFetchError` or
    :class:`StoreError`; the message is the cause's message.
    """

    def __init__(self, cause: Exception) -> None:
        super().__init__(str(cause))
        self.cause = cause


# --- Settings errors ---

class SettingsError(UserMirrorError):
    """Base class for settings related failures."""


class SettingsLoadError(SettingsError):
    """Raised when the settings file cannot be parsed or loaded."""


class SettingsValidationError(SettingsError):
    """Raised when settings data fails schema validation."""
