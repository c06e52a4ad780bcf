"""
Custom exception hierarchy for the avatar cache.

All exceptions inherit from AvatarCacheError, which provides optional context
for structured error handling and logging.

Remote failures live under RemoteError and are deliberately kept apart from
NotFoundError: "the provider does not know this user" is not the same
condition as "we have no local record or avatar for this user".
"""

from __future__ import annotations

from typing import Any


class AvatarCacheError(Exception):
    """Base exception for all avatar cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(AvatarCacheError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(AvatarCacheError):
    """Raised when a record would violate a data invariant.

    Context should include:
        - user_id: The record being written
        - field: The offending field(s)
    """

    pass


class NotFoundError(AvatarCacheError):
    """Raised when a local record or blob is absent where presence was required."""

    pass


class RecordNotFoundError(NotFoundError):
    """Raised when updating a user record that no longer exists."""

    pass


class BlobNotFoundError(NotFoundError):
    """Raised when reading a blob location that does not exist on disk."""

    pass


class AvatarNotFoundError(NotFoundError):
    """Raised when deleting the avatar of a user that has none."""

    pass


class ConflictError(AvatarCacheError):
    """Raised when creating a user record whose user_id already exists."""

    pass


class InconsistentStateError(AvatarCacheError):
    """Raised when a record references an avatar file that is missing.

    No repair is attempted. Context should include:
        - user_id: The affected user
        - avatar_file_path: The missing location
    """

    pass


class RemoteError(AvatarCacheError):
    """Base class for failures talking to the remote profile provider.

    Context should include:
        - url: The URL that was being fetched
        - status_code: HTTP status code if applicable
    """

    pass


class RemoteNotFoundError(RemoteError):
    """Raised when the remote provider reports the user identifier unknown."""

    pass


class RemoteUnavailableError(RemoteError):
    """Raised for any other transport, HTTP or payload failure."""

    pass
