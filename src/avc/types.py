"""
Core types for the avatar cache.

This module defines the data structures shared by the stores, the remote
client and the service:
- UserRecord: mutable record persisted per user id
- RemoteProfile: immutable profile parsed from the provider envelope
- Helper functions for ID generation and timestamps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from uuid6 import uuid7


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "usr")

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass
class UserRecord:
    """A profile known to this service.

    The three avatar fields travel together: content_hash and
    avatar_file_path are both set or both None, and avatar_url is set
    whenever they are.
    """

    user_id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    content_hash: str | None = None
    avatar_file_path: str | None = None
    record_id: str = field(default_factory=lambda: generate_id("usr"))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def has_avatar(self) -> bool:
        """Whether the record references a cached avatar file."""
        return self.avatar_file_path is not None

    def avatar_fields_consistent(self) -> bool:
        """Check the pairing of content_hash and avatar_file_path."""
        return (self.content_hash is None) == (self.avatar_file_path is None)

    def set_avatar(self, avatar_url: str, content_hash: str, avatar_file_path: str) -> None:
        """Populate all avatar fields at once."""
        self.avatar_url = avatar_url
        self.content_hash = content_hash
        self.avatar_file_path = avatar_file_path

    def clear_avatar(self) -> None:
        """Clear all avatar fields at once."""
        self.avatar_url = None
        self.content_hash = None
        self.avatar_file_path = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display or serialization."""
        return {
            "record_id": self.record_id,
            "user_id": self.user_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "avatar_url": self.avatar_url,
            "content_hash": self.content_hash,
            "avatar_file_path": self.avatar_file_path,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class RemoteProfile:
    """Profile as reported by the remote provider.

    user_id is the provider's own identifier normalized to a string; it may
    differ in representation from the id that was requested.
    """

    user_id: str
    avatar_url: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> RemoteProfile:
        """Build a profile from the envelope's `data` object.

        Raises:
            KeyError: If `id` or `avatar` is missing.
            ValueError: If `id` is null or `avatar` is not a non-empty string.
        """
        user_id = data["id"]
        avatar_url = data["avatar"]
        if user_id is None:
            raise ValueError("Profile id is null")
        if not isinstance(avatar_url, str) or not avatar_url:
            raise ValueError(f"Profile avatar is not a URL: {avatar_url!r}")

        return cls(
            user_id=str(user_id),
            avatar_url=avatar_url,
            email=data.get("email"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )
