"""
Data fetching package.

This package handles fetching data from external sources:
- Remote profile provider (profile JSON and avatar bytes)
"""

from avc.data.profile_client import RemoteProfileClient

__all__ = ["RemoteProfileClient"]
