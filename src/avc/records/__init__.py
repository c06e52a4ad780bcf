"""
User record persistence package.

Provides UserRecordStore, a SQLite-backed keyed store for user records.
"""

from avc.records.store import UserRecordStore

__all__ = ["UserRecordStore"]
