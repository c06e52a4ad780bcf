"""
User record store backed by SQLite.

A keyed store for UserRecord rows: lookup by user_id, create, and
field-level update. Callers never see SQL; the database is an
implementation detail of this module.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

import aiosqlite

from avc.exceptions import ConflictError, RecordNotFoundError, ValidationError
from avc.logging import get_logger
from avc.types import UserRecord, utc_now

logger = get_logger(__name__)


class UserRecordStore:
    """Persistent store for user records keyed by user_id."""

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the record store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open the database and create the schema. Safe to call multiple times."""
        if self._db is not None:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row

        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                record_id TEXT NOT NULL UNIQUE,
                email TEXT,
                first_name TEXT,
                last_name TEXT,
                avatar_url TEXT,
                content_hash TEXT,
                avatar_file_path TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await self._db.execute(
            "CREATE INDEX IF NOT EXISTS idx_users_hash ON users(content_hash)"
        )
        await self._db.commit()
        logger.info("User record store initialized", db_path=str(self.db_path))

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if not self._db:
            raise RuntimeError("UserRecordStore not initialized. Call init() first.")
        return self._db

    @staticmethod
    def _check_invariants(record: UserRecord) -> None:
        if not record.avatar_fields_consistent():
            raise ValidationError(
                "content_hash and avatar_file_path must be set together",
                context={
                    "user_id": record.user_id,
                    "field": ("content_hash", "avatar_file_path"),
                },
            )

    async def find_by_user_id(self, user_id: str) -> UserRecord | None:
        """Look up a record by user_id.

        Returns:
            The record, or None if there is none.
        """
        async with self._conn().execute(
            "SELECT * FROM users WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return None

        return self._row_to_record(row)

    async def create(self, record: UserRecord) -> UserRecord:
        """Insert a new record.

        Raises:
            ConflictError: If a record with this user_id already exists.
            ValidationError: If the avatar fields are inconsistent.
        """
        self._check_invariants(record)
        db = self._conn()

        try:
            await db.execute(
                """
                INSERT INTO users (
                    user_id, record_id, email, first_name, last_name,
                    avatar_url, content_hash, avatar_file_path,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.user_id,
                    record.record_id,
                    record.email,
                    record.first_name,
                    record.last_name,
                    record.avatar_url,
                    record.content_hash,
                    record.avatar_file_path,
                    record.created_at.isoformat(),
                    record.updated_at.isoformat(),
                ),
            )
            await db.commit()
        except sqlite3.IntegrityError as e:
            await db.rollback()
            raise ConflictError(
                "User record already exists",
                context={"user_id": record.user_id},
            ) from e

        logger.info("Created user record", user_id=record.user_id)
        return record

    async def update(self, record: UserRecord) -> UserRecord:
        """Persist the mutable fields of an existing record in one statement.

        Raises:
            RecordNotFoundError: If the record no longer exists.
            ValidationError: If the avatar fields are inconsistent.
        """
        self._check_invariants(record)
        db = self._conn()
        updated_at = utc_now()

        cursor = await db.execute(
            """
            UPDATE users SET
                email = ?, first_name = ?, last_name = ?,
                avatar_url = ?, content_hash = ?, avatar_file_path = ?,
                updated_at = ?
            WHERE user_id = ?
            """,
            (
                record.email,
                record.first_name,
                record.last_name,
                record.avatar_url,
                record.content_hash,
                record.avatar_file_path,
                updated_at.isoformat(),
                record.user_id,
            ),
        )
        await db.commit()

        if cursor.rowcount == 0:
            raise RecordNotFoundError(
                "User record not found",
                context={"user_id": record.user_id},
            )

        record.updated_at = updated_at
        logger.debug("Updated user record", user_id=record.user_id)
        return record

    async def upsert(self, record: UserRecord) -> tuple[UserRecord, bool]:
        """Create the record, or merge its avatar fields into an existing one.

        Returns:
            Tuple of (stored record, created flag).
        """
        try:
            return await self.create(record), True
        except ConflictError:
            existing = await self.find_by_user_id(record.user_id)
            if existing is None:
                raise
            logger.warning(
                "User record already existed, updating avatar fields instead",
                user_id=record.user_id,
            )

        if record.has_avatar:
            existing.avatar_url = record.avatar_url
            existing.content_hash = record.content_hash
            existing.avatar_file_path = record.avatar_file_path
        return await self.update(existing), False

    async def count_by_content_hash(self, content_hash: str | None) -> int:
        """Count records that reference the blob with this fingerprint."""
        if content_hash is None:
            return 0
        async with self._conn().execute(
            "SELECT COUNT(*) FROM users WHERE content_hash = ?", (content_hash,)
        ) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def count(self) -> int:
        """Get total count of user records."""
        async with self._conn().execute("SELECT COUNT(*) FROM users") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    def _row_to_record(self, row: aiosqlite.Row) -> UserRecord:
        """Convert a database row to a UserRecord."""
        return UserRecord(
            user_id=row["user_id"],
            record_id=row["record_id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            avatar_url=row["avatar_url"],
            content_hash=row["content_hash"],
            avatar_file_path=row["avatar_file_path"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
