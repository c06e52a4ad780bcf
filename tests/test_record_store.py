"""
Tests for the user record store.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from avc.exceptions import ConflictError, RecordNotFoundError, ValidationError
from avc.records.store import UserRecordStore
from avc.types import UserRecord


@pytest.fixture
async def record_store(temp_dir: Path) -> UserRecordStore:
    """Create an initialized record store for testing."""
    store = UserRecordStore(temp_dir / "db" / "users.db")
    await store.init()
    yield store
    await store.close()


def make_record(user_id: str = "1", **kwargs: str | None) -> UserRecord:
    """Create a test record."""
    return UserRecord(user_id=user_id, **kwargs)


class TestRecordStoreBasics:
    """Test lookup, create and update."""

    @pytest.mark.asyncio
    async def test_create_and_find(self, record_store: UserRecordStore) -> None:
        """Test storing and retrieving a record."""
        record = make_record(email="george.bluth@reqres.in", first_name="George")
        await record_store.create(record)

        found = await record_store.find_by_user_id("1")

        assert found is not None
        assert found.record_id == record.record_id
        assert found.record_id.startswith("usr_")
        assert found.email == "george.bluth@reqres.in"
        assert found.first_name == "George"
        assert found.avatar_url is None
        assert found.created_at == record.created_at

    @pytest.mark.asyncio
    async def test_find_missing_returns_none(self, record_store: UserRecordStore) -> None:
        """Test that an unknown user id yields None."""
        assert await record_store.find_by_user_id("nope") is None

    @pytest.mark.asyncio
    async def test_create_duplicate_raises_conflict(
        self, record_store: UserRecordStore
    ) -> None:
        """Test that a second create for the same id is rejected."""
        await record_store.create(make_record())

        with pytest.raises(ConflictError) as exc_info:
            await record_store.create(make_record())

        assert exc_info.value.context["user_id"] == "1"
        assert await record_store.count() == 1

    @pytest.mark.asyncio
    async def test_update_persists_avatar_fields(
        self, record_store: UserRecordStore
    ) -> None:
        """Test that update writes all avatar fields."""
        record = await record_store.create(make_record())
        record.set_avatar("http://x/a.jpg", "900150983cd24fb0d6963f7d28e17f72", "/a/9001.jpg")
        before = record.updated_at

        await record_store.update(record)
        found = await record_store.find_by_user_id("1")

        assert found is not None
        assert found.avatar_url == "http://x/a.jpg"
        assert found.content_hash == "900150983cd24fb0d6963f7d28e17f72"
        assert found.avatar_file_path == "/a/9001.jpg"
        assert found.updated_at >= before

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, record_store: UserRecordStore) -> None:
        """Test that updating a record that was never stored fails."""
        with pytest.raises(RecordNotFoundError):
            await record_store.update(make_record("ghost"))

    @pytest.mark.asyncio
    async def test_clear_avatar_persists_nulls(self, record_store: UserRecordStore) -> None:
        """Test that clearing avatar fields writes them all back as NULL."""
        record = make_record(avatar_url="u", content_hash="h", avatar_file_path="p")
        await record_store.create(record)

        record.clear_avatar()
        await record_store.update(record)
        found = await record_store.find_by_user_id("1")

        assert found is not None
        assert (found.avatar_url, found.content_hash, found.avatar_file_path) == (None, None, None)


class TestRecordStoreInvariants:
    """Test rejection of half-populated avatar fields."""

    @pytest.mark.asyncio
    async def test_create_rejects_hash_without_path(
        self, record_store: UserRecordStore
    ) -> None:
        """Test that content_hash without avatar_file_path is rejected."""
        with pytest.raises(ValidationError):
            await record_store.create(make_record(content_hash="h"))

        assert await record_store.count() == 0

    @pytest.mark.asyncio
    async def test_update_rejects_path_without_hash(
        self, record_store: UserRecordStore
    ) -> None:
        """Test that avatar_file_path without content_hash is rejected."""
        record = await record_store.create(make_record())
        record.avatar_file_path = "/a/b.jpg"

        with pytest.raises(ValidationError):
            await record_store.update(record)


class TestRecordStoreUpsert:
    """Test upsert with conflict detection."""

    @pytest.mark.asyncio
    async def test_upsert_creates_when_absent(self, record_store: UserRecordStore) -> None:
        """Test that upsert creates a new record."""
        record, created = await record_store.upsert(
            make_record(avatar_url="u", content_hash="h", avatar_file_path="p")
        )

        assert created is True
        assert record.user_id == "1"
        assert await record_store.count() == 1

    @pytest.mark.asyncio
    async def test_upsert_updates_existing(self, record_store: UserRecordStore) -> None:
        """Test that upsert keeps the existing record and merges avatar fields."""
        original = await record_store.create(make_record(email="george.bluth@reqres.in"))

        record, created = await record_store.upsert(
            make_record(avatar_url="u", content_hash="h", avatar_file_path="p")
        )

        assert created is False
        assert record.record_id == original.record_id
        assert record.email == "george.bluth@reqres.in"
        assert record.content_hash == "h"
        assert await record_store.count() == 1

    @pytest.mark.asyncio
    async def test_count_by_content_hash(self, record_store: UserRecordStore) -> None:
        """Test counting records that share a blob."""
        await record_store.create(make_record("1", avatar_url="u", content_hash="h", avatar_file_path="p"))
        await record_store.create(make_record("2", avatar_url="u", content_hash="h", avatar_file_path="p"))
        await record_store.create(make_record("3"))

        assert await record_store.count_by_content_hash("h") == 2
        assert await record_store.count_by_content_hash("other") == 0
        assert await record_store.count_by_content_hash(None) == 0


class TestRecordStoreLifecycle:
    """Test init/close behavior."""

    @pytest.mark.asyncio
    async def test_uninitialized_store_raises(self, temp_dir: Path) -> None:
        """Test that using the store before init fails loudly."""
        store = UserRecordStore(temp_dir / "users.db")

        with pytest.raises(RuntimeError):
            await store.find_by_user_id("1")

    @pytest.mark.asyncio
    async def test_records_survive_reopen(self, temp_dir: Path) -> None:
        """Test that records are persisted to disk."""
        db_path = temp_dir / "users.db"
        store = UserRecordStore(db_path)
        await store.init()
        await store.create(make_record(email="a@b.c"))
        await store.close()

        reopened = UserRecordStore(db_path)
        await reopened.init()
        found = await reopened.find_by_user_id("1")
        await reopened.close()

        assert found is not None
        assert found.email == "a@b.c"
