"""
Tests for the content-addressable file store.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from avc.exceptions import BlobNotFoundError, NotFoundError
from avc.storage.blob_store import ContentAddressableFileStore


@pytest.fixture
def blob_store(temp_dir: Path) -> ContentAddressableFileStore:
    """Create a file store rooted in a not-yet-existing directory."""
    return ContentAddressableFileStore(temp_dir / "avatars")


class TestBlobStorePut:
    """Test storing blobs."""

    @pytest.mark.asyncio
    async def test_put_returns_md5_and_location(
        self, blob_store: ContentAddressableFileStore, temp_dir: Path
    ) -> None:
        """Test fingerprint and location of a known payload."""
        content_hash, location = await blob_store.put(b"abc")

        assert content_hash == "900150983cd24fb0d6963f7d28e17f72"
        assert location == str(temp_dir / "avatars" / f"{content_hash}.jpg")
        assert Path(location).read_bytes() == b"abc"

    @pytest.mark.asyncio
    async def test_directory_created_on_first_use(
        self, blob_store: ContentAddressableFileStore
    ) -> None:
        """Test that the backing directory appears only once something is stored."""
        assert not blob_store.avatar_dir.exists()

        await blob_store.put(b"first")

        assert blob_store.avatar_dir.is_dir()

    @pytest.mark.asyncio
    async def test_put_is_idempotent(self, blob_store: ContentAddressableFileStore) -> None:
        """Test that identical bytes map to one file."""
        first = await blob_store.put(b"same bytes")
        mtime = Path(first[1]).stat().st_mtime_ns

        second = await blob_store.put(b"same bytes")

        assert first == second
        assert Path(second[1]).stat().st_mtime_ns == mtime
        assert len(list(blob_store.avatar_dir.iterdir())) == 1

    @pytest.mark.asyncio
    async def test_different_content_different_blobs(
        self, blob_store: ContentAddressableFileStore
    ) -> None:
        """Test that different content creates different files."""
        hash_a, loc_a = await blob_store.put(b"Content A")
        hash_b, loc_b = await blob_store.put(b"Content B")

        assert hash_a != hash_b
        assert loc_a != loc_b
        assert hash_a == hashlib.md5(b"Content A").hexdigest()

    @pytest.mark.asyncio
    async def test_no_temporary_files_left(self, blob_store: ContentAddressableFileStore) -> None:
        """Test that only the final blob remains after a write."""
        await blob_store.put(b"payload")

        names = [p.name for p in blob_store.avatar_dir.iterdir()]
        assert all(not name.endswith(".tmp") for name in names)

    @pytest.mark.asyncio
    async def test_custom_extension(self, temp_dir: Path) -> None:
        """Test that the configured extension is used for file names."""
        store = ContentAddressableFileStore(temp_dir / "png", extension=".png")

        _, location = await store.put(b"abc")

        assert location.endswith("900150983cd24fb0d6963f7d28e17f72.png")


class TestBlobStoreReadDelete:
    """Test reading, existence checks and deletion."""

    @pytest.mark.asyncio
    async def test_get_roundtrip(self, blob_store: ContentAddressableFileStore) -> None:
        """Test that stored bytes come back unchanged."""
        _, location = await blob_store.put(b"\x89PNG\r\n")

        assert await blob_store.get(location) == b"\x89PNG\r\n"

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, blob_store: ContentAddressableFileStore) -> None:
        """Test that reading a missing location raises BlobNotFoundError."""
        location = blob_store.location_for("0" * 32)

        with pytest.raises(BlobNotFoundError) as exc_info:
            await blob_store.get(location)

        assert isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.context["location"] == location

    @pytest.mark.asyncio
    async def test_exists(self, blob_store: ContentAddressableFileStore) -> None:
        """Test existence checks before and after storing."""
        location = blob_store.location_for(blob_store.fingerprint(b"x"))
        assert await blob_store.exists(location) is False

        await blob_store.put(b"x")
        assert await blob_store.exists(location) is True

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, blob_store: ContentAddressableFileStore) -> None:
        """Test that deleting twice does not raise."""
        _, location = await blob_store.put(b"to delete")

        assert await blob_store.delete(location) is True
        assert await blob_store.exists(location) is False
        assert await blob_store.delete(location) is False


class TestBase64:
    """Test the transport encoding."""

    def test_encode_base64(self) -> None:
        """Test standard base64 output."""
        assert ContentAddressableFileStore.encode_base64(b"abc") == "YWJj"
        assert ContentAddressableFileStore.encode_base64(b"") == ""
        assert ContentAddressableFileStore.encode_base64(b"\xff\xfe") == "//4="
