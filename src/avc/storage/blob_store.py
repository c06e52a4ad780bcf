"""
Content-addressable file store for avatar bytes.

Blobs live as flat files under the avatar directory, named by the MD5 hex
digest of their bytes plus a fixed image extension:

    {avatar_dir}/{md5}.{extension}

Because the name is derived from the bytes, identical content always maps
to the same file and a second put of the same bytes is a no-op.
"""

from __future__ import annotations

import base64
import hashlib
import os
from pathlib import Path

from avc.exceptions import BlobNotFoundError
from avc.logging import get_logger
from avc.types import generate_id

logger = get_logger(__name__)


class ContentAddressableFileStore:
    """Stores opaque byte blobs keyed by their content fingerprint.

    The backing directory is created on first use.
    """

    def __init__(self, avatar_dir: str | Path, extension: str = "jpg") -> None:
        """Initialize the file store.

        Args:
            avatar_dir: Directory that holds the blob files.
            extension: File extension appended to every fingerprint.
        """
        self.avatar_dir = Path(avatar_dir)
        self.extension = extension.lstrip(".")
        self._initialized = False

    def init(self) -> None:
        """Create the backing directory. Safe to call multiple times."""
        if self._initialized:
            return
        if not self.avatar_dir.exists():
            self.avatar_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created avatar directory", avatar_dir=str(self.avatar_dir))
        self._initialized = True

    @staticmethod
    def fingerprint(data: bytes) -> str:
        """128-bit MD5 digest of the data, hex-encoded."""
        return hashlib.md5(data).hexdigest()

    @staticmethod
    def encode_base64(data: bytes) -> str:
        """Standard base64 text encoding of the data."""
        return base64.b64encode(data).decode("ascii")

    def location_for(self, fingerprint: str) -> str:
        """Deterministic location of the blob for a fingerprint."""
        return str(self.avatar_dir / f"{fingerprint}.{self.extension}")

    async def put(self, data: bytes) -> tuple[str, str]:
        """Store data under its fingerprint if not already present.

        The bytes are written to a temporary sibling file and renamed into
        place, so a concurrent reader sees either nothing or the full blob.

        Returns:
            Tuple of (fingerprint, location).
        """
        self.init()

        content_hash = self.fingerprint(data)
        location = self.location_for(content_hash)
        blob_path = Path(location)

        if blob_path.exists():
            logger.debug("Blob already stored", hash=content_hash[:12])
            return content_hash, location

        tmp_path = blob_path.with_name(f".{blob_path.name}.{generate_id()}.tmp")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, blob_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

        logger.debug("Stored blob", hash=content_hash[:12], size=len(data))
        return content_hash, location

    async def get(self, location: str) -> bytes:
        """Return the bytes stored at location.

        Raises:
            BlobNotFoundError: If nothing is stored there.
        """
        blob_path = Path(location)
        try:
            return blob_path.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFoundError(
                "Blob not found",
                context={"location": location},
            ) from e

    async def exists(self, location: str) -> bool:
        """Check whether a blob is stored at location."""
        try:
            return Path(location).is_file()
        except OSError:
            return False

    async def delete(self, location: str) -> bool:
        """Remove the blob at location.

        Returns:
            True if a file was removed, False if it was already gone.
        """
        try:
            Path(location).unlink()
        except FileNotFoundError:
            return False

        logger.debug("Deleted blob", location=location)
        return True
