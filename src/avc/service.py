"""
Avatar cache service.

Composes the remote profile client, the content-addressable file store and
the user record store into lookup-or-fetch-and-cache and delete semantics.

Reads for the same user are coalesced into one in-flight fill, and every
fill or delete for a user runs under that user's lock. Different users are
served in parallel.
"""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator

from avc.concurrency import KeyedLock, SingleFlight
from avc.config import Settings, get_settings
from avc.data.profile_client import RemoteProfileClient
from avc.exceptions import AvatarNotFoundError, InconsistentStateError
from avc.logging import get_logger, log_context
from avc.records.store import UserRecordStore
from avc.storage.blob_store import ContentAddressableFileStore
from avc.types import RemoteProfile, UserRecord

logger = get_logger(__name__)


class AvatarCacheService:
    """Serves avatars from the local cache, filling it from the provider on a miss."""

    def __init__(
        self,
        records: UserRecordStore,
        blobs: ContentAddressableFileStore,
        remote: RemoteProfileClient,
    ) -> None:
        self.records = records
        self.blobs = blobs
        self.remote = remote
        self._flights: SingleFlight[str] = SingleFlight()
        self._locks = KeyedLock()
        self._blob_locks = KeyedLock()

    async def get_avatar_base64(self, user_id: str) -> str:
        """Return the user's avatar as base64 text.

        Raises:
            InconsistentStateError: If the record points at a missing file.
            RemoteNotFoundError: If the provider does not know the user.
            RemoteUnavailableError: If the provider cannot be reached.
        """
        return await self._flights.do(user_id, lambda: self._get_or_fill(user_id))

    async def _get_or_fill(self, user_id: str) -> str:
        with log_context(user_id=user_id, operation="get_avatar"):
            async with self._locks.hold(user_id):
                user = await self.records.find_by_user_id(user_id)

                if user is not None:
                    if user.avatar_file_path and await self.blobs.exists(user.avatar_file_path):
                        logger.info("Avatar cache hit")
                        data = await self.blobs.get(user.avatar_file_path)
                        return self.blobs.encode_base64(data)

                    if not user.avatar_url:
                        logger.info("User exists without avatar, fetching")
                        return await self._fill_existing(user)

                    logger.error(
                        "User exists but avatar file is missing",
                        avatar_file_path=user.avatar_file_path,
                    )
                    raise InconsistentStateError(
                        "User exists but avatar file is missing",
                        context={
                            "user_id": user_id,
                            "avatar_file_path": user.avatar_file_path,
                        },
                    )

                logger.info("User not found locally, fetching from provider")
                return await self._create_and_fill(user_id)

    async def _download(self, user_id: str) -> tuple[RemoteProfile, bytes]:
        profile = await self.remote.fetch_profile(user_id)
        data = await self.remote.fetch_bytes(profile.avatar_url)
        return profile, data

    async def _fill_existing(self, user: UserRecord) -> str:
        profile, data = await self._download(user.user_id)
        previous = (user.content_hash, user.avatar_file_path)
        content_hash = self.blobs.fingerprint(data)

        async with self._blob_locks.hold(content_hash):
            _, location = await self.blobs.put(data)
            user.set_avatar(profile.avatar_url, content_hash, location)
            await self.records.update(user)

        logger.info("Avatar saved for existing user", hash=content_hash)
        await self._release_replaced(previous, content_hash)
        return self.blobs.encode_base64(data)

    async def _create_and_fill(self, user_id: str) -> str:
        profile, data = await self._download(user_id)

        async with AsyncExitStack() as stack:
            if profile.user_id != user_id:
                logger.warning(
                    "Provider returned a different identifier",
                    remote_user_id=profile.user_id,
                )
                await stack.enter_async_context(self._locks.hold(profile.user_id))

            existing = await self.records.find_by_user_id(profile.user_id)
            previous = (
                (existing.content_hash, existing.avatar_file_path)
                if existing is not None
                else (None, None)
            )
            content_hash = self.blobs.fingerprint(data)

            async with self._blob_locks.hold(content_hash):
                _, location = await self.blobs.put(data)
                record = UserRecord(
                    user_id=profile.user_id,
                    avatar_url=profile.avatar_url,
                    content_hash=content_hash,
                    avatar_file_path=location,
                )
                _, created = await self.records.upsert(record)

            logger.info(
                "Avatar saved for new user" if created else "Avatar saved for existing user",
                hash=content_hash,
            )
            await self._release_replaced(previous, content_hash)

        return self.blobs.encode_base64(data)

    async def _release_replaced(
        self, previous: tuple[str | None, str | None], content_hash: str
    ) -> None:
        old_hash, old_location = previous
        if old_hash is not None and old_location is not None and old_hash != content_hash:
            await self._release_blob(old_hash, old_location)

    async def _release_blob(self, content_hash: str, location: str) -> None:
        """Delete a blob once no record references its fingerprint.

        Runs under the fingerprint's lock, which fills hold from `put` until
        their record is written, so a blob is never removed between a fill
        finding it on disk and committing a reference to it.
        """
        async with self._blob_locks.hold(content_hash):
            references = await self.records.count_by_content_hash(content_hash)
            if references > 0:
                logger.info("Avatar file still referenced, keeping it", references=references)
            elif await self.blobs.delete(location):
                logger.info("Deleted avatar file", avatar_file_path=location)
            else:
                logger.warning("Avatar file already missing", avatar_file_path=location)

    async def delete_avatar(self, user_id: str) -> None:
        """Delete the user's cached avatar and clear the record's avatar fields.

        Raises:
            AvatarNotFoundError: If the user or their avatar does not exist.
        """
        with log_context(user_id=user_id, operation="delete_avatar"):
            async with self._locks.hold(user_id):
                user = await self.records.find_by_user_id(user_id)

                if user is None or not user.avatar_file_path:
                    raise AvatarNotFoundError(
                        "Avatar not found for this user",
                        context={"user_id": user_id},
                    )

                content_hash, location = user.content_hash, user.avatar_file_path
                user.clear_avatar()
                await self.records.update(user)
                logger.info("Avatar entry removed from user record")

                if content_hash is not None:
                    await self._release_blob(content_hash, location)

    async def create_user(
        self,
        user_id: str,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> UserRecord:
        """Create a user record without an avatar.

        Raises:
            ConflictError: If the user already exists.
        """
        with log_context(user_id=user_id, operation="create_user"):
            async with self._locks.hold(user_id):
                record = UserRecord(
                    user_id=user_id,
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                )
                return await self.records.create(record)

    async def get_user(self, user_id: str) -> UserRecord | None:
        """Look up the local record for a user."""
        return await self.records.find_by_user_id(user_id)

    async def get_remote_profile(self, user_id: str) -> RemoteProfile:
        """Fetch the user's profile straight from the provider."""
        with log_context(user_id=user_id, operation="get_profile"):
            return await self.remote.fetch_profile(user_id)


@asynccontextmanager
async def open_service(settings: Settings | None = None) -> AsyncIterator[AvatarCacheService]:
    """Build an AvatarCacheService from settings and release it on exit."""
    settings = settings or get_settings()
    settings.ensure_directories()

    records = UserRecordStore(settings.db_path)
    blobs = ContentAddressableFileStore(settings.avatar_dir, extension=settings.AVATAR_EXTENSION)
    remote = RemoteProfileClient(
        base_url=settings.PROFILE_API_BASE_URL,
        api_key=settings.PROFILE_API_KEY,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )

    await records.init()
    try:
        yield AvatarCacheService(records, blobs, remote)
    finally:
        await remote.close()
        await records.close()
