"""
Client for the remote profile provider.

Fetches user profiles from `{base_url}/api/users/{user_id}` and raw avatar
bytes from the URL the profile points at. Every request carries a bounded
timeout; nothing is retried here.
"""

from __future__ import annotations

from typing import Any

import httpx
import orjson

from avc.config import get_settings
from avc.exceptions import RemoteNotFoundError, RemoteUnavailableError
from avc.logging import get_logger
from avc.types import RemoteProfile

logger = get_logger(__name__)


class RemoteProfileClient:
    """Read-only client for the remote profile provider."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the profile client.

        Args:
            base_url: Provider base URL. If None, read from settings.
            api_key: Provider API key. If None, read from settings.
            timeout: Per-request timeout in seconds. If None, read from settings.
            client: Pre-built HTTP client (used in tests).
        """
        settings = get_settings()
        self.base_url = (base_url or settings.PROFILE_API_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.PROFILE_API_KEY
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["x-api-key"] = self.api_key
            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str) -> httpx.Response:
        """GET a URL, translating transport and HTTP failures.

        Raises:
            RemoteNotFoundError: On HTTP 404.
            RemoteUnavailableError: On any other failure.
        """
        client = await self._get_client()

        try:
            response = await client.get(url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 404:
                raise RemoteNotFoundError(
                    "Remote resource not found",
                    context={"url": url, "status_code": status_code},
                ) from e
            raise RemoteUnavailableError(
                f"Remote provider error: {status_code}",
                context={"url": url, "status_code": status_code},
            ) from e
        except httpx.TimeoutException as e:
            raise RemoteUnavailableError(
                "Remote request timed out",
                context={"url": url, "timeout": self.timeout},
            ) from e
        except httpx.RequestError as e:
            raise RemoteUnavailableError(
                f"Remote request failed: {e}",
                context={"url": url, "error": str(e)},
            ) from e

        return response

    async def fetch_profile(self, user_id: str) -> RemoteProfile:
        """Fetch a user's profile from the provider.

        Args:
            user_id: Identifier as supplied by the caller.

        Returns:
            Parsed profile, with the provider's id normalized to a string.

        Raises:
            RemoteNotFoundError: If the provider does not know the identifier.
            RemoteUnavailableError: On transport, HTTP or payload errors.
        """
        url = f"{self.base_url}/api/users/{user_id}"
        logger.info("Fetching remote profile", url=url)

        try:
            response = await self._get(url)
        except RemoteNotFoundError as e:
            raise RemoteNotFoundError(
                f"User {user_id} not found at profile provider",
                context={"user_id": user_id, **e.context},
            ) from e

        try:
            payload: Any = orjson.loads(response.content)
            return RemoteProfile.from_payload(payload["data"])
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise RemoteUnavailableError(
                "Malformed profile response",
                context={"url": url, "error": str(e)},
            ) from e

    async def fetch_bytes(self, url: str) -> bytes:
        """Fetch raw bytes from an arbitrary URL.

        Raises:
            RemoteUnavailableError: On any transport or HTTP failure.
        """
        logger.info("Fetching avatar bytes", url=url[:120])

        try:
            response = await self._get(url)
        except RemoteNotFoundError as e:
            raise RemoteUnavailableError(
                "Avatar URL returned 404",
                context=e.context,
            ) from e

        return response.content
