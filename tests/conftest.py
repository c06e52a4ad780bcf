"""
Pytest configuration and fixtures for avatar cache tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Generator
from unittest.mock import patch

import httpx
import orjson
import pytest

from avc.config import Settings, clear_settings_cache

AVATAR_URL = "http://x/a.jpg"
BASE_URL = "https://profiles.test"


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "PROFILE_API_BASE_URL": BASE_URL + "/",
        "PROFILE_API_KEY": "test-profile-api-key-123456",
        "HTTP_TIMEOUT_SECONDS": "2.5",
        "CACHE_DIR": ".test_cache",
        "AVATAR_EXTENSION": ".JPG",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str], temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide a Settings instance with directories under temp_dir."""
    with patch.dict(os.environ, {"CACHE_DIR": str(temp_dir / "cache")}):
        clear_settings_cache()
        from avc.config import get_settings

        settings = get_settings()
        settings.ensure_directories()
        yield settings
        clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


class FakeProvider:
    """In-process stand-in for the remote profile provider.

    Serves `/api/users/{id}` from `profiles` and any other URL from
    `avatars`, counting every request by path.
    """

    def __init__(self) -> None:
        self.profiles: dict[str, dict[str, object]] = {
            "1": {
                "id": 1,
                "email": "george.bluth@reqres.in",
                "first_name": "George",
                "last_name": "Bluth",
                "avatar": AVATAR_URL,
            },
        }
        self.avatars: dict[str, bytes] = {AVATAR_URL: b"abc"}
        self.calls: list[str] = []
        self.fail_with: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)

        if self.fail_with is not None:
            return httpx.Response(self.fail_with)

        prefix = f"{BASE_URL}/api/users/"
        if url.startswith(prefix):
            profile = self.profiles.get(url[len(prefix):])
            if profile is None:
                return httpx.Response(404, content=b"{}")
            return httpx.Response(200, content=orjson.dumps({"data": profile}))

        if url in self.avatars:
            return httpx.Response(200, content=self.avatars[url])
        return httpx.Response(404)

    def profile_calls(self) -> int:
        return sum(1 for url in self.calls if "/api/users/" in url)

    def avatar_calls(self) -> int:
        return sum(1 for url in self.calls if "/api/users/" not in url)


@pytest.fixture
def provider() -> FakeProvider:
    """Provide a fake remote profile provider."""
    return FakeProvider()


@pytest.fixture
def http_client_factory(provider: FakeProvider) -> Callable[[], httpx.AsyncClient]:
    """Build HTTP clients routed to the fake provider."""
    def factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(provider.handler))

    return factory
