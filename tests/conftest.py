"""
Pytest configuration and fixtures for response cache tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, AsyncGenerator, Generator
from unittest.mock import patch

import pytest
from tenacity import wait_none

from respcache.cache.handle import TABLE_NAME, StoreHandle
from respcache.cache.service import ResponseCache
from respcache.config import Settings, clear_settings_cache


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def fetch_row(handle: StoreHandle, key: str) -> Any:
    """Read the raw stored row for ``key``, or None."""
    db = await handle.acquire()
    async with db.execute(
        f"SELECT key, data, timestamp, expires_at FROM {TABLE_NAME} WHERE key = ?", (key,)
    ) as cursor:
        return await cursor.fetchone()


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide environment variables for a cache under temp_dir."""
    env_vars = {
        "CACHE_DIR": str(temp_dir / "cache"),
        "CACHE_DB_NAME": "test_cache.db",
        "DEFAULT_TTL_SECONDS": "86400",
        "SWEEP_ON_OPEN": "false",
        "OPEN_RETRY_ATTEMPTS": "2",
        "BUSY_TIMEOUT_SECONDS": "1.0",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance loaded from the mock environment."""
    clear_settings_cache()
    from respcache.config import get_settings

    yield get_settings()
    clear_settings_cache()


@pytest.fixture
async def cache(mock_settings: Settings, clock: FakeClock) -> AsyncGenerator[ResponseCache, None]:
    """Provide a response cache driven by the fake clock."""
    response_cache = ResponseCache(mock_settings, clock=clock, retry_wait=wait_none())
    yield response_cache
    await response_cache.close()


@pytest.fixture
def blocked_db_path(temp_dir: Path) -> Path:
    """A database path whose parent directory is a regular file."""
    blocker = temp_dir / "not_a_directory"
    blocker.write_text("occupied")
    return blocker / "cache.db"


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
