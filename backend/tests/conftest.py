from contextlib import asynccontextmanager
from datetime import date

import pytest

from recall.db.sqlite import get_db, init_sqlite
from recall.services.llm_service import LLMUnavailableError


@pytest.fixture
def provider_down():
    return LLMUnavailableError("Perplexity API error: Service Unavailable")


@pytest.fixture
def today():
    return date(2026, 3, 10)


@pytest.fixture
def open_db(tmp_path):
    """Async context manager yielding a fresh SQLite connection under tmp_path."""

    @asynccontextmanager
    async def _open():
        await init_sqlite(tmp_path)
        async for db in get_db():
            yield db

    return _open
