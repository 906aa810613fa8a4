"""Shared fixtures for the Tocik backend tests.

- `now`: a fixed UTC timestamp every scheduler test runs against
- `make_card`: builds Flashcard values without touching the database
- `db`: an initialised SQLite connection in a temporary data dir
- `client` / `clock`: FastAPI TestClient with a controllable server clock
"""

from collections.abc import AsyncIterator, Iterator
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from tocik.config import settings
from tocik.db.sqlite import get_db, init_sqlite
from tocik.models.flashcard import Flashcard


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def make_card(now):
    """Factory for Flashcard values with sensible defaults."""

    def _make(**overrides) -> Flashcard:
        fields = {
            "id": "card-1",
            "deck_id": "deck-1",
            "question": "光合作用的产物是什么？",
            "answer": "葡萄糖和氧气",
            "hint": "",
            "explanation": "",
            "difficulty": "medium",
            "card_type": "basic",
            "tags": [],
            "options": [],
            "interval": 1,
            "ease_factor": 2.5,
            "repetition_count": 0,
            "next_review_date": now,
            "last_review_date": None,
            "review_count": 0,
            "correct_count": 0,
            "created_at": "2024-01-01 00:00:00",
            "updated_at": "2024-01-01 00:00:00",
        }
        fields.update(overrides)
        return Flashcard(**fields)

    return _make


@pytest_asyncio.fixture
async def db(tmp_path: Path) -> AsyncIterator[aiosqlite.Connection]:
    await init_sqlite(tmp_path)
    async for conn in get_db():
        yield conn


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock(now, monkeypatch) -> FrozenClock:
    """Replace the server clock used by the routers."""
    from tocik.routers import decks, quiz

    frozen = FrozenClock(now)
    monkeypatch.setattr(quiz, "_utcnow", frozen)
    monkeypatch.setattr(decks, "_utcnow", frozen)
    return frozen


@pytest.fixture
def client(tmp_path: Path, monkeypatch, clock) -> Iterator[TestClient]:
    monkeypatch.setattr(settings, "tocik_data_dir", tmp_path / "data")
    from tocik import app

    with TestClient(app) as test_client:
        yield test_client
