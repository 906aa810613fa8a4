import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from tocik.config import settings
from tocik.models.deck import Deck, DeckCreate, DeckUpdate
from tocik.models.flashcard import (
    Flashcard,
    FlashcardCreate,
    FlashcardUpdate,
    ReviewLogEntry,
    SchedulingState,
)

_db_path: Path | None = None

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS decks (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    description TEXT DEFAULT '',
    color_hex   TEXT DEFAULT '#4A90E2',
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS flashcards (
    id               TEXT PRIMARY KEY,
    deck_id          TEXT NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
    question         TEXT NOT NULL,
    answer           TEXT NOT NULL,
    hint             TEXT DEFAULT '',
    explanation      TEXT DEFAULT '',
    difficulty       TEXT DEFAULT 'medium',
    card_type        TEXT DEFAULT 'basic',
    tags             TEXT DEFAULT '',
    options          TEXT DEFAULT '[]',
    interval         INTEGER DEFAULT 1,
    ease_factor      REAL DEFAULT 2.5,
    repetition_count INTEGER DEFAULT 0,
    next_review_date TEXT NOT NULL,
    last_review_date TEXT,
    review_count     INTEGER DEFAULT 0,
    correct_count    INTEGER DEFAULT 0,
    created_at       TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at       TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_flashcards_deck ON flashcards(deck_id);
CREATE INDEX IF NOT EXISTS idx_flashcards_review ON flashcards(next_review_date);

CREATE TABLE IF NOT EXISTS review_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    card_id     TEXT NOT NULL REFERENCES flashcards(id) ON DELETE CASCADE,
    reviewed_at TEXT NOT NULL,
    remembered  INTEGER NOT NULL,
    interval    INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_review_log_card ON review_log(card_id, id);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""


async def init_sqlite(data_dir: Path) -> None:
    global _db_path
    _db_path = data_dir / settings.sqlite_filename
    async with aiosqlite.connect(_db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


async def get_db() -> AsyncIterator[aiosqlite.Connection]:
    assert _db_path is not None, "SQLite not initialized"
    async with aiosqlite.connect(_db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys=ON")
        yield db


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def to_iso(dt: datetime) -> str:
    """Fixed-width UTC ISO string, so stored dates compare correctly as text."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _split_tags(raw: str | None) -> list[str]:
    return [t for t in (raw or "").split(",") if t]


def _join_tags(tags: list[str]) -> str:
    return ",".join(t.strip() for t in tags if t.strip())


# --- Decks ---


def _row_to_deck(row: aiosqlite.Row) -> Deck:
    return Deck(**dict(row))


async def create_deck(db: aiosqlite.Connection, deck: DeckCreate) -> Deck:
    deck_id = str(uuid.uuid4())
    await db.execute(
        """INSERT INTO decks (id, name, description, color_hex, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        (deck_id, deck.name, deck.description, deck.color_hex, _now()),
    )
    await db.commit()
    return await get_deck(db, deck_id)  # type: ignore[return-value]


async def get_deck(db: aiosqlite.Connection, deck_id: str) -> Deck | None:
    cursor = await db.execute("SELECT * FROM decks WHERE id = ?", (deck_id,))
    row = await cursor.fetchone()
    if row is None:
        return None
    return _row_to_deck(row)


async def list_decks(
    db: aiosqlite.Connection, offset: int = 0, limit: int = 50
) -> tuple[list[Deck], int]:
    cursor = await db.execute("SELECT COUNT(*) FROM decks")
    total = (await cursor.fetchone())[0]

    cursor = await db.execute(
        "SELECT * FROM decks ORDER BY created_at DESC LIMIT ? OFFSET ?",
        (limit, offset),
    )
    rows = await cursor.fetchall()
    return [_row_to_deck(r) for r in rows], total


async def update_deck(
    db: aiosqlite.Connection, deck_id: str, updates: DeckUpdate
) -> Deck | None:
    fields = updates.model_dump(exclude_none=True)
    if not fields:
        return await get_deck(db, deck_id)

    set_clause = ", ".join(f"{k} = ?" for k in fields)
    values = list(fields.values()) + [deck_id]

    await db.execute(
        f"UPDATE decks SET {set_clause} WHERE id = ?",  # noqa: S608
        values,
    )
    await db.commit()
    return await get_deck(db, deck_id)


async def delete_deck(db: aiosqlite.Connection, deck_id: str) -> bool:
    cursor = await db.execute("DELETE FROM decks WHERE id = ?", (deck_id,))
    await db.commit()
    return (cursor.rowcount or 0) > 0


# --- Flashcards ---


def _row_to_flashcard(row: aiosqlite.Row) -> Flashcard:
    d = dict(row)
    d["tags"] = _split_tags(d["tags"])
    d["options"] = json.loads(d["options"] or "[]")
    return Flashcard(**d)


async def _insert_flashcard(
    db: aiosqlite.Connection, card: FlashcardCreate, state: SchedulingState
) -> str:
    card_id = str(uuid.uuid4())
    now = _now()
    await db.execute(
        """INSERT INTO flashcards
           (id, deck_id, question, answer, hint, explanation, difficulty,
            card_type, tags, options, interval, ease_factor, repetition_count,
            next_review_date, last_review_date, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            card_id,
            card.deck_id,
            card.question,
            card.answer,
            card.hint,
            card.explanation,
            card.difficulty.value,
            card.card_type.value,
            _join_tags(card.tags),
            json.dumps(card.options, ensure_ascii=False),
            state.interval,
            state.ease_factor,
            state.repetition_count,
            to_iso(state.next_review_date),
            to_iso(state.last_review_date) if state.last_review_date else None,
            now,
            now,
        ),
    )
    return card_id


async def create_flashcard(
    db: aiosqlite.Connection, card: FlashcardCreate, state: SchedulingState
) -> Flashcard:
    card_id = await _insert_flashcard(db, card, state)
    await db.commit()
    return await get_flashcard(db, card_id)  # type: ignore[return-value]


async def create_flashcards(
    db: aiosqlite.Connection, cards: list[FlashcardCreate], state: SchedulingState
) -> list[str]:
    """Insert a batch of cards sharing one initial state. All or nothing."""
    card_ids: list[str] = []
    try:
        for card in cards:
            card_ids.append(await _insert_flashcard(db, card, state))
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return card_ids


async def get_flashcard(db: aiosqlite.Connection, card_id: str) -> Flashcard | None:
    cursor = await db.execute("SELECT * FROM flashcards WHERE id = ?", (card_id,))
    row = await cursor.fetchone()
    return _row_to_flashcard(row) if row else None


async def list_flashcards(
    db: aiosqlite.Connection,
    deck_id: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Flashcard], int]:
    if deck_id is not None:
        cursor = await db.execute(
            "SELECT * FROM flashcards WHERE deck_id = ? ORDER BY created_at ASC LIMIT ? OFFSET ?",
            (deck_id, limit, offset),
        )
        count_cursor = await db.execute(
            "SELECT COUNT(*) FROM flashcards WHERE deck_id = ?", (deck_id,)
        )
    else:
        cursor = await db.execute(
            "SELECT * FROM flashcards ORDER BY created_at ASC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        count_cursor = await db.execute("SELECT COUNT(*) FROM flashcards")
    rows = await cursor.fetchall()
    count_row = await count_cursor.fetchone()
    total = count_row[0] if count_row else 0
    return [_row_to_flashcard(r) for r in rows], total


async def list_deck_flashcards(
    db: aiosqlite.Connection, deck_id: str
) -> list[Flashcard]:
    cursor = await db.execute(
        "SELECT * FROM flashcards WHERE deck_id = ? ORDER BY created_at ASC",
        (deck_id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_flashcard(r) for r in rows]


async def get_due_flashcards(
    db: aiosqlite.Connection,
    now: datetime,
    limit: int = 20,
    deck_id: str | None = None,
) -> list[Flashcard]:
    """Return cards with next_review_date <= now, most overdue first."""
    if deck_id is not None:
        cursor = await db.execute(
            """SELECT * FROM flashcards
               WHERE next_review_date <= ? AND deck_id = ?
               ORDER BY next_review_date ASC
               LIMIT ?""",
            (to_iso(now), deck_id, limit),
        )
    else:
        cursor = await db.execute(
            """SELECT * FROM flashcards
               WHERE next_review_date <= ?
               ORDER BY next_review_date ASC
               LIMIT ?""",
            (to_iso(now), limit),
        )
    rows = await cursor.fetchall()
    return [_row_to_flashcard(r) for r in rows]


async def update_flashcard_content(
    db: aiosqlite.Connection,
    card_id: str,
    update: FlashcardUpdate,
) -> Flashcard | None:
    fields = update.model_dump(exclude_none=True)
    if not fields:
        return await get_flashcard(db, card_id)

    for key, val in fields.items():
        if hasattr(val, "value"):
            fields[key] = val.value
    if "tags" in fields:
        fields["tags"] = _join_tags(fields["tags"])
    if "options" in fields:
        fields["options"] = json.dumps(fields["options"], ensure_ascii=False)

    fields["updated_at"] = _now()
    set_clause = ", ".join(f"{k} = ?" for k in fields)
    values = list(fields.values()) + [card_id]

    cursor = await db.execute(
        f"UPDATE flashcards SET {set_clause} WHERE id = ?",  # noqa: S608
        values,
    )
    await db.commit()
    if not cursor.rowcount:
        return None
    return await get_flashcard(db, card_id)


async def delete_flashcard(db: aiosqlite.Connection, card_id: str) -> bool:
    cursor = await db.execute("DELETE FROM flashcards WHERE id = ?", (card_id,))
    await db.commit()
    return (cursor.rowcount or 0) > 0


# --- Reviews ---


async def apply_review(
    db: aiosqlite.Connection,
    card_id: str,
    state: SchedulingState,
    remembered: bool,
    reviewed_at: datetime,
    log_limit: int = 100,
) -> Flashcard | None:
    """
    Persist one review: new scheduling fields, counters and a learning-curve
    entry, committed together. The log is pruned to the newest `log_limit` rows.
    """
    try:
        cursor = await db.execute(
            """UPDATE flashcards
               SET interval = ?, ease_factor = ?, repetition_count = ?,
                   next_review_date = ?, last_review_date = ?,
                   review_count = review_count + 1,
                   correct_count = correct_count + ?,
                   updated_at = ?
               WHERE id = ?""",
            (
                state.interval,
                state.ease_factor,
                state.repetition_count,
                to_iso(state.next_review_date),
                to_iso(state.last_review_date or reviewed_at),
                1 if remembered else 0,
                _now(),
                card_id,
            ),
        )
        if not cursor.rowcount:
            await db.rollback()
            return None

        await db.execute(
            """INSERT INTO review_log (card_id, reviewed_at, remembered, interval)
               VALUES (?, ?, ?, ?)""",
            (card_id, to_iso(reviewed_at), 1 if remembered else 0, state.interval),
        )
        await db.execute(
            """DELETE FROM review_log
               WHERE card_id = ? AND id NOT IN (
                   SELECT id FROM review_log WHERE card_id = ?
                   ORDER BY id DESC LIMIT ?
               )""",
            (card_id, card_id, log_limit),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return await get_flashcard(db, card_id)


async def get_review_log(
    db: aiosqlite.Connection, card_id: str
) -> list[ReviewLogEntry]:
    cursor = await db.execute(
        """SELECT card_id, reviewed_at, remembered, interval FROM review_log
           WHERE card_id = ? ORDER BY id ASC""",
        (card_id,),
    )
    rows = await cursor.fetchall()
    return [
        ReviewLogEntry(
            card_id=row[0],
            reviewed_at=row[1],
            remembered=bool(row[2]),
            interval=row[3],
        )
        for row in rows
    ]


async def get_quiz_stats(db: aiosqlite.Connection, now: datetime) -> dict:
    """Return total cards, due count, and per-deck breakdown."""
    now_iso = to_iso(now)

    total_cursor = await db.execute("SELECT COUNT(*) FROM flashcards")
    total_row = await total_cursor.fetchone()
    total_cards: int = total_row[0] if total_row else 0

    due_cursor = await db.execute(
        "SELECT COUNT(*) FROM flashcards WHERE next_review_date <= ?", (now_iso,)
    )
    due_row = await due_cursor.fetchone()
    due_now: int = due_row[0] if due_row else 0

    per_deck_cursor = await db.execute(
        """SELECT f.deck_id, d.name,
                  COUNT(*) as total,
                  SUM(CASE WHEN f.next_review_date <= ? THEN 1 ELSE 0 END) as due
           FROM flashcards f
           LEFT JOIN decks d ON d.id = f.deck_id
           GROUP BY f.deck_id
           ORDER BY d.name ASC""",
        (now_iso,),
    )
    per_deck_rows = await per_deck_cursor.fetchall()
    per_deck = [
        {
            "deck_id": row[0],
            "name": row[1] or row[0],
            "total": row[2],
            "due": row[3] or 0,
        }
        for row in per_deck_rows
    ]

    return {"total_cards": total_cards, "due_now": due_now, "per_deck": per_deck}
