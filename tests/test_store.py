"""Tests for tocik/db/sqlite.py

Runs against a real SQLite file in a temporary directory.
"""

from datetime import datetime, timedelta, timezone

import aiosqlite
import pytest

from tocik.db.sqlite import (
    apply_review,
    create_deck,
    create_flashcard,
    create_flashcards,
    delete_deck,
    get_due_flashcards,
    get_flashcard,
    get_quiz_stats,
    get_review_log,
    list_flashcards,
    to_iso,
    update_flashcard_content,
)
from tocik.models.deck import DeckCreate
from tocik.models.flashcard import CardType, FlashcardCreate, FlashcardUpdate
from tocik.services.scheduler import compute_next_review, initial_state

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def _deck_with_card(db, question="What is the powerhouse of the cell?", now=NOW):
    deck = await create_deck(db, DeckCreate(name="Biology"))
    card = await create_flashcard(
        db,
        FlashcardCreate(
            deck_id=deck.id,
            question=question,
            answer="Mitochondria",
            tags=["bio", "cells"],
            options=["Nucleus", "Mitochondria"],
            card_type=CardType.MULTIPLE_CHOICE,
        ),
        initial_state(now),
    )
    return deck, card


def test_to_iso_is_fixed_width_utc():
    naive = datetime(2024, 1, 1, 8, 0)
    shifted = datetime(2024, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=1)))
    assert to_iso(naive) == "2024-01-01T08:00:00.000000+00:00"
    assert to_iso(shifted) == to_iso(naive)


@pytest.mark.asyncio
async def test_create_card_round_trips_fields(db):
    deck, card = await _deck_with_card(db)

    assert card.deck_id == deck.id
    assert card.tags == ["bio", "cells"]
    assert card.options == ["Nucleus", "Mitochondria"]
    assert card.card_type is CardType.MULTIPLE_CHOICE
    assert card.interval == 1
    assert card.ease_factor == 2.5
    assert card.repetition_count == 0
    assert card.next_review_date == NOW
    assert card.last_review_date is None
    assert card.review_count == 0


@pytest.mark.asyncio
async def test_new_card_is_due_immediately(db):
    _, card = await _deck_with_card(db)

    due = await get_due_flashcards(db, NOW)
    assert [c.id for c in due] == [card.id]
    assert await get_due_flashcards(db, NOW - timedelta(seconds=1)) == []


@pytest.mark.asyncio
async def test_due_queue_orders_most_overdue_first(db):
    deck, first = await _deck_with_card(db, now=NOW)
    second = await create_flashcard(
        db,
        FlashcardCreate(deck_id=deck.id, question="Q2", answer="A2"),
        initial_state(NOW - timedelta(days=2)),
    )

    due = await get_due_flashcards(db, NOW, limit=10, deck_id=deck.id)
    assert [c.id for c in due] == [second.id, first.id]

    limited = await get_due_flashcards(db, NOW, limit=1)
    assert [c.id for c in limited] == [second.id]


@pytest.mark.asyncio
async def test_apply_review_persists_state_and_counters(db):
    _, card = await _deck_with_card(db)
    state = compute_next_review(card.scheduling_state(), True, NOW)

    updated = await apply_review(db, card.id, state, True, NOW)

    assert updated.interval == 1
    assert updated.ease_factor == 2.6
    assert updated.repetition_count == 1
    assert updated.next_review_date == NOW + timedelta(days=1)
    assert updated.last_review_date == NOW
    assert updated.review_count == 1
    assert updated.correct_count == 1

    log = await get_review_log(db, card.id)
    assert len(log) == 1
    assert log[0].remembered is True
    assert log[0].interval == 1
    assert log[0].reviewed_at == NOW


@pytest.mark.asyncio
async def test_forgotten_review_counts_but_not_correct(db):
    _, card = await _deck_with_card(db)
    state = compute_next_review(card.scheduling_state(), False, NOW)

    updated = await apply_review(db, card.id, state, False, NOW)

    assert updated.review_count == 1
    assert updated.correct_count == 0
    assert updated.accuracy_rate == 0.0


@pytest.mark.asyncio
async def test_review_log_is_pruned_to_limit(db):
    _, card = await _deck_with_card(db)
    outcomes = [True, True, True, False, True]

    for day, remembered in enumerate(outcomes):
        now = NOW + timedelta(days=day)
        current = (await get_flashcard(db, card.id)).scheduling_state()
        state = compute_next_review(current, remembered, now)
        await apply_review(db, card.id, state, remembered, now, log_limit=3)

    log = await get_review_log(db, card.id)
    assert [entry.remembered for entry in log] == [True, False, True]
    assert [entry.reviewed_at for entry in log] == [
        NOW + timedelta(days=d) for d in (2, 3, 4)
    ]
    assert (await get_flashcard(db, card.id)).review_count == 5


@pytest.mark.asyncio
async def test_apply_review_missing_card(db):
    state = initial_state(NOW)
    assert await apply_review(db, "missing", state, True, NOW) is None


@pytest.mark.asyncio
async def test_update_content_keeps_schedule(db):
    _, card = await _deck_with_card(db)

    updated = await update_flashcard_content(
        db, card.id, FlashcardUpdate(answer="The mitochondria", tags=["bio"])
    )

    assert updated.answer == "The mitochondria"
    assert updated.question == card.question
    assert updated.tags == ["bio"]
    assert updated.next_review_date == card.next_review_date
    assert await update_flashcard_content(db, "missing", FlashcardUpdate(answer="x")) is None


@pytest.mark.asyncio
async def test_delete_deck_cascades(db):
    deck, card = await _deck_with_card(db)
    state = compute_next_review(card.scheduling_state(), True, NOW)
    await apply_review(db, card.id, state, True, NOW)

    assert await delete_deck(db, deck.id) is True

    assert await get_flashcard(db, card.id) is None
    assert await get_review_log(db, card.id) == []
    items, total = await list_flashcards(db)
    assert (items, total) == ([], 0)


@pytest.mark.asyncio
async def test_quiz_stats(db):
    deck, card = await _deck_with_card(db)
    await create_flashcard(
        db,
        FlashcardCreate(deck_id=deck.id, question="Q2", answer="A2"),
        initial_state(NOW + timedelta(days=5)),
    )

    stats = await get_quiz_stats(db, NOW)

    assert stats["total_cards"] == 2
    assert stats["due_now"] == 1
    assert stats["per_deck"] == [
        {"deck_id": deck.id, "name": "Biology", "total": 2, "due": 1}
    ]


@pytest.mark.asyncio
async def test_empty_deck_filter_matches_nothing(db):
    await _deck_with_card(db)

    assert await list_flashcards(db, deck_id="") == ([], 0)
    assert await get_due_flashcards(db, NOW, deck_id="") == []


@pytest.mark.asyncio
async def test_create_flashcards_batch(db):
    deck = await create_deck(db, DeckCreate(name="Physics"))
    cards = [
        FlashcardCreate(deck_id=deck.id, question=f"Q{i}", answer=f"A{i}")
        for i in range(3)
    ]

    card_ids = await create_flashcards(db, cards, initial_state(NOW))

    assert len(card_ids) == 3
    stored = [await get_flashcard(db, card_id) for card_id in card_ids]
    assert [c.question for c in stored] == ["Q0", "Q1", "Q2"]
    assert all(c.next_review_date == NOW and c.repetition_count == 0 for c in stored)


@pytest.mark.asyncio
async def test_create_flashcards_is_all_or_nothing(db):
    deck = await create_deck(db, DeckCreate(name="Physics"))
    cards = [
        FlashcardCreate(deck_id=deck.id, question="Q1", answer="A1"),
        FlashcardCreate(deck_id="no-such-deck", question="Q2", answer="A2"),
    ]

    with pytest.raises(aiosqlite.IntegrityError):
        await create_flashcards(db, cards, initial_state(NOW))

    assert await list_flashcards(db) == ([], 0)
