"""
Quiz & spaced repetition router.

Endpoints:
  POST   /quiz/cards          — create a card in a deck
  GET    /quiz/cards          — list cards (optionally filtered by deck_id)
  GET    /quiz/due            — cards due for review now
  GET    /quiz/stats          — totals, due count, per-deck breakdown
  POST   /quiz/{id}/review    — submit remembered / not remembered, reschedule
  GET    /quiz/{id}/history   — learning curve for one card
  GET    /quiz/{id}           — single card
  PATCH  /quiz/{id}           — edit content
  DELETE /quiz/{id}           — delete card
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query

from tocik.config import settings
from tocik.db.sqlite import (
    apply_review,
    create_flashcard,
    delete_flashcard,
    get_db,
    get_deck,
    get_due_flashcards,
    get_flashcard,
    get_quiz_stats,
    get_review_log,
    list_flashcards,
    update_flashcard_content,
)
from tocik.models.flashcard import (
    Flashcard,
    FlashcardCreate,
    FlashcardList,
    FlashcardUpdate,
    ReviewLogEntry,
    ReviewRequest,
    ReviewResult,
)
from tocik.services.scheduler import (
    InvalidSchedulingStateError,
    compute_next_review,
    initial_state,
    params_from_settings,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@router.post("/cards", response_model=Flashcard, status_code=201)
async def create_card(
    body: FlashcardCreate,
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    if not await get_deck(db, body.deck_id):
        raise HTTPException(status_code=404, detail="Deck not found")
    state = initial_state(_utcnow(), params_from_settings(settings))
    return await create_flashcard(db, body, state)


@router.get("/cards", response_model=FlashcardList)
async def list_cards(
    deck_id: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardList:
    items, total = await list_flashcards(db, deck_id=deck_id, offset=offset, limit=limit)
    return FlashcardList(items=items, total=total)


@router.get("/due", response_model=FlashcardList)
async def get_due(
    limit: int = Query(default=settings.due_queue_limit, ge=1, le=100),
    deck_id: str | None = Query(default=None),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardList:
    """Return cards due for review now, most overdue first."""
    items = await get_due_flashcards(db, _utcnow(), limit=limit, deck_id=deck_id)
    return FlashcardList(items=items, total=len(items))


@router.get("/stats")
async def quiz_stats(db: aiosqlite.Connection = Depends(get_db)) -> dict:
    return await get_quiz_stats(db, _utcnow())


@router.post("/{card_id}/review", response_model=ReviewResult)
async def review_card(
    card_id: str,
    body: ReviewRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> ReviewResult:
    """Record a binary review outcome and reschedule the card."""
    card = await get_flashcard(db, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Flashcard not found")

    now = _utcnow()
    try:
        state = compute_next_review(
            card.scheduling_state(),
            body.remembered,
            now,
            params_from_settings(settings),
            strict=settings.strict_scheduling,
        )
    except InvalidSchedulingStateError as exc:
        logger.warning("Rejected review of card %s: %s", card_id, exc)
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    updated = await apply_review(
        db, card_id, state, body.remembered, now,
        log_limit=settings.learning_curve_limit,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Flashcard not found")

    logger.info(
        "Card %s reviewed (remembered=%s): interval=%d ease=%.2f",
        card_id, body.remembered, updated.interval, updated.ease_factor,
    )
    return ReviewResult(
        id=card_id,
        interval=updated.interval,
        ease_factor=updated.ease_factor,
        repetition_count=updated.repetition_count,
        next_review_date=updated.next_review_date,
        last_review_date=updated.last_review_date or now,
        review_count=updated.review_count,
        correct_count=updated.correct_count,
    )


@router.get("/{card_id}/history", response_model=list[ReviewLogEntry])
async def card_history(
    card_id: str,
    db: aiosqlite.Connection = Depends(get_db),
) -> list[ReviewLogEntry]:
    if not await get_flashcard(db, card_id):
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return await get_review_log(db, card_id)


@router.get("/{card_id}", response_model=Flashcard)
async def get_card(
    card_id: str,
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    card = await get_flashcard(db, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return card


@router.patch("/{card_id}", response_model=Flashcard)
async def edit_card(
    card_id: str,
    body: FlashcardUpdate,
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    updated = await update_flashcard_content(db, card_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return updated


@router.delete("/{card_id}", status_code=204)
async def remove_card(
    card_id: str,
    db: aiosqlite.Connection = Depends(get_db),
) -> None:
    deleted = await delete_flashcard(db, card_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Flashcard not found")
