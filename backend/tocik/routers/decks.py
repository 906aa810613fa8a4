import logging
from datetime import datetime, timezone

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile
from fastapi.responses import PlainTextResponse

from tocik.config import settings
from tocik.db.sqlite import (
    create_deck,
    create_flashcards,
    delete_deck,
    get_db,
    get_deck,
    list_deck_flashcards,
    list_decks,
    update_deck,
)
from tocik.models.deck import (
    Deck,
    DeckCreate,
    DeckList,
    DeckSummary,
    DeckUpdate,
    ImportResult,
    ReviewForecast,
)
from tocik.services.card_import import TEMPLATE_CSV, CardImportError, parse_flashcard_csv
from tocik.services.scheduler import initial_state, params_from_settings
from tocik.services.study_stats import deck_summary, review_forecast

logger = logging.getLogger(__name__)
router = APIRouter()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _require_deck(db: aiosqlite.Connection, deck_id: str) -> Deck:
    deck = await get_deck(db, deck_id)
    if not deck:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


@router.post("/", response_model=Deck, status_code=201)
async def create(body: DeckCreate, db: aiosqlite.Connection = Depends(get_db)):
    return await create_deck(db, body)


@router.get("/", response_model=DeckList)
async def list_all(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: aiosqlite.Connection = Depends(get_db),
):
    items, total = await list_decks(db, offset, limit)
    return DeckList(items=items, total=total, offset=offset, limit=limit)


@router.get("/import-template", response_class=PlainTextResponse)
async def import_template():
    return PlainTextResponse(TEMPLATE_CSV, media_type="text/csv")


@router.get("/{deck_id}", response_model=Deck)
async def get_one(deck_id: str, db: aiosqlite.Connection = Depends(get_db)):
    return await _require_deck(db, deck_id)


@router.patch("/{deck_id}", response_model=Deck)
async def update(
    deck_id: str, body: DeckUpdate, db: aiosqlite.Connection = Depends(get_db)
):
    deck = await update_deck(db, deck_id, body)
    if not deck:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


@router.delete("/{deck_id}", status_code=204)
async def delete(deck_id: str, db: aiosqlite.Connection = Depends(get_db)):
    deleted = await delete_deck(db, deck_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Deck not found")


@router.get("/{deck_id}/summary", response_model=DeckSummary)
async def summary(deck_id: str, db: aiosqlite.Connection = Depends(get_db)):
    """Card totals for a deck: due now, mastered, average accuracy."""
    await _require_deck(db, deck_id)
    cards = await list_deck_flashcards(db, deck_id)
    return deck_summary(cards, _utcnow(), deck_id=deck_id)


@router.get("/{deck_id}/forecast", response_model=ReviewForecast)
async def forecast(
    deck_id: str,
    days: int = Query(default=settings.forecast_days, ge=1, le=60),
    db: aiosqlite.Connection = Depends(get_db),
):
    """Number of cards scheduled on each of the next `days` days (UTC)."""
    await _require_deck(db, deck_id)
    cards = await list_deck_flashcards(db, deck_id)
    return ReviewForecast(
        deck_id=deck_id,
        days=review_forecast(cards, _utcnow().date(), days=days),
    )


@router.post("/{deck_id}/import", response_model=ImportResult, status_code=201)
async def import_cards(
    deck_id: str,
    file: UploadFile,
    db: aiosqlite.Connection = Depends(get_db),
):
    """Bulk-create cards from a CSV upload (question, answer, [difficulty], [tags])."""
    await _require_deck(db, deck_id)

    content = await file.read()
    try:
        parsed = parse_flashcard_csv(content.decode("utf-8-sig"), deck_id)
    except UnicodeDecodeError:
        raise HTTPException(400, "CSV must be UTF-8 encoded")
    except CardImportError as exc:
        raise HTTPException(400, str(exc))

    state = initial_state(_utcnow(), params_from_settings(settings))
    card_ids = await create_flashcards(db, parsed.cards, state)
    logger.info(
        "Imported %d cards into deck %s (%d rows skipped)",
        len(card_ids), deck_id, len(parsed.skipped_rows),
    )
    return ImportResult(
        deck_id=deck_id, imported=len(card_ids), skipped_rows=parsed.skipped_rows
    )
