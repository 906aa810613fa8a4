from datetime import date

from pydantic import BaseModel, Field


class DeckCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    color_hex: str = "#4A90E2"


class DeckUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    color_hex: str | None = None


class Deck(BaseModel):
    id: str
    name: str
    description: str
    color_hex: str
    created_at: str


class DeckList(BaseModel):
    items: list[Deck]
    total: int
    offset: int
    limit: int


class DeckSummary(BaseModel):
    deck_id: str | None
    total_cards: int
    due_cards: int
    mastered_cards: int
    average_accuracy: float  # over cards reviewed at least once


class ForecastDay(BaseModel):
    day: date
    count: int


class ReviewForecast(BaseModel):
    deck_id: str
    days: list[ForecastDay]


class ImportResult(BaseModel):
    deck_id: str
    imported: int
    skipped_rows: list[int]
