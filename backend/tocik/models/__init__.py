from tocik.models.deck import (
    Deck,
    DeckCreate,
    DeckList,
    DeckSummary,
    DeckUpdate,
    ForecastDay,
    ImportResult,
    ReviewForecast,
)
from tocik.models.flashcard import (
    CardType,
    Difficulty,
    Flashcard,
    FlashcardCreate,
    FlashcardList,
    FlashcardUpdate,
    ReviewLogEntry,
    ReviewRequest,
    ReviewResult,
    SchedulingState,
)

__all__ = [
    "CardType",
    "Deck",
    "DeckCreate",
    "DeckList",
    "DeckSummary",
    "DeckUpdate",
    "Difficulty",
    "Flashcard",
    "FlashcardCreate",
    "FlashcardList",
    "FlashcardUpdate",
    "ForecastDay",
    "ImportResult",
    "ReviewForecast",
    "ReviewLogEntry",
    "ReviewRequest",
    "ReviewResult",
    "SchedulingState",
]
