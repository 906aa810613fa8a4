from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class CardType(str, Enum):
    BASIC = "basic"
    FILL_BLANK = "fill_blank"
    MULTIPLE_CHOICE = "multiple_choice"
    MATCHING = "matching"


class SchedulingState(BaseModel):
    """The scheduling fields of a card, as read from and written back to the store."""

    interval: int                       # days until next review
    ease_factor: float                  # interval growth multiplier, floored at 1.3
    repetition_count: int               # consecutive successful recalls
    next_review_date: datetime
    last_review_date: datetime | None = None  # None = never reviewed

    model_config = {"frozen": True}

    @classmethod
    def new(
        cls,
        now: datetime,
        interval: int = 1,
        ease_factor: float = 2.5,
    ) -> SchedulingState:
        """State of a freshly created card: due immediately, no history."""
        return cls(
            interval=interval,
            ease_factor=ease_factor,
            repetition_count=0,
            next_review_date=now,
            last_review_date=None,
        )


class FlashcardCreate(BaseModel):
    deck_id: str
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    hint: str = ""
    explanation: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM
    card_type: CardType = CardType.BASIC
    tags: list[str] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)


class FlashcardUpdate(BaseModel):
    question: str | None = Field(default=None, min_length=1)
    answer: str | None = Field(default=None, min_length=1)
    hint: str | None = None
    explanation: str | None = None
    difficulty: Difficulty | None = None
    card_type: CardType | None = None
    tags: list[str] | None = None
    options: list[str] | None = None


class Flashcard(BaseModel):
    id: str
    deck_id: str
    question: str
    answer: str
    hint: str
    explanation: str
    difficulty: Difficulty
    card_type: CardType
    tags: list[str]
    options: list[str]
    interval: int
    ease_factor: float
    repetition_count: int
    next_review_date: datetime
    last_review_date: datetime | None
    review_count: int           # total reviews, remembered or not
    correct_count: int          # reviews answered "remembered"
    created_at: str
    updated_at: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def accuracy_rate(self) -> float:
        if self.review_count <= 0:
            return 0.0
        return self.correct_count / self.review_count

    def scheduling_state(self) -> SchedulingState:
        return SchedulingState(
            interval=self.interval,
            ease_factor=self.ease_factor,
            repetition_count=self.repetition_count,
            next_review_date=self.next_review_date,
            last_review_date=self.last_review_date,
        )


class FlashcardList(BaseModel):
    items: list[Flashcard]
    total: int


class ReviewRequest(BaseModel):
    remembered: bool


class ReviewResult(BaseModel):
    id: str
    interval: int
    ease_factor: float
    repetition_count: int
    next_review_date: datetime
    last_review_date: datetime
    review_count: int
    correct_count: int


class ReviewLogEntry(BaseModel):
    card_id: str
    reviewed_at: datetime
    remembered: bool
    interval: int
