from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from tocik.models.deck import DeckSummary, ForecastDay
from tocik.models.flashcard import Flashcard

MASTERED_MIN_CORRECT = 3
MASTERED_MIN_INTERVAL = 7  # days


def is_due(card: Flashcard, now: datetime) -> bool:
    return card.next_review_date <= now


def is_mastered(card: Flashcard) -> bool:
    """A card counts as mastered once it has been recalled a few times and its interval has grown past a week."""
    return (
        card.correct_count >= MASTERED_MIN_CORRECT
        and card.interval >= MASTERED_MIN_INTERVAL
    )


def review_forecast(
    cards: Iterable[Flashcard], today: date, days: int = 7
) -> list[ForecastDay]:
    """Count cards whose next review falls on each of the `days` calendar days starting at `today`."""
    window = [today + timedelta(days=offset) for offset in range(days)]
    counts = {d: 0 for d in window}
    for card in cards:
        review_day = card.next_review_date.date()
        if review_day in counts:
            counts[review_day] += 1
    return [ForecastDay(day=d, count=counts[d]) for d in window]


def deck_summary(
    cards: Iterable[Flashcard], now: datetime, deck_id: str | None = None
) -> DeckSummary:
    cards = list(cards)
    reviewed = [c for c in cards if c.review_count > 0]
    average = (
        sum(c.accuracy_rate for c in reviewed) / len(reviewed) if reviewed else 0.0
    )
    return DeckSummary(
        deck_id=deck_id,
        total_cards=len(cards),
        due_cards=sum(1 for c in cards if is_due(c, now)),
        mastered_cards=sum(1 for c in cards if is_mastered(c)),
        average_accuracy=average,
    )
