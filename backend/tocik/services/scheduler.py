"""
Spaced-repetition scheduler.

A simplified SM-2 variant driven by a binary outcome ("remembered" or not):

  forgotten   → streak reset, interval 1 day, ease factor − penalty (floored)
  remembered  → streak + 1, interval 1 → 6 → round(interval × ease), ease + bonus

`compute_next_review` is a pure transition function. It never reads the clock:
callers pass `now` explicitly and persist the returned state in one write.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from tocik.models.flashcard import SchedulingState

logger = logging.getLogger(__name__)


class InvalidSchedulingStateError(ValueError):
    """Raised in strict mode when a stored scheduling field is out of range."""

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"invalid scheduling state: {field}={value!r}")


@dataclass(frozen=True)
class SchedulerParams:
    initial_interval: int = 1
    initial_ease_factor: float = 2.5
    minimum_ease_factor: float = 1.3
    failure_penalty: float = 0.2
    success_bonus: float = 0.1
    second_interval: int = 6
    ease_precision: int = 2   # decimal places kept on the ease factor
    maximum_interval: int = 36500  # days; keeps next_review_date inside datetime range


DEFAULT_PARAMS = SchedulerParams()


def params_from_settings(settings) -> SchedulerParams:
    """Build scheduler parameters from the application settings object."""
    return SchedulerParams(
        initial_interval=settings.initial_interval,
        initial_ease_factor=settings.initial_ease_factor,
        minimum_ease_factor=settings.minimum_ease_factor,
        failure_penalty=settings.failure_penalty,
        success_bonus=settings.success_bonus,
        second_interval=settings.second_interval,
        ease_precision=settings.ease_precision,
        maximum_interval=settings.maximum_interval,
    )


def round_half_up(value: float | Decimal) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def grow_interval(interval: int, ease: float) -> int:
    """interval × ease in decimal arithmetic, so products like 50 × 2.55 round to 128."""
    return round_half_up(Decimal(str(ease)) * interval)


def _sanitize(
    current: SchedulingState, params: SchedulerParams, strict: bool
) -> tuple[int, float, int]:
    """Return (interval, ease_factor, repetition_count) with corrupt values clamped."""
    interval = current.interval
    ease = current.ease_factor
    reps = current.repetition_count

    problems: list[tuple[str, object]] = []
    if interval < 1:
        problems.append(("interval", interval))
        interval = 1
    if not math.isfinite(ease) or ease < params.minimum_ease_factor:
        problems.append(("ease_factor", ease))
        ease = params.minimum_ease_factor
    if reps < 0:
        problems.append(("repetition_count", reps))
        reps = 0

    if problems:
        if strict:
            raise InvalidSchedulingStateError(*problems[0])
        for field, value in problems:
            logger.warning("Clamping out-of-range %s=%r", field, value)

    return interval, ease, reps


def compute_next_review(
    current: SchedulingState,
    remembered: bool,
    now: datetime,
    params: SchedulerParams = DEFAULT_PARAMS,
    *,
    strict: bool = False,
) -> SchedulingState:
    """
    Compute the scheduling state that follows one review of a card.

    The interval growth step multiplies by the ease factor the card carries
    into this review; the ease adjustment is applied afterwards.
    Raises InvalidSchedulingStateError only when `strict` is set.
    """
    interval, ease, reps = _sanitize(current, params, strict)

    if not remembered:
        new_reps = 0
        new_interval = 1
        new_ease = ease - params.failure_penalty
    else:
        new_reps = reps + 1
        if new_reps == 1:
            new_interval = 1
        elif new_reps == 2:
            new_interval = params.second_interval
        else:
            new_interval = grow_interval(interval, ease)
        new_ease = ease + params.success_bonus

    new_interval = min(max(1, new_interval), params.maximum_interval)
    new_ease = max(params.minimum_ease_factor, round(new_ease, params.ease_precision))

    return SchedulingState(
        interval=new_interval,
        ease_factor=new_ease,
        repetition_count=new_reps,
        next_review_date=now + timedelta(days=new_interval),
        last_review_date=now,
    )


def initial_state(now: datetime, params: SchedulerParams = DEFAULT_PARAMS) -> SchedulingState:
    return SchedulingState.new(
        now, interval=params.initial_interval, ease_factor=params.initial_ease_factor
    )
