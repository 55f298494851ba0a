"""
Spaced repetition scheduler (SM-2 variant with a four-button rating scale).

Ratings: 'again' (0), 'hard' (1), 'good' (2), 'easy' (3)

    again / hard  -> streak reset, short relearning delay (10 / 30 minutes)
    good / easy   -> streak + 1, interval 1d -> 3d -> prev * ef (* 0.85 on 'good')

Everything here is pure: callers pass the current time in ms and get a new
scheduling dict back. The input dict is never mutated.
"""

import math

from utils.constants import DAY_MS, HOUR_MS, MINUTE_MS, Rating

AGAIN = Rating.AGAIN
HARD = Rating.HARD
GOOD = Rating.GOOD
EASY = Rating.EASY

# Rating 0-3 -> SM-2 quality 0-5
SM2_QUALITY = [0, 2, 4, 5]

MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
FIRST_INTERVAL = 1
SECOND_INTERVAL = 3
HARD_PASS_MULTIPLIER = 0.85

# 100 years; due_at must stay a 64-bit ms timestamp
MAX_INTERVAL_DAYS = 36500

# Relearning delay in minutes, indexed by failing rating
RELEARNING_STEPS = [10, 30]

NOMINAL_SNOOZE_MINUTES = 10


def new_scheduling(card_id, now):
    """Scheduling row for a freshly created card: immediately due."""
    return {
        'card_id': card_id,
        'n': 0,
        'interval_days': 0,
        'ef': DEFAULT_EASE_FACTOR,
        'due_at': now,
        'last_reviewed_at': None,
    }


def clamp_rating(q) -> int:
    return max(int(AGAIN), min(int(EASY), int(q)))


def next_ease_factor(ef: float, q: int) -> float:
    """
    EF' = EF + (0.1 - (5 - Q) * (0.08 + (5 - Q) * 0.02)), floored at 1.3,
    where Q is the SM-2 quality the rating maps to.
    """
    quality = SM2_QUALITY[clamp_rating(q)]
    new_ef = ef + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    return max(MIN_EASE_FACTOR, new_ef)


def advance(current, q, now):
    """
    Given the current scheduling dict, a rating and the review time (ms),
    return the next scheduling dict.

    Out-of-range ratings are clamped to 0-3.
    """
    q = clamp_rating(q)
    ef = next_ease_factor(current['ef'], q)

    if q <= HARD:
        n = 0
        interval_days = 0
        due_at = now + RELEARNING_STEPS[q] * MINUTE_MS
    else:
        n = current['n'] + 1
        if n == 1:
            interval_days = FIRST_INTERVAL
        elif n == 2:
            interval_days = SECOND_INTERVAL
        else:
            multiplier = HARD_PASS_MULTIPLIER if q == GOOD else 1.0
            interval = math.ceil(current['interval_days'] * ef * multiplier)
            interval_days = min(MAX_INTERVAL_DAYS, max(1, interval))
        due_at = now + interval_days * DAY_MS

    return {
        **current,
        'n': n,
        'interval_days': interval_days,
        'ef': ef,
        'due_at': due_at,
        'last_reviewed_at': now,
    }


def snooze(current, minutes, now, default=NOMINAL_SNOOZE_MINUTES):
    """Push due_at out by `minutes` (at least 1). Bad input falls back to `default`."""
    minutes = _positive_minutes(minutes, default)
    return {**current, 'due_at': now + int(minutes * MINUTE_MS)}


def _positive_minutes(value, default) -> float:
    """`value` as a float in [1, MAX_INTERVAL_DAYS days], or `default` when unusable."""
    if value is None or isinstance(value, bool):
        value = default
    try:
        value = float(value)
    except (TypeError, ValueError):
        value = float(default)
    if not math.isfinite(value) or value <= 0:
        value = float(default)
    return min(max(1.0, value), MAX_INTERVAL_DAYS * DAY_MS / MINUTE_MS)


def preview_intervals(current, now):
    """Outcome of every rating for this card. Used to label rating buttons."""
    return {rating: advance(current, rating, now) for rating in Rating}


def format_interval(result, now) -> str:
    """Short label for a scheduling outcome: '10m', '3d', '2mo', '1.2y'."""
    days = result['interval_days']

    if days == 0:
        minutes = max(1, round((result['due_at'] - now) / MINUTE_MS))
        return f"{minutes}m"
    elif days < 30:
        return f"{days}d"
    elif days < 365:
        return f"{round(days / 30)}mo"
    return f"{round(days / 365, 1)}y"


def format_next_review(due_at, now) -> str:
    """Human-readable time until `due_at`."""
    diff = due_at - now
    minutes = diff // MINUTE_MS
    hours = diff // HOUR_MS
    days = diff // DAY_MS

    if minutes < 1:
        return "now"
    if minutes < 60:
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"
    if hours < 24:
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    if days == 1:
        return "tomorrow"
    return f"in {days} days"
