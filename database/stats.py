"""
Progress statistics derived from the current scheduling rows and the
review log. Nothing is cached: every call reads the store as it is now.

The clock (`now`, ms) and the timezone used for calendar-day boundaries
(`tz`) are parameters; they default to the system clock and config.LOCAL_TZ.
A `tz` of None means the machine's local time, with its own DST rules.
"""

from datetime import date, timedelta

from config import LOCAL_TZ
from database.database import get_db
from utils.constants import DAY_MS, FORECAST_DAYS, RETENTION_WINDOW, Rating
from utils.srs import format_next_review
from utils.utils import day_start_ms, days_after, local_day, now_ms, start_of_local_day

NO_UPCOMING_REVIEWS = "No upcoming reviews"

DECK_FILTER = '(? IS NULL OR c.deck_id = ?)'


def _count(conn, sql, params):
    return conn.execute(sql, params).fetchone()[0] or 0


def streak_from_days(days: set[date], today: date) -> int:
    """Consecutive days with a review, counting back from today."""
    streak = 0
    while today - timedelta(days=streak) in days:
        streak += 1
    return streak


def _review_days(conn, deck_id, tz) -> set[date]:
    rows = conn.execute(
        f'''SELECT DISTINCT r.reviewed_at
            FROM review_logs r
            JOIN cards c ON c.card_id = r.card_id
            WHERE {DECK_FILTER}
        ''',
        (deck_id, deck_id)
    ).fetchall()
    return {local_day(row[0], tz) for row in rows}


def _retention(conn, deck_id) -> float:
    row = conn.execute(
        f'''SELECT SUM(CASE WHEN q >= ? THEN 1 ELSE 0 END) AS good, COUNT(*) AS total
            FROM (
                SELECT r.q
                FROM review_logs r
                JOIN cards c ON c.card_id = r.card_id
                WHERE {DECK_FILTER}
                ORDER BY r.reviewed_at DESC, r.log_id DESC
                LIMIT ?
            )
        ''',
        (int(Rating.EASY), deck_id, deck_id, RETENTION_WINDOW)
    ).fetchone()
    if not row['total']:
        return 0.0
    return (row['good'] or 0) / row['total']


def get_stats(deck_id=None, now=None, tz=None):
    now = now if now is not None else now_ms()
    tz = tz or LOCAL_TZ
    start_of_day = start_of_local_day(now, tz)
    end_of_day = start_of_day + DAY_MS

    due_sql = f'''SELECT COUNT(*) FROM scheduling s
                  JOIN cards c ON c.card_id = s.card_id
                  WHERE s.due_at <= ? AND {DECK_FILTER}'''

    with get_db() as conn:
        due_now = _count(conn, due_sql, (now, deck_id, deck_id))
        due_today = _count(conn, due_sql, (end_of_day, deck_id, deck_id))
        reviews_today = _count(
            conn,
            f'''SELECT COUNT(*) FROM review_logs r
                JOIN cards c ON c.card_id = r.card_id
                WHERE r.reviewed_at >= ? AND {DECK_FILTER}''',
            (start_of_day, deck_id, deck_id)
        )
        total_cards = _count(
            conn, f'SELECT COUNT(*) FROM cards c WHERE {DECK_FILTER}', (deck_id, deck_id)
        )
        reviewed_cards = _count(
            conn,
            f'''SELECT COUNT(*) FROM scheduling s
                JOIN cards c ON c.card_id = s.card_id
                WHERE s.n > 0 AND {DECK_FILTER}''',
            (deck_id, deck_id)
        )
        retention = _retention(conn, deck_id)
        streak_days = streak_from_days(_review_days(conn, deck_id, tz), local_day(now, tz))

    deck_progress = round(100 * reviewed_cards / total_cards) if total_cards else 0

    return {
        'due_now': due_now,
        'due_today': due_today,
        'reviews_today': reviews_today,
        'streak_days': streak_days,
        'retention': retention,
        'total_cards': total_cards,
        'reviewed_cards': reviewed_cards,
        'deck_progress': deck_progress,
    }


def get_next_review_info(deck_id=None, now=None):
    """Earliest upcoming due time and how many cards are due after now."""
    now = now if now is not None else now_ms()
    with get_db() as conn:
        row = conn.execute(
            f'''SELECT MIN(s.due_at) AS next_due_at, COUNT(*) AS count
                FROM scheduling s
                JOIN cards c ON c.card_id = s.card_id
                WHERE s.due_at > ? AND {DECK_FILTER}
            ''',
            (now, deck_id, deck_id)
        ).fetchone()

    if row['next_due_at'] is None:
        return {'next_due_at': None, 'next_due_card_count': 0, 'formatted_time': NO_UPCOMING_REVIEWS}

    return {
        'next_due_at': row['next_due_at'],
        'next_due_card_count': row['count'],
        'formatted_time': format_next_review(row['next_due_at'], now),
    }


def get_forecast(days=FORECAST_DAYS, deck_id=None, now=None, tz=None):
    """Cards becoming due on each of the next `days` local days (today excluded)."""
    now = now if now is not None else now_ms()
    tz = tz or LOCAL_TZ
    upcoming = days_after(local_day(now, tz), days)
    if not upcoming:
        return []
    window_start = day_start_ms(upcoming[0], tz)
    window_end = day_start_ms(upcoming[-1] + timedelta(days=1), tz)

    with get_db() as conn:
        rows = conn.execute(
            f'''SELECT s.due_at
                FROM scheduling s
                JOIN cards c ON c.card_id = s.card_id
                WHERE s.due_at > ? AND s.due_at >= ? AND s.due_at < ? AND {DECK_FILTER}
            ''',
            (now, window_start, window_end, deck_id, deck_id)
        ).fetchall()

    counts: dict[date, int] = {}
    for row in rows:
        day = local_day(row[0], tz)
        counts[day] = counts.get(day, 0) + 1

    return [{'day': day.isoformat(), 'count': counts.get(day, 0)} for day in upcoming]
