"""
Tests for database/stats.py. Clock and timezone are fixed (NOW, UTC) so day
boundaries are predictable.
"""
from datetime import date, datetime, timedelta

import pytest

import database.database as db
from database.decks import create_deck
from database.stats import (
    NO_UPCOMING_REVIEWS, get_forecast, get_next_review_info, get_stats, streak_from_days,
)
from utils.constants import DAY_MS, HOUR_MS, MINUTE_MS

from conftest import NOW, UTC


def _deck(name='D'):
    return create_deck(name=name, now=NOW)['id']


def _card(deck_id, now=NOW):
    return db.create_card(deck_id, 'q', 'a', now=now)['id']


def _stats(deck_id=None, now=NOW):
    return get_stats(deck_id, now=now, tz=UTC)


# ── Empty store ───────────────────────────────────────────────

class TestEmpty:
    def test_all_zero(self, tdb):
        assert _stats() == {
            'due_now': 0,
            'due_today': 0,
            'reviews_today': 0,
            'streak_days': 0,
            'retention': 0,
            'total_cards': 0,
            'reviewed_cards': 0,
            'deck_progress': 0,
        }

    def test_retention_is_zero_not_nan(self, tdb):
        _card(_deck())
        assert _stats()['retention'] == 0.0


# ── Due counts ────────────────────────────────────────────────

class TestDueCounts:
    def test_new_cards_due_now(self, tdb):
        deck_id = _deck()
        _card(deck_id)
        _card(deck_id)
        stats = _stats()
        assert stats['due_now'] == 2
        assert stats['due_today'] == 2

    def test_later_today_counts_for_today_only(self, tdb):
        # NOW is 22:13 UTC: +1h is still today, +3h is tomorrow
        deck_id = _deck()
        later_today = _card(deck_id)
        tomorrow = _card(deck_id)
        db.snooze_card(later_today, 60, now=NOW)
        db.snooze_card(tomorrow, 180, now=NOW)
        stats = _stats()
        assert stats['due_now'] == 0
        assert stats['due_today'] == 1

    def test_deck_filter(self, tdb):
        d1 = _deck('D1')
        d2 = _deck('D2')
        _card(d1)
        _card(d2)
        _card(d2)
        assert _stats(d1)['due_now'] == 1
        assert _stats(d2)['due_now'] == 2
        assert _stats()['due_now'] == 3


# ── Reviews, retention, progress ─────────────────────────────

class TestReviews:
    def test_reviews_today(self, tdb):
        card_id = _card(_deck())
        db.review_card(card_id, 3, now=NOW - DAY_MS)
        db.review_card(card_id, 3, now=NOW - HOUR_MS)
        db.review_card(card_id, 0, now=NOW)
        assert _stats()['reviews_today'] == 2

    def test_retention(self, tdb):
        card_id = _card(_deck())
        for i, q in enumerate([3, 3, 2, 0]):
            db.review_card(card_id, q, now=NOW + i)
        assert _stats()['retention'] == pytest.approx(0.5)

    def test_retention_window_is_newest_100(self, tdb):
        card_id = _card(_deck())
        for i in range(50):
            db.review_card(card_id, 0, now=NOW - DAY_MS + i)
        for i in range(100):
            db.review_card(card_id, 3, now=NOW + i)
        assert _stats(now=NOW + 1000)['retention'] == 1.0

    def test_retention_deck_filter(self, tdb):
        good = _card(_deck('Good'))
        bad_deck = _deck('Bad')
        bad = _card(bad_deck)
        db.review_card(good, 3, now=NOW)
        db.review_card(bad, 1, now=NOW)
        assert _stats(bad_deck)['retention'] == 0.0
        assert _stats()['retention'] == pytest.approx(0.5)

    def test_progress(self, tdb):
        deck_id = _deck()
        cards = [_card(deck_id) for _ in range(4)]
        db.review_card(cards[0], 3, now=NOW)
        db.review_card(cards[1], 0, now=NOW)
        stats = _stats()
        assert stats['total_cards'] == 4
        assert stats['reviewed_cards'] == 1
        assert stats['deck_progress'] == 25

    def test_progress_rounds(self, tdb):
        deck_id = _deck()
        cards = [_card(deck_id) for _ in range(3)]
        db.review_card(cards[0], 2, now=NOW)
        assert _stats()['deck_progress'] == 33


# ── Streak ────────────────────────────────────────────────────

class TestStreak:
    def test_streak_from_days(self):
        today = date(2023, 11, 14)
        assert streak_from_days(set(), today) == 0
        assert streak_from_days({date(2023, 11, 13)}, today) == 0
        assert streak_from_days({today, date(2023, 11, 13), date(2023, 11, 11)}, today) == 2

    def test_two_consecutive_days(self, tdb):
        card_id = _card(_deck())
        db.review_card(card_id, 3, now=NOW - DAY_MS)
        db.review_card(card_id, 3, now=NOW)
        assert _stats()['streak_days'] == 2

    def test_gap_resets_to_latest_run(self, tdb):
        card_id = _card(_deck())
        db.review_card(card_id, 3, now=NOW - 3 * DAY_MS)
        db.review_card(card_id, 3, now=NOW - 2 * DAY_MS)
        db.review_card(card_id, 3, now=NOW)
        assert _stats()['streak_days'] == 1

    def test_no_review_today_means_no_streak(self, tdb):
        card_id = _card(_deck())
        db.review_card(card_id, 3, now=NOW - 2 * DAY_MS)
        db.review_card(card_id, 3, now=NOW - DAY_MS)
        assert _stats()['streak_days'] == 0

    def test_many_reviews_same_day_count_once(self, tdb):
        card_id = _card(_deck())
        for i in range(5):
            db.review_card(card_id, 3, now=NOW - i * MINUTE_MS)
        assert _stats()['streak_days'] == 1

    def test_streak_deck_filter(self, tdb):
        d1 = _deck('D1')
        d2 = _deck('D2')
        c1 = _card(d1)
        c2 = _card(d2)
        db.review_card(c1, 3, now=NOW - DAY_MS)
        db.review_card(c2, 3, now=NOW)
        assert _stats(d1)['streak_days'] == 0
        assert _stats(d2)['streak_days'] == 1
        assert _stats()['streak_days'] == 2


# ── Next review ───────────────────────────────────────────────

class TestNextReviewInfo:
    def test_nothing_upcoming(self, tdb):
        _card(_deck())  # due now, not upcoming
        assert get_next_review_info(now=NOW) == {
            'next_due_at': None,
            'next_due_card_count': 0,
            'formatted_time': NO_UPCOMING_REVIEWS,
        }

    def test_tomorrow(self, tdb):
        card_id = _card(_deck())
        db.review_card(card_id, 3, now=NOW)
        info = get_next_review_info(now=NOW)
        assert info['next_due_at'] == NOW + DAY_MS
        assert info['next_due_card_count'] == 1
        assert info['formatted_time'] == 'tomorrow'

    def test_earliest_and_count_after_now(self, tdb):
        deck_id = _deck()
        soon = _card(deck_id)
        later = _card(deck_id)
        _card(deck_id)  # still due, not counted
        db.review_card(soon, 0, now=NOW)
        db.review_card(later, 3, now=NOW)
        info = get_next_review_info(now=NOW)
        assert info['next_due_at'] == NOW + 10 * MINUTE_MS
        assert info['next_due_card_count'] == 2
        assert info['formatted_time'] == 'in 10 minutes'

    def test_deck_filter(self, tdb):
        d1 = _deck('D1')
        d2 = _deck('D2')
        db.review_card(_card(d1), 3, now=NOW)
        assert get_next_review_info(d2, now=NOW)['next_due_at'] is None
        assert get_next_review_info(d1, now=NOW)['next_due_card_count'] == 1


# ── Forecast ──────────────────────────────────────────────────

class TestForecast:
    def test_returns_requested_days(self, tdb):
        forecast = get_forecast(7, now=NOW, tz=UTC)
        assert len(forecast) == 7
        assert forecast[0]['day'] == '2023-11-15'
        assert forecast[-1]['day'] == '2023-11-21'

    def test_counts_future_cards(self, tdb):
        deck_id = _deck()
        db.review_card(_card(deck_id), 3, now=NOW)   # due 2023-11-15
        db.review_card(_card(deck_id), 0, now=NOW)   # due in 10 minutes, still today
        _card(deck_id)                               # already due
        forecast = get_forecast(7, now=NOW, tz=UTC)
        assert sum(d['count'] for d in forecast) == 1
        assert forecast[0] == {'day': '2023-11-15', 'count': 1}

    def test_zero_days(self, tdb):
        assert get_forecast(0, now=NOW, tz=UTC) == []

    def test_unset_timezone_uses_system_local_days(self, tdb, monkeypatch):
        monkeypatch.setattr('database.stats.LOCAL_TZ', None)
        today = datetime.fromtimestamp(NOW / 1000).date()
        forecast = get_forecast(2, now=NOW)
        assert [d['day'] for d in forecast] == [
            (today + timedelta(days=1)).isoformat(), (today + timedelta(days=2)).isoformat(),
        ]
        db.review_card(_card(_deck()), 3, now=NOW)
        assert get_stats(now=NOW)['streak_days'] == 1
