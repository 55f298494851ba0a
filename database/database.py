import logging
import sqlite3
from contextlib import contextmanager

from database.errors import NotFoundError, ValidationError
from database.schema import ALL_SCHEMAS
from config import DB_PATH, DEFAULT_SNOOZE_MINUTES
from utils import srs
from utils.constants import DEFAULT_DECK_NAME, CardType
from utils.utils import dump_tags, now_ms, parse_tags


CARD_COLUMNS = '''
    c.card_id, c.deck_id, c.card_type, c.front, c.back, c.cloze_text,
    c.tags_json, c.created_at, c.updated_at
'''

SCHEDULING_COLUMNS = 's.card_id, s.n, s.interval_days, s.ef, s.due_at, s.last_reviewed_at'


# ROW MAPPING ================================================

def deck_from_row(row):
    return {
        'id': row['deck_id'],
        'parent_id': row['parent_id'],
        'name': row['deck_name'],
        'created_at': row['created_at'],
    }


def card_from_row(row):
    return {
        'id': row['card_id'],
        'deck_id': row['deck_id'],
        'type': row['card_type'],
        'front': row['front'],
        'back': row['back'],
        'cloze_text': row['cloze_text'],
        'tags': parse_tags(row['tags_json']),
        'created_at': row['created_at'],
        'updated_at': row['updated_at'],
    }


def scheduling_from_row(row):
    return {
        'card_id': row['card_id'],
        'n': row['n'],
        'interval_days': row['interval_days'],
        'ef': row['ef'],
        'due_at': row['due_at'],
        'last_reviewed_at': row['last_reviewed_at'],
    }


def card_with_scheduling(row):
    card = card_from_row(row)
    card['scheduling'] = scheduling_from_row(row)
    return card


def session_from_row(row):
    return {
        'id': row['session_id'],
        'deck_id': row['deck_id'],
        'started_at': row['started_at'],
        'ended_at': row['ended_at'],
        'cards_reviewed': row['cards_reviewed'],
        'cards_repeated': row['cards_repeated'],
    }


def fetch_deck(conn, deck_id):
    """Deck row or NotFoundError. Runs on the caller's connection."""
    row = conn.execute(
        'SELECT deck_id, parent_id, deck_name, created_at FROM decks WHERE deck_id = ?',
        (deck_id,)
    ).fetchone()
    if row is None:
        raise NotFoundError(f"Deck {deck_id} not found")
    return row


def _fetch_scheduling(conn, card_id):
    row = conn.execute(
        'SELECT card_id, n, interval_days, ef, due_at, last_reviewed_at FROM scheduling WHERE card_id = ?',
        (card_id,)
    ).fetchone()
    if row is None:
        raise NotFoundError(f"Scheduling for card {card_id} not found")
    return scheduling_from_row(row)


def _fetch_session(conn, session_id):
    row = conn.execute('SELECT * FROM review_sessions WHERE session_id = ?', (session_id,)).fetchone()
    if row is None:
        raise NotFoundError(f"Session {session_id} not found")
    return row


# CARDS COMMANDS =============================================

def list_cards(deck_id):
    with get_db() as conn:
        rows = conn.execute(
            f'''SELECT {CARD_COLUMNS}
                FROM cards c
                WHERE c.deck_id = ?
                ORDER BY c.created_at DESC, c.card_id DESC
            ''',
            (deck_id,)
        ).fetchall()
        return [card_from_row(row) for row in rows]


def get_card(card_id):
    """Card with its scheduling, or None."""
    with get_db() as conn:
        row = conn.execute(
            f'''SELECT {CARD_COLUMNS}, {SCHEDULING_COLUMNS}
                FROM cards c
                JOIN scheduling s ON s.card_id = c.card_id
                WHERE c.card_id = ?
            ''',
            (card_id,)
        ).fetchone()
        if row:
            return card_with_scheduling(row)
        return None


def create_card(deck_id, front, back, card_type=CardType.BASIC, cloze_text=None, tags=None, now=None):
    """Insert a card and its initial (immediately due) scheduling row."""
    try:
        card_type = CardType(card_type or CardType.BASIC)
    except ValueError:
        raise ValidationError(f"Unknown card type: {card_type!r}") from None

    now = now if now is not None else now_ms()
    with get_db() as conn:
        fetch_deck(conn, deck_id)
        cursor = conn.execute(
            '''INSERT INTO cards (deck_id, card_type, front, back, cloze_text, tags_json, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)''',
            (deck_id, card_type.value, front.strip(), back.strip(), cloze_text, dump_tags(tags), now, now)
        )
        card_id = cursor.lastrowid

        schedule = srs.new_scheduling(card_id, now)
        conn.execute(
            '''INSERT INTO scheduling (card_id, n, interval_days, ef, due_at, last_reviewed_at)
               VALUES (:card_id, :n, :interval_days, :ef, :due_at, :last_reviewed_at)''',
            schedule
        )
        logging.info(f"Created card {card_id} in deck {deck_id}")

        row = conn.execute(f'SELECT {CARD_COLUMNS} FROM cards c WHERE c.card_id = ?', (card_id,)).fetchone()
        return card_from_row(row)


def update_card(card_id, front, back, tags=None, now=None):
    """Replace content (and tags, when given). Scheduling is left alone."""
    now = now if now is not None else now_ms()
    with get_db() as conn:
        if tags is None:
            cursor = conn.execute(
                'UPDATE cards SET front = ?, back = ?, updated_at = ? WHERE card_id = ?',
                (front.strip(), back.strip(), now, card_id)
            )
        else:
            cursor = conn.execute(
                'UPDATE cards SET front = ?, back = ?, tags_json = ?, updated_at = ? WHERE card_id = ?',
                (front.strip(), back.strip(), dump_tags(tags), now, card_id)
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Card {card_id} not found")

        row = conn.execute(f'SELECT {CARD_COLUMNS} FROM cards c WHERE c.card_id = ?', (card_id,)).fetchone()
        return card_from_row(row)


def delete_card(card_id):
    with get_db() as conn:
        cursor = conn.execute('DELETE FROM cards WHERE card_id = ?', (card_id,))
        if cursor.rowcount == 0:
            raise NotFoundError(f"Card {card_id} not found")
        logging.info(f"Deleted card {card_id}")


# REVIEW COMMANDS ============================================

def get_due_cards(deck_id=None, now=None, limit=None):
    """Due cards, oldest due first. Deck filter is exact, not recursive."""
    now = now if now is not None else now_ms()
    sql = f'''SELECT {CARD_COLUMNS}, {SCHEDULING_COLUMNS}
              FROM cards c
              JOIN scheduling s ON s.card_id = c.card_id
              WHERE s.due_at <= ? AND (? IS NULL OR c.deck_id = ?)
              ORDER BY s.due_at ASC, c.card_id ASC
           '''
    params = [now, deck_id, deck_id]
    if limit is not None:
        sql += ' LIMIT ?'
        params.append(limit)

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()
        return [card_with_scheduling(row) for row in rows]


def get_due_card(deck_id=None, now=None):
    cards = get_due_cards(deck_id, now=now, limit=1)
    return cards[0] if cards else None


def get_due_card_with_priority(deck_id, priority_ids, now=None):
    """
    Pick a random priority card (e.g. recently failed) from the deck, due or
    not. Falls back to the regular due card when none of them qualify.
    """
    priority_ids = list(priority_ids or [])
    if priority_ids:
        placeholders = ','.join('?' for _ in priority_ids)
        with get_db() as conn:
            row = conn.execute(
                f'''SELECT {CARD_COLUMNS}, {SCHEDULING_COLUMNS}
                    FROM cards c
                    JOIN scheduling s ON s.card_id = c.card_id
                    WHERE c.card_id IN ({placeholders}) AND (? IS NULL OR c.deck_id = ?)
                    ORDER BY RANDOM()
                    LIMIT 1
                ''',
                (*priority_ids, deck_id, deck_id)
            ).fetchone()
        if row:
            return card_with_scheduling(row)

    return get_due_card(deck_id, now=now)


def review_card(card_id, q, duration_ms=None, now=None):
    """
    Apply a rating: new scheduling row and its review log entry are written
    in the same transaction. Returns the new scheduling.
    """
    now = now if now is not None else now_ms()
    with get_db() as conn:
        current = _fetch_scheduling(conn, card_id)
        updated = srs.advance(current, q, now)

        conn.execute(
            '''UPDATE scheduling
               SET n = ?, interval_days = ?, ef = ?, due_at = ?, last_reviewed_at = ?
               WHERE card_id = ?
            ''',
            (updated['n'], updated['interval_days'], updated['ef'],
             updated['due_at'], updated['last_reviewed_at'], card_id)
        )
        conn.execute(
            '''INSERT INTO review_logs (card_id, reviewed_at, q, prev_due_at, new_due_at, duration_ms)
               VALUES (?, ?, ?, ?, ?, ?)''',
            (card_id, now, srs.clamp_rating(q), current['due_at'], updated['due_at'], duration_ms)
        )
        logging.info(
            f"Reviewed card {card_id}: q={q}, interval={updated['interval_days']}d, ef={updated['ef']:.2f}"
        )
        return updated


def snooze_card(card_id, minutes=None, now=None):
    now = now if now is not None else now_ms()
    with get_db() as conn:
        current = _fetch_scheduling(conn, card_id)
        updated = srs.snooze(current, minutes, now, default=DEFAULT_SNOOZE_MINUTES)
        conn.execute('UPDATE scheduling SET due_at = ? WHERE card_id = ?', (updated['due_at'], card_id))
        logging.info(f"Snoozed card {card_id} until {updated['due_at']}")
        return updated


def list_review_logs(card_id):
    with get_db() as conn:
        rows = conn.execute(
            '''SELECT log_id AS id, card_id, reviewed_at, q, prev_due_at, new_due_at, duration_ms
               FROM review_logs WHERE card_id = ?
               ORDER BY reviewed_at, log_id
            ''',
            (card_id,)
        ).fetchall()
        return [dict(row) for row in rows]


# SESSION COMMANDS ===========================================

def start_session(deck_id=None, now=None):
    now = now if now is not None else now_ms()
    with get_db() as conn:
        if deck_id is not None:
            fetch_deck(conn, deck_id)
        cursor = conn.execute(
            'INSERT INTO review_sessions (deck_id, started_at) VALUES (?, ?)',
            (deck_id, now)
        )
        logging.info(f"Started review session {cursor.lastrowid} (deck={deck_id})")
        return session_from_row(_fetch_session(conn, cursor.lastrowid))


def end_session(session_id, now=None):
    now = now if now is not None else now_ms()
    with get_db() as conn:
        _fetch_session(conn, session_id)
        conn.execute('UPDATE review_sessions SET ended_at = ? WHERE session_id = ?', (now, session_id))
        session = session_from_row(_fetch_session(conn, session_id))
        logging.info(f"Ended review session {session_id}: {session['cards_reviewed']} reviewed")
        return session


def record_session_review(session_id, repeated=False):
    column = 'cards_repeated' if repeated else 'cards_reviewed'
    with get_db() as conn:
        _fetch_session(conn, session_id)
        conn.execute(
            f'UPDATE review_sessions SET {column} = {column} + 1 WHERE session_id = ?',
            (session_id,)
        )
        return session_from_row(_fetch_session(conn, session_id))


def get_session(session_id):
    with get_db() as conn:
        row = conn.execute('SELECT * FROM review_sessions WHERE session_id = ?', (session_id,)).fetchone()
        if row:
            return session_from_row(row)
        return None


# DB CONNECTION ==============================================

@contextmanager
def get_db():
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute('PRAGMA foreign_keys = ON')

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(now=None):
    """Create the schema and the Inbox deck if the store has no decks. Safe to call on every start."""
    now = now if now is not None else now_ms()
    with get_db() as conn:
        for statement in ALL_SCHEMAS:
            conn.execute(statement)

        ensure_default_deck(conn, now)


def ensure_default_deck(conn, now):
    count = conn.execute('SELECT COUNT(*) FROM decks').fetchone()[0]
    if count == 0:
        conn.execute(
            'INSERT INTO decks (parent_id, deck_name, created_at) VALUES (NULL, ?, ?)',
            (DEFAULT_DECK_NAME, now)
        )
        logging.info(f"Created default deck '{DEFAULT_DECK_NAME}'")


initialize = init_db
