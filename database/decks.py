"""
Deck hierarchy: creation by name or by path, move, delete and delete preview.

Decks form a forest through ``parent_id``. Every query that needs the shape
of the tree loads the whole ``{deck_id: parent_id}`` arena on the current
connection and walks it with utils.hierarchy, so the check and the write
happen inside one transaction.
"""

import logging

from database.database import ensure_default_deck, deck_from_row, fetch_deck, get_db
from database.errors import CycleError, ValidationError
from utils import hierarchy
from utils.constants import DECK_NAME_MAX, DECK_PATH_SEPARATOR, DeleteMode
from utils.utils import clean_name, join_deck_path, now_ms, split_deck_path

DECK_COLUMNS = 'deck_id, parent_id, deck_name, created_at'


def _check_name(name):
    if not name:
        raise ValidationError("Deck name is required")
    if len(name) > DECK_NAME_MAX:
        raise ValidationError(f"Deck name is longer than {DECK_NAME_MAX} characters")


def _load_parents(conn) -> dict[int, int | None]:
    rows = conn.execute('SELECT deck_id, parent_id FROM decks').fetchall()
    return {row['deck_id']: row['parent_id'] for row in rows}


def _insert_deck(conn, name, parent_id, now):
    cursor = conn.execute(
        'INSERT INTO decks (parent_id, deck_name, created_at) VALUES (?, ?, ?)',
        (parent_id, name, now)
    )
    logging.info(f"Created deck {cursor.lastrowid} '{name}' (parent={parent_id})")
    return {'id': cursor.lastrowid, 'parent_id': parent_id, 'name': name, 'created_at': now}


# QUERIES ====================================================

def list_decks():
    with get_db() as conn:
        rows = conn.execute(f'SELECT {DECK_COLUMNS} FROM decks ORDER BY deck_name, deck_id').fetchall()
        return [deck_from_row(row) for row in rows]


def get_deck(deck_id):
    with get_db() as conn:
        row = conn.execute(f'SELECT {DECK_COLUMNS} FROM decks WHERE deck_id = ?', (deck_id,)).fetchone()
        if row:
            return deck_from_row(row)
        return None


def get_descendant_ids(deck_id):
    with get_db() as conn:
        fetch_deck(conn, deck_id)
        return hierarchy.descendant_ids(_load_parents(conn), deck_id)


def get_deck_path(deck_id):
    """Full 'Parent/Child' path of a deck."""
    with get_db() as conn:
        fetch_deck(conn, deck_id)
        parents = _load_parents(conn)
        chain = [deck_id, *hierarchy.ancestors(parents, deck_id)]
        placeholders = ','.join('?' for _ in chain)
        rows = conn.execute(
            f'SELECT deck_id, deck_name FROM decks WHERE deck_id IN ({placeholders})', chain
        ).fetchall()
        names = {row['deck_id']: row['deck_name'] for row in rows}
        return DECK_PATH_SEPARATOR.join(names[i] for i in reversed(chain))


def list_decks_with_counts(now=None):
    """Every deck with its card count and due count in a single query."""
    now = now if now is not None else now_ms()
    with get_db() as conn:
        rows = conn.execute(
            """SELECT d.deck_id, d.parent_id, d.deck_name, d.created_at,
                      COUNT(c.card_id) AS card_count,
                      SUM(CASE WHEN s.due_at <= ? THEN 1 ELSE 0 END) AS due_count
               FROM decks d
               LEFT JOIN cards c ON c.deck_id = d.deck_id
               LEFT JOIN scheduling s ON s.card_id = c.card_id
               GROUP BY d.deck_id
               ORDER BY d.deck_name, d.deck_id
            """,
            (now,)
        ).fetchall()
        return [
            {**deck_from_row(row), 'card_count': row['card_count'], 'due_count': row['due_count'] or 0}
            for row in rows
        ]


# CREATE =====================================================

def create_deck(name=None, parent_id=None, path=None, now=None):
    """
    Create a deck by name under `parent_id`, or find-or-create every segment
    of `path` ('Biology/Cells'). When both path and name are given the name
    is appended to the path as its last segment.
    """
    now = now if now is not None else now_ms()
    name = clean_name(name)
    path = clean_name(path)

    if path:
        return create_deck_path(join_deck_path(path, name) if name else path, now=now)

    _check_name(name)
    with get_db() as conn:
        if parent_id is not None:
            fetch_deck(conn, parent_id)
        return _insert_deck(conn, name, parent_id, now)


def create_deck_path(path, now=None):
    """Find-or-create each segment under the previous one; returns the last deck."""
    now = now if now is not None else now_ms()
    segments = split_deck_path(path)
    if not segments:
        raise ValidationError("Deck path is empty")
    for segment in segments:
        _check_name(segment)

    with get_db() as conn:
        parent_id = None
        deck = None
        for name in segments:
            row = conn.execute(
                f'''SELECT {DECK_COLUMNS} FROM decks
                    WHERE deck_name = ? AND parent_id IS ?
                    ORDER BY deck_id LIMIT 1''',
                (name, parent_id)
            ).fetchone()
            deck = deck_from_row(row) if row else _insert_deck(conn, name, parent_id, now)
            parent_id = deck['id']
        return deck


# MOVE =======================================================

def move_deck(deck_id, new_parent_id=None):
    """Reparent a deck. `new_parent_id=None` makes it a root."""
    with get_db() as conn:
        fetch_deck(conn, deck_id)

        if new_parent_id is not None:
            fetch_deck(conn, new_parent_id)
            if new_parent_id == deck_id:
                raise CycleError("Cannot move a deck into itself")
            if hierarchy.is_descendant(_load_parents(conn), deck_id, new_parent_id):
                raise CycleError("Cannot move a deck into its own descendant")

        conn.execute('UPDATE decks SET parent_id = ? WHERE deck_id = ?', (new_parent_id, deck_id))
        logging.info(f"Moved deck {deck_id} under {new_parent_id}")
        return deck_from_row(fetch_deck(conn, deck_id))


# DELETE =====================================================

def get_delete_preview(deck_id):
    """What a cascade delete of `deck_id` would remove. Read-only."""
    with get_db() as conn:
        deck = fetch_deck(conn, deck_id)
        affected = [deck_id, *hierarchy.descendant_ids(_load_parents(conn), deck_id)]
        placeholders = ','.join('?' for _ in affected)

        child_count = conn.execute(
            'SELECT COUNT(*) FROM decks WHERE parent_id = ?', (deck_id,)
        ).fetchone()[0]
        card_count = conn.execute(
            f'SELECT COUNT(*) FROM cards WHERE deck_id IN ({placeholders})', affected
        ).fetchone()[0]
        rows = conn.execute(
            f'SELECT deck_id, deck_name FROM decks WHERE deck_id IN ({placeholders})', affected
        ).fetchall()
        names = {row['deck_id']: row['deck_name'] for row in rows}

        return {
            'deck_name': deck['deck_name'],
            'child_deck_count': child_count,
            'total_card_count': card_count,
            'affected_deck_names': [names[i] for i in affected],
        }


def delete_deck(deck_id, mode, now=None):
    """
    cascade:  delete the deck, all its descendants and all their cards
    reparent: delete only the deck (and its own cards); its children move up to its parent
    """
    try:
        mode = DeleteMode(mode)
    except ValueError:
        raise ValidationError(f"Unknown delete mode: {mode!r}") from None

    now = now if now is not None else now_ms()
    with get_db() as conn:
        deck = fetch_deck(conn, deck_id)

        if mode == DeleteMode.REPARENT:
            conn.execute(
                'UPDATE decks SET parent_id = ? WHERE parent_id = ?',
                (deck['parent_id'], deck_id)
            )
            affected = [deck_id]
        else:
            affected = [deck_id, *hierarchy.descendant_ids(_load_parents(conn), deck_id)]

        placeholders = ','.join('?' for _ in affected)
        removed_cards = conn.execute(
            f'DELETE FROM cards WHERE deck_id IN ({placeholders})', affected
        ).rowcount
        conn.execute(f'DELETE FROM decks WHERE deck_id IN ({placeholders})', affected)
        logging.info(
            f"Deleted deck {deck_id} ({mode.value}): {len(affected)} deck(s), {removed_cards} card(s)"
        )

        ensure_default_deck(conn, now)

