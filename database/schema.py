# ======================= DECKS ==========================

deck_schema = '''
    CREATE TABLE IF NOT EXISTS decks (
        deck_id INTEGER PRIMARY KEY AUTOINCREMENT,
        parent_id INTEGER,
        deck_name TEXT NOT NULL,
        created_at INTEGER NOT NULL,

        FOREIGN KEY (parent_id) REFERENCES decks(deck_id) ON DELETE CASCADE
    )
'''

deck_parent_index = 'CREATE INDEX IF NOT EXISTS idx_decks_parent ON decks(parent_id)'

# ======================= CARDS ==========================

card_schema = '''
    CREATE TABLE IF NOT EXISTS cards (
        card_id INTEGER PRIMARY KEY AUTOINCREMENT,
        deck_id INTEGER NOT NULL,

        -- Card content
        card_type TEXT NOT NULL DEFAULT 'basic',
        front TEXT NOT NULL,
        back TEXT NOT NULL,
        cloze_text TEXT,
        tags_json TEXT NOT NULL DEFAULT '[]',

        -- Metadata
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL,

        FOREIGN KEY (deck_id) REFERENCES decks(deck_id) ON DELETE CASCADE
    )
'''

card_deck_index = 'CREATE INDEX IF NOT EXISTS idx_cards_deck ON cards(deck_id)'

# ======================= SCHEDULING =====================

scheduling_schema = '''
    CREATE TABLE IF NOT EXISTS scheduling (
        card_id INTEGER PRIMARY KEY,

        -- SM-2 state
        n INTEGER NOT NULL DEFAULT 0,
        interval_days INTEGER NOT NULL DEFAULT 0,
        ef REAL NOT NULL DEFAULT 2.5,
        due_at INTEGER NOT NULL,
        last_reviewed_at INTEGER,

        FOREIGN KEY (card_id) REFERENCES cards(card_id) ON DELETE CASCADE
    )
'''

scheduling_due_index = 'CREATE INDEX IF NOT EXISTS idx_scheduling_due ON scheduling(due_at)'

# ======================= REVIEW LOGS ====================

review_log_schema = '''
    CREATE TABLE IF NOT EXISTS review_logs (
        log_id INTEGER PRIMARY KEY AUTOINCREMENT,
        card_id INTEGER NOT NULL,
        reviewed_at INTEGER NOT NULL,
        q INTEGER NOT NULL,
        prev_due_at INTEGER,
        new_due_at INTEGER,
        duration_ms INTEGER,

        FOREIGN KEY (card_id) REFERENCES cards(card_id) ON DELETE CASCADE
    )
'''

review_log_time_index = 'CREATE INDEX IF NOT EXISTS idx_review_logs_time ON review_logs(reviewed_at)'

# ======================= SESSIONS =======================

session_schema = '''
    CREATE TABLE IF NOT EXISTS review_sessions (
        session_id INTEGER PRIMARY KEY AUTOINCREMENT,
        deck_id INTEGER,
        started_at INTEGER NOT NULL,
        ended_at INTEGER,
        cards_reviewed INTEGER NOT NULL DEFAULT 0,
        cards_repeated INTEGER NOT NULL DEFAULT 0,

        FOREIGN KEY (deck_id) REFERENCES decks(deck_id) ON DELETE CASCADE
    )
'''

ALL_SCHEMAS = [
    deck_schema,
    deck_parent_index,
    card_schema,
    card_deck_index,
    scheduling_schema,
    scheduling_due_index,
    review_log_schema,
    review_log_time_index,
    session_schema,
]
