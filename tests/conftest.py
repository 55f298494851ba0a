"""
Shared fixtures. Every store test runs against a real SQLite file in
tmp_path, with DB_PATH patched and the schema initialised.
"""
import sqlite3
from datetime import timezone

import pytest

import database.database as db

# 2023-11-14 22:13:20 UTC
NOW = 1_700_000_000_000
UTC = timezone.utc


@pytest.fixture()
def tdb(tmp_path, monkeypatch):
    """Patch DB_PATH to a fresh temp file and initialise the schema."""
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(db, 'DB_PATH', db_path)
    db.init_db(now=NOW)
    return db_path


@pytest.fixture()
def raw(tdb):
    """Run a raw statement against the test DB and return the rows as dicts."""
    def _raw(sql: str, params=()):
        conn = sqlite3.connect(tdb)
        conn.row_factory = sqlite3.Row
        cur = conn.execute(sql, params)
        rows = [dict(r) for r in cur.fetchall()]
        conn.commit()
        conn.close()
        return rows
    return _raw
