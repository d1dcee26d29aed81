"""Database migrations for SQLite."""

import sqlite3
from pathlib import Path


def init_db(db_path: Path) -> None:
    """Initialize the database with all required tables."""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS trips (
            id TEXT PRIMARY KEY,
            out_date TEXT,
            in_date TEXT,
            data TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS goals (
            id TEXT PRIMARY KEY,
            goal_type TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1,
            data TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_trips_out_date ON trips(out_date)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_goals_type ON goals(goal_type)")

    conn.commit()
    conn.close()


def reset_db(db_path: Path) -> None:
    """Reset database by dropping and recreating all tables."""
    if db_path.exists():
        db_path.unlink()
    init_db(db_path)
