"""
SQLite database setup and table creation for the requirements registry.
"""

import sqlite3
from pathlib import Path

from phytoreq.config import get


def get_db_path() -> str:
    """Database path from config, or PHYTOREQ_DB_PATH when set."""
    return get("database", "path")


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """Get a SQLite connection with row factory and foreign keys enabled.

    The connection runs in autocommit mode; multi-statement writes open their
    own transaction explicitly.
    """
    path = db_path or get_db_path()
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        path,
        timeout=get("database", "busy_timeout_seconds"),
        isolation_level=None,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str | None = None) -> None:
    """Initialize all database tables."""
    conn = get_connection(db_path)
    cursor = conn.cursor()

    create_reference_tables(cursor)
    create_profile_table(cursor)
    create_export_requirement_table(cursor)
    create_requirement_short_requirement_table(cursor)
    create_edit_log_table(cursor)
    create_feedback_table(cursor)
    create_indexes(cursor)

    conn.close()


def create_reference_tables(cursor: sqlite3.Cursor) -> None:
    """Create the read-only lookup tables: countries, crops, short requirements."""
    for table in ("country", "crop", "short_requirement"):
        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL UNIQUE
            )
        """)


def create_profile_table(cursor: sqlite3.Cursor) -> None:
    """Create the profile table holding each user's role id."""
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS profile (
            id TEXT PRIMARY KEY,
            full_name TEXT,
            role_id INTEGER NOT NULL DEFAULT 1
        )
    """)


def create_export_requirement_table(cursor: sqlite3.Cursor) -> None:
    """Create the export_requirement table, one row per (country, crop) pair."""
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS export_requirement (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            country_id INTEGER NOT NULL,
            crop_id INTEGER NOT NULL,
            full_requirements TEXT NOT NULL,
            publication_number TEXT,
            publication_year INTEGER,
            document_url TEXT,
            notes TEXT,
            user_id TEXT,
            created_at DATETIME NOT NULL,
            updated_at DATETIME NOT NULL,
            CHECK (length(trim(full_requirements)) > 0),
            CONSTRAINT export_requirement_country_crop_key UNIQUE (country_id, crop_id),
            FOREIGN KEY (country_id) REFERENCES country(id),
            FOREIGN KEY (crop_id) REFERENCES crop(id)
        )
    """)


def create_requirement_short_requirement_table(cursor: sqlite3.Cursor) -> None:
    """Create the join table between requirements and short-requirement tags."""
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS requirement_short_requirement (
            requirement_id INTEGER NOT NULL,
            short_requirement_id INTEGER NOT NULL,
            PRIMARY KEY (requirement_id, short_requirement_id),
            FOREIGN KEY (requirement_id) REFERENCES export_requirement(id) ON DELETE CASCADE,
            FOREIGN KEY (short_requirement_id) REFERENCES short_requirement(id)
        )
    """)


def create_edit_log_table(cursor: sqlite3.Cursor) -> None:
    """Create the edit_log table recording who created or changed a requirement."""
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS edit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            requirement_id INTEGER NOT NULL,
            user_id TEXT,
            edit_type TEXT NOT NULL,
            notes TEXT,
            created_at DATETIME NOT NULL,
            CHECK (edit_type IN ('CREATE', 'UPDATE')),
            FOREIGN KEY (requirement_id) REFERENCES export_requirement(id) ON DELETE CASCADE
        )
    """)


def create_feedback_table(cursor: sqlite3.Cursor) -> None:
    """Create the feedback table for user suggestions on a requirement."""
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS feedback (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            requirement_id INTEGER NOT NULL,
            user_id TEXT NOT NULL,
            feedback_text TEXT NOT NULL,
            notes TEXT,
            created_at DATETIME NOT NULL,
            CHECK (length(trim(feedback_text)) > 0),
            FOREIGN KEY (requirement_id) REFERENCES export_requirement(id) ON DELETE CASCADE
        )
    """)


def create_indexes(cursor: sqlite3.Cursor) -> None:
    """Create all indexes for efficient querying."""
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_req_crop ON export_requirement(crop_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_req_created ON export_requirement(created_at)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_link_short ON requirement_short_requirement(short_requirement_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_edit_log_req ON edit_log(requirement_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_feedback_req ON feedback(requirement_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_feedback_user ON feedback(user_id)")
