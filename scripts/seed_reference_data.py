#!/usr/bin/env python3
"""
Create the registry tables and load reference data and user profiles.

Usage:
    python scripts/seed_reference_data.py --file reference.json
    python scripts/seed_reference_data.py --profile user-123:2:"Jane Doe"

The JSON file holds lists of names under "countries", "crops" and
"short_requirements"; existing names are left untouched.
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from phytoreq.logging_config import configure_logging, get_logger
from phytoreq.models.database import get_connection, init_db

logger = get_logger("seed_reference_data")

TABLES = {
    "countries": "country",
    "crops": "crop",
    "short_requirements": "short_requirement",
}


def seed_names(conn, table: str, names: list[str]) -> int:
    """Insert names that are not present yet. Returns the number inserted."""
    before = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    conn.executemany(
        f"INSERT OR IGNORE INTO {table} (name) VALUES (?)",
        [(name.strip(),) for name in names if name.strip()],
    )
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0] - before


def upsert_profile(conn, user_id: str, role_id: int, full_name: str | None = None) -> None:
    conn.execute(
        """
        INSERT INTO profile (id, full_name, role_id) VALUES (?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET role_id = excluded.role_id,
                                      full_name = COALESCE(excluded.full_name, profile.full_name)
        """,
        (user_id, full_name, role_id),
    )


def parse_profile(value: str) -> tuple[str, int, str | None]:
    parts = value.split(":", 2)
    if len(parts) < 2:
        raise argparse.ArgumentTypeError("profile must be USER_ID:ROLE_ID[:FULL_NAME]")
    try:
        role_id = int(parts[1])
    except ValueError:
        raise argparse.ArgumentTypeError(f"role id must be an integer: {parts[1]}") from None
    return parts[0], role_id, parts[2] if len(parts) > 2 else None


def main():
    parser = argparse.ArgumentParser(description="Seed registry reference data")
    parser.add_argument("--db", help="SQLite path (defaults to PHYTOREQ_DB_PATH or config)")
    parser.add_argument("--file", type=Path, help="JSON file with countries/crops/short_requirements")
    parser.add_argument(
        "--profile",
        type=parse_profile,
        action="append",
        default=[],
        help="USER_ID:ROLE_ID[:FULL_NAME], may be repeated",
    )
    args = parser.parse_args()

    configure_logging(log_level="INFO")
    init_db(args.db)

    conn = get_connection(args.db)
    try:
        conn.execute("BEGIN")
        if args.file:
            data = json.loads(args.file.read_text(encoding="utf-8"))
            for key, table in TABLES.items():
                inserted = seed_names(conn, table, data.get(key, []))
                logger.info(f"{table}: {inserted} new rows")
        for user_id, role_id, full_name in args.profile:
            upsert_profile(conn, user_id, role_id, full_name)
            logger.info(f"profile {user_id}: role_id={role_id}")
        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    main()
