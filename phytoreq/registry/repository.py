"""
Requirement repository backed by sqlite.

The two write procedures run as single transactions: the requirement row,
its full set of short-requirement links and the edit-log entry are committed
together or not at all.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import ValidationError

from phytoreq.logging_config import get_logger
from phytoreq.models.database import get_connection
from phytoreq.models.enums import EditType
from phytoreq.models.requirement import EditLogEntry, Requirement, RequirementSummary

from .exceptions import DuplicatePairError, RepositoryError, RequirementNotFoundError

logger = get_logger(__name__)

_PAIR_CONSTRAINT = "UNIQUE constraint failed: export_requirement.country_id, export_requirement.crop_id"


@contextmanager
def _transaction(conn: sqlite3.Connection):
    """BEGIN IMMEDIATE ... COMMIT, rolling back on any exception.

    IMMEDIATE takes the write lock up front so concurrent writers queue on
    the busy timeout instead of failing mid-transaction.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class RequirementRepository:
    """Reads and atomically writes export requirements and their tag links."""

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        return get_connection(self.db_path)

    # ============== ATOMIC WRITE PROCEDURES ==============

    def create_requirement_with_tags(
        self,
        country_id: int,
        crop_id: int,
        full_requirements: str,
        publication_number: Optional[str] = None,
        publication_year: Optional[int] = None,
        document_url: Optional[str] = None,
        tag_ids: Iterable[int] = (),
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> int:
        """
        Insert a requirement and its tag links in one transaction.

        Returns:
            The new requirement id.

        Raises:
            DuplicatePairError: A requirement already exists for (country_id, crop_id).
            RepositoryError: Any other constraint or database failure.
        """
        now = _now()
        conn = self._connect()
        try:
            with _transaction(conn):
                cursor = conn.execute(
                    """
                    INSERT INTO export_requirement (country_id, crop_id, full_requirements,
                                                    publication_number, publication_year,
                                                    document_url, notes, user_id,
                                                    created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        country_id,
                        crop_id,
                        full_requirements,
                        publication_number,
                        publication_year,
                        document_url,
                        notes,
                        user_id,
                        now,
                        now,
                    ),
                )
                requirement_id = cursor.lastrowid
                self._insert_links(conn, requirement_id, tag_ids)
                self._log_edit(conn, requirement_id, user_id, EditType.CREATE, "Requirement created", now)
        except sqlite3.IntegrityError as e:
            if _PAIR_CONSTRAINT in str(e):
                raise DuplicatePairError(country_id, crop_id) from e
            raise RepositoryError(f"Constraint violation: {e}") from e
        except sqlite3.Error as e:
            raise RepositoryError(f"Database error: {e}") from e
        finally:
            conn.close()

        logger.debug(f"Inserted requirement {requirement_id} (country={country_id}, crop={crop_id})")
        return requirement_id

    def update_requirement_with_tags(
        self,
        requirement_id: int,
        full_requirements: str,
        publication_number: Optional[str] = None,
        publication_year: Optional[int] = None,
        document_url: Optional[str] = None,
        tag_ids: Iterable[int] = (),
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """
        Update a requirement's fields and replace its tag links in one transaction.

        Country and crop are not editable, so the pair constraint cannot be hit here.

        Raises:
            RequirementNotFoundError: No requirement with this id.
            RepositoryError: Any other constraint or database failure.
        """
        now = _now()
        conn = self._connect()
        try:
            with _transaction(conn):
                cursor = conn.execute(
                    """
                    UPDATE export_requirement
                    SET full_requirements = ?, publication_number = ?, publication_year = ?,
                        document_url = ?, notes = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        full_requirements,
                        publication_number,
                        publication_year,
                        document_url,
                        notes,
                        now,
                        requirement_id,
                    ),
                )
                if cursor.rowcount == 0:
                    raise RequirementNotFoundError(requirement_id)

                conn.execute(
                    "DELETE FROM requirement_short_requirement WHERE requirement_id = ?",
                    (requirement_id,),
                )
                self._insert_links(conn, requirement_id, tag_ids)
                self._log_edit(conn, requirement_id, user_id, EditType.UPDATE, "Requirement updated", now)
        except sqlite3.IntegrityError as e:
            raise RepositoryError(f"Constraint violation: {e}") from e
        except sqlite3.Error as e:
            raise RepositoryError(f"Database error: {e}") from e
        finally:
            conn.close()

        logger.debug(f"Updated requirement {requirement_id}")

    def _insert_links(self, conn: sqlite3.Connection, requirement_id: int, tag_ids: Iterable[int]) -> None:
        conn.executemany(
            "INSERT INTO requirement_short_requirement (requirement_id, short_requirement_id) VALUES (?, ?)",
            [(requirement_id, tag_id) for tag_id in sorted(set(tag_ids))],
        )

    def _log_edit(
        self,
        conn: sqlite3.Connection,
        requirement_id: int,
        user_id: Optional[str],
        edit_type: EditType,
        notes: str,
        created_at: str,
    ) -> None:
        conn.execute(
            "INSERT INTO edit_log (requirement_id, user_id, edit_type, notes, created_at) VALUES (?, ?, ?, ?, ?)",
            (requirement_id, user_id, edit_type.value, notes, created_at),
        )

    # ============== READS ==============

    def get_requirement(self, requirement_id: int) -> Optional[Requirement]:
        """Get a single requirement with its linked tag ids."""
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM export_requirement WHERE id = ?", (requirement_id,)).fetchone()
            if not row:
                return None
            tag_ids = [
                r["short_requirement_id"]
                for r in conn.execute(
                    """
                    SELECT short_requirement_id FROM requirement_short_requirement
                    WHERE requirement_id = ? ORDER BY short_requirement_id
                    """,
                    (requirement_id,),
                )
            ]
        finally:
            conn.close()

        return self._to_model(Requirement, {**dict(row), "tag_ids": tag_ids})

    def get_tag_ids(self, requirement_id: int) -> list[int]:
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT short_requirement_id FROM requirement_short_requirement
                WHERE requirement_id = ? ORDER BY short_requirement_id
                """,
                (requirement_id,),
            ).fetchall()
        finally:
            conn.close()
        return [r["short_requirement_id"] for r in rows]

    def exists(self, requirement_id: int) -> bool:
        conn = self._connect()
        try:
            row = conn.execute("SELECT 1 FROM export_requirement WHERE id = ?", (requirement_id,)).fetchone()
        finally:
            conn.close()
        return row is not None

    def list_requirements(
        self,
        country_id: Optional[int] = None,
        crop_id: Optional[int] = None,
        term: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[RequirementSummary], int]:
        """
        List requirements joined with country/crop names and linked tag names.

        Args:
            country_id: Optional country filter
            crop_id: Optional crop filter
            term: Optional case-insensitive text match on requirements or notes
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (page of summaries, total matching rows), newest first
        """
        where = "WHERE 1=1"
        params: list = []
        if country_id is not None:
            where += " AND r.country_id = ?"
            params.append(country_id)
        if crop_id is not None:
            where += " AND r.crop_id = ?"
            params.append(crop_id)
        if term and term.strip():
            pattern = _like_pattern(term.strip())
            where += " AND (r.full_requirements LIKE ? ESCAPE '\\' OR r.notes LIKE ? ESCAPE '\\')"
            params.extend([pattern, pattern])

        joins = """
            FROM export_requirement r
            JOIN country c ON c.id = r.country_id
            JOIN crop cr ON cr.id = r.crop_id
        """

        conn = self._connect()
        try:
            total = conn.execute(f"SELECT COUNT(*) {joins} {where}", params).fetchone()[0]
            rows = conn.execute(
                f"""
                SELECT r.*, c.name AS country_name, cr.name AS crop_name
                {joins} {where}
                ORDER BY r.created_at DESC, r.id DESC
                LIMIT ? OFFSET ?
                """,
                [*params, limit, offset],
            ).fetchall()

            tag_names: dict[int, list[str]] = {row["id"]: [] for row in rows}
            if tag_names:
                placeholders = ",".join("?" * len(tag_names))
                for link in conn.execute(
                    f"""
                    SELECT l.requirement_id, s.name
                    FROM requirement_short_requirement l
                    JOIN short_requirement s ON s.id = l.short_requirement_id
                    WHERE l.requirement_id IN ({placeholders})
                    ORDER BY s.name
                    """,
                    list(tag_names),
                ):
                    tag_names[link["requirement_id"]].append(link["name"])
        finally:
            conn.close()

        items = [
            self._to_model(RequirementSummary, {**dict(row), "tag_names": tag_names[row["id"]]})
            for row in rows
        ]
        return items, total

    def get_history(self, requirement_id: int) -> list[EditLogEntry]:
        """Get the edit log for a requirement, newest first."""
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM edit_log WHERE requirement_id = ? ORDER BY created_at DESC, id DESC",
                (requirement_id,),
            ).fetchall()
        finally:
            conn.close()
        return [self._to_model(EditLogEntry, dict(row)) for row in rows]

    @staticmethod
    def _to_model(model, data: dict):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RepositoryError(f"Malformed {model.__name__} row: {e}") from e
