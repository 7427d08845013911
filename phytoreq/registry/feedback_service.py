"""
Service for user feedback (suggestions) attached to requirements.

Any signed-in user may leave feedback. Users read back only their own;
administrators read everyone's and may append a response to a suggestion.
"""

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from phytoreq.logging_config import get_logger
from phytoreq.models.database import get_connection
from phytoreq.models.requirement import CurrentUser, Feedback, Suggestion
from phytoreq.models.schemas import AdminResponseInput, FeedbackInput

from .authorization import RolePolicy
from .exceptions import (
    FeedbackNotFound,
    RequirementNotFound,
    Unauthorized,
    ValidationFailed,
    WriteFailed,
)
from .identity import ProfileIdentityProvider

logger = get_logger(__name__)

ADMIN_RESPONSE_MARKER = "--- Admin response ---"

_SUGGESTION_SELECT = """
    SELECT f.*, r.country_id, co.name AS country_name, r.crop_id, cr.name AS crop_name,
           p.full_name AS author_name
    FROM feedback f
    JOIN export_requirement r ON r.id = f.requirement_id
    JOIN country co ON co.id = r.country_id
    JOIN crop cr ON cr.id = r.crop_id
    LEFT JOIN profile p ON p.id = f.user_id
"""


class FeedbackService:
    """Submits, lists and answers feedback on requirements."""

    def __init__(
        self,
        identity: ProfileIdentityProvider,
        db_path: str | None = None,
        role_policy: RolePolicy | None = None,
    ):
        self.identity = identity
        self.db_path = db_path
        self.role_policy = role_policy or RolePolicy.from_config()

    def _signed_in(self, acting_user_id: Optional[str], action: str) -> CurrentUser:
        user = self.identity.get_current_user(acting_user_id)
        if user is None:
            logger.warning(f"Rejected {action}: no authenticated user")
            raise Unauthorized("Sign in to continue.", authenticated=False)
        return user

    def submit_feedback(self, requirement_id: int, data: dict, acting_user_id: str | None) -> Feedback:
        user = self._signed_in(acting_user_id, "feedback")

        try:
            payload = FeedbackInput.model_validate(data)
        except ValidationError as e:
            raise ValidationFailed.from_pydantic(e) from e

        now = datetime.now(timezone.utc)
        conn = get_connection(self.db_path)
        try:
            if conn.execute("SELECT 1 FROM export_requirement WHERE id = ?", (requirement_id,)).fetchone() is None:
                raise RequirementNotFound(requirement_id)
            cursor = conn.execute(
                "INSERT INTO feedback (requirement_id, user_id, feedback_text, created_at) VALUES (?, ?, ?, ?)",
                (requirement_id, user.user_id, payload.feedback_text, now.isoformat()),
            )
        except sqlite3.Error as e:
            raise WriteFailed(str(e)) from e
        finally:
            conn.close()

        logger.info(f"User {user.user_id} left feedback on requirement {requirement_id}")
        return Feedback(
            id=cursor.lastrowid,
            requirement_id=requirement_id,
            user_id=user.user_id,
            feedback_text=payload.feedback_text,
            created_at=now,
        )

    def list_feedback(self, requirement_id: int, acting_user_id: str | None) -> list[Feedback]:
        """Feedback for one requirement that the user may read, newest first."""
        user = self._signed_in(acting_user_id, "feedback listing")

        sql = "SELECT * FROM feedback WHERE requirement_id = ?"
        params: list = [requirement_id]
        if not self.role_policy.is_admin(user.role_id):
            sql += " AND user_id = ?"
            params.append(user.user_id)
        sql += " ORDER BY created_at DESC, id DESC"

        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [Feedback.model_validate(dict(row)) for row in rows]

    def list_suggestions(
        self,
        acting_user_id: str | None,
        country_id: Optional[int] = None,
        crop_id: Optional[int] = None,
    ) -> list[Suggestion]:
        """
        Feedback across all requirements, newest first.

        Args:
            acting_user_id: Non-admins only see their own suggestions
            country_id: Optional filter on the requirement's country
            crop_id: Optional filter on the requirement's crop
        """
        user = self._signed_in(acting_user_id, "suggestions listing")

        conditions = []
        params: list = []
        if not self.role_policy.is_admin(user.role_id):
            conditions.append("f.user_id = ?")
            params.append(user.user_id)
        if country_id is not None:
            conditions.append("r.country_id = ?")
            params.append(country_id)
        if crop_id is not None:
            conditions.append("r.crop_id = ?")
            params.append(crop_id)

        sql = _SUGGESTION_SELECT
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY f.created_at DESC, f.id DESC"

        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [Suggestion.model_validate(dict(row)) for row in rows]

    def respond_to_feedback(self, feedback_id: int, data: dict, acting_user_id: str | None) -> Suggestion:
        """Append an administrator's response to the suggestion's notes."""
        user = self._signed_in(acting_user_id, "feedback response")
        if not self.role_policy.is_admin(user.role_id):
            logger.warning(f"Rejected feedback response from {user.user_id} (role_id={user.role_id})")
            raise Unauthorized()

        try:
            payload = AdminResponseInput.model_validate(data)
        except ValidationError as e:
            raise ValidationFailed.from_pydantic(e) from e

        block = f"{ADMIN_RESPONSE_MARKER}\n{payload.response_text}"
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                """
                UPDATE feedback
                SET notes = CASE WHEN notes IS NULL OR notes = '' THEN ? ELSE notes || ? END
                WHERE id = ?
                """,
                (block, f"\n\n{block}", feedback_id),
            )
            if cursor.rowcount == 0:
                raise FeedbackNotFound(feedback_id)
            row = conn.execute(_SUGGESTION_SELECT + " WHERE f.id = ?", (feedback_id,)).fetchone()
        except sqlite3.Error as e:
            raise WriteFailed(str(e)) from e
        finally:
            conn.close()

        logger.info(f"Admin {user.user_id} responded to feedback {feedback_id}")
        return Suggestion.model_validate(dict(row))
