"""
Identity lookup for the authenticated user.

Authentication happens upstream; the registry only receives a user id and
reads that user's role id from the profile table.
"""

from typing import Optional

from phytoreq.models.database import get_connection
from phytoreq.models.requirement import CurrentUser

USER_ID_HEADER = "x-user-id"


class ProfileIdentityProvider:
    """Resolves a user id to a CurrentUser using the profile table."""

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path

    def get_current_user(self, user_id: Optional[str]) -> Optional[CurrentUser]:
        """Return the user's id and role id, or None if unknown."""
        if not user_id:
            return None

        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT id, full_name, role_id FROM profile WHERE id = ?", (user_id,)
            ).fetchone()
        finally:
            conn.close()

        if not row:
            return None
        return CurrentUser(user_id=row["id"], role_id=row["role_id"], full_name=row["full_name"])

    def user_id_from_request(self, request) -> Optional[str]:
        """Read the authenticated user id set by the auth proxy."""
        return request.headers.get(USER_ID_HEADER) or None
