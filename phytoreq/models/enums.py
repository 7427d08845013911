"""
Enum definitions for the export requirements registry.
"""

from enum import Enum


class RoleTier(str, Enum):
    """Permission tiers that role ids are grouped into."""
    VIEWER = "viewer"  # Read only
    AUTHOR = "author"  # May register new requirements
    EDITOR = "editor"  # May register and modify any requirement


class EditType(str, Enum):
    """Kinds of change recorded in the edit log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
