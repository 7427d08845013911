# Registry models package

from .database import init_db, get_connection, get_db_path
from .enums import EditType, RoleTier
from .requirement import (
    AuthorizedUser,
    Country,
    Crop,
    CurrentUser,
    EditLogEntry,
    Feedback,
    Requirement,
    RequirementSummary,
    ShortRequirementTag,
    Suggestion,
)
from .schemas import (
    AdminResponseInput,
    DocumentUpload,
    ErrorResponse,
    FeedbackInput,
    FormOptionsResponse,
    NewRequirementInput,
    RequirementEditInput,
    RequirementListResponse,
)

__all__ = [
    # Database
    "init_db",
    "get_connection",
    "get_db_path",
    # Enums
    "EditType",
    "RoleTier",
    # Entities
    "AuthorizedUser",
    "Country",
    "Crop",
    "CurrentUser",
    "EditLogEntry",
    "Feedback",
    "Requirement",
    "RequirementSummary",
    "ShortRequirementTag",
    "Suggestion",
    # Schemas
    "AdminResponseInput",
    "DocumentUpload",
    "ErrorResponse",
    "FeedbackInput",
    "FormOptionsResponse",
    "NewRequirementInput",
    "RequirementEditInput",
    "RequirementListResponse",
]
