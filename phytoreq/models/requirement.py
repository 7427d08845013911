"""
Pydantic models for requirement entities and the reference data around them.

Rows read from sqlite are converted through these models so a malformed row
fails loudly at the repository boundary.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .enums import EditType, RoleTier


class Country(BaseModel):
    id: int
    name: str


class Crop(BaseModel):
    id: int
    name: str


class ShortRequirementTag(BaseModel):
    """A catalog entry for a reusable short requirement phrase."""
    id: int
    name: str


class CurrentUser(BaseModel):
    """The authenticated user as seen by the registry."""
    user_id: str = Field(min_length=1)
    role_id: int
    full_name: Optional[str] = None


class Requirement(BaseModel):
    """Export requirements registered for one (country, crop) pair."""
    id: int
    country_id: int
    crop_id: int
    full_requirements: str = Field(min_length=1)
    publication_number: Optional[str] = None
    publication_year: Optional[int] = None
    document_url: Optional[str] = None
    notes: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    tag_ids: list[int] = Field(default_factory=list)


class RequirementSummary(BaseModel):
    """A listing row: a requirement joined with its display names."""
    id: int
    country_id: int
    country_name: str
    crop_id: int
    crop_name: str
    full_requirements: str
    publication_number: Optional[str] = None
    publication_year: Optional[int] = None
    document_url: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    tag_names: list[str] = Field(default_factory=list)


class EditLogEntry(BaseModel):
    id: int
    requirement_id: int
    user_id: Optional[str] = None
    edit_type: EditType
    notes: Optional[str] = None
    created_at: datetime


class Feedback(BaseModel):
    id: int
    requirement_id: int
    user_id: str
    feedback_text: str = Field(min_length=1)
    notes: Optional[str] = None
    created_at: datetime


class Suggestion(Feedback):
    """Feedback joined with the country and crop of its requirement."""
    country_id: int
    country_name: str
    crop_id: int
    crop_name: str
    author_name: Optional[str] = None


class AuthorizedUser(BaseModel):
    """A resolved user together with the tier their role id maps to."""
    user: CurrentUser
    tier: RoleTier
