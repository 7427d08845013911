"""
Input and response schemas for the registry workflow and HTTP API.
"""

from pathlib import PurePath
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from phytoreq.config import get

from .requirement import Country, Crop, RequirementSummary, ShortRequirementTag


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ============== WORKFLOW INPUT ==============

class DocumentUpload(BaseModel):
    """A document attached to a requirement form."""
    filename: str = Field(min_length=1)
    content: bytes
    content_type: Optional[str] = None

    @field_validator("filename")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        allowed = [ext.lower() for ext in get("validation", "allowed_document_extensions")]
        suffix = PurePath(v).suffix.lower()
        if suffix not in allowed:
            raise ValueError(f"Document type '{suffix or v}' is not accepted; allowed: {', '.join(allowed)}")
        return v

    @field_validator("content")
    @classmethod
    def validate_size(cls, v: bytes) -> bytes:
        if not v:
            raise ValueError("Document is empty")
        max_mb = get("validation", "max_document_size_mb")
        if len(v) > max_mb * 1024 * 1024:
            raise ValueError(f"Document exceeds {max_mb}MB size limit")
        return v


class RequirementEditInput(BaseModel):
    """Fields a user may change on an existing requirement."""
    full_requirements: str
    publication_number: Optional[str] = None
    publication_year: Optional[int] = None
    notes: Optional[str] = None
    short_requirement_ids: list[int] = Field(default_factory=list)
    document: Optional[DocumentUpload] = None
    remove_document: bool = False

    @field_validator("publication_number", "publication_year", "notes", mode="before")
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("full_requirements")
    @classmethod
    def validate_full_requirements(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Full requirements text is required")
        max_len = get("validation", "max_full_requirements_length")
        if len(v) > max_len:
            raise ValueError(f"Full requirements must be {max_len} characters or less")
        return v

    @field_validator("publication_number")
    @classmethod
    def validate_publication_number(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        max_len = get("validation", "max_publication_number_length")
        if len(v) > max_len:
            raise ValueError(f"Publication number must be {max_len} characters or less")
        return v

    @field_validator("publication_year")
    @classmethod
    def validate_publication_year(cls, v: Optional[int]) -> Optional[int]:
        if v is None:
            return v
        low = get("validation", "min_publication_year")
        high = get("validation", "max_publication_year")
        if not low <= v <= high:
            raise ValueError(f"Publication year must be between {low} and {high}")
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        max_len = get("validation", "max_notes_length")
        if v is not None and len(v) > max_len:
            raise ValueError(f"Notes must be {max_len} characters or less")
        return v

    @field_validator("short_requirement_ids", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("short_requirement_ids")
    @classmethod
    def dedupe_tag_ids(cls, v: list[int]) -> list[int]:
        if any(tag_id <= 0 for tag_id in v):
            raise ValueError("Short requirement ids must be positive integers")
        return sorted(set(v))

    @model_validator(mode="after")
    def check_document_choice(self):
        if self.document is not None and self.remove_document:
            raise ValueError("Cannot upload a new document and remove the document at the same time")
        return self


class NewRequirementInput(RequirementEditInput):
    """Fields required to register a new requirement."""
    country_id: int = Field(gt=0)
    crop_id: int = Field(gt=0)


class FeedbackInput(BaseModel):
    feedback_text: str

    @field_validator("feedback_text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Feedback text is required")
        max_len = get("validation", "max_feedback_length")
        if len(v) > max_len:
            raise ValueError(f"Feedback must be {max_len} characters or less")
        return v


class AdminResponseInput(BaseModel):
    """An administrator's reply appended to a suggestion."""
    response_text: str

    @field_validator("response_text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Response text is required")
        max_len = get("validation", "max_feedback_length")
        if len(v) > max_len:
            raise ValueError(f"Response must be {max_len} characters or less")
        return v


# ============== RESPONSE SCHEMAS ==============

class FormOptionsResponse(BaseModel):
    """Reference lists needed to render the requirement form."""
    countries: list[Country] = Field(default_factory=list)
    crops: list[Crop] = Field(default_factory=list)
    short_requirements: list[ShortRequirementTag] = Field(default_factory=list)


class CreatedResponse(BaseModel):
    id: int
    message: str


class RequirementListResponse(BaseModel):
    """Response for the paginated listing."""
    items: list[RequirementSummary] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    message: str
    details: Optional[dict] = None
