"""
Exception classes for the requirement registration workflow.

Workflow errors carry a stable code, the HTTP status the API answers with,
and the message shown to the user. Repository errors are lower level and are
translated by the workflow.
"""

from typing import Optional


class RegistryError(Exception):
    """Base exception for all workflow errors."""

    code = "registry_error"
    status_code = 500
    user_message = "The request could not be completed."

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message or self.user_message)
        self.details = details

    @property
    def message(self) -> str:
        return str(self)


class Unauthorized(RegistryError):
    """The acting user's role does not allow the operation."""

    code = "unauthorized"
    status_code = 403
    user_message = "You do not have permission to perform this action."

    def __init__(self, message: Optional[str] = None, authenticated: bool = True):
        super().__init__(message)
        self.authenticated = authenticated
        if not authenticated:
            self.status_code = 401


class ValidationFailed(RegistryError):
    """A required field is missing or malformed."""

    code = "validation_error"
    status_code = 400
    user_message = "Some fields are missing or invalid. Please review the form."

    @classmethod
    def from_pydantic(cls, error) -> "ValidationFailed":
        """Build from a pydantic ValidationError, keeping only JSON-safe fields."""
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in error.errors(include_url=False, include_context=False, include_input=False)
        ]
        return cls(details={"errors": errors})


class UploadFailed(RegistryError):
    """The document upload did not complete; nothing was saved."""

    code = "upload_failed"
    status_code = 502
    user_message = "The document could not be uploaded. Nothing was saved; please try again."


class DuplicateRequirement(RegistryError):
    """A requirement already exists for the (country, crop) pair."""

    code = "duplicate_requirement"
    status_code = 409
    user_message = (
        "A requirement is already registered for this country and crop. "
        "Choose a different country or crop, or edit the existing requirement."
    )

    def __init__(self, country_id: int, crop_id: int):
        super().__init__(details={"country_id": country_id, "crop_id": crop_id})
        self.country_id = country_id
        self.crop_id = crop_id


class WriteFailed(RegistryError):
    """The repository rejected or could not complete the write."""

    code = "write_failed"
    status_code = 500
    user_message = "The requirement could not be saved."

    def __init__(self, reason: str):
        super().__init__(f"{self.user_message} {reason}")
        self.reason = reason


class RequirementNotFound(RegistryError):
    code = "not_found"
    status_code = 404
    user_message = "The requirement was not found."

    def __init__(self, requirement_id: int):
        super().__init__(details={"requirement_id": requirement_id})
        self.requirement_id = requirement_id


class FeedbackNotFound(RegistryError):
    code = "not_found"
    status_code = 404
    user_message = "The suggestion was not found."

    def __init__(self, feedback_id: int):
        super().__init__(details={"feedback_id": feedback_id})
        self.feedback_id = feedback_id


# ---------------------------------------------------------------------------
# Repository errors
# ---------------------------------------------------------------------------

class RepositoryError(Exception):
    """Any repository-side failure other than the ones below."""


class DuplicatePairError(RepositoryError):
    """The (country_id, crop_id) uniqueness constraint rejected the write."""

    def __init__(self, country_id: int, crop_id: int):
        super().__init__(f"Requirement already exists for country {country_id} and crop {crop_id}")
        self.country_id = country_id
        self.crop_id = crop_id


class RequirementNotFoundError(RepositoryError):
    def __init__(self, requirement_id: int):
        super().__init__(f"Requirement {requirement_id} does not exist")
        self.requirement_id = requirement_id
