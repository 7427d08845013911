"""
Role-gated registration and editing of export requirements.

Every submission runs the same sequence: resolve the acting user's tier,
validate the form, upload the attached document (if any), then call one
atomic repository procedure. When the write fails after an upload, the new
blob is deleted before the error is reported so no orphaned documents remain.
"""

from typing import Any, Mapping, Optional, Protocol, Union

from pydantic import ValidationError

from phytoreq.logging_config import get_logger
from phytoreq.models.requirement import AuthorizedUser, CurrentUser, Requirement
from phytoreq.models.schemas import (
    DocumentUpload,
    FormOptionsResponse,
    NewRequirementInput,
    RequirementEditInput,
)
from phytoreq.s3 import build_document_path

from .authorization import CREATE_TIERS, EDIT_TIERS, RolePolicy
from .exceptions import (
    DuplicatePairError,
    DuplicateRequirement,
    RequirementNotFound,
    RequirementNotFoundError,
    Unauthorized,
    UploadFailed,
    ValidationFailed,
    WriteFailed,
)

logger = get_logger(__name__)


class IdentityProvider(Protocol):
    def get_current_user(self, user_id: Optional[str]) -> Optional[CurrentUser]: ...


class BlobStore(Protocol):
    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str: ...

    def delete(self, path: str) -> None: ...


class RequirementWorkflow:
    """Registers and edits requirements on behalf of an acting user.

    All collaborators are passed in so tests can substitute fakes.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        repository,
        blob_store: BlobStore,
        role_policy: RolePolicy,
        reference_data=None,
    ):
        self.identity = identity
        self.repository = repository
        self.blob_store = blob_store
        self.role_policy = role_policy
        self.reference_data = reference_data

    # ============== AUTHORIZATION ==============

    def authenticate(self, acting_user_id: Optional[str], action: str = "read") -> CurrentUser:
        """Resolve the acting user; any tier may read."""
        user = self.identity.get_current_user(acting_user_id)
        if user is None:
            logger.warning(f"Rejected {action}: no authenticated user")
            raise Unauthorized("Sign in to continue.", authenticated=False)
        return user

    def authorize(self, acting_user_id: Optional[str], allowed: frozenset, action: str) -> AuthorizedUser:
        """Resolve the acting user and check their tier, before any side effect."""
        user = self.authenticate(acting_user_id, action)

        tier = self.role_policy.tier_for(user.role_id)
        if tier not in allowed:
            logger.warning(f"Rejected {action} for user {user.user_id}: tier {tier.value} (role_id={user.role_id})")
            raise Unauthorized()
        return AuthorizedUser(user=user, tier=tier)

    def allowed_actions(self, acting_user_id: Optional[str]) -> dict[str, bool]:
        """Which controls the UI should render for this user."""
        user = self.identity.get_current_user(acting_user_id)
        role_id = user.role_id if user else None
        return {
            "create": user is not None and self.role_policy.can_create(role_id),
            "edit": user is not None and self.role_policy.can_edit(role_id),
        }

    # ============== OPERATIONS ==============

    def submit_new_requirement(
        self,
        data: Union[Mapping[str, Any], NewRequirementInput],
        acting_user_id: Optional[str],
    ) -> int:
        """
        Register a new requirement for a (country, crop) pair.

        Args:
            data: Form fields, or an already validated NewRequirementInput
            acting_user_id: Id of the authenticated user

        Returns:
            The new requirement id

        Raises:
            Unauthorized, ValidationFailed, UploadFailed, DuplicateRequirement, WriteFailed
        """
        acting = self.authorize(acting_user_id, CREATE_TIERS, "create")
        payload = self._validate(NewRequirementInput, data)

        uploaded_path, document_url = self._upload(payload.document)

        try:
            requirement_id = self.repository.create_requirement_with_tags(
                country_id=payload.country_id,
                crop_id=payload.crop_id,
                full_requirements=payload.full_requirements,
                publication_number=payload.publication_number,
                publication_year=payload.publication_year,
                document_url=document_url,
                tag_ids=payload.short_requirement_ids,
                notes=payload.notes,
                user_id=acting.user.user_id,
            )
        except DuplicatePairError as e:
            logger.warning(
                f"Duplicate requirement for country={payload.country_id}, crop={payload.crop_id} "
                f"(user {acting.user.user_id})"
            )
            self._discard_upload(uploaded_path)
            raise DuplicateRequirement(payload.country_id, payload.crop_id) from e
        except Exception as e:
            logger.error(f"Create requirement failed: {e}", exc_info=True)
            self._discard_upload(uploaded_path)
            raise WriteFailed(str(e)) from e

        logger.info(
            f"Requirement {requirement_id} registered by {acting.user.user_id} "
            f"(country={payload.country_id}, crop={payload.crop_id}, tags={payload.short_requirement_ids})"
        )
        return requirement_id

    def submit_requirement_edit(
        self,
        requirement_id: int,
        data: Union[Mapping[str, Any], RequirementEditInput],
        acting_user_id: Optional[str],
    ) -> None:
        """
        Update an existing requirement and replace its short-requirement links.

        Without a new document the stored document URL is kept, unless
        remove_document is set, in which case it is cleared. The previously
        stored document is never deleted from the blob store.

        Raises:
            Unauthorized, ValidationFailed, RequirementNotFound, UploadFailed, WriteFailed
        """
        acting = self.authorize(acting_user_id, EDIT_TIERS, "edit")
        payload = self._validate(RequirementEditInput, data)

        existing = self.repository.get_requirement(requirement_id)
        if existing is None:
            raise RequirementNotFound(requirement_id)

        uploaded_path, document_url = self._upload(payload.document)
        if uploaded_path is None:
            document_url = None if payload.remove_document else existing.document_url

        try:
            self.repository.update_requirement_with_tags(
                requirement_id=requirement_id,
                full_requirements=payload.full_requirements,
                publication_number=payload.publication_number,
                publication_year=payload.publication_year,
                document_url=document_url,
                tag_ids=payload.short_requirement_ids,
                notes=payload.notes,
                user_id=acting.user.user_id,
            )
        except RequirementNotFoundError as e:
            self._discard_upload(uploaded_path)
            raise RequirementNotFound(requirement_id) from e
        except Exception as e:
            logger.error(f"Update of requirement {requirement_id} failed: {e}", exc_info=True)
            self._discard_upload(uploaded_path)
            raise WriteFailed(str(e)) from e

        logger.info(
            f"Requirement {requirement_id} updated by {acting.user.user_id} "
            f"(tags={payload.short_requirement_ids}, document_url={document_url})"
        )

    def get_requirement(self, requirement_id: int) -> Requirement:
        requirement = self.repository.get_requirement(requirement_id)
        if requirement is None:
            raise RequirementNotFound(requirement_id)
        return requirement

    def form_options(self) -> FormOptionsResponse:
        """Reference lists for rendering the create/edit form."""
        return FormOptionsResponse(
            countries=self.reference_data.list_countries(),
            crops=self.reference_data.list_crops(),
            short_requirements=self.reference_data.list_short_requirement_tags(),
        )

    # ============== STEPS ==============

    @staticmethod
    def _validate(model, data):
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ValidationFailed.from_pydantic(e) from e

    def _upload(self, document: Optional[DocumentUpload]) -> tuple[Optional[str], Optional[str]]:
        """Upload the document, returning (path, url) or (None, None) without one."""
        if document is None:
            return None, None

        path = build_document_path(document.filename)
        try:
            url = self.blob_store.upload(path, document.content, document.content_type)
        except Exception as e:
            # Any failure of the store, timeouts included, is a failed upload.
            logger.error(f"Document upload failed for {path}: {e}")
            raise UploadFailed() from e
        return path, url

    def _discard_upload(self, path: Optional[str]) -> None:
        """Delete a blob uploaded earlier in this attempt. Failures are only logged."""
        if path is None:
            return
        try:
            self.blob_store.delete(path)
        except Exception as e:
            logger.error(f"Cleanup failed: could not delete orphaned document {path}: {e}")
        else:
            logger.info(f"Removed uploaded document {path} after failed write")
