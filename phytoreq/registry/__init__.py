# Requirement registry services package

from dataclasses import dataclass

from .authorization import RolePolicy
from .exceptions import (
    DuplicateRequirement,
    FeedbackNotFound,
    RegistryError,
    RequirementNotFound,
    Unauthorized,
    UploadFailed,
    ValidationFailed,
    WriteFailed,
)
from .feedback_service import FeedbackService
from .identity import ProfileIdentityProvider
from .reference_data import ReferenceDataService
from .repository import RequirementRepository
from .workflow import RequirementWorkflow


@dataclass
class RegistryServices:
    """The wired collaborators behind the registry API."""
    identity: ProfileIdentityProvider
    reference_data: ReferenceDataService
    repository: RequirementRepository
    feedback: FeedbackService
    workflow: RequirementWorkflow


def create_services(db_path: str | None = None, blob_store=None, role_policy: RolePolicy | None = None) -> RegistryServices:
    """Wire the registry services against one database and blob store."""
    if blob_store is None:
        from phytoreq.s3 import S3BlobStore

        blob_store = S3BlobStore()

    role_policy = role_policy or RolePolicy.from_config()
    identity = ProfileIdentityProvider(db_path)
    reference_data = ReferenceDataService(db_path)
    repository = RequirementRepository(db_path)
    workflow = RequirementWorkflow(
        identity=identity,
        repository=repository,
        blob_store=blob_store,
        role_policy=role_policy,
        reference_data=reference_data,
    )
    return RegistryServices(
        identity=identity,
        reference_data=reference_data,
        repository=repository,
        feedback=FeedbackService(identity, db_path, role_policy),
        workflow=workflow,
    )


__all__ = [
    "RegistryServices",
    "create_services",
    "RolePolicy",
    "RequirementWorkflow",
    "RequirementRepository",
    "ReferenceDataService",
    "ProfileIdentityProvider",
    "FeedbackService",
    "RegistryError",
    "Unauthorized",
    "ValidationFailed",
    "UploadFailed",
    "DuplicateRequirement",
    "WriteFailed",
    "RequirementNotFound",
    "FeedbackNotFound",
]
