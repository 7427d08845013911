"""
Registry API routes: reference lists, listing/search, create, edit,
edit history, feedback and the suggestions inbox.
"""

from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.responses import JSONResponse
from starlette.routing import Route

from phytoreq.config import get
from phytoreq.logging_config import get_logger
from phytoreq.models.schemas import CreatedResponse, ErrorResponse, RequirementListResponse

from .exceptions import RegistryError, RequirementNotFound

logger = get_logger(__name__)

_TRUTHY = ("on", "true", "1", "yes")


def error_response(status_code: int, error: str, message: str, details: dict = None):
    """Create a standardized error response."""
    return JSONResponse(
        ErrorResponse(error=error, message=message, details=details).model_dump(),
        status_code=status_code,
    )


def registry_error_response(exc: RegistryError):
    return error_response(exc.status_code, exc.code, exc.user_message, exc.details)


def _optional_int(value: Optional[str], name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer") from None


async def read_requirement_form(request) -> dict:
    """Collect requirement fields from a multipart form or a JSON body."""
    if request.headers.get("content-type", "").startswith("application/json"):
        return await request.json()

    form = await request.form()
    data = {
        key: form.get(key)
        for key in (
            "country_id",
            "crop_id",
            "full_requirements",
            "publication_number",
            "publication_year",
            "notes",
        )
        if form.get(key) is not None
    }
    data["short_requirement_ids"] = [v for v in form.getlist("short_requirement_ids") if v != ""]
    data["remove_document"] = str(form.get("remove_document", "")).lower() in _TRUTHY

    document = form.get("document")
    if isinstance(document, UploadFile) and document.filename:
        data["document"] = {
            "filename": document.filename,
            "content": await document.read(),
            "content_type": document.content_type,
        }
    return data


def build_registry_routes(services) -> list[Route]:
    """Build the registry routes bound to one set of services."""
    workflow = services.workflow
    repository = services.repository
    identity = services.identity

    # ============== REFERENCE DATA ==============

    async def list_countries(request):
        countries = await run_in_threadpool(services.reference_data.list_countries)
        return JSONResponse([c.model_dump() for c in countries])

    async def list_crops(request):
        crops = await run_in_threadpool(services.reference_data.list_crops)
        return JSONResponse([c.model_dump() for c in crops])

    async def list_short_requirements(request):
        tags = await run_in_threadpool(services.reference_data.list_short_requirement_tags)
        return JSONResponse([t.model_dump() for t in tags])

    async def form_options(request):
        options = await run_in_threadpool(workflow.form_options)
        user_id = identity.user_id_from_request(request)
        actions = await run_in_threadpool(workflow.allowed_actions, user_id)
        return JSONResponse({**options.model_dump(mode="json"), "allowed_actions": actions})

    # ============== REQUIREMENTS ==============

    async def authenticate(request, action):
        """Return an error response when the caller is not signed in, else None."""
        user_id = identity.user_id_from_request(request)
        try:
            await run_in_threadpool(workflow.authenticate, user_id, action)
        except RegistryError as e:
            return registry_error_response(e)
        return None

    async def list_requirements(request):
        """List requirements with optional country/crop/text filters."""
        denied = await authenticate(request, "requirement listing")
        if denied:
            return denied

        params = request.query_params
        try:
            country_id = _optional_int(params.get("country_id"), "country_id")
            crop_id = _optional_int(params.get("crop_id"), "crop_id")
            limit = _optional_int(params.get("limit"), "limit") or get("listing", "default_limit")
            offset = _optional_int(params.get("offset"), "offset") or 0
        except ValueError as e:
            return error_response(400, "validation_error", str(e))

        limit = max(1, min(limit, get("listing", "max_limit")))
        offset = max(0, offset)

        items, total = await run_in_threadpool(
            repository.list_requirements,
            country_id=country_id,
            crop_id=crop_id,
            term=params.get("q"),
            limit=limit,
            offset=offset,
        )
        return JSONResponse(
            RequirementListResponse(items=items, total=total, limit=limit, offset=offset).model_dump(mode="json")
        )

    async def get_requirement(request):
        requirement_id = request.path_params["requirement_id"]
        denied = await authenticate(request, "requirement detail")
        if denied:
            return denied
        try:
            requirement = await run_in_threadpool(workflow.get_requirement, requirement_id)
        except RegistryError as e:
            return registry_error_response(e)
        return JSONResponse(requirement.model_dump(mode="json"))

    async def create_requirement(request):
        """Register a new requirement; answers 201 with the new id."""
        user_id = identity.user_id_from_request(request)
        try:
            data = await read_requirement_form(request)
        except ValueError:
            return error_response(400, "validation_error", "Request body could not be parsed")

        try:
            requirement_id = await run_in_threadpool(workflow.submit_new_requirement, data, user_id)
        except RegistryError as e:
            return registry_error_response(e)

        return JSONResponse(
            CreatedResponse(id=requirement_id, message="Requirement saved").model_dump(),
            status_code=201,
        )

    async def edit_requirement(request):
        requirement_id = request.path_params["requirement_id"]
        user_id = identity.user_id_from_request(request)
        try:
            data = await read_requirement_form(request)
        except ValueError:
            return error_response(400, "validation_error", "Request body could not be parsed")

        try:
            await run_in_threadpool(workflow.submit_requirement_edit, requirement_id, data, user_id)
        except RegistryError as e:
            return registry_error_response(e)

        return JSONResponse({"id": requirement_id, "message": "Requirement updated"})

    async def requirement_history(request):
        requirement_id = request.path_params["requirement_id"]
        denied = await authenticate(request, "requirement history")
        if denied:
            return denied
        if not await run_in_threadpool(repository.exists, requirement_id):
            return registry_error_response(RequirementNotFound(requirement_id))
        entries = await run_in_threadpool(repository.get_history, requirement_id)
        return JSONResponse([e.model_dump(mode="json") for e in entries])

    # ============== FEEDBACK ==============

    async def list_feedback(request):
        """Feedback on one requirement; non-admins see only their own."""
        requirement_id = request.path_params["requirement_id"]
        user_id = identity.user_id_from_request(request)
        try:
            await run_in_threadpool(workflow.authenticate, user_id, "feedback listing")
            if not await run_in_threadpool(repository.exists, requirement_id):
                raise RequirementNotFound(requirement_id)
            items = await run_in_threadpool(services.feedback.list_feedback, requirement_id, user_id)
        except RegistryError as e:
            return registry_error_response(e)
        return JSONResponse([f.model_dump(mode="json") for f in items])

    async def submit_feedback(request):
        requirement_id = request.path_params["requirement_id"]
        user_id = identity.user_id_from_request(request)
        try:
            if request.headers.get("content-type", "").startswith("application/json"):
                data = await request.json()
            else:
                data = dict(await request.form())
        except ValueError:
            return error_response(400, "validation_error", "Request body could not be parsed")

        try:
            feedback = await run_in_threadpool(services.feedback.submit_feedback, requirement_id, data, user_id)
        except RegistryError as e:
            return registry_error_response(e)
        return JSONResponse(feedback.model_dump(mode="json"), status_code=201)

    async def list_suggestions(request):
        """Suggestions across requirements, filterable by country and crop."""
        params = request.query_params
        try:
            country_id = _optional_int(params.get("country_id"), "country_id")
            crop_id = _optional_int(params.get("crop_id"), "crop_id")
        except ValueError as e:
            return error_response(400, "validation_error", str(e))

        user_id = identity.user_id_from_request(request)
        try:
            items = await run_in_threadpool(
                services.feedback.list_suggestions, user_id, country_id=country_id, crop_id=crop_id
            )
        except RegistryError as e:
            return registry_error_response(e)
        return JSONResponse([s.model_dump(mode="json") for s in items])

    async def respond_to_suggestion(request):
        feedback_id = request.path_params["feedback_id"]
        user_id = identity.user_id_from_request(request)
        try:
            if request.headers.get("content-type", "").startswith("application/json"):
                data = await request.json()
            else:
                data = dict(await request.form())
        except ValueError:
            return error_response(400, "validation_error", "Request body could not be parsed")

        try:
            suggestion = await run_in_threadpool(services.feedback.respond_to_feedback, feedback_id, data, user_id)
        except RegistryError as e:
            return registry_error_response(e)
        return JSONResponse(suggestion.model_dump(mode="json"))

    return [
        Route("/api/reference/countries", list_countries),
        Route("/api/reference/crops", list_crops),
        Route("/api/reference/short-requirements", list_short_requirements),
        Route("/api/requirements/form-options", form_options),
        Route("/api/requirements", list_requirements, methods=["GET"]),
        Route("/api/requirements", create_requirement, methods=["POST"]),
        Route("/api/requirements/{requirement_id:int}", get_requirement, methods=["GET"]),
        Route("/api/requirements/{requirement_id:int}", edit_requirement, methods=["POST"]),
        Route("/api/requirements/{requirement_id:int}/history", requirement_history),
        Route("/api/requirements/{requirement_id:int}/feedback", list_feedback, methods=["GET"]),
        Route("/api/requirements/{requirement_id:int}/feedback", submit_feedback, methods=["POST"]),
        Route("/api/suggestions", list_suggestions, methods=["GET"]),
        Route("/api/suggestions/{feedback_id:int}/response", respond_to_suggestion, methods=["POST"]),
    ]
