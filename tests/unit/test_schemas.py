"""Unit tests for requirement form validation."""

import pytest
from pydantic import ValidationError

from phytoreq.models.schemas import (
    DocumentUpload,
    FeedbackInput,
    NewRequirementInput,
    RequirementEditInput,
)
from phytoreq.registry.exceptions import ValidationFailed


def _new(**overrides):
    data = {"country_id": 1, "crop_id": 7, "full_requirements": "  Certificate required  "}
    data.update(overrides)
    return NewRequirementInput.model_validate(data)


def test_full_requirements_is_trimmed():
    assert _new().full_requirements == "Certificate required"


def test_optional_blank_fields_become_none():
    payload = _new(publication_number="  ", publication_year="", notes="")

    assert payload.publication_number is None
    assert payload.publication_year is None
    assert payload.notes is None


def test_tag_ids_are_deduplicated_and_sorted():
    assert _new(short_requirement_ids=[5, 3, 5, 1]).short_requirement_ids == [1, 3, 5]
    assert _new(short_requirement_ids=None).short_requirement_ids == []


def test_tag_ids_must_be_positive():
    with pytest.raises(ValidationError):
        _new(short_requirement_ids=[0])


@pytest.mark.parametrize("year", [1899, 2101])
def test_publication_year_range(year):
    with pytest.raises(ValidationError, match="Publication year"):
        _new(publication_year=year)


def test_ids_must_be_positive():
    with pytest.raises(ValidationError):
        _new(country_id=0)


def test_edit_input_has_no_country_or_crop():
    payload = RequirementEditInput.model_validate({"full_requirements": "x", "country_id": 2})

    assert not hasattr(payload, "country_id")


def test_document_and_remove_document_conflict():
    with pytest.raises(ValidationError, match="Cannot upload"):
        RequirementEditInput.model_validate(
            {
                "full_requirements": "x",
                "remove_document": True,
                "document": {"filename": "a.pdf", "content": b"data"},
            }
        )


class TestDocumentUpload:
    def test_accepts_allowed_extension_case_insensitively(self):
        doc = DocumentUpload(filename="Scan.JPG", content=b"\xff\xd8")
        assert doc.filename == "Scan.JPG"

    def test_rejects_other_extensions(self):
        with pytest.raises(ValidationError, match="not accepted"):
            DocumentUpload(filename="notes.docx", content=b"data")

    def test_rejects_missing_extension(self):
        with pytest.raises(ValidationError):
            DocumentUpload(filename="README", content=b"data")

    def test_rejects_oversized_content(self, monkeypatch):
        import phytoreq.models.schemas as schemas

        real_get = schemas.get

        def fake_get(*keys):
            if keys == ("validation", "max_document_size_mb"):
                return 1
            return real_get(*keys)

        monkeypatch.setattr(schemas, "get", fake_get)

        with pytest.raises(ValidationError, match="size limit"):
            DocumentUpload(filename="big.pdf", content=b"x" * (1024 * 1024 + 1))


def test_feedback_text_required():
    with pytest.raises(ValidationError):
        FeedbackInput(feedback_text="   ")
    assert FeedbackInput(feedback_text=" Looks outdated ").feedback_text == "Looks outdated"


def test_validation_failed_lists_fields():
    with pytest.raises(ValidationError) as exc_info:
        NewRequirementInput.model_validate({"full_requirements": ""})

    failed = ValidationFailed.from_pydantic(exc_info.value)

    fields = {err["field"] for err in failed.details["errors"]}
    assert {"full_requirements", "country_id", "crop_id"} <= fields
    assert failed.status_code == 400
