"""Unit tests for requirement feedback and the suggestions inbox."""

import pytest

from phytoreq.registry.exceptions import (
    FeedbackNotFound,
    RequirementNotFound,
    Unauthorized,
    ValidationFailed,
)
from phytoreq.registry.feedback_service import ADMIN_RESPONSE_MARKER

from conftest import ADMIN, AUTHOR, EDITOR, EGYPT, MANGO, ORANGE, SPAIN, VIEWER


@pytest.fixture
def requirement_id(repository):
    return repository.create_requirement_with_tags(
        country_id=EGYPT, crop_id=MANGO, full_requirements="Certificate", user_id=AUTHOR
    )


@pytest.fixture
def feedback(services):
    return services.feedback


def test_any_signed_in_user_can_leave_feedback(feedback, requirement_id):
    created = feedback.submit_feedback(
        requirement_id, {"feedback_text": "Permit rules changed in 2024"}, VIEWER
    )

    assert created.user_id == VIEWER
    assert feedback.list_feedback(requirement_id, VIEWER) == [created]


def test_users_only_read_their_own_feedback(feedback, requirement_id):
    feedback.submit_feedback(requirement_id, {"feedback_text": "from viewer"}, VIEWER)
    feedback.submit_feedback(requirement_id, {"feedback_text": "from author"}, AUTHOR)

    assert [f.feedback_text for f in feedback.list_feedback(requirement_id, VIEWER)] == ["from viewer"]
    assert [f.feedback_text for f in feedback.list_feedback(requirement_id, AUTHOR)] == ["from author"]
    # Editor role 3 is not an admin
    assert feedback.list_feedback(requirement_id, EDITOR) == []


def test_admin_reads_all_feedback_newest_first(feedback, requirement_id):
    feedback.submit_feedback(requirement_id, {"feedback_text": "first"}, VIEWER)
    feedback.submit_feedback(requirement_id, {"feedback_text": "second"}, AUTHOR)

    texts = [f.feedback_text for f in feedback.list_feedback(requirement_id, ADMIN)]
    assert texts == ["second", "first"]


def test_anonymous_cannot_read_feedback(feedback, requirement_id):
    feedback.submit_feedback(requirement_id, {"feedback_text": "private note"}, AUTHOR)

    with pytest.raises(Unauthorized) as exc_info:
        feedback.list_feedback(requirement_id, None)

    assert exc_info.value.status_code == 401


def test_anonymous_feedback_rejected(feedback, requirement_id):
    with pytest.raises(Unauthorized) as exc_info:
        feedback.submit_feedback(requirement_id, {"feedback_text": "hi"}, None)

    assert exc_info.value.status_code == 401


def test_blank_feedback_rejected(feedback, requirement_id, count_rows):
    with pytest.raises(ValidationFailed):
        feedback.submit_feedback(requirement_id, {"feedback_text": " "}, VIEWER)

    assert count_rows("feedback") == 0


def test_feedback_on_missing_requirement(feedback):
    with pytest.raises(RequirementNotFound):
        feedback.submit_feedback(999, {"feedback_text": "hello"}, VIEWER)


class TestSuggestions:
    @pytest.fixture
    def suggestions(self, feedback, repository, requirement_id):
        spain_orange = repository.create_requirement_with_tags(
            country_id=SPAIN, crop_id=ORANGE, full_requirements="Cold treatment", user_id=AUTHOR
        )
        feedback.submit_feedback(requirement_id, {"feedback_text": "Egypt mango note"}, VIEWER)
        feedback.submit_feedback(spain_orange, {"feedback_text": "Spain orange note"}, AUTHOR)
        return requirement_id, spain_orange

    def test_admin_sees_all_with_names(self, feedback, suggestions):
        items = feedback.list_suggestions(ADMIN)

        assert [s.feedback_text for s in items] == ["Spain orange note", "Egypt mango note"]
        assert (items[0].country_name, items[0].crop_name) == ("Spain", "Orange")
        assert items[1].author_name == "Viewer"

    def test_filters_by_country_and_crop(self, feedback, suggestions):
        by_country = feedback.list_suggestions(ADMIN, country_id=EGYPT)
        by_crop = feedback.list_suggestions(ADMIN, crop_id=ORANGE)
        none = feedback.list_suggestions(ADMIN, country_id=EGYPT, crop_id=ORANGE)

        assert [s.feedback_text for s in by_country] == ["Egypt mango note"]
        assert [s.feedback_text for s in by_crop] == ["Spain orange note"]
        assert none == []

    def test_non_admin_sees_only_own(self, feedback, suggestions):
        assert [s.feedback_text for s in feedback.list_suggestions(VIEWER)] == ["Egypt mango note"]
        assert feedback.list_suggestions(EDITOR) == []

    def test_anonymous_rejected(self, feedback, suggestions):
        with pytest.raises(Unauthorized):
            feedback.list_suggestions(None)


class TestAdminResponse:
    @pytest.fixture
    def feedback_id(self, feedback, requirement_id):
        return feedback.submit_feedback(requirement_id, {"feedback_text": "Out of date"}, VIEWER).id

    def test_admin_response_is_appended(self, feedback, feedback_id):
        first = feedback.respond_to_feedback(feedback_id, {"response_text": "Thanks, checking"}, ADMIN)
        second = feedback.respond_to_feedback(feedback_id, {"response_text": "Updated"}, ADMIN)

        assert first.notes == f"{ADMIN_RESPONSE_MARKER}\nThanks, checking"
        assert second.notes == (
            f"{ADMIN_RESPONSE_MARKER}\nThanks, checking\n\n{ADMIN_RESPONSE_MARKER}\nUpdated"
        )
        assert feedback.list_suggestions(VIEWER)[0].notes == second.notes

    @pytest.mark.parametrize("user_id", [VIEWER, AUTHOR, EDITOR])
    def test_non_admin_cannot_respond(self, feedback, feedback_id, user_id):
        with pytest.raises(Unauthorized) as exc_info:
            feedback.respond_to_feedback(feedback_id, {"response_text": "no"}, user_id)

        assert exc_info.value.status_code == 403
        assert feedback.list_suggestions(ADMIN)[0].notes is None

    def test_blank_response_rejected(self, feedback, feedback_id):
        with pytest.raises(ValidationFailed):
            feedback.respond_to_feedback(feedback_id, {"response_text": "  "}, ADMIN)

    def test_missing_feedback(self, feedback):
        with pytest.raises(FeedbackNotFound) as exc_info:
            feedback.respond_to_feedback(999, {"response_text": "hello"}, ADMIN)

        assert exc_info.value.status_code == 404
