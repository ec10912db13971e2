"""Unit tests for survey definition schemas.

Tests type-specific requirements, section rules, id uniqueness and
composite answer key safety.
"""

import pytest
from pydantic import ValidationError

from assessment_engine.schemas.survey import (
    Question,
    QuestionType,
    Section,
    SectionType,
    Survey,
)


class TestQuestion:
    """Tests for Question schema."""

    def test_radio_requires_options(self):
        """Test radio question without options is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            Question(id="q1", type="radio", question="Pick one")
        assert "must have options" in str(exc_info.value)

    def test_checkbox_max_selections_alias(self):
        """Test maxSelections is read from its camelCase alias."""
        question = Question.model_validate({
            "id": "q1",
            "type": "checkbox",
            "question": "Pick some",
            "options": ["a", "b", "c"],
            "maxSelections": 2,
        })
        assert question.max_selections == 2

    def test_checkbox_max_selections_above_option_count(self):
        """Test maxSelections larger than the option count is rejected."""
        with pytest.raises(ValidationError):
            Question.model_validate({
                "id": "q1",
                "type": "checkbox",
                "question": "Pick some",
                "options": ["a", "b"],
                "maxSelections": 3,
            })

    def test_scale_requires_labels(self):
        """Test scale question without scaleLabels is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            Question(id="q1", type="scale", question="Rate it")
        assert "scaleLabels" in str(exc_info.value)

    def test_scale_grid_requires_prompts(self):
        """Test scale-grid question without prompts is rejected."""
        with pytest.raises(ValidationError):
            Question(id="grid", type="scale-grid", question="Rate each")

    def test_text_question_needs_nothing_else(self):
        """Test text question is valid with only id and text."""
        question = Question(id="notes", type="text", question="Anything else?")
        assert question.type == QuestionType.TEXT
        assert question.composite_keys() == []

    def test_composite_keys(self):
        """Test grid prompt keys follow the {id}_{index} form."""
        question = Question(
            id="grid", type="scale-grid", question="Rate each", prompts=["A", "B", "C"]
        )
        assert question.composite_keys() == ["grid_0", "grid_1", "grid_2"]


class TestSection:
    """Tests for Section schema."""

    def test_questions_section_requires_questions(self):
        """Test questions section must carry at least one question."""
        with pytest.raises(ValidationError):
            Section(title="Empty", type="questions", questions=[])

    def test_instructions_section_rejects_questions(self):
        """Test instructions section cannot carry questions."""
        with pytest.raises(ValidationError):
            Section(
                title="Intro",
                type="instructions",
                questions=[Question(id="notes", type="text", question="Hi?")],
            )

    def test_item_counts(self):
        """Test instructions count as one item and questions count each."""
        intro = Section(title="Intro", type="instructions", content="Read this")
        body = Section(
            title="Body",
            type="questions",
            questions=[
                Question(id="a", type="text", question="A?"),
                Question(id="b", type="text", question="B?"),
            ],
        )
        assert intro.type == SectionType.INSTRUCTIONS
        assert intro.item_count == 1
        assert body.item_count == 2


class TestSurvey:
    """Tests for Survey schema."""

    def test_total_items_is_sum_of_section_items(self, small_survey):
        """Test progress denominator equals the sum of section item counts."""
        assert small_survey.total_items == sum(s.item_count for s in small_survey.sections)
        assert small_survey.total_items == 6

    def test_shipped_survey_total_items(self, leadership_survey):
        """Test the shipped survey's denominator matches its sections."""
        assert leadership_survey.total_items == sum(
            section.item_count for section in leadership_survey.sections
        )

    def test_duplicate_question_ids_rejected(self, small_survey_data):
        """Test the same id in two sections is rejected."""
        small_survey_data["sections"][2]["questions"][0]["id"] = "style"
        with pytest.raises(ValidationError) as exc_info:
            Survey.model_validate(small_survey_data)
        assert "Duplicate question IDs" in str(exc_info.value)

    def test_id_colliding_with_grid_key_rejected(self, small_survey_data):
        """Test an id spelling a grid prompt key is rejected at load time."""
        small_survey_data["sections"][2]["questions"][0]["id"] = "confidence_1"
        with pytest.raises(ValidationError) as exc_info:
            Survey.model_validate(small_survey_data)
        assert "collide" in str(exc_info.value)

    def test_survey_is_immutable(self, small_survey):
        """Test a loaded survey cannot be modified."""
        with pytest.raises(ValidationError):
            small_survey.title = "Changed"

    def test_get_question(self, small_survey):
        """Test looking up questions by id."""
        assert small_survey.get_question("energy").scale_labels == ["Low", "Mid", "High"]
        assert small_survey.get_question("missing") is None
