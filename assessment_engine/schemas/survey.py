"""Pydantic schemas for survey definitions.

This module defines the structure and validation rules for survey YAML files
and stored survey configurations. All surveys must conform to these schemas
before they can be delivered or used for reporting.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Separator between a scale-grid question id and its prompt index in answer keys.
COMPOSITE_KEY_SEPARATOR = "_"


class QuestionType(str, Enum):
    """Valid question types in survey definitions."""
    RADIO = "radio"
    CHECKBOX = "checkbox"
    SCALE = "scale"
    SCALE_GRID = "scale-grid"
    TEXT = "text"


class SectionType(str, Enum):
    """Valid section types in survey definitions."""
    INSTRUCTIONS = "instructions"
    QUESTIONS = "questions"


class Question(BaseModel):
    """A single question in a questionnaire section.

    Different question types use different fields:
    - radio: options
    - checkbox: options, maxSelections (optional)
    - scale: scaleLabels
    - scale-grid: prompts
    - text: no extra fields

    Attributes:
        id: Identifier, unique across the whole survey
        type: Question type
        question: Question text shown to the learner
        options: Choices for radio/checkbox questions
        max_selections: Upper bound on checkbox selections
        scale_labels: Labels for each point of a scale question (1-based)
        prompts: Sub-items of a scale-grid question, each rated separately
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique question identifier")
    type: QuestionType = Field(..., description="Question type")
    question: str = Field(..., min_length=1, description="Question text")
    options: Optional[list[str]] = Field(None, description="Choice options")
    max_selections: Optional[int] = Field(
        None, ge=1, alias="maxSelections", description="Maximum checkbox selections"
    )
    scale_labels: Optional[list[str]] = Field(
        None, alias="scaleLabels", description="Scale point labels"
    )
    prompts: Optional[list[str]] = Field(None, description="Scale-grid prompts")

    @model_validator(mode='after')
    def validate_type_requirements(self):
        """Validate question-specific requirements based on type."""
        if self.type in (QuestionType.RADIO, QuestionType.CHECKBOX):
            if not self.options:
                raise ValueError(f"{self.type.value} question '{self.id}' must have options")

        if self.type == QuestionType.CHECKBOX and self.max_selections is not None:
            if self.max_selections > len(self.options):
                raise ValueError(
                    f"Checkbox question '{self.id}' allows more selections than it has options"
                )

        if self.type == QuestionType.SCALE and not self.scale_labels:
            raise ValueError(f"Scale question '{self.id}' must have scaleLabels")

        if self.type == QuestionType.SCALE_GRID and not self.prompts:
            raise ValueError(f"Scale-grid question '{self.id}' must have prompts")

        return self

    def composite_key(self, prompt_index: int) -> str:
        """Return the answer key for one prompt of a scale-grid question."""
        return f"{self.id}{COMPOSITE_KEY_SEPARATOR}{prompt_index}"

    def composite_keys(self) -> list[str]:
        """Return answer keys for every prompt (empty for non-grid questions)."""
        if self.type != QuestionType.SCALE_GRID:
            return []
        return [self.composite_key(index) for index in range(len(self.prompts))]


class Section(BaseModel):
    """A survey section: either an instructions page or a list of questions.

    Attributes:
        title: Section heading
        type: instructions or questions
        description: Optional lead-in text
        content: Body text of an instructions section
        questions: Questions of a questions section
    """
    title: str = Field(..., min_length=1, description="Section title")
    type: SectionType = Field(..., description="Section type")
    description: Optional[str] = Field(None, description="Section description")
    content: Optional[str] = Field(None, description="Instructions text")
    questions: Optional[list[Question]] = Field(None, description="Section questions")

    @model_validator(mode='after')
    def validate_section_requirements(self):
        """Validate that the section carries the field its type needs."""
        if self.type == SectionType.QUESTIONS and not self.questions:
            raise ValueError(f"Questions section '{self.title}' must have at least one question")

        if self.type == SectionType.INSTRUCTIONS and self.questions:
            raise ValueError(f"Instructions section '{self.title}' cannot have questions")

        return self

    @property
    def is_instructions(self) -> bool:
        return self.type == SectionType.INSTRUCTIONS

    @property
    def item_count(self) -> int:
        """Number of progress items: 1 for instructions, else the question count."""
        if self.is_instructions:
            return 1
        return len(self.questions)


class Survey(BaseModel):
    """Complete survey definition.

    Root schema for survey YAML files and stored survey configurations.
    Immutable for the lifetime of a session once loaded.

    Attributes:
        title: Survey title
        description: Survey description
        sections: Ordered sections
        grid_scale_points: Number of points on the shared scale-grid scale
    """
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    description: str = Field(default="")
    sections: list[Section] = Field(..., min_length=1)
    grid_scale_points: int = Field(default=6, ge=2, le=10)

    @model_validator(mode='after')
    def validate_survey_structure(self):
        """Validate question id uniqueness and composite-key safety."""
        question_ids = [question.id for question in self.iter_questions()]

        if len(question_ids) != len(set(question_ids)):
            duplicates = sorted({qid for qid in question_ids if question_ids.count(qid) > 1})
            raise ValueError(f"Duplicate question IDs found: {duplicates}")

        # A question id that spells a grid prompt key would make that key ambiguous.
        composite_keys = {
            key for question in self.iter_questions() for key in question.composite_keys()
        }
        colliding = sorted(composite_keys & set(question_ids))
        if colliding:
            raise ValueError(
                f"Question IDs collide with scale-grid answer keys: {colliding}"
            )

        return self

    def iter_questions(self):
        """Yield every question across all questions sections, in order."""
        for section in self.sections:
            for question in section.questions or []:
                yield question

    def get_question(self, question_id: str) -> Optional[Question]:
        """Get question by ID.

        Args:
            question_id: Question identifier

        Returns:
            Question if found, None otherwise
        """
        for question in self.iter_questions():
            if question.id == question_id:
                return question
        return None

    @property
    def total_items(self) -> int:
        """Progress denominator: sum of every section's item count."""
        return sum(section.item_count for section in self.sections)
