"""Progress state machine for delivering a multi-section questionnaire.

Tracks the section/question cursor and the answer map, validates whether the
current item has been answered, and computes overall progress. Transitions
are synchronous and never raise: invalid navigation is a no-op and invalid
input is refused with a False return value.

Completion is not stored. ``next()`` returns True when called on the last
item of the last section, and the caller decides what completing means.
"""

from typing import Any, Callable, Optional, Union

from assessment_engine.schemas.progress import AnswerValue, ParticipantInfo, ProgressRecord
from assessment_engine.schemas.survey import Question, QuestionType, Section, Survey
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

ProgressListener = Callable[[str], None]

# Change kinds passed to listeners
ANSWER_CHANGED = "answer"
PARTICIPANT_CHANGED = "participant_info"
NAVIGATED = "navigation"
RESTORED = "restored"


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


class ProgressStateMachine:
    """Cursor, answers and validation for one learner's pass through a survey.

    Attributes:
        survey: Survey definition being delivered
        current_section: Index of the active section
        current_question: Index of the active question (0 for instructions)
        answers: Answer map; scale-grid prompts are keyed "{id}_{index}"
        participant_info: Participant details, once provided
        collecting_participant_info: True while the participant-info step
            that precedes the first section is active
        revision: Incremented on every mutation
    """

    def __init__(
        self,
        survey: Survey,
        state: Optional[ProgressRecord] = None,
        collect_participant_info: bool = False,
    ):
        self.survey = survey
        self.current_section = 0
        self.current_question = 0
        self.answers: dict[str, AnswerValue] = {}
        self.participant_info: Optional[ParticipantInfo] = None
        self.collect_participant_info = collect_participant_info
        self.collecting_participant_info = collect_participant_info
        self.revision = 0
        self._listeners: list[ProgressListener] = []

        if state is not None:
            self.restore(state, notify=False)

    # Observation

    def add_listener(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a callback fired after every mutation; returns its remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _changed(self, kind: str) -> None:
        self.revision += 1
        for listener in list(self._listeners):
            listener(kind)

    # Derived state

    @property
    def total_sections(self) -> int:
        return len(self.survey.sections)

    @property
    def current_section_data(self) -> Section:
        return self.survey.sections[self.current_section]

    @property
    def is_instructions_section(self) -> bool:
        return self.current_section_data.is_instructions

    @property
    def total_questions(self) -> int:
        """Items in the active section (1 for an instructions section)."""
        return self.current_section_data.item_count

    @property
    def current_question_data(self) -> Optional[Question]:
        if self.collecting_participant_info or self.is_instructions_section:
            return None
        return self.current_section_data.questions[self.current_question]

    @property
    def total_items(self) -> int:
        return self.survey.total_items

    @property
    def completed_items(self) -> int:
        """Items in fully passed sections plus the cursor position in the active one."""
        if self.collecting_participant_info:
            return 0
        passed = sum(
            section.item_count for section in self.survey.sections[:self.current_section]
        )
        if self.is_instructions_section:
            return passed
        return passed + self.current_question

    @property
    def progress(self) -> float:
        """Percentage complete; exactly 100 on the final item."""
        if self.total_items == 0 or self.collecting_participant_info:
            return 0.0
        if self.is_last_item:
            return 100.0
        return self.completed_items / self.total_items * 100

    @property
    def is_first_item(self) -> bool:
        if self.collecting_participant_info:
            return True
        return self.current_section == 0 and self.current_question == 0

    @property
    def is_last_item(self) -> bool:
        if self.collecting_participant_info:
            return False
        return (
            self.current_section == self.total_sections - 1
            and self.current_question >= self.total_questions - 1
        )

    def is_current_answered(self) -> bool:
        """Whether the current item has a complete answer.

        Instructions sections never gate. A scale-grid question needs every
        prompt answered; a checkbox question needs at least one selection;
        other questions need non-blank text.
        """
        if self.collecting_participant_info:
            return self.participant_info is not None and self.participant_info.is_complete

        if self.is_instructions_section:
            return True

        question = self.current_question_data
        if question is None:
            return False

        if question.type == QuestionType.SCALE_GRID:
            return all(_has_text(self.answers.get(key)) for key in question.composite_keys())

        answer = self.answers.get(question.id)
        if question.type == QuestionType.CHECKBOX:
            return isinstance(answer, list) and len(answer) > 0

        if isinstance(answer, list):
            return len(answer) > 0
        return _has_text(answer)

    # Mutations

    def set_answer(self, value: AnswerValue) -> bool:
        """Store the answer for the current (non-grid) question.

        Checkbox answers must be lists within the question's selection limit.

        Returns:
            True if stored, False if refused
        """
        question = self.current_question_data
        if question is None or question.type == QuestionType.SCALE_GRID:
            return False

        if question.type == QuestionType.CHECKBOX:
            if not isinstance(value, list):
                return False
            if question.max_selections is not None and len(value) > question.max_selections:
                logger.debug(
                    f"Refused {len(value)} selections for {question.id} "
                    f"(limit {question.max_selections})"
                )
                return False
            value = list(value)

        self.answers[question.id] = value
        self._changed(ANSWER_CHANGED)
        return True

    def toggle_option(self, option: str) -> bool:
        """Select or deselect one option of the current checkbox question.

        Selecting beyond ``maxSelections`` is refused.

        Returns:
            True if the selection changed
        """
        question = self.current_question_data
        if question is None or question.type != QuestionType.CHECKBOX:
            return False
        if option not in question.options:
            return False

        selected = list(self.answers.get(question.id) or [])
        if option in selected:
            selected.remove(option)
        else:
            if question.max_selections is not None and len(selected) >= question.max_selections:
                return False
            selected.append(option)

        self.answers[question.id] = selected
        self._changed(ANSWER_CHANGED)
        return True

    def set_scale_grid_answer(self, prompt_index: int, value: str) -> bool:
        """Store the rating for one prompt of the current scale-grid question."""
        question = self.current_question_data
        if question is None or question.type != QuestionType.SCALE_GRID:
            return False
        if not 0 <= prompt_index < len(question.prompts):
            return False

        self.answers[question.composite_key(prompt_index)] = value
        self._changed(ANSWER_CHANGED)
        return True

    def set_participant_info(self, info: Union[ParticipantInfo, dict]) -> None:
        """Store participant details (validation happens in is_current_answered)."""
        if not isinstance(info, ParticipantInfo):
            info = ParticipantInfo.model_validate(info)
        self.participant_info = info
        self._changed(PARTICIPANT_CHANGED)

    def next(self) -> bool:
        """Advance the cursor.

        Returns:
            True if called on the final item (the survey is complete),
            False otherwise
        """
        if self.collecting_participant_info:
            self.collecting_participant_info = False
            self._changed(NAVIGATED)
            return False

        if self.is_instructions_section or self.current_question >= self.total_questions - 1:
            if self.current_section < self.total_sections - 1:
                self.current_section += 1
                self.current_question = 0
                self._changed(NAVIGATED)
                return False
            return True

        self.current_question += 1
        self._changed(NAVIGATED)
        return False

    def previous(self) -> None:
        """Move the cursor back one item; a no-op on the first item."""
        if self.collecting_participant_info:
            return

        if self.current_question > 0:
            self.current_question -= 1
            self._changed(NAVIGATED)
            return

        if self.current_section == 0:
            return

        self.current_section -= 1
        section = self.current_section_data
        self.current_question = 0 if section.is_instructions else section.item_count - 1
        self._changed(NAVIGATED)

    # Snapshot

    def to_record(self) -> ProgressRecord:
        """Snapshot the state for persistence."""
        return ProgressRecord(
            current_section=self.current_section,
            current_question=self.current_question,
            answers={
                key: list(value) if isinstance(value, list) else value
                for key, value in self.answers.items()
            },
            participant_info=(
                self.participant_info.model_dump(by_alias=True, exclude_none=True)
                if self.participant_info is not None else None
            ),
        )

    def restore(self, record: ProgressRecord, notify: bool = True) -> None:
        """Load a stored snapshot, clamping the cursor into the current survey.

        A stored cursor can point past the end when the survey definition
        has been shortened since the progress was saved.
        """
        section_index = min(record.current_section, self.total_sections - 1)
        section = self.survey.sections[section_index]
        question_index = min(record.current_question, section.item_count - 1)
        if section.is_instructions:
            question_index = 0

        if (section_index, question_index) != (record.current_section, record.current_question):
            logger.warning(
                f"Clamped restored cursor ({record.current_section}, {record.current_question}) "
                f"to ({section_index}, {question_index})"
            )

        self.current_section = section_index
        self.current_question = question_index
        self.answers = dict(record.answers)
        self.participant_info = (
            ParticipantInfo.model_validate(record.participant_info)
            if record.participant_info else None
        )
        self.collecting_participant_info = self.collect_participant_info and not (
            self.participant_info is not None and self.participant_info.is_complete
        )

        if notify:
            self._changed(RESTORED)
