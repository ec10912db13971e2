"""Question registry: lookup from answer key to question details.

Built from a survey definition as a pure function, so it can be rebuilt
whenever the definition changes. Historical submissions may reference
questions that have since been retired; lookups for those return the
``UNKNOWN_QUESTION`` sentinel instead of raising.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

from assessment_engine.schemas.survey import COMPOSITE_KEY_SEPARATOR, QuestionType, Survey
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

GRID_ITEM_TYPE = "scale-grid-item"

# Participant details collected outside the answer map: (field id, display text).
PARTICIPANT_FIELDS: tuple[tuple[str, str], ...] = (
    ("participant_name", "Full Name"),
    ("email", "Email"),
    ("role", "Role"),
    ("department", "Department"),
    ("employment_length", "Employment Length"),
    ("company", "Company"),
    ("date", "Date"),
)


@dataclass(frozen=True)
class AnswerKey:
    """Structured form of an answer-map key.

    ``prompt_index`` is set only for one prompt of a scale-grid question,
    whose string form is ``"{base_question_id}_{prompt_index}"``.
    """
    base_question_id: str
    prompt_index: Optional[int] = None

    @property
    def is_grid_item(self) -> bool:
        return self.prompt_index is not None

    def __str__(self) -> str:
        if self.prompt_index is None:
            return self.base_question_id
        return f"{self.base_question_id}{COMPOSITE_KEY_SEPARATOR}{self.prompt_index}"


@dataclass(frozen=True)
class QuestionEntry:
    """Details of one registry entry (a question or one grid prompt)."""
    key: str
    question_text: str
    section_title: str
    type: str
    options: tuple[str, ...] = ()
    prompts: tuple[str, ...] = ()
    scale_labels: tuple[str, ...] = ()
    parent_id: Optional[str] = None
    prompt_index: Optional[int] = None

    @property
    def is_grid_item(self) -> bool:
        return self.type == GRID_ITEM_TYPE

    def detail_text(self) -> str:
        """Options, scale labels or prompts joined for reference tables."""
        values = self.options or self.scale_labels or self.prompts
        return "; ".join(values) if values else "N/A"


UNKNOWN_QUESTION = QuestionEntry(
    key="",
    question_text="Unknown Question",
    section_title="Unknown Section",
    type="unknown",
)


class QuestionRegistry:
    """Read-only index of a survey's questions and grid prompts."""

    def __init__(self, entries: dict[str, QuestionEntry], grid_scale_points: int = 6):
        self._entries = dict(entries)
        self.grid_scale_points = grid_scale_points

    @classmethod
    def from_survey(cls, survey: Survey) -> "QuestionRegistry":
        """Build the registry for a survey definition.

        Every question gets an entry keyed by its id; every scale-grid prompt
        also gets its own entry keyed by its composite answer key.
        """
        entries: dict[str, QuestionEntry] = {}

        for section in survey.sections:
            for question in section.questions or []:
                entries[question.id] = QuestionEntry(
                    key=question.id,
                    question_text=question.question,
                    section_title=section.title,
                    type=question.type.value,
                    options=tuple(question.options or ()),
                    prompts=tuple(question.prompts or ()),
                    scale_labels=tuple(question.scale_labels or ()),
                )

                if question.type == QuestionType.SCALE_GRID:
                    for index, prompt in enumerate(question.prompts):
                        composite = question.composite_key(index)
                        entries[composite] = QuestionEntry(
                            key=composite,
                            question_text=prompt,
                            section_title=section.title,
                            type=GRID_ITEM_TYPE,
                            prompts=tuple(question.prompts),
                            parent_id=question.id,
                            prompt_index=index,
                        )

        logger.debug(f"Built question registry with {len(entries)} entries")
        return cls(entries, grid_scale_points=survey.grid_scale_points)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def entries(self) -> list[QuestionEntry]:
        """All entries in survey order."""
        return list(self._entries.values())

    @property
    def participant_fields(self) -> tuple[tuple[str, str], ...]:
        return PARTICIPANT_FIELDS

    def get(self, key: str) -> QuestionEntry:
        """Look up an entry, returning ``UNKNOWN_QUESTION`` on a miss."""
        return self._entries.get(key, UNKNOWN_QUESTION)

    def parse_key(self, key: str) -> AnswerKey:
        """Split an answer key into question id and optional prompt index.

        Keys known to the registry resolve exactly. Unknown keys (retired
        questions) fall back to splitting a trailing numeric segment.
        """
        entry = self._entries.get(key)
        if entry is not None:
            if entry.is_grid_item:
                return AnswerKey(entry.parent_id, entry.prompt_index)
            return AnswerKey(key)

        head, separator, tail = key.rpartition(COMPOSITE_KEY_SEPARATOR)
        if separator and head and tail.isdigit():
            return AnswerKey(head, int(tail))
        return AnswerKey(key)

    def base_entry(self, key: str) -> QuestionEntry:
        """Entry of the question that owns ``key`` (the grid for a grid prompt)."""
        return self.get(self.parse_key(key).base_question_id)

    def find_by_text(self, text: str) -> Optional[str]:
        """Find the key whose question text matches, exactly then case-insensitively."""
        for key, entry in self._entries.items():
            if entry.question_text == text:
                return key

        folded = text.strip().casefold()
        for key, entry in self._entries.items():
            if entry.question_text.strip().casefold() == folded:
                return key
        return None

    def resolve(self, key_or_text: str) -> Optional[str]:
        """Canonical key for an answer key or a literal question text."""
        if key_or_text in self._entries:
            return key_or_text
        return self.find_by_text(key_or_text)

    def question_text(self, key: str) -> str:
        """Human-readable question text for an answer key.

        Grid prompts read ``"{question}: {prompt}"``. Unknown keys that look
        like literal question text are returned unchanged.
        """
        entry = self._entries.get(key)
        if entry is not None:
            if entry.is_grid_item:
                parent = self._entries[entry.parent_id]
                return f"{parent.question_text}: {entry.question_text}"
            return entry.question_text

        parsed = self.parse_key(key)
        if parsed.is_grid_item:
            parent = self.get(parsed.base_question_id)
            if parent.type == QuestionType.SCALE_GRID.value and parsed.prompt_index < len(parent.prompts):
                return f"{parent.question_text}: {parent.prompts[parsed.prompt_index]}"

        matched = self.find_by_text(key)
        if matched is not None:
            return self._entries[matched].question_text

        if len(key) > 10 and " " in key:
            return key

        return f"Unknown Question ({key})"

    def section_title(self, key: str) -> str:
        """Section that owns the question behind ``key``."""
        entry = self.base_entry(key)
        if entry is not UNKNOWN_QUESTION:
            return entry.section_title

        matched = self.find_by_text(key)
        if matched is not None:
            return self._entries[matched].section_title

        return UNKNOWN_QUESTION.section_title

    def reference_rows(self) -> list[dict[str, str]]:
        """Rows for the Question Reference sheet, one per entry."""
        return [
            {
                "Question ID": entry.key,
                "Section": entry.section_title,
                "Question Text": entry.question_text,
                "Question Type": entry.type,
                "Options/Scale": entry.detail_text(),
            }
            for entry in self._entries.values()
        ]
