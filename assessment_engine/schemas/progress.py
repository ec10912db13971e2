"""Pydantic schemas for in-progress survey state.

These models describe what is written to (and read back from) the remote
progress store and the local progress cache.
"""

from datetime import datetime
from typing import ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

AnswerValue = Union[str, list[str]]


class ParticipantInfo(BaseModel):
    """Participant details collected before the questionnaire proper.

    Stored with camelCase keys so records written by older clients load
    unchanged.

    Attributes:
        full_name: Participant's full name
        date: Date the assessment was taken (ISO date string)
        company: Company or organisation
        business_area: Business area or department
        role: Job role or title
        email: Optional contact email
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    full_name: str = Field(default="", alias="fullName")
    date: str = Field(default="")
    company: str = Field(default="")
    business_area: str = Field(default="", alias="businessArea")
    role: str = Field(default="")
    email: Optional[str] = Field(default=None)

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("full_name", "date", "company", "business_area", "role")

    def missing_fields(self) -> list[str]:
        """Return the required fields that are blank."""
        return [
            name for name in self.REQUIRED_FIELDS
            if not str(getattr(self, name) or "").strip()
        ]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


class ProgressRecord(BaseModel):
    """Stored progress for one (user, survey type) pair.

    Attributes:
        current_section: Index of the active section
        current_question: Index of the active question within the section
        answers: Answer map (grid prompts keyed "{questionId}_{promptIndex}")
        participant_info: Participant details as stored JSON
        updated_at: When the record was last written
        version: Write counter used to detect writes from a stale session
    """
    current_section: int = Field(default=0, ge=0)
    current_question: int = Field(default=0, ge=0)
    answers: dict[str, AnswerValue] = Field(default_factory=dict)
    participant_info: Optional[dict] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)
    version: int = Field(default=0, ge=0)

    @property
    def has_content(self) -> bool:
        """True when there is anything worth restoring."""
        return bool(self.answers) or bool(self.participant_info)


class ProgressSaveRequest(BaseModel):
    """Body of a progress write.

    ``expected_version`` is the version the client last loaded or saved
    (0 when it has never saved). Omit it to overwrite unconditionally.
    """
    current_section: int = Field(default=0, ge=0)
    current_question: int = Field(default=0, ge=0)
    answers: dict[str, AnswerValue] = Field(default_factory=dict)
    participant_info: Optional[dict] = Field(default=None)
    expected_version: Optional[int] = Field(default=None, ge=0)

    def to_record(self) -> ProgressRecord:
        return ProgressRecord(
            current_section=self.current_section,
            current_question=self.current_question,
            answers=self.answers,
            participant_info=self.participant_info,
        )


class BeaconSaveRequest(ProgressSaveRequest):
    """Exit-time progress write, sent without waiting for a reply."""
    user_id: str = Field(..., min_length=1)
    survey_type: str = Field(..., min_length=1)


class ProgressResponse(BaseModel):
    """Stored progress plus derived position information."""
    survey_type: str
    record: Optional[ProgressRecord] = None
    progress_percent: float = 0.0
    total_items: int = 0
    is_last_item: bool = False
