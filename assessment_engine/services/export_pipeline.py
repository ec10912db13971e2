"""Export historical survey submissions as CSV or an Excel workbook.

Submissions were stored in two shapes over time:

- old format: ``{"<anything>": {"question": "<text>", "answer": <value>}}``
- new format: ``{"<question id>": <value>}``

Both are reconciled onto one column per underlying question. The pipeline
is a pure function of its inputs; callers fetch submissions and deliver the
resulting bytes.
"""

import csv
import io
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font

from assessment_engine.schemas.submission import (
    COMPLETED_STATUSES,
    ExportFormat,
    ExportOptions,
    SurveySubmission,
)
from assessment_engine.services.answer_formatter import format_answer
from assessment_engine.services.question_registry import QuestionRegistry
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

NO_SUBMISSIONS_MESSAGE = "No submissions found matching the selected criteria."

BASE_HEADERS = (
    "Learner Name",
    "Submission Date",
    "Status",
    "Participant Name",
    "Company",
    "Role",
    "Business Area",
)

PARTICIPANT_INFO_KEYS = ("participant_info", "participantInfo", "Participant Information")
PARTICIPANT_INFO_QUESTION = "Participant Information"

SUMMARY_SHEET = "Summary"
DETAIL_SHEET = "Detailed Responses"
REFERENCE_SHEET = "Question Reference"
REFERENCE_HEADERS = ("Question ID", "Section", "Question Text", "Question Type", "Options/Scale")

FILE_EXTENSIONS = {ExportFormat.CSV: "csv", ExportFormat.EXCEL: "xlsx"}
MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


class NoSubmissionsError(Exception):
    """Raised when no submissions match the export filters."""

    def __init__(self, message: str = NO_SUBMISSIONS_MESSAGE):
        super().__init__(message)


class ExportError(Exception):
    """Raised when an export artifact cannot be produced."""
    pass


@dataclass
class ExportTables:
    """Tabular content of an export, independent of the output format."""
    summary: list[tuple[str, Any]]
    headers: list[str]
    rows: list[dict[str, str]]
    reference: list[dict[str, str]] = field(default_factory=list)


def _utc_date(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def filter_submissions(
    submissions: Iterable[SurveySubmission],
    options: ExportOptions,
) -> list[SurveySubmission]:
    """Apply the completion and inclusive date-range filters.

    Raises:
        NoSubmissionsError: If nothing is left after filtering
    """
    selected = []
    for submission in submissions:
        if options.include_only_completed and not submission.is_completed:
            continue
        if options.start or options.end:
            if submission.submitted_at is None:
                continue
            submitted_on = _utc_date(submission.submitted_at)
            if options.start and submitted_on < options.start:
                continue
            if options.end and submitted_on > options.end:
                continue
        selected.append(submission)

    if not selected:
        logger.info(
            f"No submissions matched export filters (completed_only={options.include_only_completed}, "
            f"start={options.start}, end={options.end})"
        )
        raise NoSubmissionsError()
    return selected


def _is_old_format(value: Any) -> bool:
    return isinstance(value, dict) and "question" in value


def _unwrap(value: Any) -> Any:
    if isinstance(value, dict) and "answer" in value:
        return value["answer"]
    return value


def _is_participant_entry(key: str, value: Any) -> bool:
    if key in PARTICIPANT_INFO_KEYS:
        return True
    return _is_old_format(value) and PARTICIPANT_INFO_QUESTION in str(value["question"])


def extract_participant_info(responses: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Find participant details in any of their historical locations."""
    if not responses:
        return {}

    for key in PARTICIPANT_INFO_KEYS:
        if responses.get(key):
            info = _unwrap(responses[key])
            return info if isinstance(info, dict) else {}

    for value in responses.values():
        if _is_old_format(value) and PARTICIPANT_INFO_QUESTION in str(value["question"]):
            info = value.get("answer") or {}
            return info if isinstance(info, dict) else {}

    return {}


def _first(info: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = info.get(key)
        if value:
            return str(value)
    return ""


class _ColumnIndex:
    """Assigns each answer entry to a canonical column, in first-seen order."""

    def __init__(self, registry: QuestionRegistry):
        self.registry = registry
        self.keys: list[str] = []
        self._seen: set[str] = set()
        self._unresolved: dict[str, str] = {}

    def canonical(self, key: str, value: Any) -> str:
        if _is_old_format(value):
            text = str(value["question"])
            resolved = self.registry.resolve(text) or (key if key in self.registry else None)
            literal = text
        else:
            resolved = self.registry.resolve(key)
            literal = key

        if resolved is not None:
            return resolved

        # Unknown questions: unify case variants onto the first spelling seen
        folded = literal.strip().casefold()
        if folded not in self._unresolved:
            self._unresolved[folded] = literal
            logger.warning(f"Export includes answers to unknown question '{literal}'")
        return self._unresolved[folded]

    def add(self, key: str) -> None:
        if key not in self._seen:
            self._seen.add(key)
            self.keys.append(key)


def _submission_answers(
    submission: SurveySubmission,
    columns: _ColumnIndex,
) -> dict[str, Any]:
    answers: dict[str, Any] = {}
    for key, value in (submission.responses or {}).items():
        if _is_participant_entry(key, value):
            continue
        column = columns.canonical(key, value)
        columns.add(column)
        answer = _unwrap(value)
        if answer is not None and answers.get(column) is None:
            answers[column] = answer
    return answers


def _column_headers(keys: list[str], registry: QuestionRegistry) -> list[str]:
    headers = []
    used = set(BASE_HEADERS)
    for key in keys:
        header = f"{registry.section_title(key)}: {registry.question_text(key)}"
        if header in used:
            header = f"{header} [{key}]"
        used.add(header)
        headers.append(header)
    return headers


def build_summary(
    submissions: list[SurveySubmission],
    now: datetime,
    recent_days: int = 7,
) -> list[tuple[str, Any]]:
    """Metric/value rows for the Summary sheet."""
    total = len(submissions)
    completed = sum(1 for s in submissions if s.status in COMPLETED_STATUSES)
    pending = sum(1 for s in submissions if s.status == "pending")
    rejected = sum(1 for s in submissions if s.status == "rejected")
    rate = completed / total * 100 if total else 0.0

    cutoff = now - timedelta(days=recent_days)
    recent = 0
    for submission in submissions:
        submitted = submission.submitted_at
        if submitted is None:
            continue
        if submitted.tzinfo is None:
            submitted = submitted.replace(tzinfo=timezone.utc)
        if submitted >= cutoff:
            recent += 1

    return [
        ("Total Submissions", total),
        ("Completed Surveys", completed),
        ("Pending Reviews", pending),
        ("Rejected Surveys", rejected),
        ("Completion Rate", f"{rate:.1f}%"),
        ("Export Date", now.strftime("%Y-%m-%d %H:%M:%S UTC")),
        ("", ""),
        (f"Recent Submissions (Last {recent_days} Days)", recent),
    ]


def build_export(
    submissions: Iterable[SurveySubmission],
    registry: QuestionRegistry,
    options: Optional[ExportOptions] = None,
    now: Optional[datetime] = None,
    recent_days: int = 7,
) -> ExportTables:
    """Filter submissions and build the summary, detail and reference tables.

    Args:
        submissions: Submissions to export
        registry: Question registry of the survey the submissions answer
        options: Filters (defaults: completed only, no date range)
        now: Export timestamp (defaults to the current UTC time)
        recent_days: Window for the recent submissions metric

    Returns:
        ExportTables: Content ready for render_csv or render_workbook

    Raises:
        NoSubmissionsError: If no submission passes the filters
    """
    options = options or ExportOptions()
    now = now or datetime.now(timezone.utc)
    selected = filter_submissions(submissions, options)

    columns = _ColumnIndex(registry)
    per_submission = [_submission_answers(submission, columns) for submission in selected]
    question_headers = _column_headers(columns.keys, registry)

    rows = []
    for submission, answers in zip(selected, per_submission):
        info = extract_participant_info(submission.responses)
        row = {
            "Learner Name": submission.learner_name or "",
            "Submission Date": (
                _utc_date(submission.submitted_at).isoformat() if submission.submitted_at else ""
            ),
            "Status": submission.status or "",
            "Participant Name": _first(info, "name", "fullName", "full_name"),
            "Company": _first(info, "company"),
            "Role": _first(info, "role"),
            "Business Area": _first(info, "businessArea", "business_area"),
        }
        for key, header in zip(columns.keys, question_headers):
            row[header] = format_answer(registry, key, answers.get(key))
        rows.append(row)

    logger.info(
        f"Built export of {len(rows)} submissions with {len(question_headers)} question columns"
    )
    return ExportTables(
        summary=build_summary(selected, now, recent_days),
        headers=list(BASE_HEADERS) + question_headers,
        rows=rows,
        reference=registry.reference_rows(),
    )


def render_csv(tables: ExportTables) -> str:
    """Detailed Responses table as CSV text."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=tables.headers, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(tables.rows)
    return buffer.getvalue()


def _append_table(sheet, headers: Iterable[str], rows: Iterable[Iterable[Any]]) -> None:
    sheet.append(list(headers))
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for row in rows:
        sheet.append(list(row))


def render_workbook(tables: ExportTables) -> bytes:
    """Summary, Detailed Responses and Question Reference sheets as xlsx bytes.

    Raises:
        ExportError: If the workbook cannot be written
    """
    wb = Workbook()
    summary = wb.active
    summary.title = SUMMARY_SHEET
    _append_table(summary, ("Metric", "Value"), tables.summary)

    detail = wb.create_sheet(DETAIL_SHEET)
    _append_table(
        detail,
        tables.headers,
        ([row.get(header, "") for header in tables.headers] for row in tables.rows),
    )

    reference = wb.create_sheet(REFERENCE_SHEET)
    _append_table(
        reference,
        REFERENCE_HEADERS,
        ([row.get(header, "") for header in REFERENCE_HEADERS] for row in tables.reference),
    )

    buffer = io.BytesIO()
    try:
        wb.save(buffer)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to write export workbook: {e}", exc_info=True)
        raise ExportError(f"Failed to write export workbook: {e}") from e
    return buffer.getvalue()


def export_filename(export_format: ExportFormat, today: Optional[date] = None) -> str:
    """File name such as ``survey_data_export_2024-05-01.xlsx``."""
    today = today or datetime.now(timezone.utc).date()
    return f"survey_data_export_{today.isoformat()}.{FILE_EXTENSIONS[export_format]}"


def render(tables: ExportTables, export_format: ExportFormat) -> bytes:
    """Render tables in the requested format."""
    if export_format == ExportFormat.CSV:
        return render_csv(tables).encode("utf-8")
    return render_workbook(tables)
