"""Convert stored answer values into human-readable text for reports."""

from typing import Any, Optional

from assessment_engine.schemas.survey import QuestionType
from assessment_engine.services.question_registry import QuestionRegistry


def _as_scale_point(value: Any) -> Optional[int]:
    """Return the integer scale point stored in ``value``, if it holds one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
    return None


def _join(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(_join(item) for item in value)
    if isinstance(value, dict):
        return "; ".join(f"{key}: {_join(item)}" for key, item in value.items())
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if value is None:
        return ""
    return str(value)


def format_answer(registry: QuestionRegistry, key: str, value: Any) -> str:
    """Format one stored answer for display.

    Scale answers are 1-based points mapped onto the question's labels;
    scale-grid prompt answers render as ``"Rating: n/{points}"``; lists are
    comma-joined. Answers to unknown questions are stringified as-is.

    Args:
        registry: Question registry for the survey
        key: Answer key (question id or grid prompt key)
        value: Stored answer value

    Returns:
        Display text ("" for a missing answer)

    Example:
        >>> format_answer(registry, "purpose_5", "2")
        "I'm going through the motions"
    """
    if value is None:
        return ""

    parsed = registry.parse_key(key)
    entry = registry.get(parsed.base_question_id)
    point = _as_scale_point(value)

    if entry.type == QuestionType.SCALE.value and not parsed.is_grid_item and point is not None:
        if 1 <= point <= len(entry.scale_labels):
            return entry.scale_labels[point - 1]
        return f"Rating: {point}"

    if entry.type == QuestionType.SCALE_GRID.value and parsed.is_grid_item and point is not None:
        return f"Rating: {point}/{registry.grid_scale_points}"

    return _join(value)
