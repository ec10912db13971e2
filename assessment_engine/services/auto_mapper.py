"""Map arbitrary spreadsheet column headers onto survey question ids.

Used when importing externally collected responses: every header is scored
against the participant fields and each registry entry, and weak matches
fall back to a battery of keyword rules.
"""

from dataclasses import dataclass
from typing import Optional

from assessment_engine.schemas.submission import MappingSuggestion
from assessment_engine.services.question_registry import PARTICIPANT_FIELDS, QuestionRegistry
from assessment_engine.services.similarity import match_reason, normalize, score_similarity
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

CANDIDATE_THRESHOLD = 0.4
PATTERN_FALLBACK_BELOW = 0.6
MAPPING_THRESHOLD = 0.5

_PARTICIPANT_IDS = frozenset(field_id for field_id, _ in PARTICIPANT_FIELDS)


@dataclass(frozen=True)
class PatternRule:
    """Keyword fallback rule.

    The rule matches when every term of at least one group appears in the
    lower-cased header.
    """
    groups: tuple[tuple[str, ...], ...]
    target: str
    confidence: float
    reason: str

    def matches(self, header: str) -> bool:
        return any(all(term in header for term in group) for group in self.groups)


PATTERN_RULES: tuple[PatternRule, ...] = (
    # Participant details
    PatternRule((("name",), ("participant",)), "participant_name", 0.8, "Name pattern"),
    PatternRule((("email",), ("e-mail",)), "email", 0.8, "Email pattern"),
    PatternRule((("company",), ("organization",), ("organisation",)), "company", 0.8, "Company pattern"),
    PatternRule((("role",), ("position",), ("title",)), "role", 0.8, "Role pattern"),
    PatternRule((("department",), ("dept",)), "department", 0.8, "Department pattern"),
    PatternRule((("employment",), ("tenure",), ("years",)), "employment_length", 0.8, "Employment pattern"),
    PatternRule((("date",), ("submitted",), ("timestamp",)), "date", 0.8, "Date pattern"),
    # Questions of the leadership assessment
    PatternRule((("leadership style", "current"),), "sentiment_1", 0.8, "Leadership style pattern"),
    PatternRule((("confidence", "leadership"),), "sentiment_2", 0.8, "Confidence pattern"),
    PatternRule((("mindset",), ("leadership", "approach")), "sentiment_3", 0.8, "Mindset pattern"),
    PatternRule((("challeng",), ("difficult",)), "sentiment_4", 0.7, "Challenge pattern"),
    PatternRule((("exciting",), ("energis",), ("motivat",)), "sentiment_5", 0.7, "Excitement pattern"),
    PatternRule((("matters most",), ("what", "leader")), "sentiment_6", 0.8, "What matters pattern"),
    PatternRule((("purpose", "rating"),), "purpose_5", 0.8, "Purpose rating pattern"),
)


@dataclass(frozen=True)
class _Match:
    target: str
    confidence: float
    reason: str


def mapping_candidates(registry: QuestionRegistry) -> list[tuple[str, str]]:
    """(id, text) pairs to score: participant fields, then registry entries."""
    candidates = list(registry.participant_fields)
    candidates.extend((entry.key, entry.question_text) for entry in registry.entries())
    return candidates


def _best_similarity(
    header: str,
    candidates: list[tuple[str, str]],
    minimum: float,
    default_reason: str,
) -> Optional[_Match]:
    best: Optional[_Match] = None
    for candidate_id, text in candidates:
        score = score_similarity(header, text)
        # Strict comparison keeps the earliest candidate on ties
        if score > minimum and (best is None or score > best.confidence):
            best = _Match(candidate_id, score, match_reason(score, default_reason))
    return best


def _pattern_match(header: str, registry: QuestionRegistry) -> Optional[_Match]:
    lowered = normalize(header)
    for rule in PATTERN_RULES:
        if rule.target not in _PARTICIPANT_IDS and rule.target not in registry:
            continue
        if rule.matches(lowered):
            return _Match(rule.target, rule.confidence, rule.reason)
    return None


def auto_map_columns(headers: list[str], registry: QuestionRegistry) -> dict[str, str]:
    """Map each header to a question or participant field id.

    Headers whose best match scores below 0.5 are left out of the result.

    Args:
        headers: Column headers as they appear in the uploaded sheet
        registry: Question registry for the survey being imported

    Returns:
        dict mapping header to id

    Example:
        >>> auto_map_columns(["Full Name", "E-mail", "xyz_random"], registry)
        {'Full Name': 'participant_name', 'E-mail': 'email'}
    """
    candidates = mapping_candidates(registry)
    mapping: dict[str, str] = {}

    for header in headers:
        best = _best_similarity(header, candidates, CANDIDATE_THRESHOLD, "Good match")

        if best is None or best.confidence < PATTERN_FALLBACK_BELOW:
            pattern = _pattern_match(header, registry)
            if pattern is not None:
                best = pattern

        if best is not None and best.confidence >= MAPPING_THRESHOLD:
            mapping[header] = best.target
            logger.debug(
                f"Mapped column '{header}' -> {best.target} "
                f"({best.confidence:.2f}, {best.reason})"
            )
        else:
            logger.debug(f"Left column '{header}' unmapped")

    logger.info(f"Auto-mapped {len(mapping)} of {len(headers)} columns")
    return mapping


def get_mapping_suggestions(headers: list[str], registry: QuestionRegistry) -> list[MappingSuggestion]:
    """Best similarity candidate for every header, unfiltered by confidence."""
    candidates = mapping_candidates(registry)
    suggestions = []

    for header in headers:
        best = _best_similarity(header, candidates, 0.0, "Partial match")
        if best is None:
            suggestions.append(MappingSuggestion(
                column_header=header,
                suggested_mapping="",
                confidence=0.0,
                match_reason="No match",
            ))
            continue

        suggestions.append(MappingSuggestion(
            column_header=header,
            suggested_mapping=best.target,
            confidence=round(best.confidence, 4),
            match_reason=best.reason,
        ))

    return suggestions
