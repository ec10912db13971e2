"""Text similarity scoring for matching column headers to questions.

Pure functions with no registry knowledge, so thresholds can be tuned and
tested in isolation from the auto-mapper.
"""

import re

EXACT_SCORE = 1.0
CONTAINS_SCORE = 0.9
KEY_TERM_BONUS = 0.1
MIN_PARTIAL_TOKEN_LENGTH = 3

# Domain terms that earn a bonus when both texts mention them
KEY_TERMS = (
    "leadership",
    "leader",
    "team",
    "decision",
    "strategic",
    "agility",
    "mindset",
    "confidence",
    "purpose",
)

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def normalize(text: str) -> str:
    return text.strip().lower()


def tokenize(text: str) -> list[str]:
    """Split normalized text into alphanumeric tokens."""
    return [token for token in _TOKEN_SPLIT.split(normalize(text)) if token]


def _tokens_match(a: str, b: str) -> bool:
    if a == b:
        return True
    if len(a) < MIN_PARTIAL_TOKEN_LENGTH or len(b) < MIN_PARTIAL_TOKEN_LENGTH:
        return False
    return a in b or b in a


def score_similarity(a: str, b: str) -> float:
    """Score how alike two texts are, from 0.0 to 1.0.

    Exact (case-insensitive) matches score 1.0 and containment in either
    direction scores 0.9. Otherwise the score is the share of tokens of
    ``a`` found in ``b`` (relative to the longer token list), plus a small
    bonus when both texts mention the same key term.

    Example:
        >>> score_similarity("Full Name", "full name")
        1.0
        >>> score_similarity("E-mail", "Email")
        0.5
    """
    s1 = normalize(a)
    s2 = normalize(b)
    if not s1 or not s2:
        return 0.0

    if s1 == s2:
        return EXACT_SCORE
    if s1 in s2 or s2 in s1:
        return CONTAINS_SCORE

    tokens1 = tokenize(s1)
    tokens2 = tokenize(s2)
    if not tokens1 or not tokens2:
        return 0.0

    common = [t1 for t1 in tokens1 if any(_tokens_match(t1, t2) for t2 in tokens2)]
    score = len(common) / max(len(tokens1), len(tokens2))

    if any(term in s1 and term in s2 for term in KEY_TERMS):
        score += KEY_TERM_BONUS

    return min(score, 1.0)


def match_reason(score: float, default: str = "Good match") -> str:
    """Describe a similarity score for people reviewing a mapping."""
    if score >= 0.9:
        return "Exact match"
    if score >= 0.7:
        return "High similarity"
    return default
