"""
Confidence Scoring — Turns one regex match into a confidence in [0, 1].

    base       = 0.80 if the rule has a conditional detection rule else 0.70
    staleness  = min(0.95, 0.70 + (days_old - max_age_days) × 0.05)   (dated, stale matches only)
    negation   = × 0.5 when no/not/disable/skip precedes the match
    result     = clamp(confidence, 0, 1)
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from contextguard.models.rule_models import SymptomRule

BASE_CONFIDENCE = 0.70
CONDITIONAL_CONFIDENCE = 0.80
STALENESS_CEILING = 0.95
STALENESS_STEP_PER_DAY = 0.05
NEGATION_FACTOR = 0.5

NEGATION_RE = re.compile(r"\b(no|not|disable|skip)\b", re.IGNORECASE)
DATE_RE = re.compile(r"(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4})")


def parse_embedded_date(text: str) -> datetime | None:
    """Extract the first ISO (YYYY-MM-DD) or US (M/D/YYYY) date from text."""
    match = DATE_RE.search(text)
    if not match:
        return None
    raw = match.group(1)
    fmt = "%Y-%m-%d" if "-" in raw else "%m/%d/%Y"
    try:
        return datetime.strptime(raw, fmt).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def staleness_confidence(
    rule: SymptomRule, matched_text: str, now: datetime, confidence: float
) -> float:
    """Raise confidence for dated matches older than the rule's max age."""
    max_age = rule.max_age_days
    if max_age is None:
        return confidence
    dated = parse_embedded_date(matched_text)
    if dated is None:
        return confidence
    days_old = (now - dated).total_seconds() / 86400
    if days_old <= max_age:
        return confidence
    return min(STALENESS_CEILING, BASE_CONFIDENCE + (days_old - max_age) * STALENESS_STEP_PER_DAY)


def is_negated(content: str, match_start: int, lookback: int) -> bool:
    """True when a negation token occurs in the `lookback` chars before the match."""
    window = content[max(0, match_start - lookback):match_start]
    return NEGATION_RE.search(window) is not None


def score_match(
    rule: SymptomRule,
    match: re.Match[str],
    content: str,
    now: datetime | None = None,
    lookback: int = 50,
) -> float:
    """Compute the confidence of a single match."""
    now = now or datetime.now(timezone.utc)
    confidence = CONDITIONAL_CONFIDENCE if rule.is_conditional else BASE_CONFIDENCE
    confidence = staleness_confidence(rule, match.group(0), now, confidence)

    if is_negated(content, match.start(), lookback):
        confidence *= NEGATION_FACTOR

    return max(0.0, min(1.0, confidence))
