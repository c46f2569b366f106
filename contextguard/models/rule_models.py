"""
Symptom Rule Data Models — Rule catalog, symptoms, and detection results.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_RANK: dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


def _check_regex(value: str | None) -> str | None:
    if value is None:
        return value
    try:
        re.compile(value)
    except re.error as e:
        raise ValueError(f"invalid regex {value!r}: {e}") from e
    return value


class RulePattern(BaseModel):
    """One regex evaluated against full file content."""

    regex: str

    @field_validator("regex")
    @classmethod
    def must_compile(cls, value: str) -> str:
        return _check_regex(value)


class SymptomRule(BaseModel):
    """A single declarative detection rule from the catalog."""

    id: str = Field(..., description="Unique rule identifier, e.g. 'stale_todos'")
    name: str = ""
    description: str = ""
    weight: float = Field(..., ge=0)
    severity: Severity = Field(
        default=Severity.MEDIUM,
        description="Tier the rule was declared under in the catalog",
    )
    patterns: list[RulePattern] = Field(default_factory=list)
    detection_rules: dict[str, Any] | None = None
    settings: dict[str, Any] = Field(default_factory=dict)

    @field_validator("settings")
    @classmethod
    def max_age_must_be_number(cls, value: dict[str, Any]) -> dict[str, Any]:
        raw = value.get("max_age_days")
        if raw is None:
            return value
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValueError(f"settings.max_age_days must be a number, got {raw!r}")
        if raw < 0:
            raise ValueError(f"settings.max_age_days must be >= 0, got {raw}")
        return value

    @property
    def is_conditional(self) -> bool:
        """True when the rule declares an `if.condition` detection rule."""
        if not self.detection_rules:
            return False
        clause = self.detection_rules.get("if")
        return isinstance(clause, dict) and bool(clause.get("condition"))

    @property
    def max_age_days(self) -> float | None:
        """Staleness threshold; only staleness-style rules declare one."""
        value = self.settings.get("max_age_days")
        return float(value) if value is not None else None


class RuleFilter(BaseModel):
    """Drops symptoms of one rule by path fragment or evidence pattern."""

    rule_id: str
    path_contains: list[str] = Field(default_factory=list)
    evidence_regex: str | None = None

    @field_validator("evidence_regex")
    @classmethod
    def must_compile(cls, value: str | None) -> str | None:
        return _check_regex(value)


class FalsePositiveFilters(BaseModel):
    development_tools: list[str] = Field(default_factory=list)
    rule_filters: list[RuleFilter] | None = None


class DetectionConfig(BaseModel):
    confidence_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class RuleCatalog(BaseModel):
    """Parsed rule catalog document."""

    critical_symptoms: list[SymptomRule] = Field(default_factory=list)
    high_symptoms: list[SymptomRule] = Field(default_factory=list)
    medium_symptoms: list[SymptomRule] = Field(default_factory=list)
    low_symptoms: list[SymptomRule] = Field(default_factory=list)
    false_positive_filters: FalsePositiveFilters = Field(default_factory=FalsePositiveFilters)
    detection_config: DetectionConfig = Field(default_factory=DetectionConfig)

    def model_post_init(self, __context: Any) -> None:
        tiers = (
            (self.critical_symptoms, Severity.CRITICAL),
            (self.high_symptoms, Severity.HIGH),
            (self.medium_symptoms, Severity.MEDIUM),
            (self.low_symptoms, Severity.LOW),
        )
        for rules, severity in tiers:
            for rule in rules:
                rule.severity = severity

    def all_rules(self) -> list[SymptomRule]:
        """All rules, critical tier first, in catalog order."""
        return [
            *self.critical_symptoms,
            *self.high_symptoms,
            *self.medium_symptoms,
            *self.low_symptoms,
        ]


class Symptom(BaseModel):
    """One rule match with its confidence."""

    rule_id: str
    name: str = ""
    description: str = ""
    weight: float
    confidence: float = Field(..., ge=0.0, le=1.0)
    severity: Severity
    file: str = Field(..., description="Path relative to the scanned project root")
    line: int
    evidence: str = Field(default="", description="Matched text, truncated to 100 chars")
    pattern: str = Field(default="", description="Regex that produced the match")

    @property
    def weighted_score(self) -> float:
        return self.weight * self.confidence


class SeveritySummary(BaseModel):
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0


class DetectionMetrics(BaseModel):
    files_analyzed: int = 0
    detection_time_ms: float = 0.0
    rule_matches: int = 0


class DetectionResult(BaseModel):
    """Aggregated output of one detect() call."""

    total_score: float = 0.0
    severity: Severity = Severity.LOW
    symptoms: list[Symptom] = Field(default_factory=list)
    summary: SeveritySummary = Field(default_factory=SeveritySummary)
    metrics: DetectionMetrics = Field(default_factory=DetectionMetrics)
