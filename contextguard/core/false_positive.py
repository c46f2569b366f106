"""
False-Positive Filters — Post-hoc removal of symptoms the catalog marks as noise.

Two kinds of filter:
  1. development_tools: path fragments (glob stars stripped) excluded for every rule
  2. rule_filters: declarative predicates keyed by rule id
"""

from __future__ import annotations

import re

from contextguard.models.rule_models import FalsePositiveFilters, RuleFilter, Symptom

DEFAULT_RULE_FILTERS: list[RuleFilter] = [
    RuleFilter(rule_id="stale_todos", path_contains=["node_modules", "vendor"]),
]


def _normalize_fragment(fragment: str) -> str:
    """'**/scripts/**' → '/scripts/'."""
    return fragment.replace("\\", "/").replace("*", "")


def _as_matchable(path: str) -> str:
    return "/" + path.replace("\\", "/").lstrip("/")


class FalsePositiveFilter:
    """Compiled view of a catalog's false_positive_filters section."""

    def __init__(self, filters: FalsePositiveFilters) -> None:
        self.path_fragments = [
            frag for frag in (_normalize_fragment(f) for f in filters.development_tools) if frag.strip("/")
        ]
        rule_filters = filters.rule_filters if filters.rule_filters is not None else DEFAULT_RULE_FILTERS
        self.rule_filters: dict[str, list[tuple[list[str], re.Pattern[str] | None]]] = {}
        for rf in rule_filters:
            evidence_re = re.compile(rf.evidence_regex, re.IGNORECASE) if rf.evidence_regex else None
            self.rule_filters.setdefault(rf.rule_id, []).append((rf.path_contains, evidence_re))

    def is_excluded_path(self, path: str) -> bool:
        target = _as_matchable(path)
        return any(frag in target for frag in self.path_fragments)

    def keep(self, symptom: Symptom) -> bool:
        """False when the symptom is a known false positive."""
        if self.is_excluded_path(symptom.file):
            return False

        target = _as_matchable(symptom.file)
        for path_contains, evidence_re in self.rule_filters.get(symptom.rule_id, []):
            if any(frag in target for frag in path_contains):
                return False
            if evidence_re is not None and evidence_re.search(symptom.evidence):
                return False

        return True
