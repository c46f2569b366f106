"""
Symptom Detector — Scores a project against the declarative rule catalog.

Every rule is data (id, tier, weight, regex patterns); one generic matcher
evaluates all of them. Unreadable source files are skipped, never fatal.

    total_score = Σ(weight × confidence)
    severity    = critical if avg ≥ 8 or total ≥ 50
                  high     if avg ≥ 6 or total ≥ 25
                  medium   if avg ≥ 3 or total ≥ 10
                  low      otherwise
"""

from __future__ import annotations

import logging
import os
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from contextguard.config import settings
from contextguard.core.confidence import score_match
from contextguard.core.false_positive import FalsePositiveFilter
from contextguard.core.metrics import OptimizationMetrics
from contextguard.core.rule_loader import RuleLoader
from contextguard.models.rule_models import (
    SEVERITY_RANK,
    DetectionMetrics,
    DetectionResult,
    RuleCatalog,
    Severity,
    SeveritySummary,
    Symptom,
    SymptomRule,
)

logger = logging.getLogger("contextguard.detector")

MAX_EVIDENCE_CHARS = 100
REGEX_FLAGS = re.MULTILINE | re.IGNORECASE


def overall_severity(total_score: float, symptom_count: int) -> Severity:
    """Map an aggregate score onto a severity tier."""
    if not symptom_count:
        return Severity.LOW

    avg = total_score / symptom_count
    if avg >= 8 or total_score >= 50:
        return Severity.CRITICAL
    if avg >= 6 or total_score >= 25:
        return Severity.HIGH
    if avg >= 3 or total_score >= 10:
        return Severity.MEDIUM
    return Severity.LOW


def prioritize(symptoms: list[Symptom]) -> list[Symptom]:
    """Severity descending, then weight × confidence descending."""
    return sorted(
        symptoms,
        key=lambda s: (SEVERITY_RANK[s.severity], s.weighted_score),
        reverse=True,
    )


class SymptomDetector:
    """
    Scans source files against a rule catalog and produces scored symptoms.

    Usage:
        detector = SymptomDetector("rules/symptoms.yaml")
        result = detector.detect("/path/to/project")
    """

    def __init__(
        self,
        rules_path: str | Path | None = None,
        metrics: OptimizationMetrics | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.loader = RuleLoader(rules_path or settings.rules_path)
        self.metrics = metrics or OptimizationMetrics(settings.metrics_history_size)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.extensions = {ext.lower() for ext in settings.source_extensions}
        self.excluded_dirs = set(settings.excluded_dirs)
        self._patterns: dict[str, re.Pattern[str]] = {}

    def load_rules(self) -> RuleCatalog:
        """Load (or return the cached) catalog. Raises ConfigError if broken."""
        return self.loader.get()

    def reload_rules(self) -> RuleCatalog:
        self._patterns.clear()
        return self.loader.reload()

    def detect(self, project_root: str | Path) -> DetectionResult:
        """
        Run every rule against every source file under project_root.

        Returns:
            DetectionResult with prioritized symptoms and aggregate score.
        """
        start = time.monotonic()
        catalog = self.load_rules()
        root = Path(project_root)
        now = self.clock()

        threshold = catalog.detection_config.confidence_threshold
        if threshold is None:
            threshold = settings.confidence_threshold
        fp_filter = FalsePositiveFilter(catalog.false_positive_filters)
        rules = catalog.all_rules()

        files = self.find_project_files(root)
        symptoms: list[Symptom] = []

        for file_path in files:
            try:
                content = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping unreadable file {file_path}: {e}")
                continue

            relative = file_path.relative_to(root).as_posix()
            for rule in rules:
                for symptom in self._apply_rule(rule, relative, content, threshold, now):
                    if fp_filter.keep(symptom):
                        symptoms.append(symptom)
                        self.metrics.record_hit(rule.id)

        total_score = sum(s.weighted_score for s in symptoms)
        elapsed = (time.monotonic() - start) * 1000
        self.metrics.record_run([s.confidence for s in symptoms], elapsed)

        result = DetectionResult(
            total_score=total_score,
            severity=overall_severity(total_score, len(symptoms)),
            symptoms=prioritize(symptoms),
            summary=SeveritySummary(
                critical_count=sum(1 for s in symptoms if s.severity == Severity.CRITICAL),
                high_count=sum(1 for s in symptoms if s.severity == Severity.HIGH),
                medium_count=sum(1 for s in symptoms if s.severity == Severity.MEDIUM),
                low_count=sum(1 for s in symptoms if s.severity == Severity.LOW),
            ),
            metrics=DetectionMetrics(
                files_analyzed=len(files),
                detection_time_ms=round(elapsed, 2),
                rule_matches=len(symptoms),
            ),
        )

        logger.info(
            f"Detection complete in {elapsed:.0f}ms: {len(symptoms)} symptoms "
            f"across {len(files)} files, score {total_score:.2f} ({result.severity.value})"
        )
        return result

    def find_project_files(self, root: Path) -> list[Path]:
        """Source files under root by extension, skipping vendor/build/test dirs."""
        found: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in self.excluded_dirs)
            for name in sorted(filenames):
                if Path(name).suffix.lower() in self.extensions:
                    found.append(Path(dirpath) / name)
        return found

    def _apply_rule(
        self,
        rule: SymptomRule,
        relative_path: str,
        content: str,
        threshold: float,
        now: datetime,
    ) -> list[Symptom]:
        symptoms: list[Symptom] = []
        for pattern in rule.patterns:
            regex = self._compiled(pattern.regex)
            for match in regex.finditer(content):
                confidence = score_match(
                    rule, match, content, now=now, lookback=settings.negation_lookback_chars
                )
                if confidence < threshold:
                    continue
                symptoms.append(
                    Symptom(
                        rule_id=rule.id,
                        name=rule.name,
                        description=rule.description,
                        weight=rule.weight,
                        confidence=confidence,
                        severity=rule.severity,
                        file=relative_path,
                        line=content.count("\n", 0, match.start()) + 1,
                        evidence=match.group(0)[:MAX_EVIDENCE_CHARS],
                        pattern=pattern.regex,
                    )
                )
        return symptoms

    def _compiled(self, regex: str) -> re.Pattern[str]:
        if regex not in self._patterns:
            self._patterns[regex] = re.compile(regex, REGEX_FLAGS)
        return self._patterns[regex]

    def optimization_metrics(self) -> dict:
        """Rule hit frequency, average confidence, and average latency."""
        return self.metrics.summary()
