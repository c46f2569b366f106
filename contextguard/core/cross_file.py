"""
Cross-File Dependency Analyzer — Resolves references and classifies root causes.

Pure function of its inputs: resolution misses become data, never exceptions.

Resolution per referenced identifier:
    exported by some file           → valid   / low       (target = owner file)
    present in another file's text  → missing / high      (target = that file)
    absent everywhere               → missing / critical  (target = identifier)

Root causes, in bucket order:
    ai_hallucination, incomplete_refactor, circular_import,
    missing_export, duplicate_definition
"""

from __future__ import annotations

import logging
import re

from contextguard.config import settings
from contextguard.core.dependency_graph import build_import_graph, detect_cycles
from contextguard.core.fix_planner import generate_fix_plan
from contextguard.models.graph_models import (
    CrossFileDependency,
    CrossFileReport,
    DependencyKind,
    DependencyStatus,
    FileAnalysis,
    RootCause,
    RootCauseType,
)
from contextguard.models.rule_models import Severity

logger = logging.getLogger("contextguard.cross_file")

RESOLUTION_STRATEGIES: dict[RootCauseType, str] = {
    RootCauseType.AI_HALLUCINATION: "Create missing functions/types based on usage context",
    RootCauseType.INCOMPLETE_REFACTOR: "Update export statements or fix import paths",
    RootCauseType.CIRCULAR_IMPORT: "Reorganize code to eliminate circular dependencies",
    RootCauseType.MISSING_EXPORT: "Add missing export statements",
    RootCauseType.DUPLICATE_DEFINITION: "Consolidate or rename duplicates",
}

DEFINITION_KEYWORDS = (
    "def", "function", "class", "const", "let", "var",
    "type", "interface", "struct", "func", "enum",
)


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _mention_re(identifier: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![\w$]){re.escape(identifier)}(?![\w$])")


def _definition_re(identifier: str) -> re.Pattern[str]:
    keywords = "|".join(DEFINITION_KEYWORDS)
    name = re.escape(identifier)
    return re.compile(
        rf"\b(?:{keywords})\s+{name}(?![\w$])|^\s*{name}\s*(?::[^=\n]*)?=(?!=)",
        re.MULTILINE,
    )


class CrossFileAnalyzer:
    """
    Builds the cross-file dependency picture for a set of analysed files.

    Usage:
        report = CrossFileAnalyzer().analyze(analyses, {"a.ts": "...", ...})
        report.root_causes, report.fix_plan
    """

    def __init__(self, cost_per_1k_tokens: float | None = None) -> None:
        self.cost_per_1k_tokens = (
            cost_per_1k_tokens if cost_per_1k_tokens is not None else settings.cost_per_1k_tokens
        )

    def analyze(
        self,
        analyses: list[FileAnalysis],
        contents: dict[str, str],
    ) -> CrossFileReport:
        """
        Resolve every reference, classify root causes, and plan fixes.

        Args:
            analyses: Per-file facts from the external analysis stage.
            contents: Raw file contents keyed by the same file paths.
        """
        logger.info(f"Cross-file analysis starting for {len(analyses)} files")

        logger.debug("step: building_dependency_graph")
        dependencies = self.build_dependencies(analyses, contents)

        logger.debug("step: detecting_root_causes")
        root_causes = self.detect_root_causes(dependencies, analyses, contents)

        logger.debug("step: generating_fix_plan")
        fix_plan = generate_fix_plan(root_causes, self.cost_per_1k_tokens)

        missing = sum(1 for d in dependencies if d.status != DependencyStatus.VALID)
        logger.info(
            f"Cross-file analysis complete: {len(dependencies)} references "
            f"({missing} unresolved), {len(root_causes)} root causes, "
            f"{len(fix_plan.steps)} fix steps"
        )
        return CrossFileReport(
            dependencies=dependencies,
            root_causes=root_causes,
            fix_plan=fix_plan,
        )

    # ── Resolution ──

    def build_dependencies(
        self,
        analyses: list[FileAnalysis],
        contents: dict[str, str],
    ) -> list[CrossFileDependency]:
        """One CrossFileDependency per import/function/type/constant reference."""
        exporters = self._export_map(analyses)
        known_files = _unique([a.file for a in analyses] + list(contents))

        dependencies: list[CrossFileDependency] = []
        for analysis in analyses:
            refs = (
                [(name, DependencyKind.IMPORT) for name in analysis.imports]
                + [(name, DependencyKind.FUNCTION_CALL) for name in analysis.dependencies.functions]
                + [(name, DependencyKind.TYPE_REFERENCE) for name in analysis.dependencies.types]
                + [(name, DependencyKind.CONSTANT_USAGE) for name in analysis.dependencies.constants]
            )
            for name, kind in refs:
                dependencies.append(
                    self._resolve(analysis.file, name, kind, exporters, known_files, contents)
                )
        return dependencies

    @staticmethod
    def _export_map(analyses: list[FileAnalysis]) -> dict[str, list[str]]:
        exporters: dict[str, list[str]] = {}
        for analysis in analyses:
            for name in analysis.exports:
                owners = exporters.setdefault(name, [])
                if analysis.file not in owners:
                    owners.append(analysis.file)
        return exporters

    def _resolve(
        self,
        source: str,
        name: str,
        kind: DependencyKind,
        exporters: dict[str, list[str]],
        known_files: list[str],
        contents: dict[str, str],
    ) -> CrossFileDependency:
        owners = exporters.get(name, [])
        if owners:
            others = [f for f in owners if f != source]
            return CrossFileDependency(
                source=source,
                target=others[0] if others else source,
                kind=kind,
                status=DependencyStatus.VALID,
                impact=Severity.LOW,
                reference=name,
            )

        mention = _mention_re(name)
        for file in known_files:
            if file == source:
                continue
            text = contents.get(file, "")
            if not mention.search(text):
                continue
            defined = bool(_definition_re(name).search(text))
            verb = "is defined in" if defined else "appears in"
            return CrossFileDependency(
                source=source,
                target=file,
                kind=kind,
                status=DependencyStatus.MISSING,
                impact=Severity.HIGH,
                reference=name,
                defined_in_target=defined,
                description=f"'{name}' {verb} {file} but is not exported",
            )

        return CrossFileDependency(
            source=source,
            target=name,
            kind=kind,
            status=DependencyStatus.MISSING,
            impact=Severity.CRITICAL,
            reference=name,
            description=f"Dependency '{name}' not found in any file",
        )

    # ── Root causes ──

    def detect_root_causes(
        self,
        dependencies: list[CrossFileDependency],
        analyses: list[FileAnalysis],
        contents: dict[str, str],
    ) -> list[RootCause]:
        known_files = set(a.file for a in analyses) | set(contents)
        missing = [d for d in dependencies if d.status == DependencyStatus.MISSING]
        root_causes: list[RootCause] = []

        # Pattern 1: references to things that exist nowhere
        hallucinations = [d for d in missing if d.target not in known_files]
        if hallucinations:
            root_causes.append(
                RootCause(
                    id="ai-hallucination-001",
                    type=RootCauseType.AI_HALLUCINATION,
                    description=(
                        f"{len(hallucinations)} references to non-existent functions/types"
                    ),
                    evidence=[f"{d.source} → {d.target}" for d in hallucinations],
                    affected_files=_unique([d.source for d in hallucinations]),
                    severity=Severity.CRITICAL,
                    resolution_strategy=RESOLUTION_STRATEGIES[RootCauseType.AI_HALLUCINATION],
                )
            )

        # Pattern 2: identifier still lives somewhere but is no longer exported
        unexported = [d for d in missing if d.target in known_files]
        if unexported:
            root_causes.append(
                RootCause(
                    id="incomplete-refactor-001",
                    type=RootCauseType.INCOMPLETE_REFACTOR,
                    description="Functions/types moved but exports not updated",
                    evidence=[f"{d.source} → {d.target} ({d.reference})" for d in unexported],
                    affected_files=_unique([d.target for d in unexported]),
                    severity=Severity.HIGH,
                    resolution_strategy=RESOLUTION_STRATEGIES[RootCauseType.INCOMPLETE_REFACTOR],
                )
            )

        # Pattern 3: import cycles
        cycles = detect_cycles(build_import_graph(dependencies))
        if cycles:
            root_causes.append(
                RootCause(
                    id="circular-import-001",
                    type=RootCauseType.CIRCULAR_IMPORT,
                    description=f"{len(cycles)} circular dependencies detected between files",
                    evidence=[" → ".join(cycle) for cycle in cycles],
                    affected_files=_unique([node for cycle in cycles for node in cycle]),
                    severity=Severity.HIGH,
                    resolution_strategy=RESOLUTION_STRATEGIES[RootCauseType.CIRCULAR_IMPORT],
                )
            )

        # Pattern 4: defined in the target file, export statement absent
        missing_exports = [d for d in unexported if d.defined_in_target]
        if missing_exports:
            root_causes.append(
                RootCause(
                    id="missing-export-001",
                    type=RootCauseType.MISSING_EXPORT,
                    description="Required functions/types not exported from modules",
                    evidence=[
                        f"{d.target} does not export '{d.reference}' needed by {d.source}"
                        for d in missing_exports
                    ],
                    affected_files=_unique([d.target for d in missing_exports]),
                    severity=Severity.MEDIUM,
                    resolution_strategy=RESOLUTION_STRATEGIES[RootCauseType.MISSING_EXPORT],
                )
            )

        # Pattern 5: same identifier exported from several files
        duplicates = {
            name: owners for name, owners in self._export_map(analyses).items() if len(owners) > 1
        }
        if duplicates:
            root_causes.append(
                RootCause(
                    id="duplicate-def-001",
                    type=RootCauseType.DUPLICATE_DEFINITION,
                    description="Same function/type defined in multiple files",
                    evidence=[f"{name} in {', '.join(owners)}" for name, owners in duplicates.items()],
                    affected_files=_unique([f for owners in duplicates.values() for f in owners]),
                    severity=Severity.MEDIUM,
                    resolution_strategy=RESOLUTION_STRATEGIES[RootCauseType.DUPLICATE_DEFINITION],
                )
            )

        return root_causes
