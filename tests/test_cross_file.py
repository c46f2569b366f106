"""
Tests for the Cross-File Dependency Analyzer.
"""

import pytest

from contextguard.core.cross_file import CrossFileAnalyzer
from contextguard.models.graph_models import (
    DependencyKind,
    DependencyStatus,
    FileAnalysis,
    ReferencedSymbols,
    RootCauseType,
)
from contextguard.models.rule_models import Severity


@pytest.fixture
def analyzer():
    return CrossFileAnalyzer(cost_per_1k_tokens=0.003)


def _causes_by_type(report):
    return {cause.type: cause for cause in report.root_causes}


def test_unexported_function_is_incomplete_refactor(analyzer):
    analyses = [
        FileAnalysis(file="fileA.ts", exports=[]),
        FileAnalysis(file="fileB.ts", imports=["foo"]),
    ]
    contents = {
        "fileA.ts": "function foo() { return 1; }\n",
        "fileB.ts": "import { foo } from './fileA';\nfoo();\n",
    }

    report = analyzer.analyze(analyses, contents)

    [dep] = report.dependencies
    assert dep.source == "fileB.ts"
    assert dep.target == "fileA.ts"
    assert dep.status == DependencyStatus.MISSING
    assert dep.impact == Severity.HIGH
    assert dep.defined_in_target

    causes = _causes_by_type(report)
    assert RootCauseType.AI_HALLUCINATION not in causes
    refactor = causes[RootCauseType.INCOMPLETE_REFACTOR]
    assert refactor.affected_files == ["fileA.ts"]
    assert refactor.severity == Severity.HIGH
    assert causes[RootCauseType.MISSING_EXPORT].affected_files == ["fileA.ts"]


def test_reference_found_nowhere_is_hallucination(analyzer):
    analyses = [
        FileAnalysis(file="a.py", dependencies=ReferencedSymbols(functions=["summon_data"])),
        FileAnalysis(file="b.py"),
    ]
    contents = {"a.py": "summon_data()\n", "b.py": "x = 1\n"}

    report = analyzer.analyze(analyses, contents)

    [dep] = report.dependencies
    assert dep.kind == DependencyKind.FUNCTION_CALL
    assert dep.target == "summon_data"
    assert dep.impact == Severity.CRITICAL

    [cause] = report.root_causes
    assert cause.type == RootCauseType.AI_HALLUCINATION
    assert cause.id == "ai-hallucination-001"
    assert cause.affected_files == ["a.py"]
    assert cause.evidence == ["a.py → summon_data"]


def test_exported_reference_is_valid(analyzer):
    analyses = [
        FileAnalysis(file="a.ts", imports=["helper"], dependencies=ReferencedSymbols(types=["Shape"])),
        FileAnalysis(file="b.ts", exports=["helper", "Shape"]),
    ]

    report = analyzer.analyze(analyses, {})

    assert [d.status for d in report.dependencies] == [DependencyStatus.VALID] * 2
    assert all(d.target == "b.ts" and d.impact == Severity.LOW for d in report.dependencies)
    assert report.root_causes == []
    assert report.fix_plan.steps == []


def test_every_reference_yields_exactly_one_dependency(analyzer):
    analyses = [
        FileAnalysis(
            file="a.ts",
            imports=["x", "y"],
            dependencies=ReferencedSymbols(functions=["f"], types=["T"], constants=["MAX"]),
        ),
        FileAnalysis(file="b.ts", exports=["x"], imports=["z"]),
    ]
    contents = {"a.ts": "", "b.ts": "const MAX = 3\n"}

    report = analyzer.analyze(analyses, contents)

    assert len(report.dependencies) == 6
    kinds = [d.kind for d in report.dependencies if d.source == "a.ts"]
    assert kinds == [
        DependencyKind.IMPORT,
        DependencyKind.IMPORT,
        DependencyKind.FUNCTION_CALL,
        DependencyKind.TYPE_REFERENCE,
        DependencyKind.CONSTANT_USAGE,
    ]
    constant = next(d for d in report.dependencies if d.reference == "MAX")
    assert constant.target == "b.ts"
    assert constant.defined_in_target


def test_mention_without_definition_is_not_missing_export(analyzer):
    analyses = [
        FileAnalysis(file="a.ts", imports=["render"]),
        FileAnalysis(file="b.ts"),
    ]
    contents = {"a.ts": "render()\n", "b.ts": "// render used to live here\n"}

    report = analyzer.analyze(analyses, contents)

    causes = _causes_by_type(report)
    assert RootCauseType.INCOMPLETE_REFACTOR in causes
    assert RootCauseType.MISSING_EXPORT not in causes


def test_substring_is_not_a_mention(analyzer):
    analyses = [FileAnalysis(file="a.ts", imports=["load"]), FileAnalysis(file="b.ts")]
    contents = {"a.ts": "", "b.ts": "function loadAll() {}\n"}

    report = analyzer.analyze(analyses, contents)

    assert report.dependencies[0].impact == Severity.CRITICAL


def test_import_cycle_is_reported(analyzer):
    analyses = [
        FileAnalysis(file="a.ts", exports=["a_fn"], imports=["b_fn"]),
        FileAnalysis(file="b.ts", exports=["b_fn"], imports=["a_fn"]),
    ]

    report = analyzer.analyze(analyses, {})

    [cause] = report.root_causes
    assert cause.type == RootCauseType.CIRCULAR_IMPORT
    assert cause.evidence == ["a.ts → b.ts → a.ts"]
    assert cause.affected_files == ["a.ts", "b.ts"]


def test_duplicate_exports_are_reported(analyzer):
    analyses = [
        FileAnalysis(file="utils.ts", exports=["formatDate"]),
        FileAnalysis(file="helpers.ts", exports=["formatDate"]),
    ]

    report = analyzer.analyze(analyses, {})

    [cause] = report.root_causes
    assert cause.type == RootCauseType.DUPLICATE_DEFINITION
    assert cause.affected_files == ["utils.ts", "helpers.ts"]
    assert cause.evidence == ["formatDate in utils.ts, helpers.ts"]


def test_root_cause_bucket_order(analyzer):
    analyses = [
        FileAnalysis(file="a.ts", exports=["a_fn", "dup"], imports=["b_fn", "ghost", "hidden"]),
        FileAnalysis(file="b.ts", exports=["b_fn", "dup"], imports=["a_fn"]),
        FileAnalysis(file="c.ts"),
    ]
    contents = {"c.ts": "export function hidden() {}\n"}

    report = analyzer.analyze(analyses, contents)

    assert [c.type for c in report.root_causes] == [
        RootCauseType.AI_HALLUCINATION,
        RootCauseType.INCOMPLETE_REFACTOR,
        RootCauseType.CIRCULAR_IMPORT,
        RootCauseType.MISSING_EXPORT,
        RootCauseType.DUPLICATE_DEFINITION,
    ]
    orders = [s.order for s in report.fix_plan.steps]
    assert orders == list(range(1, len(orders) + 1))


def test_analysis_does_not_raise_on_empty_input(analyzer):
    report = analyzer.analyze([], {})

    assert report.dependencies == []
    assert report.root_causes == []
    assert report.fix_plan.estimated_tokens == 500
