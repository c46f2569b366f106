"""
Cross-File Data Models — File analyses, resolved references, root causes, fix plans.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from contextguard.core.toposort import topological_order
from contextguard.models.rule_models import Severity


class DependencyKind(str, Enum):
    """What kind of reference a dependency edge represents."""

    IMPORT = "import"
    FUNCTION_CALL = "function_call"
    TYPE_REFERENCE = "type_reference"
    CONSTANT_USAGE = "constant_usage"


class DependencyStatus(str, Enum):
    VALID = "valid"
    MISSING = "missing"
    MOVED = "moved"
    DUPLICATE = "duplicate"


class RootCauseType(str, Enum):
    AI_HALLUCINATION = "ai_hallucination"
    INCOMPLETE_REFACTOR = "incomplete_refactor"
    CIRCULAR_IMPORT = "circular_import"
    MISSING_EXPORT = "missing_export"
    DUPLICATE_DEFINITION = "duplicate_definition"


class FixStepKind(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    MOVE = "move"


class FileIssue(BaseModel):
    """An issue reported by the external file-analysis stage."""

    type: str
    severity: Severity
    description: str
    line: int | None = None
    cross_file_refs: list[str] = Field(default_factory=list)
    suggested_fix: str | None = None


class ReferencedSymbols(BaseModel):
    functions: list[str] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)
    constants: list[str] = Field(default_factory=list)


class FileAnalysis(BaseModel):
    """Per-file static facts supplied by an external analysis stage."""

    file: str
    issues: list[FileIssue] = Field(default_factory=list)
    exports: list[str] = Field(default_factory=list)
    imports: list[str] = Field(default_factory=list)
    dependencies: ReferencedSymbols = Field(default_factory=ReferencedSymbols)
    health: float = Field(default=1.0, ge=0.0, le=1.0)


class CrossFileDependency(BaseModel):
    """One examined reference and how it resolved."""

    source: str = Field(..., description="File holding the reference")
    target: str = Field(
        ...,
        description="Owning file, or the bare identifier when no file contains it",
    )
    kind: DependencyKind
    status: DependencyStatus
    impact: Severity
    reference: str = Field(..., description="Referenced identifier")
    defined_in_target: bool = Field(
        default=False,
        description="Target file visibly defines the identifier (only set for unexported hits)",
    )
    description: str = ""


class RootCause(BaseModel):
    """A classified systemic defect explaining unresolved references."""

    id: str
    type: RootCauseType
    description: str
    evidence: list[str] = Field(default_factory=list)
    affected_files: list[str] = Field(default_factory=list)
    severity: Severity
    resolution_strategy: str


class FixStep(BaseModel):
    order: int
    kind: FixStepKind
    target: str
    action: str
    root_cause_id: str = ""
    depends_on: list[int] = Field(
        default_factory=list, description="Orders of steps that must complete first"
    )


class FixPlan(BaseModel):
    """Ordered remediation proposal."""

    id: str
    description: str
    steps: list[FixStep] = Field(default_factory=list)
    estimated_tokens: int = 0
    estimated_cost: float = 0.0

    def execution_order(self) -> list[FixStep]:
        """Steps with every declared dependency placed first."""
        return topological_order(
            self.steps, key=lambda s: s.order, depends_on=lambda s: s.depends_on
        )


class CrossFileReport(BaseModel):
    """Output of one analyze() call."""

    dependencies: list[CrossFileDependency] = Field(default_factory=list)
    root_causes: list[RootCause] = Field(default_factory=list)
    fix_plan: FixPlan


class DependencyGraph(BaseModel):
    """Directed file → file graph built from valid import edges."""

    nodes: list[str] = Field(default_factory=list)
    edges: dict[str, list[str]] = Field(default_factory=dict)

    def add_edge(self, source: str, target: str) -> None:
        for node in (source, target):
            if node not in self.edges:
                self.edges[node] = []
                self.nodes.append(node)
        if target not in self.edges[source]:
            self.edges[source].append(target)

    def get_neighbors(self, node: str) -> list[str]:
        return list(self.edges.get(node, []))
