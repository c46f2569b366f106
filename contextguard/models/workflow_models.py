"""
Remediation Workflow Data Models — Workflow catalog, diagnosis input, run results.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WorkflowTrigger(BaseModel):
    condition: str = Field(..., description="Expression mentioning the severities it covers")
    entry_point: str = Field(..., description="Phase to run when the condition matches")


class WorkflowInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = "remediation"
    triggers: list[WorkflowTrigger] = Field(default_factory=list)


class WorkflowStep(BaseModel):
    """One executable unit of a phase. Immutable during a run."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    name: str = ""
    type: str = "manual"
    script: str | None = None
    depends_on: list[str] = Field(default_factory=list)
    required: bool = False
    rollback_point: bool = False
    validation: list[str] = Field(default_factory=list)
    fallback: str | None = Field(
        default=None, description="Recovery strategy attempted when the step fails"
    )

    @property
    def label(self) -> str:
        return self.name or self.id


class WorkflowPhase(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    description: str = ""
    priority: int = 0
    estimated_duration: str = ""
    steps: list[WorkflowStep] = Field(default_factory=list)


class WorkflowConfig(BaseModel):
    """Parsed workflow document."""

    model_config = ConfigDict(extra="allow")

    workflow: WorkflowInfo = Field(default_factory=WorkflowInfo)
    phases: dict[str, WorkflowPhase] = Field(default_factory=dict)
    recovery_strategies: dict[str, Any] = Field(default_factory=dict)
    rollback_procedures: dict[str, Any] = Field(default_factory=dict)


class Diagnosis(BaseModel):
    """Severity-bearing diagnosis produced upstream of the orchestrator."""

    model_config = ConfigDict(extra="allow")

    severity: str | None = None
    syndrome: str | None = None


class RemediateOptions(BaseModel):
    dry_run: bool = False
    create_backup: bool = False
    auto_confirm: bool = False


class StepOutcome(BaseModel):
    """Result of running a single step."""

    success: bool
    error: str | None = None
    duration_ms: float = 0.0
    details: dict[str, Any] = Field(default_factory=dict)


class RemediationArtifacts(BaseModel):
    backup_path: str | None = None
    logs: list[str] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)


class RemediationResult(BaseModel):
    """Outcome of one remediate() call."""

    workflow_id: str
    phase_executed: str
    steps_completed: list[str] = Field(default_factory=list)
    steps_failed: list[str] = Field(default_factory=list)
    total_duration_ms: float = 0.0
    success: bool = False
    rolled_back: bool = False
    artifacts: RemediationArtifacts = Field(default_factory=RemediationArtifacts)


class AuditEntry(BaseModel):
    """Audit metadata for one remediation run."""

    recorded_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    )
    run_id: str
    project_path: str
    workflow_id: str
    phase_executed: str
    severity: str | None = None
    dry_run: bool = False
    steps_completed: list[str] = Field(default_factory=list)
    steps_failed: list[str] = Field(default_factory=list)
    rolled_back: bool = False
    success: bool = False
    duration_ms: float = 0.0
    backup_path: str | None = None
