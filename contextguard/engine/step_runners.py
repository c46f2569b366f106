"""
Step Runners — One evaluation function per workflow step type.

    script / automation → spawn [interpreter?, script, project_path]; success = exit 0
    analysis            → run the symptom detector (or the cross-file analyzer)
    recovery            → look up a named recovery strategy
    anything else       → success
"""

from __future__ import annotations

import asyncio
import logging
import re
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from contextguard.core.cross_file import CrossFileAnalyzer
from contextguard.core.symptom_detector import SymptomDetector
from contextguard.errors import ContextGuardError, ScriptExecutionError
from contextguard.models.graph_models import FileAnalysis
from contextguard.models.workflow_models import StepOutcome, WorkflowConfig, WorkflowStep

logger = logging.getLogger("contextguard.engine.steps")

# (project_path, step, strategy_config) -> success
RecoveryHandler = Callable[[str, WorkflowStep, Any], bool]
# project_path -> (analyses, contents)
AnalysisProvider = Callable[[str], tuple[list[FileAnalysis], dict[str, str]]]

MAX_OUTPUT_CHARS = 200


@dataclass
class StepContext:
    """Everything a step runner may touch during one remediation run."""

    project_path: str
    config: WorkflowConfig
    detector: SymptomDetector
    log: Callable[[str], None]
    scripts_dir: Path
    analyzer: CrossFileAnalyzer | None = None
    analysis_provider: AnalysisProvider | None = None
    recovery_handlers: dict[str, RecoveryHandler] = field(default_factory=dict)
    script_timeout: float | None = None


def strategy_name(step: WorkflowStep) -> str:
    """Recovery strategy id derived from a step id: non-alphanumerics → '_'."""
    return re.sub(r"[^a-zA-Z0-9]", "_", step.id)


def build_script_command(script: Path, project_path: str) -> list[str]:
    if script.suffix == ".py":
        return [sys.executable, str(script), project_path]
    return [str(script), project_path]


def _spawn(command: list[str], timeout: float | None) -> subprocess.CompletedProcess:
    return subprocess.run(command, capture_output=True, text=True, timeout=timeout)


async def run_script(step: WorkflowStep, ctx: StepContext) -> StepOutcome:
    """Spawn the step's script with the project path as its only argument."""
    script = Path(step.script or f"{step.id}.py")
    if not script.is_absolute():
        script = ctx.scripts_dir / script
    command = build_script_command(script, ctx.project_path)

    try:
        try:
            proc = await asyncio.to_thread(_spawn, command, ctx.script_timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise ScriptExecutionError(str(script), f"Process error: {e}") from e

        if proc.returncode != 0:
            raise ScriptExecutionError(
                str(script),
                f"Script exited with code {proc.returncode}: {proc.stderr.strip()[:500]}",
                exit_code=proc.returncode,
            )
    except ScriptExecutionError as e:
        ctx.log(f"Script error: {e}")
        return StepOutcome(success=False, error=str(e))

    ctx.log(f"Script output: {proc.stdout.strip()[:MAX_OUTPUT_CHARS]}")
    return StepOutcome(success=True, details={"exit_code": 0})


def _targets_cross_file(step: WorkflowStep) -> bool:
    text = f"{step.id} {step.name}".lower()
    return "cross_file" in text or "cross-file" in text


async def run_analysis(step: WorkflowStep, ctx: StepContext) -> StepOutcome:
    """Re-run detection; succeeds regardless of what it finds."""
    try:
        if _targets_cross_file(step) and ctx.analysis_provider is not None:
            analyses, contents = ctx.analysis_provider(ctx.project_path)
            analyzer = ctx.analyzer or CrossFileAnalyzer()
            report = await asyncio.to_thread(analyzer.analyze, analyses, contents)
            ctx.log(
                f"Cross-file analysis found {len(report.root_causes)} root causes, "
                f"{len(report.fix_plan.steps)} fix steps"
            )
            return StepOutcome(success=True, details={"root_causes": len(report.root_causes)})

        detection = await asyncio.to_thread(ctx.detector.detect, ctx.project_path)
    except ContextGuardError as e:
        return StepOutcome(success=False, error=str(e))

    ctx.log(f"Analysis found {len(detection.symptoms)} symptoms")
    return StepOutcome(
        success=True,
        details={"symptoms": len(detection.symptoms), "severity": detection.severity.value},
    )


def run_named_recovery(name: str, step: WorkflowStep, ctx: StepContext) -> StepOutcome:
    """Dispatch to a registered handler, else to a config-declared strategy."""
    handler = ctx.recovery_handlers.get(name)
    strategy_config = ctx.config.recovery_strategies.get(name)

    if handler is not None:
        ctx.log(f"Executing recovery strategy: {name}")
        if handler(ctx.project_path, step, strategy_config):
            return StepOutcome(success=True)
        return StepOutcome(success=False, error=f"Recovery strategy '{name}' reported failure")

    if name in ctx.config.recovery_strategies:
        ctx.log(f"Recovery strategy '{name}' is declared in config; delegated to external tooling")
        return StepOutcome(success=True, details={"delegated": True})

    return StepOutcome(success=False, error=f"Unknown recovery strategy: {name}")


async def run_recovery(step: WorkflowStep, ctx: StepContext) -> StepOutcome:
    return run_named_recovery(strategy_name(step), step, ctx)


async def run_default(step: WorkflowStep, ctx: StepContext) -> StepOutcome:
    return StepOutcome(success=True)


StepRunner = Callable[[WorkflowStep, StepContext], Awaitable[StepOutcome]]

STEP_RUNNERS: dict[str, StepRunner] = {
    "script": run_script,
    "automation": run_script,
    "analysis": run_analysis,
    "recovery": run_recovery,
}


async def execute_step(step: WorkflowStep, ctx: StepContext) -> StepOutcome:
    """Run one step through the runner for its type and time it."""
    runner = STEP_RUNNERS.get(step.type, run_default)
    start = time.monotonic()
    outcome = await runner(step, ctx)
    outcome.duration_ms = round((time.monotonic() - start) * 1000, 2)
    return outcome
