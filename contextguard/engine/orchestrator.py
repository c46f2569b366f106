"""
Remediation Orchestrator — Runs a declarative workflow phase chosen by severity.

Full run:
1. Load (cached) workflow config — fatal on error
2. Select entry phase from the diagnosis severity
3. Back up the project when critical and requested
4. Order phase steps by depends_on (dependencies first)
5. Execute steps one at a time; optional failures are recorded
6. A required failure halts the phase and triggers rollback
7. Return a RemediationResult (never raises for step failures)
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from contextguard.audit.logger import AuditLogger
from contextguard.config import settings
from contextguard.core.cross_file import CrossFileAnalyzer
from contextguard.core.symptom_detector import SymptomDetector
from contextguard.core.toposort import topological_order
from contextguard.engine.backup_manager import BackupManager
from contextguard.engine.rollback_manager import RollbackManager, RollbackHandler
from contextguard.engine.step_runners import (
    AnalysisProvider,
    RecoveryHandler,
    StepContext,
    execute_step,
    run_named_recovery,
)
from contextguard.engine.workflow_loader import WorkflowLoader
from contextguard.errors import ConfigError
from contextguard.models.workflow_models import (
    Diagnosis,
    RemediateOptions,
    RemediationArtifacts,
    RemediationResult,
    StepOutcome,
    WorkflowConfig,
    WorkflowPhase,
    WorkflowStep,
)

logger = logging.getLogger("contextguard.engine.orchestrator")


def resolve_execution_order(steps: list[WorkflowStep]) -> list[WorkflowStep]:
    """Dependency-respecting step order. Raises CycleError on cyclic depends_on."""
    return topological_order(steps, key=lambda s: s.id, depends_on=lambda s: s.depends_on)


class RemediationOrchestrator:
    """
    Executes remediation workflow phases.

    One instance per project: the detector, loader and run history are owned
    by the instance and never shared.
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        detector: SymptomDetector | None = None,
        analyzer: CrossFileAnalyzer | None = None,
        analysis_provider: AnalysisProvider | None = None,
        recovery_handlers: dict[str, RecoveryHandler] | None = None,
        rollback_handlers: dict[str, RollbackHandler] | None = None,
        backup_manager: BackupManager | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.loader = WorkflowLoader(config_path or settings.workflow_path)
        self.detector = detector or SymptomDetector()
        self.analyzer = analyzer
        self.analysis_provider = analysis_provider
        self.recovery_handlers = recovery_handlers or {}
        self.backup_manager = backup_manager or BackupManager(settings.backup_root)
        self.rollback_mgr = RollbackManager(self.backup_manager, rollback_handlers)
        self.audit_logger = audit_logger
        self._history: list[RemediationResult] = []

    def load_config(self) -> WorkflowConfig:
        """Load (or return cached) workflow config. Raises ConfigError."""
        return self.loader.get()

    def reload_config(self) -> WorkflowConfig:
        return self.loader.reload()

    def determine_entry_point(self, config: WorkflowConfig, severity: str | None) -> str:
        """First trigger whose condition names the severity wins."""
        if not severity:
            return settings.default_phase

        pattern = re.compile(rf"\b{re.escape(severity)}\b", re.IGNORECASE)
        for trigger in config.workflow.triggers:
            if pattern.search(trigger.condition):
                return trigger.entry_point

        return settings.default_phase

    async def remediate(
        self,
        project_path: str | Path,
        diagnosis: Diagnosis | dict[str, Any] | None = None,
        options: RemediateOptions | None = None,
    ) -> RemediationResult:
        """
        Execute the workflow phase selected by the diagnosis.

        Raises:
            ConfigError: the workflow config is broken or lacks the selected phase.
        """
        start = time.monotonic()
        options = options or RemediateOptions()
        if not isinstance(diagnosis, Diagnosis):
            diagnosis = Diagnosis.model_validate(diagnosis or {})
        project = str(project_path)
        trace: list[str] = []

        def log(message: str) -> None:
            entry = f"[{datetime.now(timezone.utc).isoformat()}] {message}"
            trace.append(entry)
            logger.info(message)

        config = self.load_config()
        log("Config loaded successfully")
        log(f"Starting remediation for {project}")
        log(f"Diagnosis: {diagnosis.syndrome or 'unknown'} (severity: {diagnosis.severity or 'unknown'})")

        entry_point = self.determine_entry_point(config, diagnosis.severity)
        phase = config.phases.get(entry_point)
        if phase is None:
            raise ConfigError(f"No phase found for entry point: {entry_point}")
        log(f"Selected phase: {phase.name}")

        backup_path: str | None = None
        if options.create_backup and (diagnosis.severity or "").lower() == "critical":
            if options.dry_run:
                log("[DRY RUN] Would create backup")
            else:
                backup_path = str(await asyncio.to_thread(self.backup_manager.create, project))
                log(f"Creating backup at: {backup_path}")

        result = RemediationResult(
            workflow_id=config.workflow.id,
            phase_executed=phase.name,
            artifacts=RemediationArtifacts(backup_path=backup_path),
        )
        await self._execute_phase(project, config, phase, options, result, log)

        result.success = not result.steps_failed
        log(f"Remediation completed: {'SUCCESS' if result.success else 'FAILED'}")
        result.total_duration_ms = round((time.monotonic() - start) * 1000, 2)
        result.artifacts.logs = trace

        self._history.append(result)
        if self.audit_logger is not None:
            self.audit_logger.record(project, diagnosis, options, result)
        return result

    async def _execute_phase(
        self,
        project: str,
        config: WorkflowConfig,
        phase: WorkflowPhase,
        options: RemediateOptions,
        result: RemediationResult,
        log: Callable[[str], None],
    ) -> None:
        log(f"Executing phase: {phase.name}")
        order = resolve_execution_order(phase.steps)
        ctx = StepContext(
            project_path=project,
            config=config,
            detector=self.detector,
            log=log,
            scripts_dir=self.loader.path.parent,
            analyzer=self.analyzer,
            analysis_provider=self.analysis_provider,
            recovery_handlers=self.recovery_handlers,
            script_timeout=settings.script_timeout_seconds,
        )
        completed: list[WorkflowStep] = []
        step_metrics: dict[str, dict[str, Any]] = {}

        for step in order:
            log(f"Executing step: {step.label}")
            outcome = await self._run_step(step, ctx, options)
            step_metrics[step.id] = {"success": outcome.success, "duration_ms": outcome.duration_ms}

            if outcome.success:
                result.steps_completed.append(step.id)
                completed.append(step)
                log(f"Step completed: {step.label}")
                continue

            result.steps_failed.append(step.id)
            log(f"Step failed: {step.label} - {outcome.error}")

            if step.required:
                log("Required step failed - stopping workflow")
                result.rolled_back = await asyncio.to_thread(
                    self.rollback_mgr.rollback,
                    project,
                    step,
                    completed,
                    config.rollback_procedures,
                    result.artifacts.backup_path,
                    log,
                )
                break

        result.artifacts.metrics = {
            "steps_total": len(order),
            "steps_completed": len(result.steps_completed),
            "steps_failed": len(result.steps_failed),
            "steps_skipped": len(order) - len(result.steps_completed) - len(result.steps_failed),
            "dry_run": options.dry_run,
            "auto_confirm": options.auto_confirm,
            "step_metrics": step_metrics,
        }

    async def _run_step(
        self, step: WorkflowStep, ctx: StepContext, options: RemediateOptions
    ) -> StepOutcome:
        if step.validation:
            ctx.log(
                f"Validation checks declared for {step.label}: {', '.join(step.validation)} "
                f"(recorded only, not enforced)"
            )

        if options.dry_run:
            ctx.log(f"[DRY RUN] Would execute: {step.label}")
            return StepOutcome(success=True)

        try:
            outcome = await execute_step(step, ctx)
        except Exception as e:
            logger.exception(f"Step '{step.id}' raised")
            outcome = StepOutcome(success=False, error=f"{type(e).__name__}: {e}")

        if not outcome.success and step.fallback:
            ctx.log(f"Attempting fallback '{step.fallback}' for step: {step.label}")
            try:
                fallback = run_named_recovery(step.fallback, step, ctx)
            except Exception as e:
                logger.exception(f"Fallback '{step.fallback}' for step '{step.id}' raised")
                fallback = StepOutcome(success=False, error=f"{type(e).__name__}: {e}")
            if fallback.success:
                ctx.log(f"Fallback '{step.fallback}' recovered step: {step.label}")
                return StepOutcome(
                    success=True,
                    duration_ms=outcome.duration_ms,
                    details={"recovered_by": step.fallback, "original_error": outcome.error},
                )
            ctx.log(f"Fallback '{step.fallback}' failed: {fallback.error}")
        return outcome

    def execution_metrics(self) -> dict[str, Any]:
        """Success rate and average duration across this instance's runs."""
        runs = len(self._history)
        if not runs:
            return {"runs": 0, "success_rate": 0.0, "average_duration_ms": 0.0}
        return {
            "runs": runs,
            "success_rate": sum(1 for r in self._history if r.success) / runs,
            "average_duration_ms": sum(r.total_duration_ms for r in self._history) / runs,
        }
