"""
Rollback Manager — Runs the configured rollback procedures after a required step fails.

The built-in `restore_backup` action restores the project from the backup
taken at the start of the run. Any other procedure is dispatched to a
registered handler, or logged as delegated to external tooling.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from contextguard.engine.backup_manager import BackupManager
from contextguard.models.workflow_models import WorkflowStep

logger = logging.getLogger("contextguard.engine.rollback")

RESTORE_BACKUP = "restore_backup"

# (project_path, failed_step, procedure_config) -> success
RollbackHandler = Callable[[str, WorkflowStep, Any], bool]


class RollbackManager:
    """
    Executes rollback procedures for a halted phase.

    Usage:
        mgr = RollbackManager(BackupManager())
        mgr.rollback(project, failed_step, completed, procedures, backup_path, log)
    """

    def __init__(
        self,
        backup_manager: BackupManager | None = None,
        handlers: dict[str, RollbackHandler] | None = None,
    ) -> None:
        self.backup_manager = backup_manager or BackupManager()
        self.handlers = handlers or {}

    @staticmethod
    def last_rollback_point(completed: list[WorkflowStep]) -> WorkflowStep | None:
        """Most recent completed step flagged as a rollback point."""
        for step in reversed(completed):
            if step.rollback_point:
                return step
        return None

    def rollback(
        self,
        project_path: str,
        failed_step: WorkflowStep,
        completed: list[WorkflowStep],
        procedures: dict[str, Any],
        backup_path: str | None,
        log: Callable[[str], None],
    ) -> bool:
        """
        Run every configured procedure in declaration order.

        Returns:
            True if at least one procedure ran; False when none are configured.
        """
        log(f"Initiating rollback for failed step: {failed_step.label}")

        checkpoint = self.last_rollback_point(completed)
        if checkpoint is not None:
            log(f"Last rollback point: {checkpoint.label}")

        if not procedures:
            log("No rollback procedures configured")
            return False

        for name, procedure in procedures.items():
            action = procedure.get("action", name) if isinstance(procedure, dict) else name
            try:
                self._run_procedure(name, action, procedure, project_path, failed_step, backup_path, log)
            except Exception as e:
                logger.exception(f"Rollback procedure '{name}' failed: {e}")
                log(f"Rollback procedure '{name}' failed: {e}")

        return True

    def _run_procedure(
        self,
        name: str,
        action: str,
        procedure: Any,
        project_path: str,
        failed_step: WorkflowStep,
        backup_path: str | None,
        log: Callable[[str], None],
    ) -> None:
        if action == RESTORE_BACKUP:
            if backup_path and Path(backup_path).is_dir():
                self.backup_manager.restore(backup_path, project_path)
                log(f"Rollback '{name}': restored project from {backup_path}")
            else:
                log(f"Rollback '{name}': no backup available to restore")
            return

        handler = self.handlers.get(name) or self.handlers.get(action)
        if handler is not None:
            ok = handler(project_path, failed_step, procedure)
            log(f"Rollback '{name}': {'completed' if ok else 'reported failure'}")
            return

        log(f"Rollback '{name}': delegated to external tooling")
