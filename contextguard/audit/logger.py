"""
Remediation Audit Trail — one JSON line per remediate() run.

Entries are built from the run's RemediationResult, so the trail and the API
response never disagree. Reading back validates each line into an AuditEntry;
corrupt lines are skipped with a warning.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from pydantic import ValidationError

from contextguard.config import settings
from contextguard.models.workflow_models import (
    AuditEntry,
    Diagnosis,
    RemediateOptions,
    RemediationResult,
)

logger = logging.getLogger("contextguard.audit")


class AuditLogger:
    """Append-only remediation history backed by a JSON-lines file."""

    def __init__(self, log_path: str | Path | None = None) -> None:
        self.log_path = Path(log_path or settings.audit_log_path)

    def record(
        self,
        project_path: str,
        diagnosis: Diagnosis,
        options: RemediateOptions,
        result: RemediationResult,
    ) -> AuditEntry:
        """Turn a finished run into an audit entry and persist it."""
        entry = AuditEntry(
            run_id=str(uuid.uuid4()),
            project_path=project_path,
            workflow_id=result.workflow_id,
            phase_executed=result.phase_executed,
            severity=diagnosis.severity,
            dry_run=options.dry_run,
            steps_completed=result.steps_completed,
            steps_failed=result.steps_failed,
            rolled_back=result.rolled_back,
            success=result.success,
            duration_ms=result.total_duration_ms,
            backup_path=result.artifacts.backup_path,
        )
        self.append(entry)
        return entry

    def append(self, entry: AuditEntry) -> None:
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit entry {entry.run_id}: {e}")

    def history(
        self,
        project_path: str | None = None,
        run_id: str | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        """Most recent entries, oldest first, optionally for one project or run."""
        try:
            with open(self.log_path, encoding="utf-8") as f:
                lines = [line.strip() for line in f if line.strip()]
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error(f"Failed to read audit trail {self.log_path}: {e}")
            return []

        entries: list[AuditEntry] = []
        for number, line in enumerate(lines, start=1):
            try:
                entry = AuditEntry.model_validate_json(line)
            except ValidationError:
                logger.warning(f"Skipping corrupt audit line {number} in {self.log_path}")
                continue
            if project_path is not None and entry.project_path != project_path:
                continue
            if run_id is not None and entry.run_id != run_id:
                continue
            entries.append(entry)

        return entries[-limit:] if limit > 0 else entries
