"""
Audit Route — GET /audit

Recent remediation runs from the audit trail, optionally for one project or run.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from contextguard.api.dependencies import get_audit_logger
from contextguard.audit.logger import AuditLogger
from contextguard.models.workflow_models import AuditEntry

router = APIRouter()


@router.get("/audit", response_model=list[AuditEntry])
async def audit_history(
    project_path: str | None = None,
    run_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=1000),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Most recent audit entries, oldest first."""
    return audit.history(project_path=project_path, run_id=run_id, limit=limit)
